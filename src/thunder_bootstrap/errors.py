"""Error handling framework for thunder-bootstrap."""

from __future__ import annotations

from enum import IntEnum
from typing import Any


class ExitCode(IntEnum):
    """thunder-bootstrap exit codes."""

    SUCCESS = 0
    CONFIG_ERROR = 1  # Configuration error (user fixable)
    STEP_FAILED = 2  # One or more bootstrap steps failed
    READINESS_TIMEOUT = 3  # Server never became ready
    FATAL_ERROR = 4  # Server crashed or unexpected error
    INTERRUPTED = 130


class BootstrapError(Exception):
    """Base exception for thunder-bootstrap errors."""

    exit_code: ExitCode = ExitCode.FATAL_ERROR

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for JSON output."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "exit_code": self.exit_code,
            **self.context,
        }


class ConfigError(BootstrapError):
    """Configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class ProvisionError(BootstrapError):
    """A provisioning call returned something other than success or conflict."""

    exit_code = ExitCode.STEP_FAILED

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str = "",
        **context: Any,
    ) -> None:
        detail = message
        if status_code is not None:
            detail = f"{message} (HTTP {status_code})"
        if body:
            detail = f"{detail}: {body}"
        super().__init__(detail, status_code=status_code, body=body, **context)
        self.status_code = status_code
        self.body = body


class ServerStartError(BootstrapError):
    """Server process failed to launch or exited before becoming ready."""

    exit_code = ExitCode.FATAL_ERROR


class ServerNotReadyError(BootstrapError):
    """Readiness endpoint did not answer 200; nothing may be provisioned."""

    exit_code = ExitCode.READINESS_TIMEOUT

    def __init__(self, message: str, last_status: int, last_body: str = "", **context: Any) -> None:
        super().__init__(message, last_status=last_status, last_body=last_body, **context)
        self.last_status = last_status
        self.last_body = last_body


class ReadinessTimeoutError(ServerNotReadyError):
    """Server did not report ready within the startup timeout."""

    def __init__(self, timeout: float, last_status: int, last_body: str = "") -> None:
        super().__init__(
            f"Server not ready after {timeout:g}s (last status {last_status})",
            last_status,
            last_body,
            timeout=timeout,
        )
        self.timeout = timeout
