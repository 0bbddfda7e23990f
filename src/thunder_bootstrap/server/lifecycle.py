"""Server lifecycle management.

Starts the Thunder server as a child process, waits for its readiness
endpoint, and guarantees the process is stopped exactly once however the
caller exits.

    STOPPED -> STARTING -> READY -> RUNNING -> STOPPING -> STOPPED
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import IO, Any, TypeVar

from thunder_bootstrap.client import ApiClient
from thunder_bootstrap.config import ApiSettings, ServerSettings
from thunder_bootstrap.errors import ConfigError, ReadinessTimeoutError, ServerStartError
from thunder_bootstrap.server.ports import release_port

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ServerState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    READY = "ready"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass(frozen=True)
class ServerHandle:
    """The live server process."""

    pid: int
    base_url: str


class ServerLifecycle:
    """Start, health-check and stop one Thunder server process.

    Only one server handle is live per instance; :meth:`stop` is idempotent and
    runs the teardown at most once per started process. Used as a context
    manager, the server is stopped on every exit path.

    Attributes:
        server: Process and readiness settings
        api: Connection settings used for readiness polling
        security_bypass: Start with security checks disabled (bootstrap mode)
        state: Current lifecycle state
        handle: Live server handle, or None when stopped
    """

    def __init__(
        self,
        server: ServerSettings,
        api: ApiSettings,
        security_bypass: bool = True,
        client: ApiClient | None = None,
    ) -> None:
        self.server = server
        self.api = api
        self.security_bypass = security_bypass
        self.state = ServerState.STOPPED
        self.handle: ServerHandle | None = None
        self._process: subprocess.Popen[bytes] | None = None
        self._log: IO[bytes] | None = None
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> ApiClient:
        if self._client is None:
            self._client = ApiClient.from_settings(self.api)
        return self._client

    def resolve_binary(self) -> str:
        """Locate the server binary, relative to the working directory or on PATH."""
        binary = self.server.binary
        candidate = binary if binary.is_absolute() else self.server.working_dir / binary
        if candidate.is_file():
            return str(candidate.resolve())
        found = shutil.which(str(binary))
        if found:
            return found
        raise ConfigError(f"Server binary not found: {candidate}", binary=str(binary))

    def build_command(self) -> list[str]:
        """Command line for the server, wrapped in the debugger in debug mode."""
        binary = self.resolve_binary()
        if not self.server.debug:
            return [binary]

        debugger = shutil.which(self.server.debugger)
        if debugger is None:
            raise ConfigError(
                f"Debugger '{self.server.debugger}' not found on PATH",
                debugger=self.server.debugger,
            )
        return [
            debugger,
            "exec",
            f"--listen=:{self.server.debug_port}",
            "--headless=true",
            "--api-version=2",
            "--accept-multiclient",
            binary,
        ]

    def build_env(self) -> dict[str, str]:
        """Child environment; the bypass variable is set or removed, never inherited."""
        env = dict(os.environ)
        env.pop(self.server.security_bypass_var, None)
        if self.security_bypass:
            env[self.server.security_bypass_var] = "true"
        return env

    def start(self) -> ServerHandle:
        """Launch the server process.

        Raises:
            ServerStartError: If a server is already running or the launch fails
            ConfigError: If the binary or debugger cannot be found
        """
        if self._process is not None:
            raise ServerStartError(f"Server already running (PID {self._process.pid})")

        command = self.build_command()
        if self.server.release_port:
            release_port(self.server.port)

        self.state = ServerState.STARTING
        stdout: IO[bytes] | None = None
        if self.server.log_file:
            self._log = open(self.server.log_file, "ab")
            stdout = self._log

        mode = "security checks disabled" if self.security_bypass else "production mode"
        logger.info(f"Starting server ({mode}): {' '.join(command)}")
        if self.server.debug:
            logger.info(f"Debugger listening on port {self.server.debug_port}")

        try:
            self._process = subprocess.Popen(
                command,
                cwd=self.server.working_dir,
                env=self.build_env(),
                stdout=stdout,
                stderr=subprocess.STDOUT if stdout else None,
                start_new_session=os.name != "nt",
            )
        except OSError as e:
            self._close_log()
            self.state = ServerState.STOPPED
            raise ServerStartError(f"Failed to launch server: {e}") from e

        self.handle = ServerHandle(pid=self._process.pid, base_url=self.api.base_url)
        logger.debug(f"Server PID {self.handle.pid}")
        return self.handle

    def wait_until_ready(self) -> None:
        """Poll the readiness endpoint until it answers 200.

        Polls every ``poll_interval`` seconds and never waits past
        ``startup_timeout``; the final poll happens at the deadline.

        Raises:
            ServerStartError: If the process exits while waiting
            ReadinessTimeoutError: If the deadline passes first
        """
        if self._process is None:
            raise ServerStartError("Server is not running")

        interval = self.server.poll_interval
        timeout = self.server.startup_timeout
        deadline = time.monotonic() + timeout

        logger.info(f"Waiting for {self.api.base_url}{self.server.readiness_path}")
        while True:
            last = self.client.get(self.server.readiness_path)
            if last.status_code == 200:
                self.state = ServerState.READY
                logger.info("Server is ready")
                return

            returncode = self._process.poll()
            if returncode is not None:
                raise ServerStartError(
                    f"Server exited with code {returncode} before becoming ready",
                    returncode=returncode,
                )

            logger.debug(f"Not ready yet: {last.describe()}")
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ReadinessTimeoutError(timeout, last.status_code, last.body or (last.error or ""))
            # The last sleep is shortened so one more poll lands on the deadline
            time.sleep(min(interval, remaining))

    def run(self, fn: Callable[[], T]) -> T:
        """Call ``fn`` while in the RUNNING state."""
        if self.state is not ServerState.READY:
            raise ServerStartError(f"Server not ready (state: {self.state.value})")
        self.state = ServerState.RUNNING
        try:
            return fn()
        finally:
            if self.state is ServerState.RUNNING:
                self.state = ServerState.READY

    def wait(self) -> int:
        """Block until the server process exits on its own; return its exit code."""
        if self._process is None:
            raise ServerStartError("Server is not running")
        return self._process.wait()

    def stop(self) -> bool:
        """Stop the server process.

        Returns:
            True if a process was torn down, False if nothing was running
        """
        process = self._process
        if process is None:
            return False
        # Claim the process first so a re-entrant call (signal during teardown) is a no-op
        self._process = None
        self.state = ServerState.STOPPING

        try:
            if process.poll() is None:
                logger.info(f"Stopping server (PID {process.pid})")
                process.terminate()
                try:
                    process.wait(timeout=self.server.shutdown_timeout)
                except subprocess.TimeoutExpired:
                    logger.warning("Server didn't respond to SIGTERM, killing it")
                    process.kill()
                    process.wait()
                except BaseException:
                    # Interrupted while waiting; this is the only teardown, so finish it
                    logger.warning("Interrupted during shutdown, killing server")
                    process.kill()
                    process.wait()
                    raise
            else:
                logger.debug(f"Server already exited with code {process.returncode}")
        finally:
            self._close_log()
            self.handle = None
            self.state = ServerState.STOPPED
        logger.info("Server stopped")
        return True

    def _close_log(self) -> None:
        if self._log is not None:
            self._log.close()
            self._log = None

    def __enter__(self) -> ServerLifecycle:
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager, stopping the server."""
        self.stop()
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None


__all__ = [
    "ServerHandle",
    "ServerLifecycle",
    "ServerState",
]
