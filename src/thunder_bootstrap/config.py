"""Configuration models for thunder-bootstrap.

Every knob the bootstrap flow reads lives here and is validated once at
startup. Resolution order (highest to lowest priority):

1. Environment variables (``THUNDER_API_*``, ``THUNDER_SERVER_*``, ``BOOTSTRAP_*``)
2. The TOML file given with ``--config``
3. ``thunder-bootstrap.toml`` in the current directory
4. Built-in defaults
"""

from __future__ import annotations

import re
import tomllib
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from thunder_bootstrap.errors import ConfigError
from thunder_bootstrap.provision.context import DEFAULT_CONFLICT_MARKERS

CONFIG_FILE = "thunder-bootstrap.toml"

# Built-in provisioner scripts shipped with the package
DEFAULT_SCRIPTS_DIR = Path(__file__).parent / "defaults"


class _EnvFirstSettings(BaseSettings):
    """Settings where environment variables override values from the config file."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    def override(self, **changes: Any) -> Any:
        """Return a validated copy with ``changes`` applied; ``None`` values are ignored."""
        updates = {k: v for k, v in changes.items() if v is not None}
        if not updates:
            return self
        try:
            return type(self).model_validate({**self.model_dump(), **updates})
        except ValidationError as e:
            raise ConfigError(f"Invalid {type(self).__name__} override: {e}") from e


class ApiSettings(_EnvFirstSettings):
    """Provisioning API connection settings."""

    model_config = SettingsConfigDict(env_prefix="THUNDER_API_", extra="ignore")

    base_url: str = Field(
        default="https://localhost:8090",
        description="Base URL of the Thunder server",
    )
    verify_tls: bool = Field(
        default=False,
        description="Verify TLS certificates (local servers use self-signed certs)",
    )
    timeout: float = Field(
        default=10.0,
        gt=0,
        description="Per-request timeout in seconds",
    )

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http:// or https://, got {value!r}")
        return value.rstrip("/")


class ServerSettings(_EnvFirstSettings):
    """Server process and readiness settings."""

    model_config = SettingsConfigDict(env_prefix="THUNDER_SERVER_", extra="ignore")

    binary: Path = Field(
        default=Path("./thunder"),
        description="Server binary to launch",
    )
    working_dir: Path = Field(
        default=Path("."),
        description="Working directory for the server process",
    )
    port: int = Field(
        default=8090,
        gt=0,
        lt=65536,
        description="Port the server listens on",
    )
    readiness_path: str = Field(
        default="/health/readiness",
        description="Readiness endpoint polled after start",
    )
    poll_interval: float = Field(
        default=2.0,
        gt=0,
        description="Seconds between readiness polls",
    )
    startup_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Total seconds to wait for readiness",
    )
    shutdown_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait after SIGTERM before killing",
    )
    security_bypass_var: str = Field(
        default="THUNDER_SKIP_SECURITY",
        description="Environment variable that disables security checks in the server",
    )
    debug: bool = Field(
        default=False,
        description="Run the server under the debugger",
    )
    debug_port: int = Field(
        default=2345,
        gt=0,
        lt=65536,
        description="Port the debugger listens on",
    )
    debugger: str = Field(
        default="dlv",
        description="Debugger executable used in debug mode",
    )
    release_port: bool = Field(
        default=True,
        description="Kill processes already listening on the server port before start",
    )
    log_file: Path | None = Field(
        default=None,
        description="Write server output here instead of inheriting the terminal",
    )

    @model_validator(mode="after")
    def _check_timeouts(self) -> ServerSettings:
        if self.startup_timeout < self.poll_interval:
            raise ValueError(
                f"startup_timeout ({self.startup_timeout}) must be >= "
                f"poll_interval ({self.poll_interval})"
            )
        return self


class BootstrapSettings(_EnvFirstSettings):
    """Bootstrap runner settings."""

    model_config = SettingsConfigDict(env_prefix="BOOTSTRAP_", extra="ignore")

    scripts_dir: Path | None = Field(
        default=None,
        description="Directory of provisioner scripts (default: built-in scripts)",
    )
    fail_fast: bool = Field(
        default=True,
        description="Abort remaining steps after the first failure",
    )
    skip_pattern: str | None = Field(
        default=None,
        description="Regular expression; matching step names are skipped",
    )
    only_pattern: str | None = Field(
        default=None,
        description="Regular expression; only matching step names run",
    )
    conflict_markers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CONFLICT_MARKERS),
        description="Body substrings that turn an HTTP 400 into an 'already exists' conflict",
    )

    @field_validator("skip_pattern", "only_pattern")
    @classmethod
    def _check_pattern(cls, value: str | None) -> str | None:
        if not value:
            return None
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid regular expression {value!r}: {e}") from e
        return value

    @property
    def resolved_scripts_dir(self) -> Path:
        return self.scripts_dir or DEFAULT_SCRIPTS_DIR


class ThunderConfig:
    """Complete configuration for one thunder-bootstrap invocation."""

    def __init__(
        self,
        api: ApiSettings | None = None,
        server: ServerSettings | None = None,
        bootstrap: BootstrapSettings | None = None,
    ) -> None:
        self.api = api or ApiSettings()
        self.server = server or ServerSettings()
        self.bootstrap = bootstrap or BootstrapSettings()

    @classmethod
    def load(cls, config_path: Path | None = None) -> ThunderConfig:
        """Load configuration from file and environment.

        Raises:
            ConfigError: If the file is unreadable or any value fails validation.
        """
        config_data: dict[str, Any] = {}

        locations = []
        if config_path:
            locations.append(config_path)
        locations.append(Path.cwd() / CONFIG_FILE)

        for loc in locations:
            if loc.exists():
                try:
                    with open(loc, "rb") as f:
                        config_data = tomllib.load(f)
                except (OSError, tomllib.TOMLDecodeError) as e:
                    raise ConfigError(f"Cannot read config file {loc}: {e}", path=str(loc)) from e
                break

        try:
            return cls(
                api=ApiSettings(**config_data.get("api", {})),
                server=ServerSettings(**config_data.get("server", {})),
                bootstrap=BootstrapSettings(**config_data.get("bootstrap", {})),
            )
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e


def get_default_config_toml() -> str:
    """Generate default thunder-bootstrap.toml content."""
    return """# thunder-bootstrap configuration
# Environment variables override every value below.

[api]
base_url = "https://localhost:8090"
verify_tls = false  # Local servers use self-signed certificates
timeout = 10.0

[server]
binary = "./thunder"
working_dir = "."
port = 8090
readiness_path = "/health/readiness"
poll_interval = 2.0
startup_timeout = 60.0
shutdown_timeout = 10.0
security_bypass_var = "THUNDER_SKIP_SECURITY"
debug = false
debug_port = 2345
debugger = "dlv"
release_port = true

[bootstrap]
# scripts_dir = "bootstrap"  # Default: built-in scripts
fail_fast = true
# skip_pattern = "sample"
# only_pattern = "^01-"
conflict_markers = ["already exists", "conflict"]
"""
