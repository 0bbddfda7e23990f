"""Thin HTTP client for the Thunder provisioning API.

Every call returns an :class:`ApiResponse`; nothing at this layer raises for
HTTP or transport failures. A transport failure (connection refused, timeout,
malformed response) is reported as status code ``0`` with ``error`` set, so
callers can tell "unreachable" apart from any real 4xx/5xx answer.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from thunder_bootstrap.config import ApiSettings

# Suppress httpx INFO logs by default (HTTP request logs pollute CLI output)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

__all__ = ["ApiClient", "ApiResponse", "UNREACHABLE"]

DEFAULT_BASE_URL = "https://localhost:8090"
DEFAULT_TIMEOUT = 10.0

# Status code reported when the server could not be reached at all
UNREACHABLE = 0


@dataclass(frozen=True)
class ApiResponse:
    """Result of a single API call."""

    status_code: int
    body: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        """True for any 2xx status."""
        return 200 <= self.status_code < 300

    @property
    def unreachable(self) -> bool:
        """True if the request never got an HTTP answer."""
        return self.status_code == UNREACHABLE

    def json(self) -> Any:
        """Parsed JSON body, or None if the body is empty or not JSON."""
        if not self.body:
            return None
        try:
            return json.loads(self.body)
        except ValueError:
            return None

    def describe(self) -> str:
        """One-line description used in error messages."""
        if self.unreachable:
            return f"unreachable ({self.error})"
        return f"HTTP {self.status_code}: {self.body}"


@dataclass
class ApiClient:
    """Client for the provisioning API.

    Example:
        >>> with ApiClient("https://localhost:8090") as client:
        ...     response = client.call("POST", "/organization-units", {"handle": "default"})
        ...     response.status_code
        201
    """

    base_url: str = DEFAULT_BASE_URL
    verify_tls: bool = False
    timeout: float = DEFAULT_TIMEOUT
    transport: httpx.BaseTransport | None = field(default=None, repr=False)
    _client: httpx.Client = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Initialize the HTTP client."""
        self._client = httpx.Client(
            base_url=self.base_url,
            verify=self.verify_tls,
            timeout=httpx.Timeout(self.timeout, connect=self.timeout),
            transport=self.transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: ApiSettings,
        transport: httpx.BaseTransport | None = None,
    ) -> ApiClient:
        return cls(
            base_url=settings.base_url,
            verify_tls=settings.verify_tls,
            timeout=settings.timeout,
            transport=transport,
        )

    def call(self, method: str, path: str, body: Any = None) -> ApiResponse:
        """Send one request and capture its status and raw body.

        Args:
            method: HTTP method (GET, POST, ...).
            path: Path relative to the configured base URL.
            body: Optional payload, sent as JSON.

        Returns:
            ApiResponse; status 0 with ``error`` set on transport failure.
        """
        kwargs: dict[str, Any] = {}
        if body is not None:
            kwargs["json"] = body

        try:
            response = self._client.request(method.upper(), path, **kwargs)
            text = response.text
        except httpx.HTTPError as e:
            error = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
            logger.debug(f"{method.upper()} {path} -> unreachable ({error})")
            return ApiResponse(status_code=UNREACHABLE, body="", error=error)

        logger.debug(f"{method.upper()} {path} -> {response.status_code}")
        return ApiResponse(status_code=response.status_code, body=text)

    def get(self, path: str) -> ApiResponse:
        return self.call("GET", path)

    def post(self, path: str, body: Any = None) -> ApiResponse:
        return self.call("POST", path, body)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> ApiClient:
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()
