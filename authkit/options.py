"""
AuthKit Client Configuration

Immutable configuration values consumed by the API clients and the
request executor at construction time.
"""

import base64
import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, FrozenSet, Optional, Union

import httpx

from .errors import ConfigurationError


MAX_MANAGEMENT_RETRIES = 10

PROXY_SCHEMES = ("http", "https", "socks5")


class LogLevel(str, Enum):
    """HTTP logging verbosity."""

    NONE = "NONE"
    BASIC = "BASIC"
    HEADERS = "HEADERS"
    BODY = "BODY"


@dataclass(frozen=True)
class LoggingOptions:
    """HTTP logging options. Redacted header names are case-insensitive."""

    level: LogLevel = LogLevel.NONE
    headers_to_redact: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(self, "level", LogLevel(self.level))
        object.__setattr__(
            self,
            "headers_to_redact",
            frozenset(name.lower() for name in self.headers_to_redact),
        )

    def is_redacted(self, header_name: str) -> bool:
        return header_name.lower() in self.headers_to_redact


class ProxyOptions:
    """
    Upstream proxy configuration.

    The password is taken as a mutable buffer so the caller can wipe it
    once the options are built; only the pre-computed Basic credential
    is kept.

    Example:
        >>> secret = bytearray(b"psswd")
        >>> proxy = ProxyOptions("http://proxy.local:3128", "johndoe", secret)
        >>> secret[:] = b"\\x00" * len(secret)
        >>> proxy.basic_authentication
        'Basic am9obmRvZTpwc3N3ZA=='
    """

    def __init__(
        self,
        url: str,
        username: Optional[str] = None,
        password: Optional[Union[bytearray, bytes, memoryview]] = None,
    ) -> None:
        try:
            parsed = httpx.URL(url)
        except (TypeError, httpx.InvalidURL) as e:
            raise ConfigurationError(f"Invalid proxy url: {url!r}") from e
        if parsed.scheme not in PROXY_SCHEMES or not parsed.host:
            raise ConfigurationError(
                f"Proxy url must use one of {', '.join(PROXY_SCHEMES)} and include a host"
            )
        if (username is None) != (password is None):
            raise ConfigurationError("Proxy username and password must be set together")
        if isinstance(password, str):
            raise ConfigurationError("Proxy password must be a bytearray, not str")

        self._url = parsed
        self._basic_authentication: Optional[str] = None
        self._credential_error: Optional[str] = None

        if username is not None and password is not None:
            if ":" in username:
                self._credential_error = "Proxy username must not contain ':'"
            else:
                token = base64.b64encode(username.encode("utf-8") + b":" + bytes(password))
                self._basic_authentication = "Basic " + token.decode("ascii")

    @property
    def url(self) -> httpx.URL:
        return self._url

    @property
    def basic_authentication(self) -> Optional[str]:
        """The `Proxy-Authorization` value, or None without credentials."""
        return self._basic_authentication

    @property
    def credential_error(self) -> Optional[str]:
        return self._credential_error

    @property
    def has_credentials(self) -> bool:
        return self._basic_authentication is not None or self._credential_error is not None

    def __repr__(self) -> str:
        return f"ProxyOptions(url={str(self._url)!r}, credentials={self.has_credentials})"


@dataclass(frozen=True)
class ClientConfiguration:
    """HTTP client options shared by the AuthAPI and ManagementAPI clients."""

    # Connect timeout in seconds, 0 disables it (negative values become 0)
    connect_timeout: float = 10
    # Read timeout in seconds, 0 disables it (negative values become 0)
    read_timeout: float = 10
    # Retries on HTTP 429 for management API calls, between 0 and 10
    max_management_retries: int = 3
    # Requests allowed in flight at once
    max_concurrent_requests: int = 64
    # Requests allowed in flight at once against a single host
    max_concurrent_requests_per_host: int = 5
    # Upstream proxy (default: None, direct connection)
    proxy: Optional[ProxyOptions] = None
    # HTTP logging (default: None, nothing is logged)
    logging: Optional[LoggingOptions] = None
    # First backoff delay in seconds, doubled on each retry
    management_retry_base_delay: float = 0.25
    # Upper bound of a single backoff delay in seconds
    management_retry_max_delay: float = 10.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "connect_timeout", max(self.connect_timeout, 0))
        object.__setattr__(self, "read_timeout", max(self.read_timeout, 0))

        if not 0 <= self.max_management_retries <= MAX_MANAGEMENT_RETRIES:
            raise ConfigurationError("Retries must be between zero and ten.")
        validate_concurrency_limits(
            self.max_concurrent_requests, self.max_concurrent_requests_per_host
        )
        if self.management_retry_base_delay < 0 or self.management_retry_max_delay < 0:
            raise ConfigurationError("Retry delays must not be negative.")
        if self.management_retry_max_delay < self.management_retry_base_delay:
            raise ConfigurationError(
                "management_retry_max_delay must be greater than or equal to "
                "management_retry_base_delay."
            )

    def replace(self, **changes: Any) -> "ClientConfiguration":
        """Return a validated copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    @property
    def logging_options(self) -> LoggingOptions:
        return self.logging or LoggingOptions()

    def build_timeout(self) -> httpx.Timeout:
        """Per-attempt timeouts; a zero value means no limit."""
        return httpx.Timeout(
            None,
            connect=self.connect_timeout or None,
            read=self.read_timeout or None,
        )


def validate_concurrency_limits(max_requests: int, max_requests_per_host: int) -> None:
    """Raise ConfigurationError unless both limits are one or greater."""
    if max_requests < 1:
        raise ConfigurationError("max_concurrent_requests must be one or greater.")
    if max_requests_per_host < 1:
        raise ConfigurationError("max_concurrent_requests_per_host must be one or greater.")

