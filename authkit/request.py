"""
AuthKit Pending Requests

A PendingRequest is a logical HTTP call built by an API client. It is
owned by the caller until it is executed, and it can be executed once.
"""

import threading
from typing import TYPE_CHECKING, Any, Callable, Dict, Generic, Mapping, Optional, TypeVar

from .errors import RequestAlreadyExecutedError, ValidationError

if TYPE_CHECKING:
    from .executor import RequestExecutor


T = TypeVar("T")

Decoder = Callable[[Any], T]


class PendingRequest(Generic[T]):
    """
    A not-yet-dispatched HTTP call.

    Headers and body may be changed until `execute()` or `execute_async()`
    is called. A second execution raises RequestAlreadyExecutedError.
    """

    def __init__(
        self,
        executor: "RequestExecutor",
        method: str,
        url: str,
        decoder: Optional[Decoder[T]] = None,
        body: Optional[Dict[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Any]] = None,
        management: bool = False,
    ) -> None:
        self._executor = executor
        self.method = method
        self.url = url
        self.decoder = decoder
        self.body = body
        self.headers: Dict[str, str] = {"Content-Type": "application/json", **(headers or {})}
        self.params: Dict[str, Any] = dict(params or {})
        self.management = management
        self._executed = False
        self._state_lock = threading.Lock()

    @property
    def executed(self) -> bool:
        return self._executed

    def add_header(self, name: str, value: str) -> "PendingRequest[T]":
        self._ensure_pending()
        self.headers[name] = value
        return self

    def execute(self) -> T:
        """Send the request and block until its terminal outcome."""
        return self._executor.execute(self)

    async def execute_async(self) -> T:
        """Send the request on the running event loop."""
        return await self._executor.execute_async(self)

    def mark_executed(self) -> None:
        """Claim the single execution of this request."""
        with self._state_lock:
            if self._executed:
                raise RequestAlreadyExecutedError()
            self._executed = True

    def _ensure_pending(self) -> None:
        if self._executed:
            raise RequestAlreadyExecutedError("Cannot modify a request that was already executed")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.method} {self.url})"


class CustomRequest(PendingRequest[T]):
    """Request whose JSON body parameters can be extended by the caller."""

    def add_parameter(self, name: str, value: Any) -> "CustomRequest[T]":
        self._ensure_pending()
        if self.body is None:
            self.body = {}
        self.body[name] = value
        return self


class TokenRequest(CustomRequest[T]):
    """Request against the token endpoint."""

    def set_audience(self, audience: str) -> "TokenRequest[T]":
        self.add_parameter("audience", audience)
        return self

    def set_realm(self, realm: str) -> "TokenRequest[T]":
        self.add_parameter("realm", realm)
        return self

    def set_scope(self, scope: str) -> "TokenRequest[T]":
        self.add_parameter("scope", scope)
        return self


class SignUpRequest(CustomRequest[T]):
    """Database sign-up request; custom fields are sent as user metadata."""

    def set_custom_fields(self, custom_fields: Mapping[str, str]) -> "SignUpRequest[T]":
        self.add_parameter("user_metadata", dict(custom_fields))
        return self


def require(value: Any, name: str) -> Any:
    """Reject None and empty values, naming the parameter."""
    if value is None or (isinstance(value, (str, bytes, bytearray)) and len(value) == 0):
        raise ValidationError(f"'{name}' is required", name)
    return value


def secret_text(value: Any, name: str) -> str:
    """Accept a password or one-time code as str or bytearray."""
    require(value, name)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8")
    if isinstance(value, str):
        return value
    raise ValidationError(f"'{name}' must be a str or bytearray", name)
