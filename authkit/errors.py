"""
AuthKit Error Classes

Error taxonomy shared by the authentication and management API clients.
Every error raised by the library derives from AuthKitError.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple


class AuthKitError(Exception):
    """Base error class for the AuthKit SDK."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 0,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "name": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
            "timestamp": self.timestamp,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class ConfigurationError(AuthKitError):
    """Invalid constructor or setter argument."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, 0, details)


class ValidationError(AuthKitError):
    """A required call parameter was missing or unusable."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__("VALIDATION_ERROR", message, 0, {"field": field} if field else None)
        self.field = field


class TransportError(AuthKitError):
    """Connection, timeout or proxy failure with no HTTP response."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("TRANSPORT_ERROR", message, 0, details)


class RequestAlreadyExecutedError(AuthKitError):
    """A pending request was executed more than once."""

    def __init__(self, message: str = "This request has already been executed"):
        super().__init__("REQUEST_ALREADY_EXECUTED", message, 0)


class ApiError(AuthKitError):
    """
    Non-2xx response from the API.

    Attributes:
        error: Machine-readable error code, if the payload had one
        description: Human-readable description
        values: The decoded error payload
    """

    def __init__(
        self,
        status_code: int,
        error: Optional[str] = None,
        description: Optional[str] = None,
        values: Optional[Dict[str, Any]] = None,
    ):
        message = f"Request failed with status code {status_code}: {description}"
        super().__init__(error or "API_ERROR", message, status_code, values)
        self.error = error
        self.description = description
        self.values = values or {}

    @classmethod
    def from_payload(cls, payload: Any, status_code: int) -> "ApiError":
        """Create error from a decoded JSON payload or a raw text body."""
        error, description, values = parse_error_payload(payload)
        return cls(status_code, error, description, values)


class RateLimitExceededError(ApiError):
    """
    Rate limit reached (HTTP 429).

    Raised for management API calls once retries are exhausted, and
    immediately for authentication API calls.
    """

    def __init__(
        self,
        error: Optional[str] = None,
        description: Optional[str] = None,
        values: Optional[Dict[str, Any]] = None,
        limit: int = -1,
        remaining: int = -1,
        reset: int = -1,
    ):
        super().__init__(429, error, description, values)
        self.limit = limit
        self.remaining = remaining
        self.reset = reset

    @classmethod
    def from_response_parts(
        cls, payload: Any, headers: Mapping[str, str]
    ) -> "RateLimitExceededError":
        """Create error from the last response's payload and headers."""
        error, description, values = parse_error_payload(payload)
        return cls(
            error,
            description,
            values,
            limit=_header_int(headers, "x-ratelimit-limit"),
            remaining=_header_int(headers, "x-ratelimit-remaining"),
            reset=_header_int(headers, "x-ratelimit-reset"),
        )


def parse_error_payload(payload: Any) -> Tuple[Optional[str], Optional[str], Dict[str, Any]]:
    """
    Split an error payload into (error code, description, values).

    A structured password-strength description is flattened into
    one string, rules separated by "; ".
    """
    if not isinstance(payload, dict):
        text = payload if isinstance(payload, str) and payload else None
        return None, text, {}

    error = payload.get("error")
    if not isinstance(error, str):
        error = payload.get("code")

    description: Any = None
    for key in ("error_description", "description", "message"):
        if payload.get(key) is not None:
            description = payload[key]
            break

    if isinstance(description, dict):
        description = describe_password_rules(description)
    elif description is not None and not isinstance(description, str):
        description = str(description)

    return error, description, payload


def describe_password_rules(description: Mapping[str, Any]) -> Optional[str]:
    """Assemble the violated password-policy rules into a description."""
    rules = description.get("rules")
    if not isinstance(rules, list):
        return None

    violated: List[str] = []
    for rule in rules:
        if not isinstance(rule, dict) or rule.get("verified", False):
            continue
        text = _format_rule_message(rule.get("message", ""), rule.get("format"))
        items = rule.get("items")
        if isinstance(items, list) and items:
            text = f"{text} " + ", ".join(
                item.get("message", "") for item in items if isinstance(item, dict)
            )
        violated.append(text)
    return "; ".join(violated)


def _format_rule_message(message: str, args: Optional[List[Any]]) -> str:
    if not args:
        return message
    try:
        return message.replace("%d", "%s") % tuple(args)
    except (TypeError, ValueError):
        return message


def _header_int(headers: Mapping[str, str], name: str) -> int:
    try:
        return int(headers.get(name, -1))
    except (TypeError, ValueError):
        return -1


def is_authkit_error(error: Any) -> bool:
    """Check if error is an AuthKitError."""
    return isinstance(error, AuthKitError)


def is_rate_limit_error(error: Any) -> bool:
    """Check if error is a terminal rate-limit error."""
    return isinstance(error, RateLimitExceededError)
