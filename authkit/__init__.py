"""
AuthKit Python SDK

Typed clients for an authentication API and its management API, with
sync and async execution, per-host concurrency limits, proxy support and
automatic retry of rate-limited management calls.
"""

__version__ = "1.0.0"

from .auth import AuthAPI
from .management import ManagementAPI, UsersEntity
from .executor import RequestExecutor
from .gate import ConcurrencyGate
from .options import ClientConfiguration, LoggingOptions, LogLevel, ProxyOptions
from .request import CustomRequest, PendingRequest, SignUpRequest, TokenRequest
from .retry import RateLimitRetryPolicy
from .telemetry import Telemetry
from .types import (
    CreatedUser,
    PasswordlessEmailResponse,
    PasswordlessEmailType,
    PasswordlessSmsResponse,
    TokenHolder,
    User,
    UserInfo,
    UsersPage,
)
from .urls import AuthorizeUrlBuilder, LogoutUrlBuilder
from .errors import (
    AuthKitError,
    ApiError,
    ConfigurationError,
    RateLimitExceededError,
    RequestAlreadyExecutedError,
    TransportError,
    ValidationError,
    is_authkit_error,
    is_rate_limit_error,
)

__all__ = [
    # Clients
    "AuthAPI",
    "ManagementAPI",
    "UsersEntity",
    # Execution
    "RequestExecutor",
    "ConcurrencyGate",
    "RateLimitRetryPolicy",
    "PendingRequest",
    "CustomRequest",
    "TokenRequest",
    "SignUpRequest",
    # Configuration
    "ClientConfiguration",
    "LoggingOptions",
    "LogLevel",
    "ProxyOptions",
    "Telemetry",
    # Types
    "CreatedUser",
    "PasswordlessEmailResponse",
    "PasswordlessEmailType",
    "PasswordlessSmsResponse",
    "TokenHolder",
    "User",
    "UserInfo",
    "UsersPage",
    # URL builders
    "AuthorizeUrlBuilder",
    "LogoutUrlBuilder",
    # Errors
    "AuthKitError",
    "ApiError",
    "ConfigurationError",
    "RateLimitExceededError",
    "RequestAlreadyExecutedError",
    "TransportError",
    "ValidationError",
    "is_authkit_error",
    "is_rate_limit_error",
]
