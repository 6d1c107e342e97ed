"""
AuthKit Type Definitions

Response payloads decoded into dataclasses. Unknown fields are ignored,
missing optional fields decode to None.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class PasswordlessEmailType(str, Enum):
    """What the passwordless e-mail contains."""

    CODE = "code"
    LINK = "link"


@dataclass
class TokenHolder:
    """Tokens returned by the token endpoint."""

    access_token: Optional[str] = None
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: int = 0
    scope: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenHolder":
        return cls(
            access_token=data.get("access_token"),
            id_token=data.get("id_token"),
            refresh_token=data.get("refresh_token"),
            token_type=data.get("token_type"),
            expires_in=int(data.get("expires_in") or 0),
            scope=data.get("scope"),
        )


@dataclass
class UserInfo:
    """Claims returned by the user info endpoint, kept as-is."""

    values: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserInfo":
        return cls(values=dict(data))


@dataclass
class CreatedUser:
    """User created by a database sign-up."""

    user_id: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    email_verified: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CreatedUser":
        # Older tenants answer with "_id"
        return cls(
            user_id=data.get("user_id") or data.get("_id"),
            email=data.get("email"),
            username=data.get("username"),
            email_verified=data.get("email_verified", False),
        )


@dataclass
class PasswordlessEmailResponse:
    id: Optional[str] = None
    email: Optional[str] = None
    email_verified: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PasswordlessEmailResponse":
        return cls(
            id=data.get("_id"),
            email=data.get("email"),
            email_verified=data.get("email_verified"),
        )


@dataclass
class PasswordlessSmsResponse:
    id: Optional[str] = None
    phone_number: Optional[str] = None
    phone_verified: Optional[bool] = None
    request_language: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PasswordlessSmsResponse":
        return cls(
            id=data.get("_id"),
            phone_number=data.get("phone_number"),
            phone_verified=data.get("phone_verified"),
            request_language=data.get("request_language"),
        )


@dataclass
class User:
    """User as seen by the management API."""

    user_id: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    name: Optional[str] = None
    connection: Optional[str] = None
    password: Optional[str] = None
    email_verified: Optional[bool] = None
    blocked: Optional[bool] = None
    user_metadata: Dict[str, Any] = field(default_factory=dict)
    app_metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API requests, skipping unset fields."""
        result: Dict[str, Any] = {}
        for key in (
            "user_id",
            "email",
            "username",
            "name",
            "connection",
            "password",
            "email_verified",
            "blocked",
        ):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.user_metadata:
            result["user_metadata"] = self.user_metadata
        if self.app_metadata:
            result["app_metadata"] = self.app_metadata
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            user_id=data.get("user_id"),
            email=data.get("email"),
            username=data.get("username"),
            name=data.get("name"),
            connection=data.get("connection"),
            email_verified=data.get("email_verified"),
            blocked=data.get("blocked"),
            user_metadata=data.get("user_metadata") or {},
            app_metadata=data.get("app_metadata") or {},
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass
class UsersPage:
    """One page of a user listing."""

    users: List[User]
    start: int = 0
    limit: int = 0
    total: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Any) -> "UsersPage":
        # Without include_totals the endpoint returns a bare list
        if isinstance(data, list):
            return cls(users=[User.from_dict(u) for u in data], limit=len(data))
        return cls(
            users=[User.from_dict(u) for u in data.get("users", [])],
            start=data.get("start", 0),
            limit=data.get("limit", 0),
            total=data.get("total"),
        )
