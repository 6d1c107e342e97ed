"""
AuthKit Management API Client

Every request created here is a management call: a 429 response is
retried with exponential backoff up to `max_management_retries` times.
"""

from typing import Any, Dict, Optional

from .errors import ConfigurationError
from .executor import RequestExecutor
from .options import ClientConfiguration
from .request import CustomRequest, PendingRequest, require
from .telemetry import Telemetry
from .types import User, UsersPage
from .urls import base_url_for


class UsersEntity:
    """Users endpoints (`/api/v2/users`)."""

    def __init__(self, api: "ManagementAPI") -> None:
        self._api = api

    def list(
        self,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
        query: Optional[str] = None,
    ) -> PendingRequest[UsersPage]:
        """List users, optionally paged and filtered by a search query."""
        params: Dict[str, Any] = {"include_totals": "true"}
        if page is not None:
            params["page"] = page
        if per_page is not None:
            params["per_page"] = per_page
        if query:
            params["q"] = query
        return self._api._request("GET", "/api/v2/users", UsersPage.from_dict, params=params)

    def get(self, user_id: Optional[str]) -> PendingRequest[User]:
        require(user_id, "user_id")
        return self._api._request("GET", f"/api/v2/users/{user_id}", User.from_dict)

    def create(self, user: Optional[User]) -> CustomRequest[User]:
        require(user, "user")
        return self._api._request("POST", "/api/v2/users", User.from_dict, body=user.to_dict())

    def update(self, user_id: Optional[str], fields: Optional[Dict[str, Any]]) -> CustomRequest[User]:
        """Patch the given fields of a user."""
        require(user_id, "user_id")
        require(fields, "fields")
        return self._api._request(
            "PATCH", f"/api/v2/users/{user_id}", User.from_dict, body=dict(fields)
        )

    def delete(self, user_id: Optional[str]) -> PendingRequest[None]:
        require(user_id, "user_id")
        return self._api._request("DELETE", f"/api/v2/users/{user_id}")


class ManagementAPI:
    """
    Management API client authenticated with a bearer API token.

    Example:
        >>> mgmt = ManagementAPI("tenant.example.com", api_token)
        >>> page = mgmt.users.list(per_page=50).execute()
    """

    def __init__(
        self,
        domain: Optional[str],
        api_token: Optional[str],
        configuration: Optional[ClientConfiguration] = None,
    ) -> None:
        self.base_url = base_url_for(domain)
        if not api_token:
            raise ConfigurationError("'api token' is required")
        self._api_token = api_token
        self._executor = RequestExecutor(configuration)
        self.users = UsersEntity(self)

    @property
    def executor(self) -> RequestExecutor:
        return self._executor

    def set_api_token(self, api_token: Optional[str]) -> None:
        """Use `api_token` for requests created from now on."""
        if not api_token:
            raise ConfigurationError("'api token' is required")
        self._api_token = api_token

    def _request(
        self,
        method: str,
        path: str,
        decoder: Any = None,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> CustomRequest[Any]:
        url = str(self.base_url.copy_with(path=self.base_url.path.rstrip("/") + path))
        return CustomRequest(
            self._executor,
            method,
            url,
            decoder,
            body,
            headers={"Authorization": f"Bearer {self._api_token}"},
            params=params,
            management=True,
        )

    def set_telemetry(self, telemetry: Telemetry) -> None:
        self._executor.set_telemetry(telemetry)

    def do_not_send_telemetry(self) -> None:
        self._executor.do_not_send_telemetry()

    def close(self) -> None:
        self._executor.close()

    async def aclose(self) -> None:
        await self._executor.aclose()

    def __enter__(self) -> "ManagementAPI":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    async def __aenter__(self) -> "ManagementAPI":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
