"""
AuthKit Authentication API Client

Builds PendingRequests for the authentication endpoints: token exchange,
passwordless flows, user info, password reset, sign-up and revocation.
Requests are run with `execute()` or `await execute_async()`.
"""

from typing import Any, Dict, Optional, Union

from .errors import ConfigurationError
from .executor import RequestExecutor
from .options import ClientConfiguration
from .request import (
    CustomRequest,
    PendingRequest,
    SignUpRequest,
    TokenRequest,
    require,
    secret_text,
)
from .telemetry import Telemetry
from .types import (
    CreatedUser,
    PasswordlessEmailResponse,
    PasswordlessEmailType,
    PasswordlessSmsResponse,
    TokenHolder,
    UserInfo,
)
from .urls import AuthorizeUrlBuilder, LogoutUrlBuilder, base_url_for


Secret = Union[str, bytearray]

GRANT_PASSWORD = "password"
GRANT_PASSWORD_REALM = "http://auth0.com/oauth/grant-type/password-realm"
GRANT_CLIENT_CREDENTIALS = "client_credentials"
GRANT_AUTHORIZATION_CODE = "authorization_code"
GRANT_REFRESH_TOKEN = "refresh_token"
GRANT_MFA_OTP = "http://auth0.com/oauth/grant-type/mfa-otp"
GRANT_PASSWORDLESS_OTP = "http://auth0.com/oauth/grant-type/passwordless/otp"


class AuthAPI:
    """
    Authentication API client.

    Example:
        >>> api = AuthAPI("tenant.example.com", "client-id", "client-secret")
        >>> tokens = api.login("me@example.com", bytearray(b"p455w0rd")).execute()
        >>> tokens.access_token

    Async usage:
        >>> async with AuthAPI("tenant.example.com", "id", "secret") as api:
        ...     tokens = await api.request_token("https://api.example.com/").execute_async()
    """

    def __init__(
        self,
        domain: Optional[str],
        client_id: Optional[str],
        client_secret: Optional[str],
        configuration: Optional[ClientConfiguration] = None,
    ) -> None:
        self.base_url = base_url_for(domain)
        if not client_id:
            raise ConfigurationError("'client id' is required")
        if not client_secret:
            raise ConfigurationError("'client secret' is required")
        self.client_id = client_id
        self._client_secret = client_secret
        self._executor = RequestExecutor(configuration)

    @property
    def executor(self) -> RequestExecutor:
        return self._executor

    def _url(self, path: str) -> str:
        return str(self.base_url.copy_with(path=self.base_url.path.rstrip("/") + path))

    def _credentials(self, with_secret: bool = True) -> Dict[str, Any]:
        credentials = {"client_id": self.client_id}
        if with_secret:
            credentials["client_secret"] = self._client_secret
        return credentials

    def _token_request(self, grant_type: str, **fields: Any) -> TokenRequest[TokenHolder]:
        body = {"grant_type": grant_type, **self._credentials(), **fields}
        return TokenRequest(
            self._executor, "POST", self._url("/oauth/token"), TokenHolder.from_dict, body
        )

    # =========================================================================
    # URL builders
    # =========================================================================

    def authorize_url(self, redirect_uri: Optional[str]) -> AuthorizeUrlBuilder:
        """Builder for the `/authorize` URL that starts a browser login."""
        return AuthorizeUrlBuilder(self.base_url, self.client_id, redirect_uri)

    def logout_url(self, return_to: Optional[str], set_client_id: bool) -> LogoutUrlBuilder:
        """Builder for the `/v2/logout` URL."""
        return LogoutUrlBuilder(self.base_url, self.client_id, return_to, set_client_id)

    # =========================================================================
    # User info, database connections
    # =========================================================================

    def user_info(self, access_token: Optional[str]) -> PendingRequest[UserInfo]:
        """Claims of the user the access token was issued to."""
        require(access_token, "access_token")
        return PendingRequest(
            self._executor,
            "GET",
            self._url("/userinfo"),
            UserInfo.from_dict,
            headers={"Authorization": f"Bearer {access_token}"},
        )

    def reset_password(self, email: Optional[str], connection: Optional[str]) -> PendingRequest[None]:
        """Send a change-password e-mail to a database connection user."""
        require(email, "email")
        require(connection, "connection")
        body = {"email": email, "connection": connection, **self._credentials(with_secret=False)}
        return PendingRequest(
            self._executor, "POST", self._url("/dbconnections/change_password"), body=body
        )

    def sign_up(
        self,
        email: Optional[str],
        password: Optional[Secret],
        connection: Optional[str],
        username: Optional[str] = None,
    ) -> SignUpRequest[CreatedUser]:
        """
        Create a user in a database connection.

        Use `set_custom_fields()` on the returned request to store
        user metadata.
        """
        require(email, "email")
        require(connection, "connection")
        body: Dict[str, Any] = {
            "email": email,
            "password": secret_text(password, "password"),
            "connection": connection,
            **self._credentials(with_secret=False),
        }
        if username is not None:
            body["username"] = username
        return SignUpRequest(
            self._executor, "POST", self._url("/dbconnections/signup"), CreatedUser.from_dict, body
        )

    # =========================================================================
    # Token endpoint
    # =========================================================================

    def login(
        self,
        username: Optional[str],
        password: Optional[Secret],
        realm: Optional[str] = None,
    ) -> TokenRequest[TokenHolder]:
        """Resource-owner password grant; with `realm`, the password-realm grant."""
        require(username, "username")
        password_text = secret_text(password, "password")
        if realm is None:
            return self._token_request(GRANT_PASSWORD, username=username, password=password_text)
        require(realm, "realm")
        return self._token_request(
            GRANT_PASSWORD_REALM, username=username, password=password_text, realm=realm
        )

    def request_token(self, audience: Optional[str]) -> TokenRequest[TokenHolder]:
        """Client credentials grant for `audience`."""
        require(audience, "audience")
        return self._token_request(GRANT_CLIENT_CREDENTIALS, audience=audience)

    def exchange_code(
        self, code: Optional[str], redirect_uri: Optional[str]
    ) -> TokenRequest[TokenHolder]:
        require(code, "code")
        require(redirect_uri, "redirect_uri")
        return self._token_request(GRANT_AUTHORIZATION_CODE, code=code, redirect_uri=redirect_uri)

    def renew_auth(self, refresh_token: Optional[str]) -> TokenRequest[TokenHolder]:
        require(refresh_token, "refresh_token")
        return self._token_request(GRANT_REFRESH_TOKEN, refresh_token=refresh_token)

    def exchange_mfa_otp(
        self, mfa_token: Optional[str], otp: Optional[Secret]
    ) -> TokenRequest[TokenHolder]:
        """Complete an MFA challenge with a one-time password."""
        require(mfa_token, "mfa_token")
        return self._token_request(GRANT_MFA_OTP, mfa_token=mfa_token, otp=secret_text(otp, "otp"))

    def exchange_passwordless_otp(
        self,
        email_or_phone: Optional[str],
        realm: Optional[str],
        otp: Optional[Secret],
    ) -> TokenRequest[TokenHolder]:
        """Complete a passwordless flow with the code the user received."""
        require(email_or_phone, "email_or_phone")
        require(realm, "realm")
        return self._token_request(
            GRANT_PASSWORDLESS_OTP,
            username=email_or_phone,
            realm=realm,
            otp=secret_text(otp, "otp"),
        )

    # =========================================================================
    # Passwordless, revocation
    # =========================================================================

    def start_passwordless_email_flow(
        self,
        email: Optional[str],
        type: Optional[PasswordlessEmailType],
    ) -> CustomRequest[PasswordlessEmailResponse]:
        """
        Send a passwordless code or link by e-mail.

        The `connection` defaults to "email" and can be overridden with
        `add_parameter("connection", ...)` for custom connections.
        """
        require(email, "email")
        require(type, "type")
        body = {
            "connection": "email",
            "email": email,
            "send": PasswordlessEmailType(type).value,
            **self._credentials(),
        }
        return CustomRequest(
            self._executor,
            "POST",
            self._url("/passwordless/start"),
            PasswordlessEmailResponse.from_dict,
            body,
        )

    def start_passwordless_sms_flow(
        self, phone_number: Optional[str]
    ) -> CustomRequest[PasswordlessSmsResponse]:
        """Send a passwordless code by SMS."""
        require(phone_number, "phone_number")
        body = {"connection": "sms", "phone_number": phone_number, **self._credentials()}
        return CustomRequest(
            self._executor,
            "POST",
            self._url("/passwordless/start"),
            PasswordlessSmsResponse.from_dict,
            body,
        )

    def revoke_token(self, refresh_token: Optional[str]) -> PendingRequest[None]:
        """Revoke a refresh token."""
        require(refresh_token, "refresh_token")
        body = {"token": refresh_token, **self._credentials()}
        return PendingRequest(self._executor, "POST", self._url("/oauth/revoke"), body=body)

    # =========================================================================
    # Telemetry, lifecycle
    # =========================================================================

    def set_telemetry(self, telemetry: Telemetry) -> None:
        self._executor.set_telemetry(telemetry)

    def do_not_send_telemetry(self) -> None:
        self._executor.do_not_send_telemetry()

    def close(self) -> None:
        """Close the HTTP client."""
        self._executor.close()

    async def aclose(self) -> None:
        await self._executor.aclose()

    def __enter__(self) -> "AuthAPI":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    async def __aenter__(self) -> "AuthAPI":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"AuthAPI(base_url={str(self.base_url)!r}, client_id={self.client_id!r})"
