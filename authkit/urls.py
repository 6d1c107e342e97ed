"""
Browser-facing URL builders for the authorize and logout endpoints.
"""

from typing import Dict, Optional

import httpx

from .errors import ConfigurationError, ValidationError


INVALID_DOMAIN = "The domain had an invalid format and couldn't be parsed as an URL."


def base_url_for(domain: Optional[str]) -> httpx.URL:
    """
    Parse a tenant domain into the API base URL.

    `https://` is assumed when no scheme is given; an explicit `http://`
    is kept.
    """
    if domain is None:
        raise ConfigurationError("'domain' is required")
    domain = domain.strip()
    if not domain:
        raise ConfigurationError(INVALID_DOMAIN)
    if "://" not in domain:
        domain = "https://" + domain
    try:
        url = httpx.URL(domain)
    except (TypeError, httpx.InvalidURL) as e:
        raise ConfigurationError(INVALID_DOMAIN) from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(INVALID_DOMAIN)
    return url


def is_valid_url(value: Optional[str]) -> bool:
    """True for absolute URLs with a scheme and a host."""
    if not value:
        return False
    try:
        url = httpx.URL(value)
    except (TypeError, httpx.InvalidURL):
        return False
    return bool(url.scheme) and bool(url.host)


class _UrlBuilder:
    path = "/"

    def __init__(self, base_url: httpx.URL) -> None:
        self._base_url = base_url
        self._parameters: Dict[str, str] = {}

    def _set(self, name: str, value: str) -> None:
        self._parameters[name] = value

    def build(self) -> str:
        """Render the URL; parameters are sent in the order they were set."""
        base_path = self._base_url.path.rstrip("/")
        url = self._base_url.copy_with(path=base_path + self.path)
        return str(url.copy_merge_params(self._parameters))


class AuthorizeUrlBuilder(_UrlBuilder):
    """
    Builds a `/authorize` URL.

    Example:
        >>> url = (
        ...     api.authorize_url("https://me.example.com/callback")
        ...     .with_state("af0ifjsldkj")
        ...     .with_scope("openid email")
        ...     .build()
        ... )
    """

    path = "/authorize"

    def __init__(self, base_url: httpx.URL, client_id: str, redirect_uri: Optional[str]) -> None:
        if not is_valid_url(redirect_uri):
            raise ValidationError("'redirect uri' must be a valid URL", "redirect_uri")
        super().__init__(base_url)
        self._set("response_type", "code")
        self._set("client_id", client_id)
        self._set("redirect_uri", redirect_uri or "")

    def with_connection(self, connection: str) -> "AuthorizeUrlBuilder":
        self._set("connection", connection)
        return self

    def with_audience(self, audience: str) -> "AuthorizeUrlBuilder":
        self._set("audience", audience)
        return self

    def with_state(self, state: str) -> "AuthorizeUrlBuilder":
        self._set("state", state)
        return self

    def with_scope(self, scope: str) -> "AuthorizeUrlBuilder":
        self._set("scope", scope)
        return self

    def with_response_type(self, response_type: str) -> "AuthorizeUrlBuilder":
        self._set("response_type", response_type)
        return self

    def with_parameter(self, name: str, value: str) -> "AuthorizeUrlBuilder":
        """Set any other query parameter, replacing a previous value."""
        if not name:
            raise ValidationError("'name' is required", "name")
        self._set(name, value)
        return self


class LogoutUrlBuilder(_UrlBuilder):
    """Builds a `/v2/logout` URL."""

    path = "/v2/logout"

    def __init__(
        self,
        base_url: httpx.URL,
        client_id: str,
        return_to: Optional[str],
        set_client_id: bool,
    ) -> None:
        if not is_valid_url(return_to):
            raise ValidationError("'return to url' must be a valid URL", "return_to")
        super().__init__(base_url)
        self._set("returnTo", return_to or "")
        if set_client_id:
            self._set("client_id", client_id)

    def use_federated(self, federated: bool = True) -> "LogoutUrlBuilder":
        if federated:
            self._set("federated", "")
        else:
            self._parameters.pop("federated", None)
        return self
