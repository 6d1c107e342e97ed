"""
Proxy authentication for requests routed through an upstream proxy.
"""

import logging
from typing import Optional

import httpx

from .errors import TransportError
from .options import ProxyOptions


logger = logging.getLogger("authkit")

PROXY_AUTHENTICATION_REQUIRED = 407
PROXY_AUTHORIZATION = "Proxy-Authorization"


class ProxyAuthenticator:
    """
    Answers 407 challenges with the configured Basic credential.

    Returns a request to send again, or None when the challenge must not
    be answered (no credentials, or the request already carried them).
    """

    def __init__(self, proxy: Optional[ProxyOptions] = None) -> None:
        self._proxy = proxy

    def authenticate(self, response: httpx.Response) -> Optional[httpx.Request]:
        if response.status_code != PROXY_AUTHENTICATION_REQUIRED:
            return None

        request = response.request
        if PROXY_AUTHORIZATION in request.headers:
            # Credentials were already rejected once
            return None
        if self._proxy is None or not self._proxy.has_credentials:
            return None
        if self._proxy.credential_error:
            raise TransportError(
                f"Proxy authentication failed: {self._proxy.credential_error}",
                {"proxy": str(self._proxy.url)},
            )

        logger.debug(f"[AuthKit] Answering proxy challenge for {request.url}")
        headers = request.headers.copy()
        headers[PROXY_AUTHORIZATION] = self._proxy.basic_authentication or ""
        return httpx.Request(
            request.method,
            request.url,
            headers=headers,
            content=request.content,
            extensions=request.extensions,
        )
