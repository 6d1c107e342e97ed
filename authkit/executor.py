"""
AuthKit Request Executor

Turns a PendingRequest into a typed result: builds the wire request,
runs it through the stage pipeline, and decodes the response body or
raises a typed error.
"""

import json
import logging
from typing import Any, List, Optional, TypeVar

import httpx

from .errors import ApiError, RateLimitExceededError, TransportError, ValidationError
from .gate import ConcurrencyGate
from .options import ClientConfiguration
from .proxy import PROXY_AUTHENTICATION_REQUIRED, PROXY_AUTHORIZATION, ProxyAuthenticator
from .request import PendingRequest
from .retry import RATE_LIMITED, RETRY_STATE_EXTENSION, RateLimitRetryPolicy, RetryState
from .stages import (
    GateStage,
    LoggingStage,
    Pipeline,
    ProxyAuthStage,
    RateLimitRetryStage,
    Stage,
    TelemetryStage,
)
from .telemetry import Telemetry


logger = logging.getLogger("authkit")

T = TypeVar("T")


class RequestExecutor:
    """
    Executes pending requests with timeouts, concurrency limits, proxy
    authentication and rate-limit retries.

    The configuration is fixed for the lifetime of the executor. The
    blocking HTTP client is created eagerly, the async one on first use.
    """

    def __init__(
        self,
        configuration: Optional[ClientConfiguration] = None,
        telemetry: Optional[Telemetry] = None,
    ) -> None:
        self._configuration = configuration or ClientConfiguration()
        config = self._configuration

        self.gate = ConcurrencyGate(
            config.max_concurrent_requests, config.max_concurrent_requests_per_host
        )
        self.retry_policy = RateLimitRetryPolicy.from_configuration(config)
        self.proxy_auth_stage = ProxyAuthStage(ProxyAuthenticator(config.proxy))
        self.retry_stage = RateLimitRetryStage(self.retry_policy)
        self.gate_stage = GateStage(self.gate)
        self.logging_stage = LoggingStage(config.logging)
        self.telemetry_stage = TelemetryStage(telemetry or _default_telemetry())

        self._http_client = httpx.Client(**self._client_options())
        self._async_http_client: Optional[httpx.AsyncClient] = None
        # Clients that present the proxy credential, created after the first challenge
        self._proxy_auth_client: Optional[httpx.Client] = None
        self._async_proxy_auth_client: Optional[httpx.AsyncClient] = None

    @property
    def configuration(self) -> ClientConfiguration:
        return self._configuration

    def _client_options(self, proxy_authorization: Optional[str] = None) -> dict:
        """
        Keyword arguments for an httpx client.

        With `proxy_authorization`, the credential is sent to the proxy
        itself: on the CONNECT for https destinations, and on forwarded
        plain http requests. It never reaches the origin server.
        """
        config = self._configuration
        options: dict = {
            "timeout": config.build_timeout(),
            "limits": httpx.Limits(max_connections=config.max_concurrent_requests),
        }
        if config.proxy is not None:
            headers = {PROXY_AUTHORIZATION: proxy_authorization} if proxy_authorization else None
            options["proxy"] = httpx.Proxy(config.proxy.url, headers=headers)
        return options

    def _get_async_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._async_http_client is None:
            self._async_http_client = httpx.AsyncClient(**self._client_options())
        return self._async_http_client

    def _get_proxy_auth_client(self, authorization: str) -> httpx.Client:
        if self._proxy_auth_client is None:
            self._proxy_auth_client = httpx.Client(**self._client_options(authorization))
        return self._proxy_auth_client

    def _get_async_proxy_auth_client(self, authorization: str) -> httpx.AsyncClient:
        if self._async_proxy_auth_client is None:
            self._async_proxy_auth_client = httpx.AsyncClient(**self._client_options(authorization))
        return self._async_proxy_auth_client

    # =========================================================================
    # Pipeline
    # =========================================================================

    def stages_for(self, request: PendingRequest[Any]) -> List[Stage]:
        """Ordered stages for `request`; only management calls are retried."""
        stages: List[Stage] = [self.proxy_auth_stage]
        if request.management:
            stages.append(self.retry_stage)
        stages.extend([self.gate_stage, self.logging_stage, self.telemetry_stage])
        return stages

    def _pipeline(self, request: PendingRequest[Any]) -> Pipeline:
        return Pipeline(self.stages_for(request), self._transport, self._async_transport)

    def pipeline_names(self, request: PendingRequest[Any]) -> List[str]:
        return [stage.name for stage in self.stages_for(request)]

    def set_telemetry(self, telemetry: Telemetry) -> None:
        self.telemetry_stage.telemetry = telemetry
        self.telemetry_stage.enabled = True

    def do_not_send_telemetry(self) -> None:
        self.telemetry_stage.enabled = False

    # =========================================================================
    # Execution
    # =========================================================================

    def execute(self, request: PendingRequest[T]) -> T:
        """Execute `request`, blocking until success or a terminal error."""
        wire_request = self._prepare(request, self._http_client)
        response = self._pipeline(request).send(wire_request)
        return self._handle_response(request, response)

    async def execute_async(self, request: PendingRequest[T]) -> T:
        """
        Execute `request` on the running event loop.

        Wrap in a task to get a cancellable handle; cancelling during a
        backoff delay stops before the next attempt.
        """
        wire_request = self._prepare(request, self._get_async_client())
        response = await self._pipeline(request).send_async(wire_request)
        return self._handle_response(request, response)

    def _prepare(self, request: PendingRequest[Any], client: Any) -> httpx.Request:
        """Validate, claim and serialize `request`."""
        if not request.method:
            raise ValidationError("'method' is required", "method")
        if not request.url:
            raise ValidationError("'url' is required", "url")

        content = None
        if request.body is not None:
            try:
                content = json.dumps(request.body)
            except (TypeError, ValueError) as e:
                raise ValidationError(f"Request body is not JSON serializable: {e}", "body")

        # Claimed only once the body is known to serialize
        request.mark_executed()
        logger.debug(f"[AuthKit] Executing {request.method} {request.url}")

        wire_request = client.build_request(
            request.method,
            request.url,
            params=request.params or None,
            headers=request.headers,
            content=content,
        )
        wire_request.extensions[RETRY_STATE_EXTENSION] = RetryState()
        return wire_request

    def _transport(self, request: httpx.Request) -> httpx.Response:
        client = self._http_client
        outgoing = request
        authorization = request.headers.get(PROXY_AUTHORIZATION)
        if authorization and self._configuration.proxy is not None:
            client = self._get_proxy_auth_client(authorization)
            outgoing = _without_proxy_authorization(request)
        try:
            response = client.send(outgoing)
        except httpx.TimeoutException as e:
            raise TransportError("Request timeout", {"url": str(request.url), "reason": str(e)})
        except httpx.ProxyError as e:
            if _is_proxy_challenge(e):
                return httpx.Response(PROXY_AUTHENTICATION_REQUIRED, request=request)
            raise TransportError(f"Proxy error: {e}", {"url": str(request.url)})
        except httpx.RequestError as e:
            raise TransportError(str(e) or e.__class__.__name__, {"url": str(request.url)})
        response.request = request
        return response

    async def _async_transport(self, request: httpx.Request) -> httpx.Response:
        client = self._get_async_client()
        outgoing = request
        authorization = request.headers.get(PROXY_AUTHORIZATION)
        if authorization and self._configuration.proxy is not None:
            client = self._get_async_proxy_auth_client(authorization)
            outgoing = _without_proxy_authorization(request)
        try:
            response = await client.send(outgoing)
        except httpx.TimeoutException as e:
            raise TransportError("Request timeout", {"url": str(request.url), "reason": str(e)})
        except httpx.ProxyError as e:
            if _is_proxy_challenge(e):
                return httpx.Response(PROXY_AUTHENTICATION_REQUIRED, request=request)
            raise TransportError(f"Proxy error: {e}", {"url": str(request.url)})
        except httpx.RequestError as e:
            raise TransportError(str(e) or e.__class__.__name__, {"url": str(request.url)})
        response.request = request
        return response

    # =========================================================================
    # Decoding
    # =========================================================================

    def _handle_response(self, request: PendingRequest[T], response: httpx.Response) -> T:
        """Decode a success body, or raise the matching typed error."""
        payload = _read_payload(response)

        if response.is_success:
            if request.decoder is None:
                return None  # type: ignore[return-value]
            if payload is None or payload == "":
                return None  # type: ignore[return-value]
            return request.decoder(payload)

        if response.status_code == RATE_LIMITED:
            raise RateLimitExceededError.from_response_parts(payload, response.headers)
        proxy = self._configuration.proxy
        if response.status_code == PROXY_AUTHENTICATION_REQUIRED and proxy is not None:
            raise TransportError(
                "Proxy authentication failed",
                {"url": str(response.request.url), "proxy": str(proxy.url)},
            )
        raise ApiError.from_payload(payload, response.status_code)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Close the blocking HTTP clients."""
        self._http_client.close()
        if self._proxy_auth_client is not None:
            self._proxy_auth_client.close()
            self._proxy_auth_client = None

    async def aclose(self) -> None:
        """Close all HTTP clients."""
        self.close()
        if self._async_http_client is not None:
            await self._async_http_client.aclose()
            self._async_http_client = None
        if self._async_proxy_auth_client is not None:
            await self._async_proxy_auth_client.aclose()
            self._async_proxy_auth_client = None


def _read_payload(response: httpx.Response) -> Any:
    """JSON when the body parses as JSON, otherwise the text (None if empty)."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _is_proxy_challenge(error: httpx.ProxyError) -> bool:
    """True when the proxy refused the CONNECT with 407."""
    return str(error).startswith(str(PROXY_AUTHENTICATION_REQUIRED))


def _without_proxy_authorization(request: httpx.Request) -> httpx.Request:
    """Copy of `request` for the origin; the credential travels on the proxy leg."""
    headers = request.headers.copy()
    del headers[PROXY_AUTHORIZATION]
    return httpx.Request(
        request.method,
        request.url,
        headers=headers,
        content=request.content,
        extensions=request.extensions,
    )


def _default_telemetry() -> Telemetry:
    from . import __version__

    return Telemetry("authkit-python", __version__)
