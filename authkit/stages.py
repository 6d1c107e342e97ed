"""
Request pipeline stages.

A pipeline is an explicit, ordered list of named stages. Each stage gets
the wire request and a `call_next` continuation, and returns the wire
response or raises. Every stage offers a blocking and an asyncio entry
point with the same contract.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Sequence

import httpx

from .gate import ConcurrencyGate
from .options import LoggingOptions, LogLevel
from .proxy import ProxyAuthenticator
from .retry import RETRY_STATE_EXTENSION, RateLimitRetryPolicy, RetryState
from .telemetry import TELEMETRY_HEADER, Telemetry


http_logger = logging.getLogger("authkit.http")

Send = Callable[[httpx.Request], httpx.Response]
AsyncSend = Callable[[httpx.Request], Awaitable[httpx.Response]]

REDACTED = "██"


class Stage:
    """Pass-through stage; subclasses override one or both entry points."""

    name = "stage"

    def send(self, request: httpx.Request, call_next: Send) -> httpx.Response:
        return call_next(request)

    async def send_async(self, request: httpx.Request, call_next: AsyncSend) -> httpx.Response:
        return await call_next(request)


class ProxyAuthStage(Stage):
    """Re-sends a request once the proxy challenge has been answered."""

    name = "proxy-auth"

    def __init__(self, authenticator: ProxyAuthenticator) -> None:
        self.authenticator = authenticator

    def send(self, request: httpx.Request, call_next: Send) -> httpx.Response:
        response = call_next(request)
        while True:
            challenged = self.authenticator.authenticate(response)
            if challenged is None:
                return response
            response.close()
            response = call_next(challenged)

    async def send_async(self, request: httpx.Request, call_next: AsyncSend) -> httpx.Response:
        response = await call_next(request)
        while True:
            challenged = self.authenticator.authenticate(response)
            if challenged is None:
                return response
            await response.aclose()
            response = await call_next(challenged)


class RateLimitRetryStage(Stage):
    """Retries rate-limited (429) responses according to the policy."""

    name = "rate-limit-retry"

    def __init__(self, policy: RateLimitRetryPolicy) -> None:
        self.policy = policy

    def send(self, request: httpx.Request, call_next: Send) -> httpx.Response:
        state = _retry_state(request)
        while True:
            state.attempts += 1
            response = call_next(request)
            if not self.policy.should_retry(state, response):
                return response
            wait = self.policy.next_delay(state, response)
            response.close()
            time.sleep(wait)

    async def send_async(self, request: httpx.Request, call_next: AsyncSend) -> httpx.Response:
        state = _retry_state(request)
        while True:
            state.attempts += 1
            response = await call_next(request)
            if not self.policy.should_retry(state, response):
                return response
            wait = self.policy.next_delay(state, response)
            await response.aclose()
            # Cancellation here aborts before the next attempt; no slot is held
            await asyncio.sleep(wait)


def _retry_state(request: httpx.Request) -> RetryState:
    """The request's retry budget, shared with any proxy-authenticated re-send."""
    state = request.extensions.get(RETRY_STATE_EXTENSION)
    if state is None:
        state = RetryState()
        request.extensions[RETRY_STATE_EXTENSION] = state
    return state


class GateStage(Stage):
    """Holds a concurrency slot for the destination host during one attempt."""

    name = "concurrency-gate"

    def __init__(self, gate: ConcurrencyGate) -> None:
        self.gate = gate

    def send(self, request: httpx.Request, call_next: Send) -> httpx.Response:
        with self.gate.slot(request.url.host):
            return call_next(request)

    async def send_async(self, request: httpx.Request, call_next: AsyncSend) -> httpx.Response:
        async with self.gate.async_slot(request.url.host):
            return await call_next(request)


class LoggingStage(Stage):
    """Logs requests and responses at the configured verbosity."""

    name = "logging"

    def __init__(self, options: Optional[LoggingOptions] = None) -> None:
        self.options = options or LoggingOptions()

    @property
    def enabled(self) -> bool:
        return self.options.level != LogLevel.NONE

    def send(self, request: httpx.Request, call_next: Send) -> httpx.Response:
        if not self.enabled:
            return call_next(request)
        self.log_request(request)
        started = time.monotonic()
        response = call_next(request)
        self.log_response(response, time.monotonic() - started)
        return response

    async def send_async(self, request: httpx.Request, call_next: AsyncSend) -> httpx.Response:
        if not self.enabled:
            return await call_next(request)
        self.log_request(request)
        started = time.monotonic()
        response = await call_next(request)
        self.log_response(response, time.monotonic() - started)
        return response

    def log_request(self, request: httpx.Request) -> None:
        http_logger.info(f"--> {request.method} {request.url}")
        if self.options.level in (LogLevel.HEADERS, LogLevel.BODY):
            for line in self._header_lines(request.headers):
                http_logger.info(line)
        if self.options.level == LogLevel.BODY and request.content:
            http_logger.info(request.content.decode("utf-8", errors="replace"))
        if self.options.level != LogLevel.BASIC:
            http_logger.info(f"--> END {request.method}")

    def log_response(self, response: httpx.Response, elapsed: float) -> None:
        http_logger.info(
            f"<-- {response.status_code} {response.reason_phrase} "
            f"{response.request.url} ({int(elapsed * 1000)}ms)"
        )
        if self.options.level in (LogLevel.HEADERS, LogLevel.BODY):
            for line in self._header_lines(response.headers):
                http_logger.info(line)
        if self.options.level == LogLevel.BODY and response.content:
            http_logger.info(response.text)
        if self.options.level != LogLevel.BASIC:
            http_logger.info("<-- END HTTP")

    def _header_lines(self, headers: httpx.Headers) -> List[str]:
        return [
            f"{name}: {REDACTED if self.options.is_redacted(name) else value}"
            for name, value in headers.items()
        ]


class TelemetryStage(Stage):
    """Adds the telemetry header while enabled."""

    name = "telemetry"

    def __init__(self, telemetry: Telemetry, enabled: bool = True) -> None:
        self.telemetry = telemetry
        self.enabled = enabled

    def _prepare(self, request: httpx.Request) -> httpx.Request:
        if self.enabled:
            request.headers[TELEMETRY_HEADER] = self.telemetry.value
        return request

    def send(self, request: httpx.Request, call_next: Send) -> httpx.Response:
        return call_next(self._prepare(request))

    async def send_async(self, request: httpx.Request, call_next: AsyncSend) -> httpx.Response:
        return await call_next(self._prepare(request))


class Pipeline:
    """Runs a request through `stages` in order, ending at the transport."""

    def __init__(self, stages: Sequence[Stage], transport: Send, async_transport: AsyncSend) -> None:
        self.stages = list(stages)
        self._transport = transport
        self._async_transport = async_transport

    @property
    def names(self) -> List[str]:
        return [stage.name for stage in self.stages]

    def send(self, request: httpx.Request) -> httpx.Response:
        return self._call(0, request)

    async def send_async(self, request: httpx.Request) -> httpx.Response:
        return await self._call_async(0, request)

    def _call(self, index: int, request: httpx.Request) -> httpx.Response:
        if index == len(self.stages):
            return self._transport(request)
        return self.stages[index].send(request, lambda r: self._call(index + 1, r))

    async def _call_async(self, index: int, request: httpx.Request) -> httpx.Response:
        if index == len(self.stages):
            return await self._async_transport(request)
        return await self.stages[index].send_async(
            request, lambda r: self._call_async(index + 1, r)
        )
