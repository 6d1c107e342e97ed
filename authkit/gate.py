"""
AuthKit Concurrency Gate

Bounds the number of in-flight requests, globally and per destination
host. Attempts over either ceiling wait in a FIFO queue for their host.

One gate serves both blocking callers (threads) and asyncio callers, so
the limits hold across both dispatch modes.
"""

import asyncio
import logging
import threading
from collections import deque
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Deque, Dict, Iterator, Optional

from .options import validate_concurrency_limits


logger = logging.getLogger("authkit")


class _Waiter:
    """A queued admission request."""

    def __init__(self) -> None:
        self.admitted = False

    def wake(self) -> None:
        raise NotImplementedError


class _ThreadWaiter(_Waiter):
    def __init__(self) -> None:
        super().__init__()
        self.event = threading.Event()

    def wake(self) -> None:
        self.event.set()


class _AsyncWaiter(_Waiter):
    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        super().__init__()
        self.loop = loop
        self.future: "asyncio.Future[None]" = loop.create_future()

    def wake(self) -> None:
        self.loop.call_soon_threadsafe(self._resolve)

    def _resolve(self) -> None:
        if not self.future.done():
            self.future.set_result(None)


class ConcurrencyGate:
    """
    Admission control for outbound requests.

    Example:
        >>> gate = ConcurrencyGate(max_requests=64, max_requests_per_host=5)
        >>> with gate.slot("tenant.example.com"):
        ...     response = client.send(request)
    """

    def __init__(self, max_requests: int = 64, max_requests_per_host: int = 5) -> None:
        validate_concurrency_limits(max_requests, max_requests_per_host)
        self._max_requests = max_requests
        self._max_requests_per_host = max_requests_per_host
        self._lock = threading.Lock()
        self._in_flight = 0
        self._in_flight_per_host: Dict[str, int] = {}
        self._queues: Dict[str, Deque[_Waiter]] = {}

    # =========================================================================
    # Limits and introspection
    # =========================================================================

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def max_requests_per_host(self) -> int:
        return self._max_requests_per_host

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    def in_flight_for(self, host: str) -> int:
        with self._lock:
            return self._in_flight_per_host.get(host, 0)

    def queued_for(self, host: str) -> int:
        with self._lock:
            queue = self._queues.get(host)
            return len(queue) if queue else 0

    def set_limits(
        self,
        max_requests: Optional[int] = None,
        max_requests_per_host: Optional[int] = None,
    ) -> None:
        """
        Change the ceilings. Invalid values raise ConfigurationError and
        leave the gate untouched; raised ceilings admit queued waiters.
        """
        new_max = self._max_requests if max_requests is None else max_requests
        new_per_host = (
            self._max_requests_per_host if max_requests_per_host is None else max_requests_per_host
        )
        validate_concurrency_limits(new_max, new_per_host)

        with self._lock:
            self._max_requests = new_max
            self._max_requests_per_host = new_per_host
            self._admit_waiters()

    # =========================================================================
    # Blocking admission
    # =========================================================================

    def acquire(self, host: str) -> None:
        """Block until a slot for `host` is granted."""
        with self._lock:
            if self._try_admit_now(host):
                return
            waiter = _ThreadWaiter()
            self._enqueue(host, waiter)

        try:
            waiter.event.wait()
        except BaseException:
            self._abandon(host, waiter)
            raise

    @contextmanager
    def slot(self, host: str) -> Iterator[None]:
        self.acquire(host)
        try:
            yield
        finally:
            self.release(host)

    # =========================================================================
    # Async admission
    # =========================================================================

    async def acquire_async(self, host: str) -> None:
        """Wait until a slot for `host` is granted. Cancellation leaves the queue."""
        with self._lock:
            if self._try_admit_now(host):
                return
            waiter = _AsyncWaiter(asyncio.get_running_loop())
            self._enqueue(host, waiter)

        try:
            await waiter.future
        except BaseException:
            self._abandon(host, waiter)
            raise

    @asynccontextmanager
    async def async_slot(self, host: str) -> AsyncIterator[None]:
        await self.acquire_async(host)
        try:
            yield
        finally:
            self.release(host)

    # =========================================================================
    # Release
    # =========================================================================

    def release(self, host: str) -> None:
        """Give back a slot held for `host` and admit queued waiters."""
        with self._lock:
            self._release_locked(host)
            self._admit_waiters()

    # =========================================================================
    # Internal Methods (caller holds the lock)
    # =========================================================================

    def _has_capacity(self, host: str) -> bool:
        return (
            self._in_flight < self._max_requests
            and self._in_flight_per_host.get(host, 0) < self._max_requests_per_host
        )

    def _try_admit_now(self, host: str) -> bool:
        # Queued waiters for the same host go first
        if self._queues.get(host) or not self._has_capacity(host):
            return False
        self._take_slot(host)
        return True

    def _take_slot(self, host: str) -> None:
        self._in_flight += 1
        self._in_flight_per_host[host] = self._in_flight_per_host.get(host, 0) + 1

    def _release_locked(self, host: str) -> None:
        count = self._in_flight_per_host.get(host, 0)
        if count <= 0:
            raise RuntimeError(f"release() called without a held slot for {host!r}")
        if count == 1:
            del self._in_flight_per_host[host]
        else:
            self._in_flight_per_host[host] = count - 1
        self._in_flight -= 1

    def _enqueue(self, host: str, waiter: _Waiter) -> None:
        self._queues.setdefault(host, deque()).append(waiter)
        logger.debug(
            f"[AuthKit] Request to {host} queued "
            f"(in flight: {self._in_flight}, for host: {self._in_flight_per_host.get(host, 0)})"
        )

    def _admit_waiters(self) -> None:
        progress = True
        while progress and self._in_flight < self._max_requests:
            progress = False
            for host in list(self._queues):
                queue = self._queues[host]
                if queue and self._has_capacity(host):
                    waiter = queue.popleft()
                    self._take_slot(host)
                    waiter.admitted = True
                    waiter.wake()
                    progress = True
                if not queue:
                    del self._queues[host]

    def _abandon(self, host: str, waiter: _Waiter) -> None:
        with self._lock:
            if waiter.admitted:
                self._release_locked(host)
            else:
                queue = self._queues.get(host)
                if queue is not None:
                    try:
                        queue.remove(waiter)
                    except ValueError:
                        pass
                    if not queue:
                        del self._queues[host]
            self._admit_waiters()
