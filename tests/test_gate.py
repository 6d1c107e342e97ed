"""
Tests for the AuthKit concurrency gate.

Exercises the global and per-host ceilings from threads and from
asyncio tasks, FIFO admission, limit changes and cancellation.
"""

import asyncio
import threading
import time
from typing import Callable, List

import pytest

from authkit import ConcurrencyGate
from authkit.errors import ConfigurationError


HOST = "tenant.example.com"
OTHER_HOST = "other.example.com"


def wait_until(condition: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll `condition` until it holds or `timeout` passes."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.005)
    return condition()


# =============================================================================
# Limits
# =============================================================================

class TestLimits:
    """Tests for limit validation and introspection."""

    def test_invalid_construction(self):
        """Test limits below one are rejected."""
        with pytest.raises(ConfigurationError):
            ConcurrencyGate(0, 5)
        with pytest.raises(ConfigurationError):
            ConcurrencyGate(5, 0)

    def test_invalid_set_limits_leaves_state(self):
        """Test a rejected set_limits changes nothing."""
        gate = ConcurrencyGate(8, 3)
        with pytest.raises(ConfigurationError):
            gate.set_limits(max_requests=10, max_requests_per_host=0)
        assert gate.max_requests == 8
        assert gate.max_requests_per_host == 3

    def test_release_without_slot(self):
        """Test releasing an unheld slot is an error."""
        gate = ConcurrencyGate()
        with pytest.raises(RuntimeError):
            gate.release(HOST)

    def test_slot_counts(self):
        """Test counters follow the slot context manager."""
        gate = ConcurrencyGate()
        with gate.slot(HOST):
            assert gate.in_flight == 1
            assert gate.in_flight_for(HOST) == 1
            assert gate.in_flight_for(OTHER_HOST) == 0
        assert gate.in_flight == 0
        assert gate.in_flight_for(HOST) == 0


# =============================================================================
# Blocking Callers
# =============================================================================

class TestThreadedAdmission:
    """Tests for threads waiting on the gate."""

    def test_per_host_limit_queues_extra_request(self):
        """Test per_host + 1 requests: the extra one waits for a release."""
        gate = ConcurrencyGate(max_requests=64, max_requests_per_host=2)
        gate.acquire(HOST)
        gate.acquire(HOST)

        admitted = threading.Event()

        def worker():
            gate.acquire(HOST)
            admitted.set()

        thread = threading.Thread(target=worker)
        thread.start()
        assert wait_until(lambda: gate.queued_for(HOST) == 1)
        assert not admitted.is_set()
        assert gate.in_flight_for(HOST) == 2

        gate.release(HOST)
        thread.join(timeout=2)
        assert admitted.is_set()
        assert gate.in_flight_for(HOST) == 2
        assert gate.queued_for(HOST) == 0

    def test_other_host_not_blocked(self):
        """Test a full host does not hold back another host."""
        gate = ConcurrencyGate(max_requests=64, max_requests_per_host=1)
        gate.acquire(HOST)
        gate.acquire(OTHER_HOST)
        assert gate.in_flight == 2

    def test_global_limit(self):
        """Test the global ceiling applies across hosts."""
        gate = ConcurrencyGate(max_requests=1, max_requests_per_host=5)
        gate.acquire(HOST)

        thread = threading.Thread(target=gate.acquire, args=(OTHER_HOST,))
        thread.start()
        assert wait_until(lambda: gate.queued_for(OTHER_HOST) == 1)

        gate.release(HOST)
        thread.join(timeout=2)
        assert gate.in_flight_for(OTHER_HOST) == 1

    def test_fifo_per_host(self):
        """Test queued requests for a host are admitted in arrival order."""
        gate = ConcurrencyGate(max_requests=64, max_requests_per_host=1)
        gate.acquire(HOST)
        order: List[int] = []

        def worker(index: int):
            gate.acquire(HOST)
            order.append(index)
            gate.release(HOST)

        threads = []
        for index in range(3):
            thread = threading.Thread(target=worker, args=(index,))
            thread.start()
            threads.append(thread)
            assert wait_until(lambda: gate.queued_for(HOST) == index + 1)

        gate.release(HOST)
        for thread in threads:
            thread.join(timeout=2)
        assert order == [0, 1, 2]

    def test_raising_limit_admits_waiters(self):
        """Test set_limits with a higher ceiling admits queued requests."""
        gate = ConcurrencyGate(max_requests=64, max_requests_per_host=1)
        gate.acquire(HOST)

        thread = threading.Thread(target=gate.acquire, args=(HOST,))
        thread.start()
        assert wait_until(lambda: gate.queued_for(HOST) == 1)

        gate.set_limits(max_requests_per_host=2)
        thread.join(timeout=2)
        assert gate.in_flight_for(HOST) == 2


# =============================================================================
# Async Callers
# =============================================================================

class TestAsyncAdmission:
    """Tests for asyncio tasks waiting on the gate."""

    @pytest.mark.asyncio
    async def test_per_host_limit_async(self):
        """Test per_host + 1 tasks: the extra one waits for a release."""
        gate = ConcurrencyGate(max_requests=64, max_requests_per_host=2)
        await gate.acquire_async(HOST)
        await gate.acquire_async(HOST)

        task = asyncio.create_task(gate.acquire_async(HOST))
        await asyncio.sleep(0.01)
        assert not task.done()
        assert gate.queued_for(HOST) == 1

        gate.release(HOST)
        await asyncio.wait_for(task, timeout=2)
        assert gate.in_flight_for(HOST) == 2

    @pytest.mark.asyncio
    async def test_cancel_removes_waiter(self):
        """Test cancelling a queued task removes it and takes no slot."""
        gate = ConcurrencyGate(max_requests=64, max_requests_per_host=1)
        await gate.acquire_async(HOST)

        task = asyncio.create_task(gate.acquire_async(HOST))
        await asyncio.sleep(0.01)
        assert gate.queued_for(HOST) == 1

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert gate.queued_for(HOST) == 0
        assert gate.in_flight_for(HOST) == 1

        gate.release(HOST)
        assert gate.in_flight == 0

    @pytest.mark.asyncio
    async def test_async_slot_releases_on_error(self):
        """Test the async slot is released when the body raises."""
        gate = ConcurrencyGate()
        with pytest.raises(ValueError):
            async with gate.async_slot(HOST):
                raise ValueError("boom")
        assert gate.in_flight == 0

    @pytest.mark.asyncio
    async def test_shared_between_threads_and_tasks(self):
        """Test a slot released by a thread admits a queued task."""
        gate = ConcurrencyGate(max_requests=64, max_requests_per_host=1)
        gate.acquire(HOST)

        task = asyncio.create_task(gate.acquire_async(HOST))
        await asyncio.sleep(0.01)
        assert gate.queued_for(HOST) == 1

        thread = threading.Thread(target=gate.release, args=(HOST,))
        thread.start()
        thread.join(timeout=2)
        await asyncio.wait_for(task, timeout=2)
        assert gate.in_flight_for(HOST) == 1
