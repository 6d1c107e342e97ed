"""
Rate-limit retry policy for management API calls.

Only HTTP 429 responses are retried. Delays grow exponentially and are
capped, so the sequence is non-negative and never decreases:

    delay(n) = min(max_delay, base_delay * 2 ** (n - 1)),  n >= 1
"""

import logging
from dataclasses import dataclass

import httpx

from .errors import ConfigurationError
from .options import MAX_MANAGEMENT_RETRIES, ClientConfiguration


logger = logging.getLogger("authkit")

RATE_LIMITED = 429

# Wire-request extension holding the RetryState shared by every re-send
RETRY_STATE_EXTENSION = "authkit.retry_state"


@dataclass
class RetryState:
    """Attempts made so far for one pending request."""

    attempts: int = 0
    retries: int = 0


class RateLimitRetryPolicy:
    """
    Decides whether a rate-limited response is retried, and after how long.

    Args:
        max_retries: Retries allowed after the first attempt (0-10).
            Zero makes the first 429 terminal.
        base_delay: Delay before the first retry, in seconds.
        max_delay: Upper bound of any single delay, in seconds.
    """

    def __init__(self, max_retries: int = 3, base_delay: float = 0.25, max_delay: float = 10.0):
        if not 0 <= max_retries <= MAX_MANAGEMENT_RETRIES:
            raise ConfigurationError("Retries must be between zero and ten.")
        if base_delay < 0 or max_delay < base_delay:
            raise ConfigurationError("Retry delays must satisfy 0 <= base_delay <= max_delay.")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay

    @classmethod
    def from_configuration(cls, configuration: ClientConfiguration) -> "RateLimitRetryPolicy":
        return cls(
            configuration.max_management_retries,
            configuration.management_retry_base_delay,
            configuration.management_retry_max_delay,
        )

    def should_retry(self, state: RetryState, response: httpx.Response) -> bool:
        """True when `response` is a 429 and the retry budget is not spent."""
        if response.status_code != RATE_LIMITED:
            return False
        if state.retries < self.max_retries:
            return True
        if self.max_retries:
            logger.error(
                f"[AuthKit] Rate limit still reached after {self.max_retries} retries "
                f"for {response.request.method} {response.request.url}"
            )
        return False

    def delay(self, retry_number: int) -> float:
        """Backoff before retry number `retry_number` (1-based)."""
        if retry_number < 1:
            return 0.0
        return min(self.max_delay, self.base_delay * (2 ** (retry_number - 1)))

    def next_delay(self, state: RetryState, response: httpx.Response) -> float:
        """Record a retry on `state` and return how long to wait before it."""
        state.retries += 1
        wait = self.delay(state.retries)
        logger.warning(
            f"[AuthKit] Rate limited on {response.request.method} {response.request.url} "
            f"(attempt {state.attempts}/{self.max_retries + 1}). Retrying in {wait:.2f}s..."
        )
        return wait
