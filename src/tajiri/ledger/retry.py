"""Retry policy for ledger calls.

One policy object serves both read and write paths; only the preset
differs. Delays grow exponentially from the base delay, are capped, and
jittered so that many clients retrying together do not hit a recovering
node in lockstep.

    delay(attempt) = min(base_delay * growth_factor ** (attempt - 1), max_delay)
    sleep = delay * uniform(1 - jitter_ratio, 1 + jitter_ratio)

No delay precedes the first attempt.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Optional

import httpx

from tajiri.ledger.base import TransientLedgerError

logger = logging.getLogger(__name__)


def is_retryable(error: BaseException) -> bool:
    """Classify an error as transient (retry) or fatal (propagate at once)."""
    if isinstance(error, TransientLedgerError):
        return True
    # Connection resets, read timeouts and similar transport failures
    if isinstance(error, httpx.TransportError):
        return True
    return False


@dataclass
class RetryPolicy:
    """Bounded retries with exponential backoff and jitter.

    Attributes:
        max_attempts: Total attempts including the first one
        base_delay: Delay in seconds before the second attempt
        growth_factor: Multiplier applied per further attempt
        max_delay: Cap on a single delay in seconds
        jitter_ratio: Relative jitter applied to each delay
        deadline: Optional overall budget in seconds; no retry starts past it
        classifier: Decides whether an error is retryable
        sleep: Awaitable sleep (injected in tests)
        rng: Random source for jitter
    """

    max_attempts: int = 5
    base_delay: float = 3.0
    growth_factor: float = 1.5
    max_delay: float = 15.0
    jitter_ratio: float = 0.15
    deadline: Optional[float] = None
    classifier: Callable[[BaseException], bool] = is_retryable
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep, repr=False)
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def with_overrides(self, **changes: Any) -> "RetryPolicy":
        """Copy of this policy with some fields replaced."""
        return replace(self, **changes)

    def base_delay_for(self, attempt: int) -> float:
        """Un-jittered delay applied after a failed attempt (1-based)."""
        return min(self.base_delay * self.growth_factor ** (attempt - 1), self.max_delay)

    def delay_for(self, attempt: int) -> float:
        """Jittered delay applied after a failed attempt (1-based)."""
        delay = self.base_delay_for(attempt)
        jitter = self.rng.uniform(-self.jitter_ratio, self.jitter_ratio)
        return max(0.0, delay * (1 + jitter))

    async def run(
        self,
        call: Callable[[], Awaitable[Any]],
        operation: str = "ledger call",
        on_exhausted: Optional[Callable[[BaseException], None]] = None,
    ) -> Any:
        """Run a call under this policy.

        Fatal errors propagate after a single attempt. When every attempt
        fails with a retryable error, the last error is raised unchanged
        after on_exhausted has been notified.

        Args:
            call: Zero-argument coroutine factory performing one attempt
            operation: Description of the call for logging
            on_exhausted: Invoked with the last error when retries run out
        """
        started = time.monotonic()
        attempt = 0

        while True:
            attempt += 1
            try:
                return await call()
            except Exception as e:
                if not self.classifier(e):
                    logger.debug(f"{operation} failed with fatal error: {type(e).__name__}: {e}")
                    raise

                if attempt >= self.max_attempts:
                    logger.error(f"{operation} failed after {attempt} attempts: {e}")
                    if on_exhausted:
                        on_exhausted(e)
                    raise

                delay = self.delay_for(attempt)
                if self.deadline is not None and time.monotonic() - started + delay > self.deadline:
                    logger.error(
                        f"{operation} abandoned after {attempt} attempts: deadline of "
                        f"{self.deadline}s reached ({e})"
                    )
                    if on_exhausted:
                        on_exhausted(e)
                    raise

                logger.warning(
                    f"{operation} failed (attempt {attempt}/{self.max_attempts}): {e} - "
                    f"retrying in {delay:.2f}s"
                )
                await self.sleep(delay)


# Reads are cheap to repeat
QUERY_RETRY = RetryPolicy(max_attempts=8, base_delay=2.0, growth_factor=1.5, max_delay=15.0)

# Resubmitting a write is riskier than re-reading, so writes retry less
EXECUTE_RETRY = RetryPolicy(max_attempts=5, base_delay=3.0, growth_factor=1.5, max_delay=15.0)
