"""RetryPolicy — attempt bounds and delays for the transaction retry loops."""

from __future__ import annotations

import random
import time


class RetryPolicy:
    """Configurable retry bound with a fixed (or growing) delay.

    The Data Plane API races settle on their own, so the default is a fixed
    delay between attempts (``backoff=1.0``). ``max_elapsed`` additionally
    caps the wall-clock time spent in a loop.
    """

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        delay: float = 2.0,
        backoff: float = 1.0,
        max_delay: float = 60.0,
        jitter: bool = False,
        max_elapsed: float | None = None,
    ) -> None:
        """Configure retry behavior.

        Args:
            max_attempts: Maximum number of attempts (including the first).
            delay: Delay in seconds before the first retry.
            backoff: Multiplier applied to the delay on each further retry.
            max_delay: Cap on delay in seconds.
            jitter: If True, multiply delays by a random factor in [0.5, 1.5].
            max_elapsed: Optional cap in seconds on the total time of a loop.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if delay < 0 or max_delay < 0:
            raise ValueError("delay and max_delay must be >= 0")
        if delay > max_delay:
            raise ValueError("delay must be <= max_delay")
        if backoff < 1.0:
            raise ValueError("backoff must be >= 1.0")
        if max_elapsed is not None and max_elapsed <= 0:
            raise ValueError("max_elapsed must be > 0")
        self.max_attempts = max_attempts
        self.delay = delay
        self.backoff = backoff
        self.max_delay = max_delay
        self.jitter = jitter
        self.max_elapsed = max_elapsed

    @classmethod
    def create_default(cls) -> RetryPolicy:
        """Bound used for transaction creation and in-place commit retries."""
        return cls(max_attempts=3, delay=2.0)

    @classmethod
    def whole_cycle_default(cls) -> RetryPolicy:
        """Bound used for the begin -> mutate -> commit restart loop."""
        return cls(max_attempts=10, delay=2.0)

    def should_retry(self, attempt: int, started_at: float | None = None) -> bool:
        """Return True if another attempt is allowed (attempt is 1-based)."""
        if not 1 <= attempt < self.max_attempts:
            return False
        if self.max_elapsed is not None and started_at is not None:
            return (time.monotonic() - started_at) < self.max_elapsed
        return True

    def delay_for_attempt(self, attempt: int) -> float:
        """Return delay in seconds after the given 1-based attempt."""
        if attempt < 1:
            return 0.0
        delay = min(self.delay * (self.backoff ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay = delay * (0.5 + random.random())  # noqa: S311
        return float(max(0.0, delay))

    async def wait_before_retry(self, attempt: int) -> None:
        d = self.delay_for_attempt(attempt)
        if d > 0:
            await _sleep(d)

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_attempts={self.max_attempts}, delay={self.delay}, "
            f"backoff={self.backoff}, max_elapsed={self.max_elapsed})"
        )


async def _sleep(seconds: float) -> None:
    """Async sleep (overridable for tests)."""
    import asyncio

    await asyncio.sleep(seconds)
