"""
Reconnect backoff for queue consumers.

A worker whose Redis connection drops keeps polling; the delay between
attempts doubles up to a ceiling so a dead Redis is not hammered.
"""

import asyncio
import random


class ExponentialBackoff:
    """
    Capped exponential delays with jitter.

    delay(n) = min(base_delay * multiplier**n, max_delay), then jittered by
    up to +/- jitter_range of itself. `reset()` after the first success.

    Usage:
        backoff = ExponentialBackoff(base_delay=1.0, max_delay=30.0)
        while running:
            try:
                job = await queue.dequeue(timeout)
                backoff.reset()
            except QueueError:
                await backoff.wait()
    """

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        multiplier: float = 2.0,
        jitter_range: float = 0.25,
    ):
        if base_delay < 0 or max_delay < base_delay:
            raise ValueError("Expected 0 <= base_delay <= max_delay")
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self.jitter_range = jitter_range
        self._failures = 0

    @property
    def failures(self) -> int:
        """Consecutive failures since the last reset."""
        return self._failures

    def next_delay(self) -> float:
        """Delay before the next attempt. Counts one more failure."""
        capped = min(self.base_delay * (self.multiplier ** self._failures), self.max_delay)
        self._failures += 1
        if self.jitter_range <= 0:
            return capped
        return max(0.0, capped * (1 + random.uniform(-self.jitter_range, self.jitter_range)))

    async def wait(self, stop_event: asyncio.Event | None = None) -> float:
        """
        Sleep for the next delay.

        Returns early when `stop_event` is set so shutdown is not held up
        by a long backoff.
        """
        delay = self.next_delay()
        if stop_event is None:
            await asyncio.sleep(delay)
        else:
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
        return delay

    def reset(self) -> None:
        self._failures = 0
