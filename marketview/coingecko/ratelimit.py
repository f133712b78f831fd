from __future__ import annotations

import asyncio
import time


class TokenBucket:
    """Token bucket for coroutines sharing one event loop."""

    def __init__(self, rate_per_sec: float, capacity: float | None = None) -> None:
        if rate_per_sec <= 0:
            raise ValueError("rate_per_sec must be positive")
        self._rate = rate_per_sec
        # At least one whole token, or rates below 1/s could never be acquired.
        self._capacity = capacity if capacity is not None else max(1.0, rate_per_sec)
        self._tokens = self._capacity
        self._updated_at = time.monotonic()

    async def acquire(self) -> None:
        while True:
            # No await between refill and take, so this block is atomic on the loop.
            now = time.monotonic()
            elapsed = now - self._updated_at
            if elapsed > 0:
                self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
                self._updated_at = now

            if self._tokens >= 1:
                self._tokens -= 1
                return

            wait_time = (1 - self._tokens) / self._rate
            await asyncio.sleep(wait_time)
