"""Concurrency and request-rate controls for node requests."""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator


class RateLimiter:
    """Cell-rate limiter allowing ``per_second`` requests per second with an equal burst."""

    def __init__(self, per_second: int) -> None:
        if per_second <= 0:
            raise ValueError("per_second must be positive")
        self.per_second = per_second
        self._emission = 1.0 / per_second
        self._tolerance = self._emission * per_second
        self._tat: float | None = None
        self._lock = asyncio.Lock()

    async def until_ready(self) -> None:
        """Wait until another request may be sent."""
        async with self._lock:
            now = time.monotonic()
            tat = now if self._tat is None else max(self._tat, now)
            wait = tat + self._emission - self._tolerance - now
            if wait > 0:
                await asyncio.sleep(wait)
            self._tat = tat + self._emission


class RequestGate:
    """Admits requests subject to a concurrency cap and a rate limit, either optional."""

    def __init__(
        self,
        max_concurrent_requests: int | None = None,
        max_requests_per_second: int | None = None,
    ) -> None:
        if max_concurrent_requests is not None and max_concurrent_requests <= 0:
            raise ValueError("max_concurrent_requests must be positive")
        self.max_concurrent_requests = max_concurrent_requests
        self.max_requests_per_second = max_requests_per_second
        self.semaphore = (
            asyncio.Semaphore(max_concurrent_requests)
            if max_concurrent_requests is not None
            else None
        )
        self.rate_limiter = (
            RateLimiter(max_requests_per_second)
            if max_requests_per_second is not None
            else None
        )

    async def _wait_for_rate(self) -> None:
        if self.rate_limiter is not None:
            await self.rate_limiter.until_ready()

    @asynccontextmanager
    async def permit(self) -> AsyncIterator[None]:
        """Hold a request slot for the duration of the ``async with`` block."""
        if self.semaphore is None:
            await self._wait_for_rate()
            yield
            return
        async with self.semaphore:
            await self._wait_for_rate()
            yield