"""Rate limiters applied before each outbound geocoding request."""

import asyncio
from abc import ABC, abstractmethod
from typing import Awaitable, Callable


class RateLimiter(ABC):
    """Gate awaited once before every call to the geocoding provider."""

    @abstractmethod
    async def acquire(self) -> None:
        """Wait until the next request may be sent."""


class FixedDelayRateLimiter(RateLimiter):
    """
    Wait a fixed interval before every request.

    Worker invocations share no memory, so the delay is applied
    unconditionally rather than measured from a previous call. Keeping the
    interval above one second holds a single worker under Nominatim's
    one-request-per-second usage policy.
    """

    def __init__(
        self,
        interval_seconds: float = 1.1,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")
        self.interval_seconds = interval_seconds
        self._sleep = sleep

    async def acquire(self) -> None:
        await self._sleep(self.interval_seconds)


class NoopRateLimiter(RateLimiter):
    """Never waits. For tests and self-hosted providers without a usage policy."""

    async def acquire(self) -> None:
        return None
