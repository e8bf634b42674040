import asyncio
import time

import httpx


class RateLimiter:
    """Interval-based limiter. One instance is shared by every caller that must respect the same budget."""

    def __init__(self, rate_per_second: float) -> None:
        self._min_interval = 1.0 / rate_per_second
        self._last_request_time = 0.0
        self._lock = asyncio.Lock()

    @classmethod
    def per_minute(cls, requests_per_minute: int) -> "RateLimiter":
        return cls(rate_per_second=requests_per_minute / 60.0)

    async def wait_for_slot(self) -> None:
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request_time
            if elapsed < self._min_interval:
                await asyncio.sleep(self._min_interval - elapsed)
            self._last_request_time = time.monotonic()


class RateLimitedClient:
    """Async HTTP client whose requests all draw from one RateLimiter."""

    def __init__(
        self,
        rate_per_second: float = 5.0,
        timeout: float = 30.0,
        limiter: RateLimiter | None = None,
    ) -> None:
        self._limiter = limiter or RateLimiter(rate_per_second)
        self._client = httpx.AsyncClient(timeout=timeout)

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    async def get(self, url: str, params: dict | None = None) -> httpx.Response:
        await self._limiter.wait_for_slot()
        return await self._client.get(url, params=params)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RateLimitedClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
