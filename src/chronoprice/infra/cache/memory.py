import time
from typing import Any, Callable, Optional

from chronoprice.infra.cache.base import ResultCache


class MemoryCache(ResultCache):
    """Per-instance TTL map for tests and single-process runs.

    ``clock`` returns seconds; inject a fake one to exercise expiry.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, dict[str, Any]]] = {}

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return dict(value)

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        self._entries[key] = (self._clock() + ttl_seconds, dict(value))

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def ttl_remaining(self, key: str) -> Optional[float]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return entry[0] - self._clock()
