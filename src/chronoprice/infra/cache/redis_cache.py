"""Redis-backed result cache (JSON values, SETEX expiry)."""

import json
from typing import Any, Optional

from redis.asyncio import Redis

from chronoprice.infra.cache.base import ResultCache


class RedisCache(ResultCache):
    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCache":
        return cls(Redis.from_url(url, decode_responses=True, socket_timeout=2.0, socket_connect_timeout=2.0))

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        raw = await self._client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        await self._client.setex(key, ttl_seconds, json.dumps(value))

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def close(self) -> None:
        await self._client.aclose()
