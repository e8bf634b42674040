"""Result cache seam. Advisory only: a miss and a failure mean the same thing."""

from abc import ABC, abstractmethod
from typing import Any, Optional


def price_cache_key(token: str, network: str, timestamp: int) -> str:
    return f"price:{token.lower()}:{network.lower()}:{timestamp}"


class ResultCache(ABC):
    @abstractmethod
    async def get(self, key: str) -> Optional[dict[str, Any]]: ...

    @abstractmethod
    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...


class NullCache(ResultCache):
    """Cache disabled. Every lookup misses."""

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        return None

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        return None

    async def delete(self, key: str) -> None:
        return None
