"""PriceResolver: cache → stored record → live fetch → interpolation.

Every answer produced below the cache tier is written through to the store
and the cache, so the series densifies as it is queried. Only
PriceUnavailableError ever reaches the caller; intermediate tier failures
are logged and the next tier is tried.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from chronoprice.db.repos.price_store import PriceStore
from chronoprice.domain.enums import PriceSource
from chronoprice.domain.models.price import (
    EstimatedPrice,
    FetchedPrice,
    InterpolationProvenance,
    PriceKey,
    PricePoint,
    PriceResult,
)
from chronoprice.exceptions import PriceUnavailableError, StorageUnavailableError, UpstreamUnavailableError
from chronoprice.infra.cache.base import NullCache, ResultCache, price_cache_key
from chronoprice.infra.price.base import PriceFetcher
from chronoprice.infra.price.retry import RetryPolicy, fetch_with_retry
from chronoprice.oracle.interpolation import DEFAULT_MAX_GAP_SECONDS, InterpolationEngine

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 300


def _stored_provenance(point: PricePoint) -> Optional[InterpolationProvenance]:
    raw = point.metadata.get("interpolation") if point.metadata else None
    if not raw:
        return None
    try:
        return InterpolationProvenance.model_validate(raw)
    except ValidationError:
        logger.warning("Malformed interpolation metadata on %s/%s@%d", point.token, point.network, point.timestamp)
        return None


class PriceResolver:
    def __init__(
        self,
        store: PriceStore,
        fetcher: PriceFetcher,
        cache: ResultCache | None = None,
        cache_ttl: int = DEFAULT_CACHE_TTL,
        retry_policy: RetryPolicy | None = None,
        max_gap_seconds: int = DEFAULT_MAX_GAP_SECONDS,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._cache = cache or NullCache()
        self._cache_ttl = cache_ttl
        self._retry = retry_policy or RetryPolicy(attempts=1)
        self._interpolation = InterpolationEngine(store, max_gap_seconds=max_gap_seconds)

    @property
    def interpolation(self) -> InterpolationEngine:
        return self._interpolation

    async def resolve_price(self, token: str, network: str, timestamp: int) -> PriceResult:
        key = PriceKey(token=token, network=network, timestamp=timestamp)
        cache_key = price_cache_key(key.token, key.network, key.timestamp)

        # 1. Cache
        cached = await self._cache_get(cache_key)
        if cached is not None:
            logger.debug("Cache hit for %s", cache_key)
            return cached

        storage_degraded = False

        # 2. Exact stored record
        try:
            stored = await self._store.get_exact(key)
        except StorageUnavailableError as e:
            logger.warning("Exact lookup unavailable for %s: %s", cache_key, e)
            stored, storage_degraded = None, True

        if stored is not None:
            result = self._from_stored(stored)
            await self._cache_set(cache_key, result, self._cache_ttl)
            return result

        # 3. External fetch
        fetched = await self._fetch(key)
        if fetched is not None:
            try:
                await self._store.upsert(
                    PricePoint(
                        token=key.token,
                        network=key.network,
                        timestamp=key.timestamp,
                        price=fetched.price,
                        volume_24h=fetched.volume_24h,
                        market_cap=fetched.market_cap,
                        source=PriceSource.EXTERNAL_FETCH,
                        confidence=fetched.confidence,
                        metadata=fetched.metadata,
                    )
                )
            except StorageUnavailableError as e:
                logger.warning("Could not persist fetched price for %s: %s", cache_key, e)
            result = self._from_fetched(key, fetched)
            await self._cache_set(cache_key, result, self._cache_ttl)
            return result

        # 4. Interpolation
        try:
            estimate = await self._interpolation.interpolate(key.token, key.network, key.timestamp)
        except StorageUnavailableError as e:
            logger.warning("Interpolation unavailable for %s: %s", cache_key, e)
            estimate, storage_degraded = None, True

        if estimate is not None:
            result = self._from_estimate(key, estimate)
            await self._cache_set(cache_key, result, self._cache_ttl // 2)
            return result

        # 5. Nothing at any tier
        logger.info("No price available for %s (storage degraded: %s)", cache_key, storage_degraded)
        raise PriceUnavailableError(key.token, key.network, key.timestamp, storage_degraded=storage_degraded)

    async def _fetch(self, key: PriceKey) -> Optional[FetchedPrice]:
        try:
            return await fetch_with_retry(self._fetcher, key.token, key.network, key.timestamp, self._retry)
        except UpstreamUnavailableError as e:
            logger.warning("External fetch failed for %s/%s@%d: %s", key.token, key.network, key.timestamp, e)
        except Exception:
            logger.exception("Unexpected fetcher error for %s/%s@%d", key.token, key.network, key.timestamp)
        return None

    async def _cache_get(self, cache_key: str) -> Optional[PriceResult]:
        try:
            payload = await self._cache.get(cache_key)
            if payload is None:
                return None
            return PriceResult.from_cache_payload(payload)
        except Exception as e:
            logger.warning("Cache read failed for %s, treating as miss: %s", cache_key, e)
            return None

    async def _cache_set(self, cache_key: str, result: PriceResult, ttl: int) -> None:
        try:
            await self._cache.set(cache_key, result.to_cache_payload(), ttl)
        except Exception as e:
            logger.warning("Cache write failed for %s: %s", cache_key, e)

    @staticmethod
    def _from_stored(point: PricePoint) -> PriceResult:
        return PriceResult(
            token=point.token,
            network=point.network,
            timestamp=point.timestamp,
            price=point.price,
            source=point.source,
            origin=point.source,
            confidence=point.confidence,
            volume_24h=point.volume_24h,
            market_cap=point.market_cap,
            interpolation=_stored_provenance(point) if point.source == PriceSource.INTERPOLATED else None,
        )

    @staticmethod
    def _from_fetched(key: PriceKey, fetched: FetchedPrice) -> PriceResult:
        return PriceResult(
            token=key.token,
            network=key.network,
            timestamp=key.timestamp,
            price=fetched.price,
            source=PriceSource.EXTERNAL_FETCH,
            origin=PriceSource.EXTERNAL_FETCH,
            confidence=fetched.confidence,
            volume_24h=fetched.volume_24h,
            market_cap=fetched.market_cap,
        )

    @staticmethod
    def _from_estimate(key: PriceKey, estimate: EstimatedPrice) -> PriceResult:
        return PriceResult(
            token=key.token,
            network=key.network,
            timestamp=key.timestamp,
            price=estimate.price,
            source=PriceSource.INTERPOLATED,
            origin=PriceSource.INTERPOLATED,
            confidence=estimate.confidence,
            interpolation=estimate.provenance,
        )
