"""Component checks behind the oracle health endpoint."""

import logging
from typing import Awaitable, Callable

from chronoprice.collection.queue import JobQueue
from chronoprice.db.repos.price_store import PriceStore
from chronoprice.domain.models.health import DEGRADED, HEALTHY, UNHEALTHY, HealthReport
from chronoprice.infra.cache.base import ResultCache

logger = logging.getLogger(__name__)

HEALTH_CHECK_KEY = "health_check"


class HealthChecker:
    """Check the store, the cache and the job queue.

    Any failing component marks the whole report degraded. A disabled cache
    (``NullCache``) always answers, so it reads as healthy.
    """

    def __init__(self, store: PriceStore, cache: ResultCache, queue: JobQueue) -> None:
        self._store = store
        self._cache = cache
        self._queue = queue

    async def check(self) -> HealthReport:
        report = HealthReport()
        await self._check_component(report, "database", self._store.ping)
        await self._check_component(report, "cache", self._ping_cache)
        await self._check_component(report, "queue", self._queue.ping)
        return report

    async def _ping_cache(self) -> None:
        await self._cache.get(HEALTH_CHECK_KEY)

    async def _check_component(self, report: HealthReport, name: str, check: Callable[[], Awaitable[None]]) -> None:
        try:
            await check()
        except Exception as e:
            logger.warning("Health check failed for %s: %s", name, e)
            report.components[name] = UNHEALTHY
            report.errors[name] = str(e)
            report.status = DEGRADED
            return
        report.components[name] = HEALTHY
