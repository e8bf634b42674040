from typing import AsyncGenerator

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chronoprice.collection.queue import JobQueue
from chronoprice.collection.scheduler import CollectionScheduler
from chronoprice.config import Settings
from chronoprice.container import Container
from chronoprice.db.repos.price_store import PriceStore
from chronoprice.infra.cache.base import ResultCache
from chronoprice.infra.metadata.token_metadata import TokenMetadataProvider
from chronoprice.infra.price.base import PriceFetcher
from chronoprice.infra.price.retry import RetryPolicy
from chronoprice.oracle.health import HealthChecker
from chronoprice.oracle.resolver import PriceResolver


@inject
async def get_db(
    session_factory: async_sessionmaker[AsyncSession] = Depends(Provide[Container.session_factory]),
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@inject
async def get_resolver(
    db: AsyncSession = Depends(get_db),
    fetcher: PriceFetcher = Depends(Provide[Container.price_fetcher]),
    cache: ResultCache = Depends(Provide[Container.cache]),
    retry_policy: RetryPolicy = Depends(Provide[Container.resolve_retry_policy]),
    settings: Settings = Depends(Provide[Container.settings]),
) -> PriceResolver:
    return PriceResolver(
        PriceStore(db),
        fetcher,
        cache=cache,
        cache_ttl=settings.price_cache_ttl,
        retry_policy=retry_policy,
        max_gap_seconds=settings.max_interpolation_gap_seconds,
    )


@inject
async def get_scheduler(
    db: AsyncSession = Depends(get_db),
    queue: JobQueue = Depends(Provide[Container.job_queue]),
    metadata: TokenMetadataProvider = Depends(Provide[Container.token_metadata]),
    settings: Settings = Depends(Provide[Container.settings]),
) -> CollectionScheduler:
    return CollectionScheduler(db, queue, metadata, max_days=settings.max_collection_days)


@inject
async def get_health_checker(
    db: AsyncSession = Depends(get_db),
    cache: ResultCache = Depends(Provide[Container.cache]),
    queue: JobQueue = Depends(Provide[Container.job_queue]),
) -> HealthChecker:
    return HealthChecker(PriceStore(db), cache, queue)
