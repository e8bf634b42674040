from dependency_injector import containers, providers

from chronoprice.collection.processor import JobProcessor
from chronoprice.collection.queue import CeleryJobQueue, JobQueue, LocalJobQueue
from chronoprice.collection.worker import CollectionWorker
from chronoprice.config import Settings
from chronoprice.db.session import build_engine, build_session_factory
from chronoprice.infra.blockchain.etherscan_client import EtherscanClient
from chronoprice.infra.cache.base import NullCache, ResultCache
from chronoprice.infra.cache.redis_cache import RedisCache
from chronoprice.infra.http.rate_limited_client import RateLimitedClient, RateLimiter
from chronoprice.infra.metadata.token_metadata import EtherscanTokenMetadata, NullTokenMetadata, TokenMetadataProvider
from chronoprice.infra.price.base import NullFetcher, PriceFetcher
from chronoprice.infra.price.coingecko import CoinGeckoFetcher
from chronoprice.infra.price.retry import RetryPolicy


def build_price_fetcher(settings: Settings, http_client: RateLimitedClient) -> PriceFetcher:
    if settings.price_fetcher == "none":
        return NullFetcher()
    if settings.price_fetcher == "coingecko":
        return CoinGeckoFetcher(http_client, api_key=settings.coingecko_api_key, pro=settings.coingecko_pro)
    raise ValueError(f"Unknown price fetcher: {settings.price_fetcher}")


def build_retry_policy(settings: Settings, attempts: int) -> RetryPolicy:
    return RetryPolicy(
        attempts=attempts,
        backoff_seconds=settings.retry_backoff_seconds,
        backoff_max_seconds=settings.retry_backoff_max_seconds,
        attempt_timeout=settings.fetch_timeout_seconds,
    )


def build_cache(settings: Settings) -> ResultCache:
    if not settings.cache_enabled:
        return NullCache()
    return RedisCache.from_url(settings.redis_url)


def build_token_metadata(settings: Settings, http_client: RateLimitedClient) -> TokenMetadataProvider:
    if not settings.etherscan_api_key:
        return NullTokenMetadata()
    return EtherscanTokenMetadata(EtherscanClient(api_key=settings.etherscan_api_key, http_client=http_client))


def build_job_queue(settings: Settings) -> JobQueue:
    if settings.queue_backend == "local":
        return LocalJobQueue()
    if settings.queue_backend == "celery":
        return CeleryJobQueue()
    raise ValueError(f"Unknown queue backend: {settings.queue_backend}")


class Container(containers.DeclarativeContainer):
    wiring_config = containers.WiringConfiguration(modules=["chronoprice.api.deps"])

    settings = providers.Singleton(Settings)

    engine = providers.Singleton(
        build_engine,
        database_url=settings.provided.database_url,
        echo=settings.provided.debug,
    )

    session_factory = providers.Singleton(
        build_session_factory,
        engine=engine,
    )

    # One limiter for every outbound price fetch made by this process
    fetch_limiter = providers.Singleton(
        RateLimiter.per_minute,
        requests_per_minute=settings.provided.fetch_rate_per_minute,
    )

    fetch_http_client = providers.Singleton(
        RateLimitedClient,
        timeout=settings.provided.fetch_timeout_seconds,
        limiter=fetch_limiter,
    )

    etherscan_http_client = providers.Singleton(RateLimitedClient, rate_per_second=5.0, timeout=30.0)

    price_fetcher = providers.Singleton(build_price_fetcher, settings=settings, http_client=fetch_http_client)

    resolve_retry_policy = providers.Singleton(
        build_retry_policy, settings=settings, attempts=settings.provided.resolve_fetch_attempts
    )

    collection_retry_policy = providers.Singleton(
        build_retry_policy, settings=settings, attempts=settings.provided.collection_fetch_attempts
    )

    cache = providers.Singleton(build_cache, settings=settings)

    token_metadata = providers.Singleton(build_token_metadata, settings=settings, http_client=etherscan_http_client)

    job_queue = providers.Singleton(build_job_queue, settings=settings)

    job_processor = providers.Singleton(
        JobProcessor,
        session_factory=session_factory,
        fetcher=price_fetcher,
        retry_policy=collection_retry_policy,
        batch_size=settings.provided.batch_size,
        batch_delay=settings.provided.batch_delay_seconds,
    )

    collection_worker = providers.Singleton(
        CollectionWorker,
        queue=job_queue,
        processor=job_processor,
        concurrency=settings.provided.worker_concurrency,
        max_job_retries=settings.provided.job_max_retries,
        retry_delay=settings.provided.job_retry_delay_seconds,
    )
