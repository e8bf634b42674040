"""Celery tasks for background processing."""

import asyncio
import logging
import uuid

from chronoprice.config import settings
from chronoprice.exceptions import JobNotFoundError, UpstreamUnavailableError
from chronoprice.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    name="collect_prices",
    max_retries=settings.job_max_retries,
    default_retry_delay=settings.job_retry_delay_seconds,
)
def collect_prices_task(self, job_id: str) -> dict:
    """Run one collection job.

    Bridges to async code via asyncio.run(); each invocation builds its own
    engine, session factory and HTTP client. An upstream or storage outage
    retries the whole job (already stored timestamps are skipped on the
    next run); once retries are exhausted the job is marked failed.
    """
    try:
        status = asyncio.run(_collect_prices_async(job_id))
    except JobNotFoundError as e:
        logger.error("%s", e)
        return {"status": "error", "message": str(e)}
    except UpstreamUnavailableError as e:
        if self.request.retries >= self.max_retries:
            asyncio.run(_fail_job_async(job_id, f"Retries exhausted: {e}"))
            return {"status": "failed", "job_id": job_id, "message": str(e)}
        logger.warning("Job %s interrupted (retry %d/%d): %s", job_id, self.request.retries + 1, self.max_retries, e)
        raise self.retry(exc=e)
    except Exception as e:
        logger.exception("Failed to process collection job %s", job_id)
        return {"status": "error", "message": str(e)}

    return {
        "status": status.state.value,
        "job_id": job_id,
        "succeeded": status.succeeded,
        "failed": status.failed,
        "skipped": status.skipped,
        "missing": status.missing,
    }


async def _collect_prices_async(job_id: str):
    from chronoprice.collection.processor import JobProcessor
    from chronoprice.container import build_price_fetcher, build_retry_policy
    from chronoprice.db.session import build_engine, build_session_factory
    from chronoprice.infra.http.rate_limited_client import RateLimitedClient, RateLimiter

    engine = build_engine(settings.database_url, echo=False)
    session_factory = build_session_factory(engine)
    # Each worker process gets an equal share of the outbound budget
    limiter = RateLimiter(rate_per_second=settings.fetch_rate_per_minute / 60.0 / max(1, settings.worker_concurrency))

    try:
        async with RateLimitedClient(timeout=settings.fetch_timeout_seconds, limiter=limiter) as http_client:
            processor = JobProcessor(
                session_factory,
                build_price_fetcher(settings, http_client),
                retry_policy=build_retry_policy(settings, settings.collection_fetch_attempts),
                batch_size=settings.batch_size,
                batch_delay=settings.batch_delay_seconds,
            )
            return await processor.process(uuid.UUID(job_id))
    finally:
        await engine.dispose()


async def _fail_job_async(job_id: str, message: str) -> None:
    from chronoprice.collection.processor import JobProcessor
    from chronoprice.db.session import build_engine, build_session_factory
    from chronoprice.infra.price.base import NullFetcher

    engine = build_engine(settings.database_url, echo=False)
    try:
        processor = JobProcessor(build_session_factory(engine), NullFetcher())
        await processor.fail(uuid.UUID(job_id), message)
    finally:
        await engine.dispose()
