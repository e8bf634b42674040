"""JobProcessor: runs one collection job batch by batch."""

import asyncio
import logging
import uuid
from typing import Awaitable, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chronoprice.collection.scheduler import job_status
from chronoprice.db.repos.job_repo import JobRepo
from chronoprice.db.repos.price_store import PriceStore
from chronoprice.domain.enums import JobState, PriceSource
from chronoprice.domain.models.job import BatchOutcome, JobStatus
from chronoprice.domain.models.price import PricePoint
from chronoprice.exceptions import JobNotFoundError, StorageUnavailableError, UpstreamUnavailableError
from chronoprice.infra.price.base import PriceFetcher
from chronoprice.infra.price.retry import RetryPolicy, fetch_with_retry

logger = logging.getLogger(__name__)


class JobProcessor:
    """Fetch and persist every timestamp of a job.

    Per item: already stored -> skipped; fetched -> persisted (succeeded);
    upstream has no data -> missing; retries exhausted or write rejected ->
    failed. One item failing never aborts its batch. Progress is committed
    after every batch, and the job's state is re-read before the next one
    so a cancel takes effect at the batch boundary.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        fetcher: PriceFetcher,
        retry_policy: RetryPolicy | None = None,
        batch_size: int = 10,
        batch_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._session_factory = session_factory
        self._fetcher = fetcher
        self._retry = retry_policy or RetryPolicy()
        self._batch_size = max(1, batch_size)
        self._batch_delay = batch_delay
        self._sleep = sleep

    async def process(self, job_id: uuid.UUID) -> JobStatus:
        async with self._session_factory() as session:
            jobs = JobRepo(session)
            job = await jobs.get_by_id(job_id)
            if job is None:
                raise JobNotFoundError(job_id)

            if not await jobs.mark_running(job_id):
                logger.info("Job %s is already %s, skipping", job_id, job.state)
                return job_status(job)
            await session.commit()

            token, network = job.token, job.network
            timestamps = list(job.timestamps or [])
            logger.info("Processing job %s: %s on %s (%d timestamps)", job_id, token, network, len(timestamps))

            try:
                await self._run_batches(session, jobs, job_id, token, network, timestamps)
            except StorageUnavailableError as e:
                await session.rollback()
                logger.warning("Storage unavailable while processing job %s, requeueing: %s", job_id, e)
                await self._safely(session, jobs.requeue(job_id, str(e)))
                raise
            except Exception as e:
                await session.rollback()
                logger.exception("Job %s failed", job_id)
                await self._safely(session, jobs.fail(job_id, str(e)))
                raise

            job = await jobs.get_by_id(job_id)
            return job_status(job)

    async def _run_batches(
        self,
        session: AsyncSession,
        jobs: JobRepo,
        job_id: uuid.UUID,
        token: str,
        network: str,
        timestamps: list[int],
    ) -> None:
        store = PriceStore(session)
        totals = BatchOutcome()
        total = len(timestamps)

        for start in range(0, total, self._batch_size):
            if await jobs.get_state(job_id) == JobState.CANCELLED:
                logger.info("Job %s cancelled after %d/%d timestamps", job_id, totals.processed, total)
                await jobs.stamp_finished(job_id)
                await session.commit()
                return

            batch = timestamps[start:start + self._batch_size]
            outcome = await self._process_batch(store, token, network, batch)
            totals = totals.merge(outcome)
            await jobs.record_progress(job_id, totals, total)
            await session.commit()

            if start + self._batch_size < total and self._batch_delay > 0:
                await self._sleep(self._batch_delay)

        if await jobs.complete(job_id):
            logger.info(
                "Job %s completed: %d succeeded, %d failed, %d skipped, %d missing",
                job_id, totals.succeeded, totals.failed, totals.skipped, totals.missing,
            )
        else:
            # Cancelled during the final batch
            await jobs.stamp_finished(job_id)
        await session.commit()

    async def _process_batch(
        self, store: PriceStore, token: str, network: str, batch: list[int]
    ) -> BatchOutcome:
        existing = await store.existing_timestamps(token, network, batch)
        succeeded = failed = missing = 0

        for timestamp in batch:
            if timestamp in existing:
                logger.debug("Price already stored for %s/%s@%d", token, network, timestamp)
                continue

            try:
                fetched = await fetch_with_retry(self._fetcher, token, network, timestamp, self._retry)
            except StorageUnavailableError:
                raise
            except UpstreamUnavailableError as e:
                logger.warning("Giving up on %s/%s@%d: %s", token, network, timestamp, e)
                failed += 1
                continue
            except Exception:
                logger.exception("Unexpected fetcher error for %s/%s@%d", token, network, timestamp)
                failed += 1
                continue

            if fetched is None:
                missing += 1
                continue

            result = await store.upsert(
                PricePoint(
                    token=token,
                    network=network,
                    timestamp=timestamp,
                    price=fetched.price,
                    volume_24h=fetched.volume_24h,
                    market_cap=fetched.market_cap,
                    source=PriceSource.EXTERNAL_FETCH,
                    confidence=fetched.confidence,
                    metadata=fetched.metadata,
                )
            )
            if result.ok:
                succeeded += 1
            else:
                failed += 1

        return BatchOutcome(
            processed=len(batch),
            succeeded=succeeded,
            failed=failed,
            skipped=len(existing),
            missing=missing,
        )

    async def fail(self, job_id: uuid.UUID, error_message: str) -> bool:
        """Mark a job failed once the queue has given up retrying it."""
        async with self._session_factory() as session:
            failed = await JobRepo(session).fail(job_id, error_message)
            await session.commit()
        if failed:
            logger.error("Job %s failed permanently: %s", job_id, error_message)
        return failed

    @staticmethod
    async def _safely(session: AsyncSession, update: Awaitable[bool]) -> Optional[bool]:
        """Best-effort state write while already handling an error."""
        try:
            changed = await update
            await session.commit()
            return changed
        except (SQLAlchemyError, StorageUnavailableError, OSError) as e:
            logger.error("Could not record job state change: %s", e)
            await session.rollback()
            return None
