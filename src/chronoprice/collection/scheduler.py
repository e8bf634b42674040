"""CollectionScheduler: turns a (token, network) backfill request into a queued job."""

import logging
import time
import uuid
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from chronoprice.collection.queue import JobQueue
from chronoprice.collection.timestamps import DEFAULT_CREATION_TIMESTAMPS, daily_timestamps
from chronoprice.db.models.collection_job import CollectionJob
from chronoprice.db.repos.job_repo import JobRepo
from chronoprice.domain.enums import JobState
from chronoprice.domain.models.job import JobStatus
from chronoprice.exceptions import UpstreamUnavailableError
from chronoprice.infra.metadata.token_metadata import TokenMetadataProvider

logger = logging.getLogger(__name__)


def job_status(job: CollectionJob) -> JobStatus:
    timestamps = job.timestamps or []
    return JobStatus(
        id=job.id,
        token=job.token,
        network=job.network,
        state=JobState(job.state),
        progress=job.progress,
        total=job.total,
        processed=job.processed,
        succeeded=job.succeeded,
        failed=job.failed,
        skipped=job.skipped,
        missing=job.missing,
        attempts=job.attempts,
        error_message=job.error_message,
        first_timestamp=timestamps[0] if timestamps else None,
        last_timestamp=timestamps[-1] if timestamps else None,
        created_at=job.created_at,
        started_at=job.started_at,
        finished_at=job.finished_at,
    )


class CollectionScheduler:
    def __init__(
        self,
        session: AsyncSession,
        queue: JobQueue,
        metadata: TokenMetadataProvider,
        clock: Callable[[], float] = time.time,
        max_days: int = 0,
    ) -> None:
        self._session = session
        self._jobs = JobRepo(session)
        self._queue = queue
        self._metadata = metadata
        self._clock = clock
        self._max_days = max_days

    async def _creation_timestamp(self, token: str, network: str) -> int:
        try:
            created = await self._metadata.get_creation_timestamp(token, network)
        except Exception:
            logger.exception("Creation lookup raised for %s on %s", token, network)
            created = None

        if created is None:
            created = DEFAULT_CREATION_TIMESTAMPS[network]
            logger.info("Using default creation timestamp %d for %s on %s", created, token, network)
        return created

    async def schedule(
        self,
        token: str,
        network: str,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> JobStatus:
        """Create a queued job covering one UTC midnight per day and hand it to the queue.

        ``start`` defaults to the token's creation time and ``end`` to now.
        ``end`` is clamped to now and ``start`` to ``end``, so the window
        always holds at least one day.
        The job is committed before it is enqueued so a worker can always
        load it; if the enqueue fails the job is marked failed.
        """
        token, network = token.lower(), network.lower()
        now = int(self._clock())
        if start is None:
            start = await self._creation_timestamp(token, network)
        if end is None or end > now:
            end = now
        if start > end:
            # Future start, or an end before the token existed: collect the end day only
            logger.info("Start %d is after end %d for %s on %s, clamping to end", start, end, token, network)
            start = end

        timestamps = daily_timestamps(start, end)
        if self._max_days and len(timestamps) > self._max_days:
            timestamps = timestamps[-self._max_days:]

        job = await self._jobs.create(token, network, timestamps)
        await self._session.commit()
        logger.info("Scheduled collection job %s for %s on %s: %d timestamps", job.id, token, network, len(timestamps))

        try:
            await self._queue.enqueue(job.id)
        except UpstreamUnavailableError as e:
            await self._jobs.fail(job.id, str(e))
            await self._session.commit()
            raise

        return job_status(job)

    async def get_status(self, job_id: uuid.UUID) -> Optional[JobStatus]:
        job = await self._jobs.get_by_id(job_id)
        return job_status(job) if job is not None else None

    async def list_jobs(
        self,
        state: Optional[JobState] = None,
        token: Optional[str] = None,
        network: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[JobStatus], int]:
        jobs, total = await self._jobs.list_jobs(state=state, token=token, network=network, limit=limit, offset=offset)
        return [job_status(j) for j in jobs], total

    async def cancel(self, job_id: uuid.UUID) -> bool:
        """Cancel a queued or running job. False (not an error) when missing or already finished."""
        cancelled = await self._jobs.cancel(job_id)
        await self._session.commit()
        if cancelled:
            logger.info("Cancelled collection job %s", job_id)
        return cancelled

    async def purge_finished(self, older_than: datetime) -> int:
        removed = await self._jobs.purge_finished(older_than)
        await self._session.commit()
        logger.info("Purged %d finished collection jobs older than %s", removed, older_than.isoformat())
        return removed
