import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chronoprice.db.models.collection_job import CollectionJob
from chronoprice.domain.enums import JobState
from chronoprice.domain.models.job import BatchOutcome

_ACTIVE = (JobState.QUEUED.value, JobState.RUNNING.value)
_TERMINAL = (JobState.COMPLETED.value, JobState.FAILED.value, JobState.CANCELLED.value)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobRepo:
    """Collection job persistence.

    State transitions are conditional UPDATEs so that a cancel issued from
    another session is never overwritten by the processor.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, token: str, network: str, timestamps: list[int]) -> CollectionJob:
        job = CollectionJob(
            token=token.lower(),
            network=network.lower(),
            timestamps=timestamps,
            total=len(timestamps),
            state=JobState.QUEUED.value,
        )
        self._session.add(job)
        await self._session.flush()
        await self._session.refresh(job)
        return job

    async def get_by_id(self, job_id: uuid.UUID) -> Optional[CollectionJob]:
        result = await self._session.execute(
            select(CollectionJob)
            .where(CollectionJob.id == job_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_state(self, job_id: uuid.UUID) -> Optional[JobState]:
        result = await self._session.execute(select(CollectionJob.state).where(CollectionJob.id == job_id))
        state = result.scalar_one_or_none()
        return JobState(state) if state is not None else None

    async def list_jobs(
        self,
        state: Optional[JobState] = None,
        token: Optional[str] = None,
        network: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[CollectionJob], int]:
        """Return a page of jobs (newest first) and the total count for the filter."""
        base = select(CollectionJob)
        count_q = select(func.count()).select_from(CollectionJob)

        if state is not None:
            base = base.where(CollectionJob.state == state.value)
            count_q = count_q.where(CollectionJob.state == state.value)
        if token:
            base = base.where(CollectionJob.token == token.lower())
            count_q = count_q.where(CollectionJob.token == token.lower())
        if network:
            base = base.where(CollectionJob.network == network.lower())
            count_q = count_q.where(CollectionJob.network == network.lower())

        total = (await self._session.execute(count_q)).scalar_one()
        result = await self._session.execute(
            base.order_by(CollectionJob.created_at.desc(), CollectionJob.id)
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all()), total

    async def count_by_state(self, token: Optional[str] = None, network: Optional[str] = None) -> dict[str, int]:
        """Job count per state, zero for states with no jobs."""
        stmt = select(CollectionJob.state, func.count()).group_by(CollectionJob.state)
        if token:
            stmt = stmt.where(CollectionJob.token == token.lower())
        if network:
            stmt = stmt.where(CollectionJob.network == network.lower())

        counts = {state.value: 0 for state in JobState}
        for state, count in (await self._session.execute(stmt)).all():
            counts[state] = count
        return counts

    async def mark_running(self, job_id: uuid.UUID) -> bool:
        """queued/running -> running. A redelivered job restarts its tallies from zero."""
        result = await self._session.execute(
            update(CollectionJob)
            .where(CollectionJob.id == job_id, CollectionJob.state.in_(_ACTIVE))
            .values(
                state=JobState.RUNNING.value,
                started_at=_now(),
                attempts=CollectionJob.attempts + 1,
                processed=0,
                succeeded=0,
                failed=0,
                skipped=0,
                missing=0,
                progress=0,
                error_message=None,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def record_progress(self, job_id: uuid.UUID, totals: BatchOutcome, total: int) -> None:
        """Write cumulative tallies. Never touches ``state``."""
        progress = round(totals.processed * 100 / total) if total else 100
        await self._session.execute(
            update(CollectionJob)
            .where(CollectionJob.id == job_id)
            .values(
                processed=totals.processed,
                succeeded=totals.succeeded,
                failed=totals.failed,
                skipped=totals.skipped,
                missing=totals.missing,
                progress=progress,
            )
            .execution_options(synchronize_session=False)
        )

    async def complete(self, job_id: uuid.UUID) -> bool:
        """running -> completed. No-op if the job was cancelled meanwhile."""
        result = await self._session.execute(
            update(CollectionJob)
            .where(CollectionJob.id == job_id, CollectionJob.state == JobState.RUNNING.value)
            .values(state=JobState.COMPLETED.value, finished_at=_now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def requeue(self, job_id: uuid.UUID, error_message: Optional[str] = None) -> bool:
        """running -> queued, ahead of a job-level retry."""
        result = await self._session.execute(
            update(CollectionJob)
            .where(CollectionJob.id == job_id, CollectionJob.state == JobState.RUNNING.value)
            .values(state=JobState.QUEUED.value, error_message=error_message)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def fail(self, job_id: uuid.UUID, error_message: str) -> bool:
        """queued/running -> failed once retries are exhausted."""
        result = await self._session.execute(
            update(CollectionJob)
            .where(CollectionJob.id == job_id, CollectionJob.state.in_(_ACTIVE))
            .values(state=JobState.FAILED.value, finished_at=_now(), error_message=error_message)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def cancel(self, job_id: uuid.UUID) -> bool:
        """queued/running -> cancelled. False for unknown or already-terminal jobs."""
        result = await self._session.execute(
            update(CollectionJob)
            .where(CollectionJob.id == job_id, CollectionJob.state.in_(_ACTIVE))
            .values(state=JobState.CANCELLED.value, finished_at=_now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def stamp_finished(self, job_id: uuid.UUID) -> None:
        """Record the processor's stop time on a job cancelled while it ran."""
        await self._session.execute(
            update(CollectionJob)
            .where(CollectionJob.id == job_id)
            .values(finished_at=_now())
            .execution_options(synchronize_session=False)
        )

    async def purge_finished(self, older_than: datetime) -> int:
        result = await self._session.execute(
            delete(CollectionJob)
            .where(CollectionJob.state.in_(_TERMINAL), CollectionJob.finished_at < older_than)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
