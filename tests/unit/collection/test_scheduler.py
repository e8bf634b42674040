import uuid
from unittest.mock import AsyncMock

import pytest

from chronoprice.collection.queue import LocalJobQueue
from chronoprice.collection.scheduler import CollectionScheduler
from chronoprice.collection.timestamps import SECONDS_PER_DAY
from chronoprice.domain.enums import JobState
from chronoprice.exceptions import UpstreamUnavailableError
from chronoprice.infra.metadata.token_metadata import NullTokenMetadata, TokenMetadataProvider

TOKEN = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
NOW = 1700000000
TODAY = 1699920000


class FixedMetadata(TokenMetadataProvider):
    def __init__(self, created: int | None = None, error: Exception | None = None) -> None:
        self.created = created
        self.error = error

    async def get_creation_timestamp(self, token: str, network: str) -> int | None:
        if self.error is not None:
            raise self.error
        return self.created


def _scheduler(session, queue=None, metadata=None, max_days=0) -> CollectionScheduler:
    return CollectionScheduler(
        session,
        queue or LocalJobQueue(),
        metadata or NullTokenMetadata(),
        clock=lambda: NOW,
        max_days=max_days,
    )


class TestSchedule:
    async def test_one_timestamp_per_day_from_creation(self, session):
        queue = LocalJobQueue()
        scheduler = _scheduler(session, queue, FixedMetadata(created=TODAY - 2 * SECONDS_PER_DAY + 500))

        job = await scheduler.schedule(TOKEN, "ethereum")

        assert job.state == JobState.QUEUED
        assert job.total == 3
        assert job.first_timestamp == TODAY - 2 * SECONDS_PER_DAY
        assert job.last_timestamp == TODAY
        assert queue.qsize() == 1
        assert await queue.dequeue() == job.id

    async def test_unknown_creation_uses_network_default(self, session):
        scheduler = _scheduler(session, metadata=NullTokenMetadata())

        job = await scheduler.schedule(TOKEN, "polygon")

        assert job.first_timestamp == 1590796800  # 2020-05-30, day of 1590824707
        assert job.total == (TODAY - 1590796800) // SECONDS_PER_DAY + 1

    async def test_metadata_error_uses_network_default(self, session):
        scheduler = _scheduler(session, metadata=FixedMetadata(error=RuntimeError("boom")))

        job = await scheduler.schedule(TOKEN, "ethereum")

        assert job.first_timestamp == 1438214400  # 2015-07-30

    async def test_explicit_range(self, session):
        scheduler = _scheduler(session)

        job = await scheduler.schedule(
            TOKEN, "ethereum", start=TODAY - 10 * SECONDS_PER_DAY, end=TODAY - 8 * SECONDS_PER_DAY
        )

        assert job.total == 3
        assert job.last_timestamp == TODAY - 8 * SECONDS_PER_DAY

    async def test_end_in_future_is_clamped_to_now(self, session):
        scheduler = _scheduler(session)

        job = await scheduler.schedule(TOKEN, "ethereum", start=TODAY, end=NOW + 5 * SECONDS_PER_DAY)

        assert job.total == 1

    async def test_future_start_is_clamped_to_today(self, session):
        scheduler = _scheduler(session)

        job = await scheduler.schedule(TOKEN, "ethereum", start=NOW + 3600)

        assert job.total == 1
        assert job.first_timestamp == TODAY

    async def test_end_before_creation_collects_end_day(self, session):
        scheduler = _scheduler(session, metadata=FixedMetadata(created=NOW))

        job = await scheduler.schedule(TOKEN, "ethereum", end=1600000000)

        assert job.total == 1
        assert job.first_timestamp == 1599955200  # 2020-09-13

    async def test_max_days_keeps_most_recent(self, session):
        scheduler = _scheduler(session, max_days=5)

        job = await scheduler.schedule(TOKEN, "ethereum")

        assert job.total == 5
        assert job.first_timestamp == TODAY - 4 * SECONDS_PER_DAY
        assert job.last_timestamp == TODAY

    async def test_enqueue_failure_marks_job_failed(self, session):
        queue = AsyncMock()
        queue.enqueue.side_effect = UpstreamUnavailableError("broker down")
        scheduler = _scheduler(session, queue=queue)

        with pytest.raises(UpstreamUnavailableError):
            await scheduler.schedule(TOKEN, "ethereum", start=TODAY)

        jobs, total = await scheduler.list_jobs()
        assert total == 1
        assert jobs[0].state == JobState.FAILED
        assert "broker down" in jobs[0].error_message


class TestStatusAndCancel:
    async def test_get_status_unknown_job(self, session):
        assert await _scheduler(session).get_status(uuid.uuid4()) is None

    async def test_cancel_queued_job(self, session):
        scheduler = _scheduler(session)
        job = await scheduler.schedule(TOKEN, "ethereum", start=TODAY)

        assert await scheduler.cancel(job.id) is True
        status = await scheduler.get_status(job.id)
        assert status.state == JobState.CANCELLED
        assert status.finished_at is not None

    async def test_cancel_twice_is_noop(self, session):
        scheduler = _scheduler(session)
        job = await scheduler.schedule(TOKEN, "ethereum", start=TODAY)
        await scheduler.cancel(job.id)

        assert await scheduler.cancel(job.id) is False
        assert (await scheduler.get_status(job.id)).state == JobState.CANCELLED

    async def test_cancel_unknown_job(self, session):
        assert await _scheduler(session).cancel(uuid.uuid4()) is False
