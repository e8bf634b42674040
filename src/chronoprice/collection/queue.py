"""Job queue seam between the scheduler and whatever runs the processor."""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod

from chronoprice.exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)


class JobQueue(ABC):
    @abstractmethod
    async def enqueue(self, job_id: uuid.UUID) -> None:
        """Hand a persisted job to the workers. Raises UpstreamUnavailableError if the broker is down."""

    async def ping(self) -> None:
        """Raise UpstreamUnavailableError if jobs cannot currently be handed off."""


class LocalJobQueue(JobQueue):
    """In-process queue drained by CollectionWorker. Not durable across restarts."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[uuid.UUID] = asyncio.Queue()

    async def enqueue(self, job_id: uuid.UUID) -> None:
        await self._queue.put(job_id)

    async def dequeue(self) -> uuid.UUID:
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()


class CeleryJobQueue(JobQueue):
    """Durable queue on the Celery broker (at-least-once via acks_late)."""

    async def enqueue(self, job_id: uuid.UUID) -> None:
        from chronoprice.workers.tasks import collect_prices_task

        try:
            await asyncio.to_thread(collect_prices_task.delay, str(job_id))
        except Exception as e:
            raise UpstreamUnavailableError(f"Could not enqueue job {job_id}: {e}") from e
        logger.info("Enqueued collection job %s on Celery", job_id)

    async def ping(self) -> None:
        from chronoprice.workers.celery_app import celery_app

        def _connect() -> None:
            with celery_app.connection_for_write() as conn:
                conn.ensure_connection(max_retries=1)

        try:
            await asyncio.to_thread(_connect)
        except Exception as e:
            raise UpstreamUnavailableError(f"Celery broker unreachable: {e}") from e
