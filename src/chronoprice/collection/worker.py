"""CollectionWorker: in-process pool draining a LocalJobQueue."""

import asyncio
import logging
import uuid
from typing import Awaitable, Callable

from chronoprice.collection.processor import JobProcessor
from chronoprice.collection.queue import LocalJobQueue
from chronoprice.exceptions import JobNotFoundError, UpstreamUnavailableError

logger = logging.getLogger(__name__)


class CollectionWorker:
    """``concurrency`` coroutines, each running one job at a time.

    A job interrupted by an upstream or storage outage is retried up to
    ``max_job_retries`` times after ``retry_delay`` seconds, then failed.
    """

    def __init__(
        self,
        queue: LocalJobQueue,
        processor: JobProcessor,
        concurrency: int = 3,
        max_job_retries: int = 3,
        retry_delay: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._queue = queue
        self._processor = processor
        self._concurrency = max(1, concurrency)
        self._max_job_retries = max_job_retries
        self._retry_delay = retry_delay
        self._sleep = sleep
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._loop(i), name=f"collection-worker-{i}") for i in range(self._concurrency)
        ]
        logger.info("Started %d collection workers", self._concurrency)

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Collection workers stopped")

    async def drain(self) -> None:
        """Wait until every enqueued job has been handled."""
        await self._queue.join()

    async def _loop(self, worker_id: int) -> None:
        while True:
            job_id = await self._queue.dequeue()
            try:
                await self.handle(job_id)
            except Exception:
                logger.exception("Worker %d crashed on job %s", worker_id, job_id)
            finally:
                self._queue.task_done()

    async def handle(self, job_id: uuid.UUID) -> None:
        for attempt in range(self._max_job_retries + 1):
            try:
                await self._processor.process(job_id)
                return
            except JobNotFoundError as e:
                logger.error("%s; dropping it", e)
                return
            except UpstreamUnavailableError as e:
                if attempt >= self._max_job_retries:
                    await self._processor.fail(job_id, f"Retries exhausted: {e}")
                    return
                logger.warning(
                    "Job %s interrupted (attempt %d/%d), retrying in %.0fs: %s",
                    job_id, attempt + 1, self._max_job_retries + 1, self._retry_delay, e,
                )
                await self._sleep(self._retry_delay)
            except Exception:
                # JobProcessor has already marked the job failed
                return
