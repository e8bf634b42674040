from celery import Celery

from chronoprice.config import settings

celery_app = Celery(
    "chronoprice",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["chronoprice.workers.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    # Ack after the task body returns so a crashed worker's job is redelivered
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.worker_concurrency,
)
