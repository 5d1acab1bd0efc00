from celery import Celery

from core.config import get_settings

settings = get_settings()
redis_url = settings.redis.url

celery_app = Celery(
    "worker_inspectflow",
    broker=redis_url,
    backend=redis_url,
    include=["worker.tasks"],  # Where your tasks live
)

celery_app.conf.update(
    # Worker settings
    worker_concurrency=settings.worker.concurrency,
    # Task settings
    task_track_started=settings.worker.track_started,
    task_serializer=settings.worker.serializer,
    result_serializer=settings.worker.serializer,
    accept_content=[settings.worker.serializer],
    task_default_queue=settings.worker.queue,
    task_soft_time_limit=settings.worker.soft_time_limit,
    task_time_limit=settings.worker.time_limit,
    # Acknowledge after task completes
    task_acks_late=settings.worker.acks_late,
    # Retry if worker crashes
    task_reject_on_worker_lost=settings.worker.reject_on_worker_lost,
    # Periodic ticks (run with `celery -A worker.celery_app beat`)
    beat_schedule={
        "dispatch-extractions": {
            "task": "worker.tasks.dispatch_extractions_task",
            "schedule": settings.extraction.dispatch_interval_seconds,
        },
        "extraction-watchdog": {
            "task": "worker.tasks.watchdog_task",
            "schedule": settings.worker.watchdog_interval_seconds,
        },
    },
)
