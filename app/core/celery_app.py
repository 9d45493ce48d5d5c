"""
Celery application: broker and result backend from settings.
Tasks are in app.workers.tasks (order expiry sweep).
"""
from celery import Celery
from celery.schedules import crontab

from app.core.config import settings

celery_app = Celery(
    "app",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "app.workers.tasks.expire_orders",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_time_limit=600,
    result_expires=86400,
    beat_schedule={
        "expire-stale-orders": {
            "task": "app.workers.tasks.expire_orders.expire_stale_orders",
            "schedule": crontab(minute="*/15"),
        },
    },
)
