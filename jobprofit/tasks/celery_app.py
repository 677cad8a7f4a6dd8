"""Celery application configuration."""
from celery import Celery

from jobprofit.config import get_settings

settings = get_settings()

celery_app = Celery(
    "jobprofit",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["jobprofit.tasks.import_tasks"],
)

celery_app.conf.update(
    task_track_started=True,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
)
