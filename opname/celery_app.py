"""Celery application configuration."""

from celery import Celery

from opname.config import get_settings

settings = get_settings()

app = Celery(
    "stock_opname",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["opname.tasks.opname"],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=120,
    task_soft_time_limit=90,
)
