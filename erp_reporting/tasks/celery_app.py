"""Celery application configuration."""

from celery import Celery
from celery.schedules import crontab

from ..config import settings

# Create Celery application
celery_app = Celery(
    "erp_reporting",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["erp_reporting.tasks.report_tasks"],
)

# Configure Celery
celery_app.conf.update(
    timezone=settings.celery_timezone,
    enable_utc=True,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_track_started=True,
    task_time_limit=300,
    task_soft_time_limit=240,
    worker_prefetch_multiplier=1,
    broker_connection_retry_on_startup=True,
)

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    "run-scheduled-reports": {
        "task": "erp_reporting.tasks.report_tasks.run_scheduled_reports",
        "schedule": crontab(minute="*/5"),  # Every 5 minutes
    },
}
