"""Celery application and beat schedule.

Start a worker and the scheduler with:

    celery -A pharmaflow.workers.celery_app worker --loglevel=INFO
    celery -A pharmaflow.workers.celery_app beat --loglevel=INFO

The only scheduled job is the monthly audit archival. Purging archived audit
entries is registered as a task but never scheduled.
"""

from celery import Celery
from celery.schedules import crontab

from ..config import settings

celery_app = Celery(
    "pharmaflow",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["pharmaflow.retention.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_track_started=True,
)

# Without an explicit timezone the schedule follows the server clock
if settings.CELERY_TIMEZONE:
    celery_app.conf.timezone = settings.CELERY_TIMEZONE
    celery_app.conf.enable_utc = True
else:
    celery_app.conf.enable_utc = False

celery_app.conf.beat_schedule = {
    "audit-retention-monthly": {
        "task": "retention.scheduled_archival",
        # 00:00 on the first day of every month
        "schedule": crontab(minute=0, hour=0, day_of_month=1),
        "options": {
            "expires": 3600,
        },
    },
}
