"""Background workers (Celery).

The Celery app lives in celery_app; task modules register themselves with
@shared_task and are listed in its include setting.
"""
