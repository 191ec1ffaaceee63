from celery import Celery
from celery.schedules import crontab

from app.config import settings

celery_app = Celery(
    "docman",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "app.tasks.events",
        "app.tasks.notifications",
        "app.tasks.reviews",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_always_eager=settings.celery_always_eager,
    beat_schedule={
        "send-review-reminders": {
            "task": "app.tasks.reviews.send_review_reminders",
            "schedule": crontab(hour=8, minute=0),
        },
        "mark-overdue-reviews": {
            "task": "app.tasks.reviews.mark_overdue_assignments",
            "schedule": crontab(minute=15),
        },
    },
)
