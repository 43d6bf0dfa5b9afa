from celery import Celery
from app.config import settings


celery_app = Celery(
    "seat_ledger_tasks",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["app.maintenance.tasks"],
)

celery_app.conf.update(
    task_track_started=True,
    beat_schedule={
        "sweep-expired-seat-holds": {
            "task": "app.maintenance.tasks.sweep_expired_holds_task",
            "schedule": float(settings.SWEEP_INTERVAL_SECONDS),
        },
    },
)
