"""
Celery application configuration for scheduled tasks.
"""
import os
from celery import Celery
from celery.schedules import crontab

# Redis URL for broker and backend
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# Create Celery app
celery_app = Celery(
    "smartbudget_tasks",
    broker=REDIS_URL,
    backend=REDIS_URL,
    include=["tasks.recurring_tasks"],
)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _build_beat_schedule() -> dict:
    schedule = {}

    if _env_bool("RECURRING_ENGINE_ENABLED", default=True):
        try:
            recurring_hour_utc = int(os.getenv("RECURRING_ENGINE_HOUR_UTC", "1"))
        except ValueError:
            recurring_hour_utc = 1

        # Keep the hour in a safe UTC range.
        recurring_hour_utc = max(0, min(23, recurring_hour_utc))
        schedule["recurring-transactions-daily"] = {
            "task": "tasks.recurring_tasks.process_due_recurring_transactions",
            "schedule": crontab(minute=0, hour=recurring_hour_utc),
        }

    return schedule

# Celery configuration
celery_app.conf.update(
    # Task result settings
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Task settings
    task_track_started=True,
    task_time_limit=1800,
    task_soft_time_limit=1700,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=2,

    # Beat schedule for periodic tasks
    beat_schedule=_build_beat_schedule(),
)


if __name__ == "__main__":
    celery_app.start()
