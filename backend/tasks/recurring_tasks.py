"""Celery tasks that materialise due recurring transactions."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Optional

from celery_app import celery_app
from app.database import settings
from app.repositories import build_repository_provider
from app.services.event_publisher import get_event_publisher
from app.services.recurring_service import RecurringService

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def run_recurring_engine(provider, now: Optional[datetime] = None, publisher=None) -> dict:
    """Create every occurrence due up to ``now`` using the given repository provider."""
    with provider.session() as repository:
        created = RecurringService(repository, publisher).process_due(now)
    return {
        "created": len(created),
        "transaction_ids": [str(t.id) for t in created],
    }


@celery_app.task(bind=True, max_retries=2, name="tasks.recurring_tasks.process_due_recurring_transactions")
def process_due_recurring_transactions(self) -> dict:
    """Daily job creating the occurrences of every due recurring series."""
    if not _env_bool("RECURRING_ENGINE_ENABLED", default=True):
        logger.info("[RECURRING] Skipped: RECURRING_ENGINE_ENABLED is disabled")
        return {"skipped": True, "reason": "RECURRING_ENGINE_DISABLED"}

    try:
        summary = run_recurring_engine(build_repository_provider(settings), publisher=get_event_publisher())
    except Exception as exc:
        logger.exception("[RECURRING] Run failed")
        raise self.retry(exc=exc, countdown=300)

    logger.info(f"[RECURRING] Created {summary['created']} occurrences")
    return summary
