"""
Redis Pub/Sub event publisher for real-time transaction updates.
Publishes events that are consumed by the SSE endpoint for client notifications.
"""
import json
import logging
from datetime import datetime
from functools import lru_cache
from typing import Optional

import redis

from app.database import settings

logger = logging.getLogger(__name__)

TRANSACTION_ADDED = "transaction_added"
TRANSACTION_UPDATED = "transaction_updated"
TRANSACTION_DELETED = "transaction_deleted"


def user_channel(user_id: str) -> str:
    """Redis channel carrying every event for one user."""
    return f"user:{user_id}:events"


class EventPublisher:
    """
    Publishes transaction events to per-user Redis Pub/Sub channels.

    Channel format: user:{user_id}:events

    Event types:
    - transaction_added: A transaction was created (manually, by import or recurrence)
    - transaction_updated: A transaction was edited or restored
    - transaction_deleted: A transaction was soft-deleted

    Publishing is best-effort: failures are logged and never raised.
    """

    def __init__(self, redis_url: Optional[str] = None, enabled: bool = True):
        """
        Initialize the event publisher.

        Args:
            redis_url: Redis connection URL. If not provided, uses the REDIS_URL setting.
            enabled: When False every publish call is a no-op.
        """
        self.redis_url = redis_url or settings.redis_url
        self.enabled = enabled
        self._redis: Optional[redis.Redis] = None

    @property
    def redis(self) -> redis.Redis:
        """Lazy-load Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url, decode_responses=True)
        return self._redis

    def _publish(self, user_id: str, event_data: dict) -> None:
        if not self.enabled:
            return
        channel = user_channel(user_id)
        try:
            self.redis.publish(channel, json.dumps(event_data, default=str))
            logger.debug(f"Published event to {channel}: {event_data.get('type')}")
        except redis.RedisError as e:
            logger.error(f"Failed to publish event to {channel}: {e}")

    def publish(self, user_id: str, event_type: str, payload: dict) -> None:
        """
        Publish ``payload`` as an event of ``event_type`` for the user.

        Args:
            user_id: The owning user ID
            event_type: One of the transaction_* event names
            payload: JSON-serialisable event body
        """
        self._publish(str(user_id), {
            "type": event_type,
            "data": payload,
            "timestamp": datetime.utcnow().isoformat(),
        })

    def publish_transaction_added(self, user_id: str, transaction: dict) -> None:
        self.publish(user_id, TRANSACTION_ADDED, {"transaction": transaction})

    def publish_transaction_updated(self, user_id: str, transaction: dict) -> None:
        self.publish(user_id, TRANSACTION_UPDATED, {"transaction": transaction})

    def publish_transaction_deleted(self, user_id: str, transaction_id: str) -> None:
        self.publish(user_id, TRANSACTION_DELETED, {"transactionId": str(transaction_id)})

    def close(self) -> None:
        """Close the Redis connection."""
        if self._redis:
            self._redis.close()
            self._redis = None


@lru_cache(maxsize=1)
def get_event_publisher() -> EventPublisher:
    """FastAPI dependency returning the process-wide publisher."""
    return EventPublisher(enabled=settings.realtime_events_enabled)
