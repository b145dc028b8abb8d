"""
Redis Pub/Sub publishing of transaction events.
"""
import json
from unittest.mock import MagicMock, patch

import redis

from app.services.event_publisher import (
    TRANSACTION_ADDED,
    TRANSACTION_DELETED,
    EventPublisher,
    user_channel,
)


def test_user_channel_name():
    assert user_channel("abc") == "user:abc:events"


@patch("app.services.event_publisher.redis.from_url")
def test_publishes_to_the_users_channel(mock_from_url):
    client = MagicMock()
    mock_from_url.return_value = client
    publisher = EventPublisher(redis_url="redis://example:6379/0")

    publisher.publish_transaction_added("user-1", {"id": "txn-1", "title": "Lunch"})

    mock_from_url.assert_called_once_with("redis://example:6379/0", decode_responses=True)
    channel, message = client.publish.call_args[0]
    assert channel == "user:user-1:events"
    event = json.loads(message)
    assert event["type"] == TRANSACTION_ADDED
    assert event["data"] == {"transaction": {"id": "txn-1", "title": "Lunch"}}
    assert "timestamp" in event


@patch("app.services.event_publisher.redis.from_url")
def test_deleted_event_carries_only_the_id(mock_from_url):
    client = MagicMock()
    mock_from_url.return_value = client

    EventPublisher(redis_url="redis://example").publish_transaction_deleted("user-1", "txn-9")

    event = json.loads(client.publish.call_args[0][1])
    assert event["type"] == TRANSACTION_DELETED
    assert event["data"] == {"transactionId": "txn-9"}


@patch("app.services.event_publisher.redis.from_url")
def test_redis_failures_are_logged_not_raised(mock_from_url, caplog):
    client = MagicMock()
    client.publish.side_effect = redis.ConnectionError("connection refused")
    mock_from_url.return_value = client

    EventPublisher(redis_url="redis://example").publish_transaction_added("user-1", {"id": "txn-1"})

    assert "Failed to publish event" in caplog.text


@patch("app.services.event_publisher.redis.from_url")
def test_disabled_publisher_never_connects(mock_from_url):
    publisher = EventPublisher(redis_url="redis://example", enabled=False)
    publisher.publish_transaction_added("user-1", {"id": "txn-1"})

    mock_from_url.assert_not_called()


@patch("app.services.event_publisher.redis.from_url")
def test_close_releases_connection(mock_from_url):
    client = MagicMock()
    mock_from_url.return_value = client
    publisher = EventPublisher(redis_url="redis://example")
    publisher.publish_transaction_added("user-1", {"id": "txn-1"})

    publisher.close()

    client.close.assert_called_once()
    assert publisher._redis is None
