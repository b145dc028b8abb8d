"""
Server-Sent Events (SSE) endpoint for real-time transaction notifications.
"""
import asyncio
import json
import os
import logging
from typing import AsyncGenerator

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from app.database import settings
from app.db_helpers import get_user_id
from app.services.event_publisher import user_channel

logger = logging.getLogger(__name__)

router = APIRouter()

HEARTBEAT_INTERVAL_SECONDS = 15


def format_sse(event_type: str, data: str) -> str:
    return f"event: {event_type}\ndata: {data}\n\n"


async def user_event_generator(user_id: str) -> AsyncGenerator[str, None]:
    """
    Async generator that streams a user's events from Redis Pub/Sub.

    Args:
        user_id: The user ID

    Yields:
        SSE-formatted event strings
    """
    redis_client = aioredis.from_url(settings.redis_url, decode_responses=True)
    pubsub = redis_client.pubsub()
    channel = user_channel(user_id)

    try:
        await pubsub.subscribe(channel)
        logger.info(f"SSE client subscribed to channel: {channel}")

        yield format_sse("connected", json.dumps({"channel": channel}))

        loop = asyncio.get_running_loop()
        last_heartbeat = loop.time()

        while True:
            try:
                message = await asyncio.wait_for(
                    pubsub.get_message(ignore_subscribe_messages=True),
                    timeout=1.0
                )

                if message and message["type"] == "message":
                    data = message["data"]
                    try:
                        event_type = json.loads(data).get("type", "message")
                    except json.JSONDecodeError:
                        logger.warning(f"Invalid JSON in message: {data}")
                        event_type = "message"
                    yield format_sse(event_type, data)

            except asyncio.TimeoutError:
                pass

            current_time = loop.time()
            if current_time - last_heartbeat >= HEARTBEAT_INTERVAL_SECONDS:
                yield format_sse("heartbeat", json.dumps({"timestamp": current_time}))
                last_heartbeat = current_time

    except asyncio.CancelledError:
        logger.info(f"SSE connection cancelled for channel: {channel}")
        raise
    except RedisError as e:
        logger.error(f"SSE error for channel {channel}: {e}")
        yield format_sse("error", json.dumps({"error": "Event stream unavailable"}))
    finally:
        await pubsub.unsubscribe(channel)
        await pubsub.aclose()
        await redis_client.aclose()
        logger.info(f"SSE connection closed for channel: {channel}")


def get_cors_origin() -> str:
    """Get allowed CORS origin from environment."""
    return os.getenv("FRONTEND_URL") or os.getenv("APP_URL", "http://localhost:3000")


@router.get("/stream")
async def stream_events():
    """
    Stream the current user's transaction events via Server-Sent Events.

    Events:

    - connected: Initial connection confirmation
    - transaction_added: A transaction was created
    - transaction_updated: A transaction was edited or restored
    - transaction_deleted: A transaction was deleted
    - heartbeat: Keep-alive ping (every 15 seconds)

    Returns:
        StreamingResponse with SSE content type
    """
    resolved_user_id = get_user_id()

    return StreamingResponse(
        user_event_generator(str(resolved_user_id)),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
            "Access-Control-Allow-Origin": get_cors_origin(),
            "Access-Control-Allow-Credentials": "true",
        }
    )
