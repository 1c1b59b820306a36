"""Real-time session updates for scanning devices using Redis pub/sub."""

import json
import logging
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

import redis
import redis.asyncio as aioredis

from opname.config import get_settings

if TYPE_CHECKING:
    from redis.asyncio.client import PubSub

logger = logging.getLogger(__name__)
settings = get_settings()


class SessionEventType(StrEnum):
    """Event types for opname session updates."""

    # Scan events
    SCAN_ACCEPTED = "scan_accepted"
    SCANS_BULK_ACCEPTED = "scans_bulk_accepted"
    SCAN_RETRACTED = "scan_retracted"

    # Lifecycle events
    SESSION_COMPLETED = "session_completed"
    ACTIONS_SAVED = "actions_saved"
    SESSION_LOCKED = "session_locked"


def session_channel(session_id: int) -> str:
    return f"opname:{session_id}"


# Synchronous Redis client for use in API endpoints
_sync_redis: redis.Redis | None = None


def get_sync_redis() -> redis.Redis:
    """Get synchronous Redis client for publishing from API endpoints."""
    global _sync_redis
    if _sync_redis is None:
        _sync_redis = redis.from_url(settings.redis_url)
    return _sync_redis


def publish_session_event(
    session_id: int, event_type: SessionEventType, data: dict | None = None
) -> None:
    """Publish an event to a session's Redis channel.

    Called from API endpoints after a committed mutation, so every device
    scanning into the same session sees the new counters.

    Args:
        session_id: The opname session to publish to
        event_type: Type of event (scan_accepted, session_locked, etc.)
        data: Optional event payload
    """
    try:
        redis_client = get_sync_redis()
        channel = session_channel(session_id)
        message = {
            "type": event_type,
            "session_id": session_id,
            "timestamp": datetime.now(UTC).isoformat(),
            "data": data or {},
        }
        redis_client.publish(channel, json.dumps(message, default=str))
        logger.debug(f"Published {event_type} to {channel}")
    except Exception as e:
        # Don't fail the request if pub/sub fails
        logger.error(f"Failed to publish session event: {e}")


class RealtimeService:
    """Async Redis pub/sub service for WebSocket connections."""

    def __init__(self) -> None:
        self._redis: aioredis.Redis | None = None
        self._pubsub: PubSub | None = None

    async def _get_redis(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(settings.redis_url)
        return self._redis

    async def subscribe(self, session_id: int) -> AsyncIterator[dict]:
        """Subscribe to a session channel and yield its events."""
        channel = session_channel(session_id)
        redis_conn = await self._get_redis()
        self._pubsub = redis_conn.pubsub()
        await self._pubsub.subscribe(channel)

        try:
            async for message in self._pubsub.listen():
                if message["type"] == "message":
                    try:
                        data = json.loads(message["data"])
                        yield data
                    except json.JSONDecodeError:
                        logger.warning(f"Invalid JSON in pub/sub message: {message['data']}")
        finally:
            if self._pubsub:
                await self._pubsub.unsubscribe(channel)

    async def cleanup(self) -> None:
        """Clean up Redis connections."""
        if self._pubsub:
            await self._pubsub.close()
        if self._redis:
            await self._redis.close()
