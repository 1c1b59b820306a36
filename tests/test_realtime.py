"""Tests for real-time session updates."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from starlette.websockets import WebSocketDisconnect

import opname.services.realtime as realtime_module
from opname.services.auth import create_access_token, create_user
from opname.services.realtime import (
    RealtimeService,
    SessionEventType,
    get_sync_redis,
    publish_session_event,
    session_channel,
)


@pytest.fixture
def sync_redis():
    """Install a mock synchronous Redis client for the duration of a test."""
    mock_redis = MagicMock()
    realtime_module._sync_redis = mock_redis
    yield mock_redis
    realtime_module._sync_redis = None


def pubsub_with(*messages):
    """Mock async Redis connection whose pubsub replays ``messages``."""
    mock_redis = MagicMock()
    mock_pubsub = MagicMock()

    async def mock_listen():
        for message in messages:
            yield message

    mock_pubsub.listen = mock_listen
    mock_pubsub.subscribe = AsyncMock()
    mock_pubsub.unsubscribe = AsyncMock()
    mock_redis.pubsub.return_value = mock_pubsub
    return mock_redis, mock_pubsub


class TestSessionEventType:
    """Tests for SessionEventType enum."""

    def test_scan_events_exist(self):
        """Verify all scan event types are defined."""
        assert SessionEventType.SCAN_ACCEPTED == "scan_accepted"
        assert SessionEventType.SCANS_BULK_ACCEPTED == "scans_bulk_accepted"
        assert SessionEventType.SCAN_RETRACTED == "scan_retracted"

    def test_lifecycle_events_exist(self):
        """Verify all lifecycle event types are defined."""
        assert SessionEventType.SESSION_COMPLETED == "session_completed"
        assert SessionEventType.ACTIONS_SAVED == "actions_saved"
        assert SessionEventType.SESSION_LOCKED == "session_locked"


def test_session_channel():
    assert session_channel(42) == "opname:42"


class TestGetSyncRedis:
    """Tests for get_sync_redis function."""

    def test_creates_redis_client(self):
        """Test that get_sync_redis creates a Redis client once."""
        realtime_module._sync_redis = None

        with patch("opname.services.realtime.redis.from_url") as mock_from_url:
            mock_client = MagicMock()
            mock_from_url.return_value = mock_client

            assert get_sync_redis() is mock_client
            assert get_sync_redis() is mock_client
            mock_from_url.assert_called_once()

        realtime_module._sync_redis = None


class TestPublishSessionEvent:
    """Tests for publish_session_event function."""

    def test_publishes_to_session_channel(self, sync_redis):
        """Test that events land on the session's channel with the full envelope."""
        publish_session_event(
            7, SessionEventType.SCAN_ACCEPTED, {"imei": "356000000000001", "result": "match"}
        )

        sync_redis.publish.assert_called_once()
        channel, raw = sync_redis.publish.call_args.args
        assert channel == "opname:7"

        message = json.loads(raw)
        assert message["type"] == "scan_accepted"
        assert message["session_id"] == 7
        assert message["data"] == {"imei": "356000000000001", "result": "match"}
        assert "timestamp" in message

    def test_publishes_event_without_data(self, sync_redis):
        """Test publishing an event with no payload."""
        publish_session_event(7, SessionEventType.SESSION_LOCKED)

        message = json.loads(sync_redis.publish.call_args.args[1])
        assert message["data"] == {}

    def test_handles_redis_error_gracefully(self, sync_redis):
        """Test that Redis errors don't fail the caller."""
        sync_redis.publish.side_effect = Exception("Redis connection failed")

        publish_session_event(7, SessionEventType.SCAN_RETRACTED, {"scanned_item_id": 3})


class TestRealtimeService:
    """Tests for RealtimeService class."""

    @pytest.mark.asyncio
    async def test_get_redis_reuses_connection(self):
        """Test that _get_redis creates the connection once."""
        service = RealtimeService()

        with patch("opname.services.realtime.aioredis.from_url") as mock_from_url:
            mock_redis = AsyncMock()
            mock_from_url.return_value = mock_redis

            assert await service._get_redis() is mock_redis
            assert await service._get_redis() is mock_redis
            mock_from_url.assert_called_once()

    @pytest.mark.asyncio
    async def test_cleanup_closes_connections(self):
        """Test that cleanup closes Redis connections."""
        service = RealtimeService()
        service._redis = AsyncMock()
        service._pubsub = AsyncMock()

        await service.cleanup()

        service._pubsub.close.assert_called_once()
        service._redis.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_cleanup_handles_no_connections(self):
        """Test that cleanup works when no connections exist."""
        await RealtimeService().cleanup()

    @pytest.mark.asyncio
    async def test_subscribe_yields_session_events(self):
        """Test that subscribe listens on the session channel and skips noise."""
        event = {"type": "scan_accepted", "session_id": 9}
        mock_redis, mock_pubsub = pubsub_with(
            {"type": "subscribe", "data": 1},
            {"type": "message", "data": "not valid json"},
            {"type": "message", "data": json.dumps(event)},
        )
        service = RealtimeService()
        service._redis = mock_redis

        messages = []
        async for message in service.subscribe(9):
            messages.append(message)
            break

        assert messages == [event]
        mock_pubsub.subscribe.assert_awaited_once_with("opname:9")


class TestWebSocketEndpoint:
    """Tests for the opname WebSocket endpoint."""

    def test_websocket_requires_token(self, client):
        """Test that the connection requires a token parameter."""
        with pytest.raises(WebSocketDisconnect), client.websocket_connect("/api/v1/ws/opname/1"):
            pass

    def test_websocket_rejects_invalid_token(self, client):
        """Test that an invalid token is refused."""
        with (
            pytest.raises(WebSocketDisconnect) as exc_info,
            client.websocket_connect("/api/v1/ws/opname/1?token=invalid_token"),
        ):
            pass
        assert exc_info.value.code == 4001

    def test_websocket_rejects_nonexistent_user(self, client, session_factory):
        """Test that a token for a deleted user is refused."""
        fake_token = create_access_token(99999, "admin")
        with (
            patch("opname.api.websocket.SessionLocal", session_factory),
            pytest.raises(WebSocketDisconnect) as exc_info,
            client.websocket_connect(f"/api/v1/ws/opname/1?token={fake_token}"),
        ):
            pass
        assert exc_info.value.code == 4001

    def test_websocket_rejects_pending_account(self, client, db, session_factory):
        """Test that an account awaiting approval cannot subscribe."""
        user = create_user(db, "pending@example.com", "testpass123", "Pending Clerk")
        token = create_access_token(user.id, user.role)
        with (
            patch("opname.api.websocket.SessionLocal", session_factory),
            pytest.raises(WebSocketDisconnect) as exc_info,
            client.websocket_connect(f"/api/v1/ws/opname/1?token={token}"),
        ):
            pass
        assert exc_info.value.code == 4003

    def test_websocket_rejects_unknown_session(self, client, auth_headers, session_factory):
        """Test that subscribing to a missing session is refused."""
        token = auth_headers["Authorization"].replace("Bearer ", "")
        with (
            patch("opname.api.websocket.SessionLocal", session_factory),
            pytest.raises(WebSocketDisconnect) as exc_info,
            client.websocket_connect(f"/api/v1/ws/opname/999999?token={token}"),
        ):
            pass
        assert exc_info.value.code == 4004
