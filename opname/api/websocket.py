"""WebSocket endpoint for live opname session updates."""

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from opname.database import SessionLocal
from opname.models.opname_session import OpnameSession
from opname.models.user import User
from opname.services.auth import decode_access_token
from opname.services.realtime import RealtimeService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/ws", tags=["websocket"])


@router.websocket("/opname/{session_id}")
async def websocket_session_sync(
    websocket: WebSocket,
    session_id: int,
    token: str = Query(...),
) -> None:
    """Stream scan and lifecycle events of one session to a scanning device.

    Authentication via token query parameter (WebSocket doesn't support headers).
    """
    # Manual DB session for WebSocket (can't use Depends normally)
    db = SessionLocal()
    realtime_service = RealtimeService()
    user_id: int | None = None

    try:
        payload = decode_access_token(token)
        if not payload or not payload.get("sub"):
            await websocket.close(code=4001, reason="Invalid token")
            return

        user_id = int(payload["sub"])
        user = db.query(User).filter(User.id == user_id).first()
        if user is None:
            await websocket.close(code=4001, reason="User not found")
            return
        if not user.is_active:
            await websocket.close(code=4003, reason="Account not active")
            return

        if db.query(OpnameSession.id).filter(OpnameSession.id == session_id).first() is None:
            await websocket.close(code=4004, reason="Session not found")
            return
        # Nothing else is read from the database for the rest of the connection
        db.close()

        await websocket.accept()
        logger.info(f"WebSocket connected: user={user_id}, opname session={session_id}")

        async def handle_messages() -> None:
            """Receive events from Redis and forward to the WebSocket."""
            async for message in realtime_service.subscribe(session_id):
                try:
                    await websocket.send_json(message)
                except WebSocketDisconnect:
                    break
                except Exception as e:
                    logger.error(f"Error sending WebSocket message: {e}")
                    break

        async def handle_ping() -> None:
            """Send periodic pings to keep connection alive."""
            while True:
                try:
                    await asyncio.sleep(30)
                    await websocket.send_json({"type": "ping"})
                except Exception:
                    break

        async def handle_client() -> None:
            """Handle incoming messages from client (pong responses)."""
            while True:
                try:
                    data = await websocket.receive_json()
                    if data.get("type") == "pong":
                        continue
                except Exception:
                    break

        await asyncio.gather(
            handle_messages(),
            handle_ping(),
            handle_client(),
            return_exceptions=True,
        )

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: user={user_id}, opname session={session_id}")
    except Exception as e:
        logger.error(f"WebSocket error: {e}", exc_info=True)
    finally:
        db.close()
        await realtime_service.cleanup()
