"""Websocket endpoint for presence, rooms and typing."""

import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ...app import Application
from ...auth import decode_access_token
from ...errors import TaskflowError, ValidationError
from ...logging_config import get_logger
from ...models import EventType, RealtimeEvent, parse_chat_target
from ...realtime import WebSocketConnection, room_for_target
from .chat import publish_typing

logger = get_logger(__name__)

AUTH_FAILED_CLOSE_CODE = 4401


async def _authenticate(app: Application, websocket: WebSocket):
    """Read the first frame ({"token": ...}) and resolve the caller."""
    try:
        init_payload = json.loads(await websocket.receive_text())
    except ValueError:
        return None
    token = init_payload.get("token") if isinstance(init_payload, dict) else None
    try:
        principal = decode_access_token(
            token, app.settings.jwt_secret, app.settings.jwt_algorithm
        )
        await app.chat.require_member(principal.team_id, principal.user_id)
    except TaskflowError as e:
        logger.info("Websocket authentication failed: %s", e.message)
        return None
    return principal


async def _handle_frame(app: Application, conn: WebSocketConnection, data) -> None:
    if not isinstance(data, dict):
        raise ValidationError("Frames must be JSON objects")
    frame_type = data.get("type")

    if frame_type == "ping":
        conn.send_json({"type": "pong"})

    elif frame_type == "join":
        target = parse_chat_target(data.get("recipientId"), data.get("groupId"))
        await app.chat.validate_target(conn.team_id, target, conn.user_id)
        room_id = room_for_target(target, conn.user_id)
        app.broadcaster.join(conn, room_id)
        conn.send_json({"type": "joined", "roomId": room_id})

    elif frame_type == "leave":
        room_id = data.get("roomId")
        if not room_id:
            raise ValidationError("roomId is required")
        app.broadcaster.leave(conn, room_id)
        conn.send_json({"type": "left", "roomId": room_id})

    elif frame_type == "typing":
        target = parse_chat_target(data.get("recipientId"), data.get("groupId"))
        await publish_typing(
            app,
            conn.user_id,
            conn.team_id,
            target,
            bool(data.get("isTyping", True)),
            exclude=conn,
        )

    else:
        raise ValidationError(f"Unknown frame type: {frame_type!r}")


async def _clear_typing(app: Application, conn: WebSocketConnection) -> None:
    """Stop showing a user as typing once their last connection is gone."""
    if app.presence.is_online(conn.user_id):
        return
    for room_id in app.typing.clear_user(conn.user_id):
        await app.broadcaster.broadcast(
            room_id,
            RealtimeEvent(
                type=EventType.TYPING,
                team_id=conn.team_id,
                room_id=room_id,
                payload={"userId": conn.user_id, "chatId": room_id, "isTyping": False},
            ),
        )


def create_realtime_router(app: Application) -> APIRouter:
    """Create websocket router."""
    router = APIRouter(tags=["realtime"])

    @router.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        try:
            principal = await _authenticate(app, websocket)
        except WebSocketDisconnect:
            return
        if principal is None:
            await websocket.close(code=AUTH_FAILED_CLOSE_CODE)
            return

        conn = WebSocketConnection(
            websocket, principal.user_id, principal.team_id, principal.role
        )
        conn.start()
        try:
            await app.broadcaster.connect(conn)
            conn.send_json(
                {
                    "type": "connected",
                    "userId": conn.user_id,
                    "onlineUsers": app.presence.online_users(conn.team_id),
                }
            )

            while True:
                raw = await websocket.receive_text()
                try:
                    data = json.loads(raw)
                except ValueError:
                    error = ValidationError("Frames must be valid JSON")
                    conn.send_json({"type": "error", **error.to_dict()})
                    continue
                try:
                    await _handle_frame(app, conn, data)
                except TaskflowError as e:
                    conn.send_json({"type": "error", **e.to_dict()})
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception(
                "Websocket error",
                extra={"context": {"user_id": conn.user_id, "connection": conn.id}},
            )
        finally:
            await app.broadcaster.disconnect(conn)
            await _clear_typing(app, conn)
            await conn.close()

    return router
