"""
WebSocket channel -- live event stream plus the interactive war-room protocol.

  WS /ws

On connect the server sends three bootstrap messages:
  {"type": "sessions", "sessions": [...]}
  {"type": "agents",   "agents":   [...]}
  {"type": "phases",   "phases":   [...]}

Afterwards every DeliberationEvent is forwarded as JSON. Clients may send:
  {"type": "new-session",         "problem": "...", "files": [...]}
  {"type": "escalation-response", "session_id": "...", "escalation_id": "...", "answer": "..."}
  {"type": "join-session",        "session_id": "..."}  -> {"type": "session-state", ...}
  {"type": "stop-session",        "session_id": "..."}
  {"type": "human-message",       "session_id": "...", "content": "..."}
  {"type": "delete-session",      "session_id": "..."}

Rejected client messages get an {"type": "error"} reply on this connection
only; results of accepted ones arrive as broadcast events.
"""

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from ...orchestration.errors import StorageError, WarRoomError
from ...security import ValidationError
from ..models.requests import CreateSessionRequest

logger = logging.getLogger(__name__)
router = APIRouter()


async def _handle(websocket: WebSocket, message: dict) -> None:
    manager = websocket.app.state.manager
    kind = message.get("type")
    session_id = str(message.get("session_id", ""))

    if kind == "new-session":
        limiter = websocket.app.state.rate_limiter
        client_id = websocket.client.host if websocket.client else "unknown"
        if not limiter.allow(client_id):
            raise ValidationError(f"Rate limit exceeded ({limiter.limit} sessions per minute)")
        body = CreateSessionRequest(**{k: v for k, v in message.items() if k != "type"})
        await manager.create_session(body.problem, [f.to_file_ref() for f in body.files])
    elif kind == "escalation-response":
        manager.submit_escalation_answer(
            session_id, str(message.get("escalation_id", "")), str(message.get("answer", ""))
        )
    elif kind == "join-session":
        snapshot = manager.join_session(session_id)
        await websocket.send_json({"type": "session-state", **snapshot.to_dict()})
    elif kind == "stop-session":
        manager.stop_session(session_id)
    elif kind == "human-message":
        manager.submit_human_message(session_id, str(message.get("content", "")))
    elif kind == "delete-session":
        manager.delete_session(session_id)
    else:
        raise ValidationError(f"Unknown message type '{kind}'")


async def _forward_events(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        event = await queue.get()
        await websocket.send_json(event.to_dict())


@router.websocket("/ws")
async def war_room_socket(websocket: WebSocket) -> None:
    manager = websocket.app.state.manager
    hub = websocket.app.state.hub

    await websocket.accept()
    queue = hub.subscribe()
    forwarder = asyncio.create_task(_forward_events(websocket, queue))
    logger.info("[WebSocket] Client connected")

    try:
        await websocket.send_json({"type": "sessions", "sessions": manager.list_sessions()})
        await websocket.send_json({"type": "agents", "agents": manager.registry.list_info()})
        await websocket.send_json({"type": "phases", "phases": manager.plan.list_info()})

        while True:
            message = await websocket.receive_json()
            if not isinstance(message, dict):
                await websocket.send_json({"type": "error", "message": "Expected a JSON object"})
                continue
            try:
                await _handle(websocket, message)
            except (ValidationError, PydanticValidationError, WarRoomError) as e:
                detail = "Session store unavailable" if isinstance(e, StorageError) else str(e)
                await websocket.send_json(
                    {"type": "error", "request": message.get("type"), "message": detail}
                )
    except WebSocketDisconnect:
        logger.info("[WebSocket] Client disconnected")
    finally:
        forwarder.cancel()
        hub.unsubscribe(queue)
