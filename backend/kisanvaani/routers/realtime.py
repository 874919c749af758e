"""
/ws realtime transport for the voice UI.

Frames are JSON objects ``{"event": ..., "ack": ..., "data": {...}}``; every
request gets exactly one reply carrying the same event name and ack id.
``message:send`` additionally emits ``message:processing`` before the model
is called so the client can show its "thinking" state, and pushes
``message:received`` to the user's other sockets in the same conversation.
"""
import json
import logging
from typing import Any, Dict, Optional, Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from kisanvaani.di import get_conversation_service, load_user
from kisanvaani.errors import AuthenticationError, ChatError, InvalidInputError
from kisanvaani.utils.auth import bearer_token, decode_token
from kisanvaani.core.models.domain import Location
from kisanvaani.core.services.conversation import ConversationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


class ConversationRooms:
    """Sockets currently attached to each conversation (multi-device sync)."""

    def __init__(self):
        self._rooms: Dict[str, Set[WebSocket]] = {}

    def join(self, conversation_id: str, ws: WebSocket) -> None:
        self._rooms.setdefault(conversation_id, set()).add(ws)

    def leave(self, conversation_id: str, ws: WebSocket) -> None:
        members = self._rooms.get(conversation_id)
        if members is None:
            return
        members.discard(ws)
        if not members:
            del self._rooms[conversation_id]

    def leave_all(self, ws: WebSocket) -> None:
        for cid in [cid for cid, members in self._rooms.items() if ws in members]:
            self.leave(cid, ws)

    def members(self, conversation_id: str) -> Set[WebSocket]:
        return set(self._rooms.get(conversation_id, ()))

    async def broadcast(self, conversation_id: str, sender: WebSocket, frame: Dict[str, Any]) -> None:
        for peer in self.members(conversation_id) - {sender}:
            try:
                await peer.send_json(frame)
            except (RuntimeError, WebSocketDisconnect) as e:
                logger.warning("🔌 Dropping dead socket from %s: %s", conversation_id, e)
                self.leave(conversation_id, peer)


rooms = ConversationRooms()

def _dump(model) -> Dict[str, Any]:
    return model.model_dump(mode="json")

async def _handle(event: str, data: Dict[str, Any], user_id: str,
                  service: ConversationService, ws: WebSocket) -> Dict[str, Any]:
    user = await load_user(user_id)
    cid = data.get("conversation_id") or data.get("conversationId")

    if event == "conversation:start":
        conv, welcome = await service.start_conversation(user)
        rooms.join(conv.id, ws)
        return {"conversation": _dump(conv), "welcome_message": _dump(welcome)}

    if event == "conversation:join":
        conv = await service.join_conversation(user, cid)
        rooms.join(conv.id, ws)
        return {"conversation": _dump(conv)}

    if event == "message:send":
        text = data.get("message")
        location: Optional[Location] = Location.model_validate(data["location"]) if data.get("location") else None
        await ws.send_json({"event": "message:processing", "data": {"conversation_id": cid}})
        user_msg, ai_msg = await service.send(user, cid, text, location)
        conv = await service.get_conversation(user, cid)
        result = {"user_message": _dump(user_msg), "ai_message": _dump(ai_msg), "title": conv.title}
        await rooms.broadcast(cid, ws, {"event": "message:received", "data": {"conversation_id": cid, **result}})
        return result

    if event == "conversation:end":
        conv = await service.end_conversation(user, cid)
        rooms.leave(conv.id, ws)
        return {"conversation": _dump(conv)}

    raise InvalidInputError(f"Unknown event: {event}")

@router.websocket("/ws")
async def realtime(ws: WebSocket):
    token = ws.query_params.get("token") or bearer_token(ws.headers.get("authorization"))
    try:
        user_id = decode_token(token)
    except AuthenticationError as e:
        logger.warning("🔒 Socket rejected: %s", e.message)
        await ws.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await ws.accept()
    service = get_conversation_service()
    logger.info("🔌 User connected: %s", user_id)

    try:
        while True:
            raw = await ws.receive_text()
            try:
                frame = json.loads(raw)
            except ValueError:
                await ws.send_json({"success": False, "kind": "invalid_input", "error": "Frame must be valid JSON"})
                continue
            if not isinstance(frame, dict):
                await ws.send_json({"success": False, "kind": "invalid_input", "error": "Frame must be a JSON object"})
                continue
            event = frame.get("event") or ""
            ack = frame.get("ack")
            data = frame.get("data") or {}
            if not isinstance(data, dict):
                await ws.send_json({"event": event, "ack": ack, "success": False, "kind": "invalid_input",
                                    "error": "data must be a JSON object"})
                continue

            try:
                result = await _handle(event, data, user_id, service, ws)
                reply = {"event": event, "ack": ack, "success": True, **result}
            except ChatError as e:
                logger.warning("⚠️  %s failed for %s: %s", event, user_id, e.message)
                reply = {"event": event, "ack": ack, **e.to_dict(), "error": e.message}
            except ValueError as e:
                reply = {"event": event, "ack": ack, "success": False, "kind": "invalid_input", "error": str(e)}
            await ws.send_json(reply)
    except WebSocketDisconnect:
        logger.info("🔌 User disconnected: %s", user_id)
    finally:
        rooms.leave_all(ws)
