import logging
from typing import Any, Dict, Iterable, Optional, Set

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from skillswap.core.dependencies import authenticate_token
from skillswap.db.firebase_ops import FirestoreBaseModel, get_firestore_ops_instance
from skillswap.messaging import exchange
from skillswap.models.schemas import MessageCreate, User
from skillswap.realtime import protocol

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


class ConnectionManager:
    """Tracks open sockets per user and per project room."""

    def __init__(self):
        self.user_connections: Dict[str, Set[WebSocket]] = {}
        self.rooms: Dict[str, Set[WebSocket]] = {}

    def register(self, websocket: WebSocket, user_id: str):
        self.user_connections.setdefault(user_id, set()).add(websocket)

    def unregister(self, websocket: WebSocket, user_id: str):
        sockets = self.user_connections.get(user_id)
        if sockets is not None:
            sockets.discard(websocket)
            if not sockets:
                del self.user_connections[user_id]
        for room_id in list(self.rooms):
            self.leave(websocket, room_id)

    def join(self, websocket: WebSocket, project_id: str):
        self.rooms.setdefault(project_id, set()).add(websocket)

    def leave(self, websocket: WebSocket, project_id: str):
        members = self.rooms.get(project_id)
        if members is not None:
            members.discard(websocket)
            if not members:
                del self.rooms[project_id]

    async def send(self, websocket: WebSocket, event: str, data: Dict[str, Any]):
        await websocket.send_text(protocol.encode(event, data))

    async def deliver(self, event: str, data: Dict[str, Any], user_ids: Iterable[str]):
        """Send once to every socket belonging to one of `user_ids`. Room members outside that set get nothing."""
        targets: Set[WebSocket] = set()
        for user_id in user_ids:
            targets.update(self.user_connections.get(user_id, ()))
        for websocket in targets:
            try:
                await self.send(websocket, event, data)
            except (WebSocketDisconnect, RuntimeError) as exc:
                logger.warning("Dropping %s delivery to a closed socket: %s", event, exc)

    async def close_all(self, reason: str = "server shutting down"):
        """Terminate every session; clients treat this close code as a request to re-authenticate."""
        sockets = {ws for group in self.user_connections.values() for ws in group}
        for websocket in sockets:
            try:
                await websocket.close(code=protocol.SERVER_DISCONNECT_CLOSE_CODE, reason=reason)
            except RuntimeError as exc:
                logger.warning("Socket already closed during shutdown: %s", exc)
        self.user_connections.clear()
        self.rooms.clear()


manager = ConnectionManager()


async def _send_error(websocket: WebSocket, message: str, details: Optional[str] = None, **extra):
    await manager.send(websocket, protocol.ERROR, {"message": message, "details": details, **extra})


async def handle_join(websocket: WebSocket, user: User, data: Dict[str, Any], firestore_ops: FirestoreBaseModel):
    project_id = data.get("project_id")
    if not project_id:
        await _send_error(websocket, "project_id is required")
        return
    try:
        exchange.load_project_for(firestore_ops, project_id, user)
    except exchange.MessagingError as exc:
        await _send_error(websocket, "Could not join project", exc.message, project_id=project_id)
        return
    manager.join(websocket, str(project_id))
    logger.info("User %s joined project room %s", user.user_id, project_id)


async def handle_leave(websocket: WebSocket, user: User, data: Dict[str, Any], firestore_ops: FirestoreBaseModel):
    project_id = data.get("project_id")
    if project_id:
        manager.leave(websocket, str(project_id))


async def handle_send_message(websocket: WebSocket, user: User, data: Dict[str, Any], firestore_ops: FirestoreBaseModel):
    client_message_id = data.get("client_message_id")
    try:
        message_in = MessageCreate(**data)
        message = exchange.create_message(firestore_ops, user, message_in)
    except ValidationError as exc:
        await _send_error(websocket, "Invalid message payload", str(exc), client_message_id=client_message_id)
        return
    except exchange.MessagingError as exc:
        await _send_error(websocket, "Message not sent", exc.message, client_message_id=client_message_id)
        return

    payload = message.model_dump(mode="json")
    await manager.deliver(
        protocol.NEW_MESSAGE,
        payload,
        user_ids=(payload["sender_id"], payload["recipient_id"]),
    )


async def handle_mark_read(websocket: WebSocket, user: User, data: Dict[str, Any], firestore_ops: FirestoreBaseModel):
    message_id = data.get("message_id")
    if not message_id:
        await _send_error(websocket, "message_id is required")
        return
    try:
        message = exchange.mark_message_read(firestore_ops, user, message_id)
    except exchange.MessagingError as exc:
        await _send_error(websocket, "Could not mark message as read", exc.message, message_id=message_id)
        return

    payload = message.model_dump(mode="json")
    await manager.deliver(
        protocol.MESSAGE_READ,
        {"message_id": payload["message_id"], "project_id": payload["project_id"], "read_at": payload["read_at"]},
        user_ids=(payload["sender_id"], payload["recipient_id"]),
    )


HANDLERS = {
    protocol.JOIN_PROJECT: handle_join,
    protocol.LEAVE_PROJECT: handle_leave,
    protocol.SEND_MESSAGE: handle_send_message,
    protocol.MARK_MESSAGE_READ: handle_mark_read,
}


@router.websocket("/ws")
async def messaging_socket(
    websocket: WebSocket,
    token: Optional[str] = Query(default=None),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    await websocket.accept()
    user = authenticate_token(token, firestore_ops)
    if not user:
        logger.info("Rejected socket connection: authentication failed")
        await websocket.close(code=protocol.AUTH_FAILED_CLOSE_CODE, reason="authentication failed")
        return

    user_id = str(user.user_id)
    manager.register(websocket, user_id)
    logger.info("Socket connected for user %s", user_id)
    try:
        await manager.send(websocket, protocol.CONNECT, {"user_id": user_id})
        while True:
            raw = await websocket.receive_text()
            try:
                envelope = protocol.decode(raw)
            except ValidationError:
                await _send_error(websocket, "Malformed frame")
                continue
            handler = HANDLERS.get(envelope.event)
            if handler is None:
                await _send_error(websocket, f"Unknown event '{envelope.event}'")
                continue
            await handler(websocket, user, envelope.data, firestore_ops)
    except WebSocketDisconnect:
        logger.info("Socket disconnected for user %s", user_id)
    finally:
        manager.unregister(websocket, user_id)
