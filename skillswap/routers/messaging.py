from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from skillswap.core.dependencies import get_current_user
from skillswap.db.firebase_ops import FirestoreBaseModel, get_firestore_ops_instance
from skillswap.messaging import exchange
from skillswap.models.schemas import Message, MessageCreate, User
from skillswap.realtime import protocol
from skillswap.realtime.server import manager

router = APIRouter(prefix="/messages", tags=["Messaging"])


def _as_http_error(exc: exchange.MessagingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


@router.get("/{project_id}/{recipient_id}", response_model=List[Message])
async def get_conversation(
    project_id: UUID,
    recipient_id: UUID,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    try:
        return exchange.list_conversation(firestore_ops, current_user, project_id, recipient_id)
    except exchange.MessagingError as exc:
        raise _as_http_error(exc) from exc


@router.post("", response_model=Message, status_code=status.HTTP_201_CREATED)
async def send_message(
    message_in: MessageCreate,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    try:
        message = exchange.create_message(firestore_ops, current_user, message_in)
    except exchange.MessagingError as exc:
        raise _as_http_error(exc) from exc

    # Both parties see REST-sent messages on their open sockets too.
    payload = message.model_dump(mode="json")
    await manager.deliver(
        protocol.NEW_MESSAGE, payload,
        user_ids=(payload["sender_id"], payload["recipient_id"]),
    )
    return message


@router.put("/{message_id}/read", response_model=Message)
async def mark_message_read(
    message_id: UUID,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    try:
        message = exchange.mark_message_read(firestore_ops, current_user, message_id)
    except exchange.MessagingError as exc:
        raise _as_http_error(exc) from exc

    await manager.deliver(
        protocol.MESSAGE_READ,
        {"message_id": str(message.message_id), "project_id": str(message.project_id), "read_at": message.read_at.isoformat() if message.read_at else None},
        user_ids=(str(message.sender_id), str(message.recipient_id)),
    )
    return message
