"""
Rules shared by the REST message routes and the WebSocket server: who may
talk about a project, how a message is stored and how it is marked read.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import status

from skillswap.core.integrity import format_timestamp, hash_metadata, verify_metadata_hash
from skillswap.db.firebase_ops import FirestoreBaseModel
from skillswap.models.schemas import Message, MessageCreate, Project, ProjectStatus, User, utcnow

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({ProjectStatus.OPEN, ProjectStatus.IN_PROGRESS})


class MessagingError(Exception):
    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def is_participant(project: Project, user_id: UUID) -> bool:
    """The owner, the assigned freelancer and anyone who has bid on the project."""
    if user_id in (project.client_user_id, project.freelancer_user_id):
        return True
    return any(bid.freelancer_user_id == user_id for bid in project.bids)


def load_project_for(firestore_ops: FirestoreBaseModel, project_id: UUID, user: User) -> Project:
    project = firestore_ops.get(collection_name="projects", document_id=str(project_id), pydantic_model=Project)
    if not project:
        raise MessagingError("Project not found", status.HTTP_404_NOT_FOUND)
    if not is_participant(project, user.user_id):
        raise MessagingError("Not authorized to access messages for this project", status.HTTP_403_FORBIDDEN)
    return project


def create_message(firestore_ops: FirestoreBaseModel, sender: User, message_in: MessageCreate) -> Message:
    project = load_project_for(firestore_ops, message_in.project_id, sender)

    if project.status not in ACTIVE_STATUSES:
        raise MessagingError(f"Messages cannot be sent on a {project.status.value} project")
    if message_in.recipient_id == sender.user_id:
        raise MessagingError("Cannot send a message to yourself")
    if not is_participant(project, message_in.recipient_id):
        raise MessagingError("Recipient is not part of this project")
    if project.client_user_id not in (sender.user_id, message_in.recipient_id):
        raise MessagingError("Messages must be exchanged with the project owner", status.HTTP_403_FORBIDDEN)

    timestamp = message_in.timestamp or utcnow()
    if message_in.metadata_hash and not verify_metadata_hash(
        message_in.metadata_hash, sender.user_id, message_in.recipient_id, timestamp, message_in.project_id
    ):
        logger.warning("Metadata hash mismatch on message from %s in project %s", sender.user_id, message_in.project_id)
        raise MessagingError("Message metadata integrity check failed")

    message = Message(
        project_id=message_in.project_id,
        sender_id=sender.user_id,
        recipient_id=message_in.recipient_id,
        text=message_in.text,
        timestamp=format_timestamp(timestamp),
        metadata_hash=hash_metadata(sender.user_id, message_in.recipient_id, timestamp, message_in.project_id),
        client_message_id=message_in.client_message_id,
    )

    saved_id = firestore_ops.save(
        collection_name="messages",
        data_model=message.model_dump(mode="json"),
        document_id=str(message.message_id),
    )
    if not saved_id:
        raise MessagingError("Could not send message.", status.HTTP_500_INTERNAL_SERVER_ERROR)
    return message


def mark_message_read(firestore_ops: FirestoreBaseModel, reader: User, message_id: UUID) -> Message:
    message = firestore_ops.get(collection_name="messages", document_id=str(message_id), pydantic_model=Message)
    if not message:
        raise MessagingError("Message not found", status.HTTP_404_NOT_FOUND)
    if message.recipient_id != reader.user_id:
        raise MessagingError("Only the recipient can mark a message as read", status.HTTP_403_FORBIDDEN)
    if message.read:
        return message

    read_at = utcnow()
    if not firestore_ops.update(
        collection_name="messages",
        document_id=str(message_id),
        updates={"read": True, "read_at": read_at.isoformat()},
    ):
        raise MessagingError("Could not update message.", status.HTTP_500_INTERNAL_SERVER_ERROR)
    return message.model_copy(update={"read": True, "read_at": read_at})


def list_conversation(firestore_ops: FirestoreBaseModel, user: User, project_id: UUID, other_user_id: UUID) -> List[Message]:
    load_project_for(firestore_ops, project_id, user)
    pair = {user.user_id, other_user_id}
    project_messages = firestore_ops.query(
        collection_name="messages",
        field="project_id",
        operator="==",
        value=str(project_id),
        pydantic_model=Message,
    )
    conversation = [m for m in project_messages if {m.sender_id, m.recipient_id} == pair]
    conversation.sort(key=lambda m: m.timestamp)
    return conversation
