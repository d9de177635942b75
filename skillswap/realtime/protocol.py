"""
Wire format of the messaging socket: one JSON text frame per event,
{"event": <name>, "data": {...}}. Shared by the server and the client.
"""

import json
from typing import Any, Dict

from pydantic import BaseModel, Field

# client -> server
JOIN_PROJECT = "joinProject"
LEAVE_PROJECT = "leaveProject"
SEND_MESSAGE = "sendMessage"
MARK_MESSAGE_READ = "markMessageRead"

# server -> client
CONNECT = "connect"
NEW_MESSAGE = "newMessage"
MESSAGE_READ = "messageRead"
ERROR = "error"

# raised locally by the client when the transport goes away
DISCONNECT = "disconnect"

# Close codes in the application range (4000-4999).
SERVER_DISCONNECT_CLOSE_CODE = 4000
AUTH_FAILED_CLOSE_CODE = 4401


class Envelope(BaseModel):
    event: str
    data: Dict[str, Any] = Field(default_factory=dict)


def encode(event: str, data: Dict[str, Any] | None = None) -> str:
    return json.dumps({"event": event, "data": data or {}}, default=str)


def decode(raw: str) -> Envelope:
    """Raises pydantic.ValidationError on frames that are not envelopes."""
    return Envelope.model_validate_json(raw)
