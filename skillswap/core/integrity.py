"""
Envelope checksum for chat messages.

The hash covers the routing metadata (sender, recipient, timestamp, project)
so either side can detect a tampered envelope independently of the body.
It is a deterministic SHA-256 checksum, not a signature: there is no secret.
"""

import hashlib
import json
from datetime import datetime, timezone
from typing import Union
from uuid import UUID

IdLike = Union[str, UUID]


def format_timestamp(moment: datetime) -> str:
    """Canonical timestamp text, e.g. 2024-05-01T10:15:30.123Z (always UTC, millisecond precision)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def hash_metadata(sender: IdLike, recipient: IdLike, timestamp: Union[str, datetime], project_id: IdLike) -> str:
    if isinstance(timestamp, datetime):
        timestamp = format_timestamp(timestamp)
    # Key order is part of the checksum.
    metadata = {
        "sender": str(sender),
        "recipient": str(recipient),
        "timestamp": timestamp,
        "projectId": str(project_id),
    }
    encoded = json.dumps(metadata, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def verify_metadata_hash(expected_hash: str, sender: IdLike, recipient: IdLike, timestamp: Union[str, datetime], project_id: IdLike) -> bool:
    return expected_hash == hash_metadata(sender, recipient, timestamp, project_id)
