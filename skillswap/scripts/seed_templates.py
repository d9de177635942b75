#!/usr/bin/env python3
"""
Notification Template Seeder

Replaces the contents of the notificationTemplates collection with the
default templates below. Run after setting up Firebase credentials.
"""

import logging
import sys
from typing import List

from skillswap.core.config import get_settings
from skillswap.db.firebase_ops import FirestoreBaseModel
from skillswap.main import configure_logging
from skillswap.models.schemas import NotificationTemplate

logger = logging.getLogger(__name__)

COLLECTION = "notificationTemplates"

DEFAULT_TEMPLATES = [
    NotificationTemplate(
        key="bid_received",
        event="bid.submitted",
        title="New bid on {project_title}",
        body="{freelancer_name} bid {amount} on your project.",
        channels=["in_app", "email"],
    ),
    NotificationTemplate(
        key="bid_accepted",
        event="bid.accepted",
        title="Your bid was accepted",
        body="Your bid on {project_title} was accepted. The project is now in progress.",
        channels=["in_app", "email"],
    ),
    NotificationTemplate(
        key="bid_rejected",
        event="bid.rejected",
        title="Bid not selected",
        body="Your bid on {project_title} was not selected.",
    ),
    NotificationTemplate(
        key="counter_offer",
        event="bid.countered",
        title="Counter offer on {project_title}",
        body="The client proposed {amount}. Resubmit your bid to respond.",
        channels=["in_app", "email"],
    ),
    NotificationTemplate(
        key="new_message",
        event="message.created",
        title="New message from {sender_name}",
        body="{preview}",
    ),
    NotificationTemplate(
        key="project_completed",
        event="project.completed",
        title="{project_title} is complete",
        body="{amount} has been added to your earnings.",
        channels=["in_app", "email"],
    ),
    NotificationTemplate(
        key="review_received",
        event="review.created",
        title="You received a {rating}-star review",
        body="{reviewer_name} reviewed your work on {project_title}.",
    ),
]


def seed_templates(firestore_ops: FirestoreBaseModel, templates: List[NotificationTemplate] = DEFAULT_TEMPLATES) -> int:
    """Delete every existing template, then store `templates` keyed by template key. Returns the number stored."""
    existing = firestore_ops.get_all(collection_name=COLLECTION)
    for doc in existing:
        firestore_ops.delete(collection_name=COLLECTION, document_id=doc["id"])
    logger.info("Cleared %d existing templates", len(existing))

    seeded = 0
    for template in templates:
        if firestore_ops.save(collection_name=COLLECTION, data_model=template, document_id=template.key):
            seeded += 1
        else:
            logger.error("Failed to store template %s", template.key)
    logger.info("Seeded %d notification templates", seeded)
    return seeded


def main() -> int:
    configure_logging(get_settings().log_level)
    firestore_ops = FirestoreBaseModel()
    if not firestore_ops.db:
        logger.error("Firestore is not available; check FIREBASE_CREDENTIALS_PATH")
        return 1

    seeded = seed_templates(firestore_ops)
    return 0 if seeded == len(DEFAULT_TEMPLATES) else 1


if __name__ == "__main__":
    sys.exit(main())
