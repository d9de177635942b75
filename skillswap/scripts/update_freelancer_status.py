#!/usr/bin/env python3
"""
Backfill verification_status on freelancer accounts created before the
field existed, then print every freelancer's current status.
"""

import logging
import sys
from typing import Any, Dict, List

from skillswap.core.config import get_settings
from skillswap.db.firebase_ops import FirestoreBaseModel
from skillswap.main import configure_logging
from skillswap.models.schemas import UserRole, VerificationStatus

logger = logging.getLogger(__name__)


def backfill_verification_status(firestore_ops: FirestoreBaseModel) -> List[Dict[str, Any]]:
    """Returns the freelancer documents as they are after the backfill."""
    freelancers = firestore_ops.query(
        collection_name="users",
        field="role",
        operator="==",
        value=UserRole.FREELANCER.value,
    )

    updated = 0
    for freelancer in freelancers:
        if freelancer.get("verification_status"):
            continue
        if firestore_ops.update(
            collection_name="users",
            document_id=freelancer["id"],
            updates={"verification_status": VerificationStatus.NOT_SUBMITTED.value},
        ):
            freelancer["verification_status"] = VerificationStatus.NOT_SUBMITTED.value
            updated += 1
        else:
            logger.error("Failed to update freelancer %s", freelancer["id"])

    logger.info("Updated %d freelancers", updated)
    return freelancers


def main() -> int:
    configure_logging(get_settings().log_level)
    firestore_ops = FirestoreBaseModel()
    if not firestore_ops.db:
        logger.error("Firestore is not available; check FIREBASE_CREDENTIALS_PATH")
        return 1

    freelancers = backfill_verification_status(firestore_ops)
    print("\nCurrent Freelancer Status:")
    for freelancer in freelancers:
        name = freelancer.get("full_name") or freelancer.get("username")
        print(f"{name} ({freelancer.get('email')}): {freelancer.get('verification_status') or 'no status'}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
