import logging
from collections import defaultdict
from datetime import datetime
from typing import Optional
from uuid import UUID

from skillswap.db.firebase_ops import FirestoreBaseModel
from skillswap.models.schemas import EarningEntry, Earnings, EarningsSummary, MonthlyEarning, User, utcnow

logger = logging.getLogger(__name__)


def credit_earning(firestore_ops: FirestoreBaseModel, freelancer_id: UUID, entry: EarningEntry) -> Optional[Earnings]:
    """Add a completed project's payout to the freelancer's running earnings."""

    def mutate(data):
        user = User(**data)
        earnings = Earnings(
            total=round(user.earnings.total + entry.amount, 2),
            history=[*user.earnings.history, entry],
        )
        data["earnings"] = earnings.model_dump(mode="json")
        return data

    written = firestore_ops.transact(collection_name="users", document_id=str(freelancer_id), mutate=mutate)
    if written is None:
        logger.error("Could not credit %.2f to freelancer %s for project %s", entry.amount, freelancer_id, entry.project_id)
        return None
    return Earnings(**written["earnings"])


def summarize_earnings(earnings: Earnings, now: Optional[datetime] = None) -> EarningsSummary:
    now = now or utcnow()
    monthly = sum(
        entry.amount for entry in earnings.history
        if entry.date.year == now.year and entry.date.month == now.month
    )

    by_month = defaultdict(float)
    for entry in earnings.history:
        by_month[f"{entry.date.year}-{entry.date.month:02d}"] += entry.amount

    return EarningsSummary(
        total=earnings.total,
        monthly=monthly,
        history=earnings.history,
        monthly_data=[MonthlyEarning(month=month, amount=amount) for month, amount in sorted(by_month.items())],
    )
