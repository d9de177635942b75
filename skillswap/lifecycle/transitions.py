"""
Project and bid state transitions.

Every function here is pure: it takes a Project, returns a new Project and
never touches storage. A transition whose precondition on the current status
does not hold raises InvalidTransition carrying that status, so callers can
tell a stale read apart from an invalid request.
"""

from datetime import datetime
from typing import Dict, FrozenSet, Optional, Tuple
from uuid import UUID

from skillswap.models.schemas import (
    Bid, BidStatus, CounterOffer, Milestone, MilestoneCreate, MilestoneStatus,
    Project, ProjectStatus, ProjectUpdate, utcnow,
)

PROJECT_TRANSITIONS: Dict[ProjectStatus, FrozenSet[ProjectStatus]] = {
    ProjectStatus.OPEN: frozenset({ProjectStatus.IN_PROGRESS, ProjectStatus.CANCELLED}),
    ProjectStatus.IN_PROGRESS: frozenset({ProjectStatus.COMPLETED, ProjectStatus.CANCELLED}),
    ProjectStatus.COMPLETED: frozenset(),
    ProjectStatus.CANCELLED: frozenset(),
}

MILESTONE_TRANSITIONS: Dict[MilestoneStatus, FrozenSet[MilestoneStatus]] = {
    MilestoneStatus.PENDING: frozenset({MilestoneStatus.IN_PROGRESS, MilestoneStatus.COMPLETED}),
    MilestoneStatus.IN_PROGRESS: frozenset({MilestoneStatus.COMPLETED}),
    MilestoneStatus.COMPLETED: frozenset(),
}

TERMINAL_STATUSES = frozenset({ProjectStatus.COMPLETED, ProjectStatus.CANCELLED})


class InvalidTransition(Exception):
    """A lifecycle operation was refused because of the current status of its subject."""

    def __init__(self, message: str, current_status: str, subject: str = "project"):
        super().__init__(message)
        self.message = message
        self.current_status = current_status
        self.subject = subject


class BidNotFound(LookupError):
    pass


class MilestoneNotFound(LookupError):
    pass


def _status_value(status) -> str:
    return getattr(status, "value", status)


def _require_project_status(project: Project, allowed, message: str) -> None:
    if project.status not in allowed:
        status = _status_value(project.status)
        raise InvalidTransition(f"{message} (current status: {status})", status)


def _require_bid_status(bid: Bid, allowed, message: str) -> None:
    if bid.status not in allowed:
        status = _status_value(bid.status)
        raise InvalidTransition(f"{message} (current status: {status})", status, subject="bid")


def _get_bid(project: Project, bid_id: UUID) -> Bid:
    bid = project.find_bid(bid_id)
    if bid is None:
        raise BidNotFound(f"Bid {bid_id} not found on project {project.project_id}")
    return bid


def _replace_bid(project: Project, updated: Bid, now: datetime) -> Project:
    bids = [updated if bid.bid_id == updated.bid_id else bid for bid in project.bids]
    return project.model_copy(update={"bids": bids, "last_updated_date": now})


def submit_bid(
    project: Project,
    bidder_id: UUID,
    amount: float,
    message: str,
    estimated_completion_time: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[Project, Bid]:
    """
    Append a pending bid. A bidder whose earlier bid was countered resubmits
    by replacing that bid in place; any other existing bid is a duplicate.
    """
    now = now or utcnow()
    _require_project_status(project, {ProjectStatus.OPEN}, "Project is not open for bids")
    if bidder_id == project.client_user_id:
        raise InvalidTransition("Project owners cannot bid on their own project", _status_value(project.status))

    existing = next((bid for bid in project.bids if bid.freelancer_user_id == bidder_id), None)
    if existing is not None:
        _require_bid_status(existing, {BidStatus.COUNTERED}, "You have already submitted a bid for this project")
        resubmitted = existing.model_copy(update={
            "amount": amount,
            "message": message,
            "estimated_completion_time": estimated_completion_time,
            "status": BidStatus.PENDING,
            "counter_offer": None,
            "last_updated_date": now,
        })
        return _replace_bid(project, resubmitted, now), resubmitted

    bid = Bid(
        freelancer_user_id=bidder_id,
        amount=amount,
        message=message,
        estimated_completion_time=estimated_completion_time,
        bid_date=now,
        last_updated_date=now,
    )
    updated = project.model_copy(update={"bids": [*project.bids, bid], "last_updated_date": now})
    return updated, bid


def accept_bid(project: Project, bid_id: UUID, now: Optional[datetime] = None) -> Project:
    """Accept one pending bid, reject every other bid and start the project."""
    now = now or utcnow()
    target = _get_bid(project, bid_id)
    _require_bid_status(target, {BidStatus.PENDING}, "Bid is not pending")
    _require_project_status(project, {ProjectStatus.OPEN}, "Project is not open for bid acceptance")

    bids = [
        bid.model_copy(update={
            "status": BidStatus.ACCEPTED if bid.bid_id == bid_id else BidStatus.REJECTED,
            "last_updated_date": now,
        })
        for bid in project.bids
    ]
    return project.model_copy(update={
        "bids": bids,
        "status": ProjectStatus.IN_PROGRESS,
        "freelancer_user_id": target.freelancer_user_id,
        "last_updated_date": now,
    })


def reject_bid(project: Project, bid_id: UUID, now: Optional[datetime] = None) -> Project:
    now = now or utcnow()
    target = _get_bid(project, bid_id)
    _require_bid_status(target, {BidStatus.PENDING, BidStatus.COUNTERED}, "Bid cannot be rejected")
    _require_project_status(project, {ProjectStatus.OPEN}, "Project is not open")
    rejected = target.model_copy(update={"status": BidStatus.REJECTED, "last_updated_date": now})
    return _replace_bid(project, rejected, now)


def send_counter_offer(
    project: Project,
    bid_id: UUID,
    amount: float,
    message: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Project:
    now = now or utcnow()
    target = _get_bid(project, bid_id)
    _require_bid_status(target, {BidStatus.PENDING}, "Only pending bids can be countered")
    _require_project_status(project, {ProjectStatus.OPEN}, "Project is not open")
    countered = target.model_copy(update={
        "status": BidStatus.COUNTERED,
        "counter_offer": CounterOffer(amount=amount, message=message, offered_at=now),
        "last_updated_date": now,
    })
    return _replace_bid(project, countered, now)


def complete_project(project: Project, now: Optional[datetime] = None) -> Tuple[Project, Bid]:
    """Finish an in-progress project; returns the accepted bid so its freelancer can be credited."""
    now = now or utcnow()
    _require_project_status(project, {ProjectStatus.IN_PROGRESS}, "Only in-progress projects can be completed")
    accepted = project.accepted_bid()
    if accepted is None:
        raise InvalidTransition("Project has no accepted bid", _status_value(project.status))
    completed = project.model_copy(update={
        "status": ProjectStatus.COMPLETED,
        "completed_at": now,
        "last_updated_date": now,
    })
    return completed, accepted


def cancel_project(project: Project, now: Optional[datetime] = None) -> Project:
    now = now or utcnow()
    _require_project_status(project, {ProjectStatus.OPEN, ProjectStatus.IN_PROGRESS}, "Project can no longer be cancelled")
    return project.model_copy(update={"status": ProjectStatus.CANCELLED, "last_updated_date": now})


def change_status(project: Project, new_status: ProjectStatus, now: Optional[datetime] = None) -> Project:
    """
    Generic status change. Starting and completing a project have their own
    operations with side effects, so only cancellation goes through here.
    """
    if new_status not in PROJECT_TRANSITIONS[project.status]:
        status = _status_value(project.status)
        raise InvalidTransition(
            f"Cannot move project from {status} to {_status_value(new_status)}", status
        )
    if new_status == ProjectStatus.IN_PROGRESS:
        raise InvalidTransition("Accept a bid to start the project", _status_value(project.status))
    if new_status == ProjectStatus.COMPLETED:
        raise InvalidTransition("Use the complete operation to finish the project", _status_value(project.status))
    return cancel_project(project, now)


def update_details(project: Project, changes: ProjectUpdate, now: Optional[datetime] = None) -> Project:
    now = now or utcnow()
    if project.status in TERMINAL_STATUSES:
        status = _status_value(project.status)
        raise InvalidTransition(f"Project can no longer be edited (current status: {status})", status)
    update = changes.model_dump(exclude_unset=True)
    update["last_updated_date"] = now
    return project.model_copy(update=update)


def add_milestone(project: Project, milestone_in: MilestoneCreate, now: Optional[datetime] = None) -> Tuple[Project, Milestone]:
    now = now or utcnow()
    _require_project_status(project, {ProjectStatus.OPEN, ProjectStatus.IN_PROGRESS}, "Milestones cannot be added")
    milestone = Milestone(**milestone_in.model_dump())
    updated = project.model_copy(update={"milestones": [*project.milestones, milestone], "last_updated_date": now})
    return updated, milestone


def update_milestone_status(
    project: Project,
    milestone_id: UUID,
    new_status: MilestoneStatus,
    now: Optional[datetime] = None,
) -> Project:
    now = now or utcnow()
    _require_project_status(project, {ProjectStatus.OPEN, ProjectStatus.IN_PROGRESS}, "Milestones cannot be updated")
    milestone = next((m for m in project.milestones if m.milestone_id == milestone_id), None)
    if milestone is None:
        raise MilestoneNotFound(f"Milestone {milestone_id} not found on project {project.project_id}")
    if new_status not in MILESTONE_TRANSITIONS[milestone.status]:
        status = _status_value(milestone.status)
        raise InvalidTransition(
            f"Cannot move milestone from {status} to {_status_value(new_status)}", status, subject="milestone"
        )
    updated = milestone.model_copy(update={"status": new_status})
    milestones = [updated if m.milestone_id == milestone_id else m for m in project.milestones]
    return project.model_copy(update={"milestones": milestones, "last_updated_date": now})
