"""
Pure state transitions for the client store. Each reducer takes the current
slice state and an action and returns either the same object (action not
for this slice) or a new one.
"""

from typing import Callable, Dict, List, Optional
from uuid import UUID

from skillswap.client.actions import (
    AddMessage, Fulfilled, Operation, Pending, Rejected, ResetMessages, ResetProjectState,
    ResetReviews, UpdateMessageReadStatus,
)
from skillswap.client.state import AppState, MessagesState, ProjectsState, ReviewsState, SliceState, UsersState
from skillswap.models.schemas import Message, Project, Review

Handler = Callable[[SliceState, Fulfilled], SliceState]


def _async_reducer(slice_name: str, handlers: Dict[Operation, Handler]):
    """Build a reducer that tracks loading/error flags for the slice's operations."""

    def reduce(state, action):
        if not isinstance(action, (Pending, Fulfilled, Rejected)) or action.operation.slice_name != slice_name:
            return state
        if isinstance(action, Pending):
            return state.model_copy(update={"is_loading": True, "is_error": False, "is_success": False, "message": ""})
        if isinstance(action, Rejected):
            return state.model_copy(update={"is_loading": False, "is_error": True, "is_success": False, "message": action.message})

        done = state.model_copy(update={"is_loading": False, "is_error": False, "is_success": True, "message": ""})
        handler = handlers.get(action.operation)
        return handler(done, action) if handler else done

    return reduce


def _reset_flags(state):
    return state.model_copy(update={"is_loading": False, "is_error": False, "is_success": False, "message": ""})


# --- projects ---

def _replace_project(projects: List[Project], updated: Project) -> List[Project]:
    return [updated if p.project_id == updated.project_id else p for p in projects]


def _with_project(state: ProjectsState, updated: Project) -> ProjectsState:
    return state.model_copy(update={
        "projects": _replace_project(state.projects, updated),
        "my_projects": _replace_project(state.my_projects, updated),
        "project": updated,
    })


def _project_payload(state, action):
    return _with_project(state, action.payload)


def _project_created(state, action):
    return state.model_copy(update={
        "projects": [action.payload, *state.projects],
        "my_projects": [action.payload, *state.my_projects],
        "project": action.payload,
    })


def _project_deleted(state, action):
    deleted = UUID(str(action.payload))
    current = state.project if state.project and state.project.project_id != deleted else None
    return state.model_copy(update={
        "projects": [p for p in state.projects if p.project_id != deleted],
        "my_projects": [p for p in state.my_projects if p.project_id != deleted],
        "project": current,
    })


def _update_in_place(state: ProjectsState, project_id, change: Callable[[Project], Project]) -> ProjectsState:
    project_id = UUID(str(project_id))
    target = state.project if state.project and state.project.project_id == project_id else None
    if target is None:
        target = next((p for p in [*state.projects, *state.my_projects] if p.project_id == project_id), None)
    if target is None:
        return state
    return _with_project(state, change(target))


def _milestone_added(state, action):
    return _update_in_place(
        state, action.arg, lambda p: p.model_copy(update={"milestones": [*p.milestones, action.payload]})
    )


def _bid_submitted(state, action):
    bid = action.payload

    def same_bid(existing) -> bool:
        return existing.bid_id == bid.bid_id or existing.freelancer_user_id == bid.freelancer_user_id

    def add_bid(project: Project) -> Project:
        # A resubmission replaces the bidder's earlier bid.
        if any(same_bid(b) for b in project.bids):
            return project.model_copy(update={"bids": [bid if same_bid(b) else b for b in project.bids]})
        return project.model_copy(update={"bids": [*project.bids, bid]})

    return _update_in_place(state, action.arg, add_bid)


projects_async = _async_reducer("projects", {
    Operation.GET_PROJECTS: lambda s, a: s.model_copy(update={"projects": a.payload}),
    Operation.GET_MY_PROJECTS: lambda s, a: s.model_copy(update={"my_projects": a.payload}),
    Operation.GET_PROJECT: lambda s, a: s.model_copy(update={"project": a.payload}),
    Operation.CREATE_PROJECT: _project_created,
    Operation.UPDATE_PROJECT: _project_payload,
    Operation.UPDATE_PROJECT_STATUS: _project_payload,
    Operation.UPDATE_MILESTONE_STATUS: _project_payload,
    Operation.ACCEPT_BID: _project_payload,
    Operation.REJECT_BID: _project_payload,
    Operation.SEND_COUNTER_OFFER: _project_payload,
    Operation.COMPLETE_PROJECT: lambda s, a: _with_project(s, a.payload.project),
    Operation.DELETE_PROJECT: _project_deleted,
    Operation.ADD_MILESTONE: _milestone_added,
    Operation.SUBMIT_BID: _bid_submitted,
})


def projects_reducer(state: ProjectsState, action) -> ProjectsState:
    if isinstance(action, ResetProjectState):
        return _reset_flags(state)
    return projects_async(state, action)


# --- reviews ---

def _replace_review(reviews: List[Review], updated: Review) -> List[Review]:
    return [updated if r.review_id == updated.review_id else r for r in reviews]


def _review_responded(state, action):
    return state.model_copy(update={
        field: _replace_review(getattr(state, field), action.payload)
        for field in ("reviews", "user_reviews", "freelancer_reviews")
    })


def _review_deleted(state, action):
    deleted = UUID(str(action.payload))
    return state.model_copy(update={
        field: [r for r in getattr(state, field) if r.review_id != deleted]
        for field in ("reviews", "user_reviews", "freelancer_reviews")
    })


reviews_async = _async_reducer("reviews", {
    Operation.FETCH_REVIEWS: lambda s, a: s.model_copy(update={"reviews": a.payload}),
    Operation.SUBMIT_REVIEW: lambda s, a: s.model_copy(update={"reviews": [a.payload, *s.reviews]}),
    Operation.RESPOND_TO_REVIEW: _review_responded,
    Operation.DELETE_REVIEW: _review_deleted,
    Operation.GET_REVIEWS_BY_REVIEWER: lambda s, a: s.model_copy(update={"user_reviews": a.payload}),
    Operation.GET_FREELANCER_REVIEWS: lambda s, a: s.model_copy(update={"freelancer_reviews": a.payload}),
})


def reviews_reducer(state: ReviewsState, action) -> ReviewsState:
    if isinstance(action, ResetReviews):
        return ReviewsState()
    return reviews_async(state, action)


# --- users ---

def _profile(state, action):
    return state.model_copy(update={"freelancer_profile": action.payload})


users_reducer = _async_reducer("users", {
    Operation.FETCH_FREELANCER_PROFILE: _profile,
    Operation.UPDATE_FREELANCER_PROFILE: _profile,
    Operation.ADD_EXPERIENCE: _profile,
    Operation.UPDATE_EXPERIENCE: _profile,
    Operation.DELETE_EXPERIENCE: _profile,
    Operation.GET_EARNINGS: lambda s, a: s.model_copy(update={"earnings": a.payload}),
    Operation.GET_SKILLS: lambda s, a: s.model_copy(update={"skills": a.payload}),
})


# --- messages ---

def _append_message(state: MessagesState, message: Message) -> MessagesState:
    # Our own sends come back both as the ack and as a room broadcast.
    if any(m.message_id == message.message_id for m in state.messages):
        return state
    return state.model_copy(update={"messages": [*state.messages, message]})


def _mark_read(state: MessagesState, message_id: UUID, read_at) -> MessagesState:
    messages = [
        m.model_copy(update={"read": True, "read_at": read_at or m.read_at}) if m.message_id == message_id else m
        for m in state.messages
    ]
    return state.model_copy(update={"messages": messages})


messages_async = _async_reducer("messages", {
    Operation.FETCH_MESSAGES: lambda s, a: s.model_copy(update={"messages": a.payload}),
    Operation.SEND_MESSAGE: lambda s, a: _append_message(s, a.payload),
})


def messages_reducer(state: MessagesState, action) -> MessagesState:
    if isinstance(action, ResetMessages):
        return MessagesState()
    if isinstance(action, AddMessage):
        return _append_message(state, action.message)
    if isinstance(action, UpdateMessageReadStatus):
        return _mark_read(state, action.message_id, action.read_at)
    return messages_async(state, action)


def root_reducer(state: Optional[AppState], action) -> AppState:
    state = state or AppState()
    slices = {
        "projects": projects_reducer(state.projects, action),
        "reviews": reviews_reducer(state.reviews, action),
        "users": users_reducer(state.users, action),
        "messages": messages_reducer(state.messages, action),
    }
    if all(slices[name] is getattr(state, name) for name in slices):
        return state
    return state.model_copy(update=slices)
