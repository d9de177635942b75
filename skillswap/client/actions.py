from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from skillswap.models.schemas import Message


class Operation(str, Enum):
    GET_PROJECTS = "projects/getAll"
    GET_MY_PROJECTS = "projects/getMine"
    GET_PROJECT = "projects/get"
    CREATE_PROJECT = "projects/create"
    UPDATE_PROJECT = "projects/update"
    UPDATE_PROJECT_STATUS = "projects/updateStatus"
    DELETE_PROJECT = "projects/delete"
    COMPLETE_PROJECT = "projects/complete"
    ADD_MILESTONE = "projects/addMilestone"
    UPDATE_MILESTONE_STATUS = "projects/updateMilestoneStatus"
    SUBMIT_BID = "projects/submitBid"
    ACCEPT_BID = "projects/acceptBid"
    REJECT_BID = "projects/rejectBid"
    SEND_COUNTER_OFFER = "projects/sendCounterOffer"

    FETCH_REVIEWS = "reviews/fetch"
    SUBMIT_REVIEW = "reviews/submit"
    RESPOND_TO_REVIEW = "reviews/respond"
    DELETE_REVIEW = "reviews/delete"
    GET_REVIEWS_BY_REVIEWER = "reviews/getByReviewer"
    GET_FREELANCER_REVIEWS = "reviews/getForFreelancer"

    FETCH_FREELANCER_PROFILE = "users/fetchFreelancerProfile"
    UPDATE_FREELANCER_PROFILE = "users/updateFreelancerProfile"
    ADD_EXPERIENCE = "users/addExperience"
    UPDATE_EXPERIENCE = "users/updateExperience"
    DELETE_EXPERIENCE = "users/deleteExperience"
    GET_EARNINGS = "users/getEarnings"
    GET_SKILLS = "users/getSkills"

    FETCH_MESSAGES = "messages/fetch"
    SEND_MESSAGE = "messages/send"

    @property
    def slice_name(self) -> str:
        return self.value.split("/", 1)[0]


class Action(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


# Async lifecycle of an Operation, dispatched by Store.run

class Pending(Action):
    operation: Operation


class Fulfilled(Action):
    operation: Operation
    payload: Any = None
    arg: Any = None # what the call was made with, for payloads that don't carry it


class Rejected(Action):
    operation: Operation
    message: str
    status_code: Optional[int] = None
    current_status: Optional[str] = None


# Local actions

class ResetProjectState(Action):
    pass


class ResetReviews(Action):
    pass


class ResetMessages(Action):
    pass


class AddMessage(Action):
    message: Message


class UpdateMessageReadStatus(Action):
    message_id: UUID
    read_at: Optional[datetime] = None


AnyAction = Union[
    Pending, Fulfilled, Rejected,
    ResetProjectState, ResetReviews, ResetMessages, AddMessage, UpdateMessageReadStatus,
]
