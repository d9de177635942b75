from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from skillswap.models.schemas import EarningsSummary, Message, Project, Review, User


class SliceState(BaseModel):
    """Request bookkeeping shared by every slice; `message` holds the last error text."""

    model_config = ConfigDict(frozen=True)

    is_loading: bool = False
    is_error: bool = False
    is_success: bool = False
    message: str = ""


class ProjectsState(SliceState):
    projects: List[Project] = Field(default_factory=list)
    my_projects: List[Project] = Field(default_factory=list)
    project: Optional[Project] = None


class ReviewsState(SliceState):
    reviews: List[Review] = Field(default_factory=list)
    user_reviews: List[Review] = Field(default_factory=list)
    freelancer_reviews: List[Review] = Field(default_factory=list)


class UsersState(SliceState):
    freelancer_profile: Optional[User] = None
    earnings: Optional[EarningsSummary] = None
    skills: List[str] = Field(default_factory=list)


class MessagesState(SliceState):
    messages: List[Message] = Field(default_factory=list)


class AppState(BaseModel):
    model_config = ConfigDict(frozen=True)

    projects: ProjectsState = Field(default_factory=ProjectsState)
    reviews: ReviewsState = Field(default_factory=ReviewsState)
    users: UsersState = Field(default_factory=UsersState)
    messages: MessagesState = Field(default_factory=MessagesState)
