from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, EmailStr, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, Enum):
    CLIENT = "client"
    FREELANCER = "freelancer"
    ADMIN = "admin"


class VerificationStatus(str, Enum):
    NOT_SUBMITTED = "not_submitted"
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class ProjectStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BidStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COUNTERED = "countered"


class MilestoneStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# --- Users ---

class ExperienceBase(BaseModel):
    title: str
    company: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    description: Optional[str] = None

class ExperienceCreate(ExperienceBase):
    pass

class Experience(ExperienceBase):
    experience_id: UUID = Field(default_factory=uuid4)

class EarningEntry(BaseModel):
    project_id: UUID
    project_title: str
    amount: float
    date: datetime = Field(default_factory=utcnow)

class Earnings(BaseModel):
    total: float = 0.0
    history: List[EarningEntry] = Field(default_factory=list)

class MonthlyEarning(BaseModel):
    month: str # "YYYY-MM"
    amount: float

class EarningsSummary(BaseModel):
    total: float
    monthly: float
    history: List[EarningEntry]
    monthly_data: List[MonthlyEarning]

class FreelancerProfileUpdate(BaseModel):
    title: Optional[str] = None
    bio: Optional[str] = None
    skills: Optional[List[str]] = None
    hourly_rate: Optional[float] = Field(default=None, ge=0)
    portfolio_url: Optional[str] = None

class UserBase(BaseModel):
    username: str
    email: EmailStr
    full_name: str
    role: UserRole
    profile_picture_url: Optional[str] = None

class User(UserBase):
    user_id: UUID = Field(default_factory=uuid4)
    title: Optional[str] = None
    bio: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    hourly_rate: Optional[float] = None
    portfolio_url: Optional[str] = None
    experience: List[Experience] = Field(default_factory=list)
    earnings: Earnings = Field(default_factory=Earnings)
    average_rating: Optional[float] = None
    verification_status: VerificationStatus = VerificationStatus.NOT_SUBMITTED
    registration_date: datetime = Field(default_factory=utcnow)
    is_active: bool = True


# --- Projects, bids and milestones ---

class CounterOffer(BaseModel):
    amount: float = Field(gt=0)
    message: Optional[str] = None
    offered_at: datetime = Field(default_factory=utcnow)

class BidCreate(BaseModel):
    amount: float = Field(gt=0)
    message: str = Field(min_length=1)
    estimated_completion_time: Optional[str] = None # e.g., "2 weeks", "1 month"

class CounterOfferCreate(BaseModel):
    amount: float = Field(gt=0)
    message: Optional[str] = None

class Bid(BaseModel):
    bid_id: UUID = Field(default_factory=uuid4)
    freelancer_user_id: UUID
    amount: float = Field(gt=0)
    message: str
    estimated_completion_time: Optional[str] = None
    status: BidStatus = BidStatus.PENDING
    counter_offer: Optional[CounterOffer] = None
    bid_date: datetime = Field(default_factory=utcnow)
    last_updated_date: datetime = Field(default_factory=utcnow)

class MilestoneCreate(BaseModel):
    description: str = Field(min_length=1)
    amount: Optional[float] = Field(default=None, ge=0)
    due_date: Optional[datetime] = None

class MilestoneStatusUpdate(BaseModel):
    status: MilestoneStatus

class Milestone(MilestoneCreate):
    milestone_id: UUID = Field(default_factory=uuid4)
    status: MilestoneStatus = MilestoneStatus.PENDING

class ProjectBase(BaseModel):
    title: str = Field(min_length=1)
    description: str
    budget: Optional[float] = Field(default=None, ge=0)
    deadline: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)

class ProjectCreate(ProjectBase):
    pass

class ProjectUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    budget: Optional[float] = Field(default=None, ge=0)
    deadline: Optional[datetime] = None
    tags: Optional[List[str]] = None

class ProjectStatusUpdate(BaseModel):
    status: ProjectStatus

class Project(ProjectBase):
    project_id: UUID = Field(default_factory=uuid4)
    client_user_id: UUID # Owner
    freelancer_user_id: Optional[UUID] = None # Set once a bid is accepted
    status: ProjectStatus = ProjectStatus.OPEN
    bids: List[Bid] = Field(default_factory=list)
    milestones: List[Milestone] = Field(default_factory=list)
    creation_date: datetime = Field(default_factory=utcnow)
    last_updated_date: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    def find_bid(self, bid_id: UUID) -> Optional[Bid]:
        return next((bid for bid in self.bids if bid.bid_id == bid_id), None)

    def accepted_bid(self) -> Optional[Bid]:
        return next((bid for bid in self.bids if bid.status == BidStatus.ACCEPTED), None)

class ProjectCompletion(BaseModel):
    project: Project
    earnings: Earnings


# --- Reviews ---

class ReviewCreate(BaseModel):
    project_id: UUID
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None

class ReviewResponseCreate(BaseModel):
    response: str = Field(min_length=1)

class Review(BaseModel):
    review_id: UUID = Field(default_factory=uuid4)
    project_id: UUID
    reviewer_user_id: UUID
    reviewee_user_id: UUID
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
    response: Optional[str] = None
    response_date: Optional[datetime] = None
    review_date: datetime = Field(default_factory=utcnow)


# --- Messages ---

class MessageCreate(BaseModel):
    project_id: UUID
    recipient_id: UUID
    text: str = Field(min_length=1, max_length=5000)
    timestamp: Optional[datetime] = None
    metadata_hash: Optional[str] = None
    client_message_id: Optional[str] = None # Echoed back so the sender can match its acknowledgement

class Message(BaseModel):
    message_id: UUID = Field(default_factory=uuid4)
    project_id: UUID
    sender_id: UUID
    recipient_id: UUID
    text: str
    timestamp: datetime = Field(default_factory=utcnow)
    metadata_hash: str
    read: bool = False
    read_at: Optional[datetime] = None
    client_message_id: Optional[str] = None


# --- Notification templates ---

class NotificationTemplate(BaseModel):
    key: str
    event: str
    title: str
    body: str
    channels: List[str] = Field(default_factory=lambda: ["in_app"])
