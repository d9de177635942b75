"""
Async HTTP client for the marketplace REST API.

Every method validates its identifiers before touching the network and
raises a ClientError subclass carrying the server's human-readable message.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

import httpx

from skillswap.client.errors import (
    ApiError, AuthenticationError, AuthorizationError, ClientValidationError,
    NotFoundError, RequestRejectedError, TransportError,
)
from skillswap.core.integrity import format_timestamp, hash_metadata
from skillswap.models.schemas import (
    Bid, EarningsSummary, Message, Milestone, Project, ProjectCompletion, Review, User,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:5000/api"

IdLike = Union[str, UUID]


def require_id(value: Optional[IdLike], name: str) -> str:
    if not value:
        raise ClientValidationError(f"{name} is required")
    try:
        return str(UUID(str(value)))
    except ValueError:
        raise ClientValidationError(f"Invalid {name} format") from None


def error_from_response(response: httpx.Response) -> ApiError:
    try:
        body = response.json()
    except ValueError:
        body = None

    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, str):
        message = detail
    elif detail:
        # FastAPI request validation errors come back as a list of problems.
        message = "; ".join(str(item.get("msg", item)) if isinstance(item, dict) else str(item) for item in detail)
    else:
        message = response.reason_phrase or f"Request failed with status {response.status_code}"

    code = response.status_code
    if code == 401:
        return AuthenticationError(message, code, body)
    if code == 403:
        return AuthorizationError(message, code, body)
    if code == 404:
        return NotFoundError(message, code, body)
    if code in (400, 409, 422):
        current_status = body.get("current_status") if isinstance(body, dict) else None
        return RequestRejectedError(message, code, body, current_status=current_status)
    return ApiError(message, code, body)


class MarketplaceApi:
    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        token: Optional[str] = None,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout, transport=transport)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request to {path} timed out") from exc
        except httpx.TransportError as exc:
            raise TransportError(f"Could not reach the server: {exc}") from exc

        if response.is_error:
            error = error_from_response(response)
            logger.debug("%s %s failed with %s: %s", method, path, response.status_code, error.message)
            raise error
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # --- Projects ---

    async def get_projects(self) -> List[Project]:
        return [Project(**p) for p in await self._request("GET", "/projects")]

    async def get_my_projects(self) -> List[Project]:
        return [Project(**p) for p in await self._request("GET", "/projects/mine")]

    async def get_project(self, project_id: IdLike) -> Project:
        project_id = require_id(project_id, "project ID")
        return Project(**await self._request("GET", f"/projects/{project_id}"))

    async def create_project(self, project_data: Dict[str, Any]) -> Project:
        return Project(**await self._request("POST", "/projects", json=project_data))

    async def update_project(self, project_id: IdLike, changes: Dict[str, Any]) -> Project:
        project_id = require_id(project_id, "project ID")
        return Project(**await self._request("PUT", f"/projects/{project_id}", json=changes))

    async def update_project_status(self, project_id: IdLike, status: str) -> Project:
        project_id = require_id(project_id, "project ID")
        return Project(**await self._request("PUT", f"/projects/{project_id}/status", json={"status": status}))

    async def delete_project(self, project_id: IdLike) -> str:
        project_id = require_id(project_id, "project ID")
        await self._request("DELETE", f"/projects/{project_id}")
        return project_id

    async def complete_project(self, project_id: IdLike) -> ProjectCompletion:
        project_id = require_id(project_id, "project ID")
        return ProjectCompletion(**await self._request("PUT", f"/projects/{project_id}/complete"))

    async def add_milestone(self, project_id: IdLike, milestone_data: Dict[str, Any]) -> Milestone:
        project_id = require_id(project_id, "project ID")
        return Milestone(**await self._request("POST", f"/projects/{project_id}/milestones", json=milestone_data))

    async def update_milestone_status(self, project_id: IdLike, milestone_id: IdLike, status: str) -> Project:
        project_id = require_id(project_id, "project ID")
        milestone_id = require_id(milestone_id, "milestone ID")
        path = f"/projects/{project_id}/milestones/{milestone_id}/status"
        return Project(**await self._request("PUT", path, json={"status": status}))

    # --- Bids ---

    async def submit_bid(self, project_id: IdLike, amount: float, message: str, estimated_completion_time: Optional[str] = None) -> Bid:
        project_id = require_id(project_id, "project ID")
        if amount is None or amount <= 0:
            raise ClientValidationError("Bid amount must be greater than zero")
        if not message:
            raise ClientValidationError("Bid message is required")
        body = {"amount": amount, "message": message, "estimated_completion_time": estimated_completion_time}
        return Bid(**await self._request("POST", f"/projects/{project_id}/bids", json=body))

    async def list_bids(self, project_id: IdLike) -> List[Bid]:
        project_id = require_id(project_id, "project ID")
        return [Bid(**b) for b in await self._request("GET", f"/projects/{project_id}/bids")]

    async def accept_bid(self, project_id: IdLike, bid_id: IdLike) -> Project:
        project_id = require_id(project_id, "project ID")
        bid_id = require_id(bid_id, "bid ID")
        return Project(**await self._request("PUT", f"/projects/{project_id}/bids/{bid_id}/accept"))

    async def reject_bid(self, project_id: IdLike, bid_id: IdLike) -> Project:
        project_id = require_id(project_id, "project ID")
        bid_id = require_id(bid_id, "bid ID")
        return Project(**await self._request("PUT", f"/projects/{project_id}/bids/{bid_id}/reject"))

    async def send_counter_offer(self, project_id: IdLike, bid_id: IdLike, amount: float, message: Optional[str] = None) -> Project:
        project_id = require_id(project_id, "project ID")
        bid_id = require_id(bid_id, "bid ID")
        if amount is None or amount <= 0:
            raise ClientValidationError("Counter offer amount must be greater than zero")
        body = {"amount": amount, "message": message}
        return Project(**await self._request("PUT", f"/projects/{project_id}/bids/{bid_id}/counter", json=body))

    # --- Reviews ---

    async def fetch_reviews(self, project_id: IdLike) -> List[Review]:
        project_id = require_id(project_id, "project ID")
        return [Review(**r) for r in await self._request("GET", f"/reviews/project/{project_id}")]

    async def submit_review(self, project_id: IdLike, rating: int, comment: Optional[str] = None) -> Review:
        project_id = require_id(project_id, "project ID")
        if not 1 <= rating <= 5:
            raise ClientValidationError("Rating must be between 1 and 5")
        body = {"project_id": project_id, "rating": rating, "comment": comment}
        return Review(**await self._request("POST", "/reviews", json=body))

    async def respond_to_review(self, review_id: IdLike, response: str) -> Review:
        review_id = require_id(review_id, "review ID")
        if not response:
            raise ClientValidationError("Response text is required")
        return Review(**await self._request("PUT", f"/reviews/{review_id}/response", json={"response": response}))

    async def delete_review(self, review_id: IdLike) -> str:
        review_id = require_id(review_id, "review ID")
        await self._request("DELETE", f"/reviews/{review_id}")
        return review_id

    async def get_reviews_by_reviewer(self, reviewer_id: IdLike) -> List[Review]:
        reviewer_id = require_id(reviewer_id, "reviewer ID")
        return [Review(**r) for r in await self._request("GET", f"/reviews/user/{reviewer_id}")]

    async def get_freelancer_reviews(self, freelancer_id: IdLike) -> List[Review]:
        freelancer_id = require_id(freelancer_id, "freelancer ID")
        return [Review(**r) for r in await self._request("GET", f"/reviews/freelancer/{freelancer_id}")]

    # --- Users ---

    async def fetch_freelancer_profile(self, freelancer_id: IdLike) -> User:
        freelancer_id = require_id(freelancer_id, "freelancer ID")
        return User(**await self._request("GET", f"/users/freelancer/{freelancer_id}"))

    async def update_freelancer_profile(self, profile_data: Dict[str, Any]) -> User:
        return User(**await self._request("PUT", "/users/freelancer/profile", json=profile_data))

    async def add_experience(self, experience_data: Dict[str, Any]) -> User:
        return User(**await self._request("POST", "/users/freelancer/experience", json=experience_data))

    async def update_experience(self, experience_id: IdLike, experience_data: Dict[str, Any]) -> User:
        experience_id = require_id(experience_id, "experience ID")
        return User(**await self._request("PUT", f"/users/freelancer/experience/{experience_id}", json=experience_data))

    async def delete_experience(self, experience_id: IdLike) -> User:
        experience_id = require_id(experience_id, "experience ID")
        return User(**await self._request("DELETE", f"/users/freelancer/experience/{experience_id}"))

    async def get_earnings(self) -> EarningsSummary:
        return EarningsSummary(**await self._request("GET", "/users/earnings"))

    async def get_skills(self) -> List[str]:
        return await self._request("GET", "/users/skills")

    # --- Messages ---

    async def fetch_messages(self, project_id: IdLike, recipient_id: IdLike) -> List[Message]:
        project_id = require_id(project_id, "project ID")
        recipient_id = require_id(recipient_id, "recipient ID")
        return [Message(**m) for m in await self._request("GET", f"/messages/{project_id}/{recipient_id}")]

    async def send_message(self, sender_id: IdLike, project_id: IdLike, recipient_id: IdLike, text: str) -> Message:
        sender_id = require_id(sender_id, "sender ID")
        project_id = require_id(project_id, "project ID")
        recipient_id = require_id(recipient_id, "recipient ID")
        if not text:
            raise ClientValidationError("Message text is required")

        timestamp = format_timestamp(datetime.now(timezone.utc))
        body = {
            "project_id": project_id,
            "recipient_id": recipient_id,
            "text": text,
            "timestamp": timestamp,
            "metadata_hash": hash_metadata(sender_id, recipient_id, timestamp, project_id),
        }
        return Message(**await self._request("POST", "/messages", json=body))

    async def mark_message_read(self, message_id: IdLike) -> Message:
        message_id = require_id(message_id, "message ID")
        return Message(**await self._request("PUT", f"/messages/{message_id}/read"))
