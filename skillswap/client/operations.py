"""
One coroutine per UI operation. Each runs its request through Store.run so
the matching slice records loading, success or the error message.
"""

from typing import Any, Dict, Optional

from skillswap.client.actions import Operation
from skillswap.client.api import IdLike, MarketplaceApi
from skillswap.client.connection import MessagingConnection
from skillswap.client.store import Store


# --- projects ---

async def get_projects(store: Store, api: MarketplaceApi):
    return await store.run(Operation.GET_PROJECTS, api.get_projects)


async def get_my_projects(store: Store, api: MarketplaceApi):
    return await store.run(Operation.GET_MY_PROJECTS, api.get_my_projects)


async def get_project(store: Store, api: MarketplaceApi, project_id: IdLike):
    return await store.run(Operation.GET_PROJECT, lambda: api.get_project(project_id), arg=project_id)


async def create_project(store: Store, api: MarketplaceApi, project_data: Dict[str, Any]):
    return await store.run(Operation.CREATE_PROJECT, lambda: api.create_project(project_data))


async def update_project(store: Store, api: MarketplaceApi, project_id: IdLike, changes: Dict[str, Any]):
    return await store.run(Operation.UPDATE_PROJECT, lambda: api.update_project(project_id, changes), arg=project_id)


async def update_project_status(store: Store, api: MarketplaceApi, project_id: IdLike, status: str):
    return await store.run(
        Operation.UPDATE_PROJECT_STATUS, lambda: api.update_project_status(project_id, status), arg=project_id
    )


async def delete_project(store: Store, api: MarketplaceApi, project_id: IdLike):
    return await store.run(Operation.DELETE_PROJECT, lambda: api.delete_project(project_id), arg=project_id)


async def complete_project(store: Store, api: MarketplaceApi, project_id: IdLike):
    return await store.run(Operation.COMPLETE_PROJECT, lambda: api.complete_project(project_id), arg=project_id)


async def add_milestone(store: Store, api: MarketplaceApi, project_id: IdLike, milestone_data: Dict[str, Any]):
    return await store.run(
        Operation.ADD_MILESTONE, lambda: api.add_milestone(project_id, milestone_data), arg=project_id
    )


async def update_milestone_status(store: Store, api: MarketplaceApi, project_id: IdLike, milestone_id: IdLike, status: str):
    return await store.run(
        Operation.UPDATE_MILESTONE_STATUS,
        lambda: api.update_milestone_status(project_id, milestone_id, status),
        arg=project_id,
    )


async def submit_bid(store: Store, api: MarketplaceApi, project_id: IdLike, amount: float, message: str,
                     estimated_completion_time: Optional[str] = None):
    return await store.run(
        Operation.SUBMIT_BID,
        lambda: api.submit_bid(project_id, amount, message, estimated_completion_time),
        arg=project_id,
    )


async def accept_bid(store: Store, api: MarketplaceApi, project_id: IdLike, bid_id: IdLike):
    return await store.run(Operation.ACCEPT_BID, lambda: api.accept_bid(project_id, bid_id), arg=project_id)


async def reject_bid(store: Store, api: MarketplaceApi, project_id: IdLike, bid_id: IdLike):
    return await store.run(Operation.REJECT_BID, lambda: api.reject_bid(project_id, bid_id), arg=project_id)


async def send_counter_offer(store: Store, api: MarketplaceApi, project_id: IdLike, bid_id: IdLike, amount: float,
                             message: Optional[str] = None):
    return await store.run(
        Operation.SEND_COUNTER_OFFER,
        lambda: api.send_counter_offer(project_id, bid_id, amount, message),
        arg=project_id,
    )


# --- reviews ---

async def fetch_reviews(store: Store, api: MarketplaceApi, project_id: IdLike):
    return await store.run(Operation.FETCH_REVIEWS, lambda: api.fetch_reviews(project_id), arg=project_id)


async def submit_review(store: Store, api: MarketplaceApi, project_id: IdLike, rating: int, comment: Optional[str] = None):
    return await store.run(Operation.SUBMIT_REVIEW, lambda: api.submit_review(project_id, rating, comment), arg=project_id)


async def respond_to_review(store: Store, api: MarketplaceApi, review_id: IdLike, response: str):
    return await store.run(Operation.RESPOND_TO_REVIEW, lambda: api.respond_to_review(review_id, response), arg=review_id)


async def delete_review(store: Store, api: MarketplaceApi, review_id: IdLike):
    return await store.run(Operation.DELETE_REVIEW, lambda: api.delete_review(review_id), arg=review_id)


async def get_reviews_by_reviewer(store: Store, api: MarketplaceApi, reviewer_id: IdLike):
    return await store.run(
        Operation.GET_REVIEWS_BY_REVIEWER, lambda: api.get_reviews_by_reviewer(reviewer_id), arg=reviewer_id
    )


async def get_freelancer_reviews(store: Store, api: MarketplaceApi, freelancer_id: IdLike):
    return await store.run(
        Operation.GET_FREELANCER_REVIEWS, lambda: api.get_freelancer_reviews(freelancer_id), arg=freelancer_id
    )


# --- users ---

async def fetch_freelancer_profile(store: Store, api: MarketplaceApi, freelancer_id: IdLike):
    return await store.run(
        Operation.FETCH_FREELANCER_PROFILE, lambda: api.fetch_freelancer_profile(freelancer_id), arg=freelancer_id
    )


async def update_freelancer_profile(store: Store, api: MarketplaceApi, profile_data: Dict[str, Any]):
    return await store.run(Operation.UPDATE_FREELANCER_PROFILE, lambda: api.update_freelancer_profile(profile_data))


async def add_experience(store: Store, api: MarketplaceApi, experience_data: Dict[str, Any]):
    return await store.run(Operation.ADD_EXPERIENCE, lambda: api.add_experience(experience_data))


async def update_experience(store: Store, api: MarketplaceApi, experience_id: IdLike, experience_data: Dict[str, Any]):
    return await store.run(
        Operation.UPDATE_EXPERIENCE, lambda: api.update_experience(experience_id, experience_data), arg=experience_id
    )


async def delete_experience(store: Store, api: MarketplaceApi, experience_id: IdLike):
    return await store.run(Operation.DELETE_EXPERIENCE, lambda: api.delete_experience(experience_id), arg=experience_id)


async def get_earnings(store: Store, api: MarketplaceApi):
    return await store.run(Operation.GET_EARNINGS, api.get_earnings)


async def get_skills(store: Store, api: MarketplaceApi):
    return await store.run(Operation.GET_SKILLS, api.get_skills)


# --- messages ---

async def fetch_messages(store: Store, api: MarketplaceApi, project_id: IdLike, recipient_id: IdLike):
    return await store.run(Operation.FETCH_MESSAGES, lambda: api.fetch_messages(project_id, recipient_id), arg=project_id)


async def send_message(store: Store, connection: MessagingConnection, project_id: IdLike, recipient_id: IdLike, text: str):
    return await store.run(
        Operation.SEND_MESSAGE, lambda: connection.send_message(project_id, recipient_id, text), arg=project_id
    )


async def mark_message_as_read(connection: MessagingConnection, message_id: IdLike) -> None:
    """Fire-and-forget; the store is updated when the server echoes messageRead."""
    await connection.mark_message_as_read(message_id)
