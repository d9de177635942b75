import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from skillswap.core.dependencies import get_current_user
from skillswap.db.firebase_ops import FirestoreBaseModel, get_firestore_ops_instance
from skillswap.lifecycle import transitions
from skillswap.models.schemas import Bid, BidCreate, CounterOfferCreate, Project, User, UserRole
from skillswap.routers.projects import get_owned_project, get_project_or_404, transition_or_500

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects/{project_id}/bids", tags=["Bids"])


@router.post("", response_model=Bid, status_code=status.HTTP_201_CREATED)
async def submit_bid(
    project_id: UUID,
    bid_in: BidCreate,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    if current_user.role != UserRole.FREELANCER:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only freelancers can submit bids")
    get_project_or_404(firestore_ops, project_id)

    _, bid = transition_or_500(
        firestore_ops, project_id,
        lambda p: transitions.submit_bid(
            p, current_user.user_id, bid_in.amount, bid_in.message, bid_in.estimated_completion_time
        ),
    )
    logger.info("Bid %s submitted on project %s by %s", bid.bid_id, project_id, current_user.user_id)
    return bid


@router.get("", response_model=List[Bid])
async def list_bids(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    """The owner sees every bid; a freelancer sees only their own."""
    project = get_project_or_404(firestore_ops, project_id)
    if project.client_user_id == current_user.user_id:
        return project.bids
    return [bid for bid in project.bids if bid.freelancer_user_id == current_user.user_id]


@router.put("/{bid_id}/accept", response_model=Project)
async def accept_bid(
    project_id: UUID,
    bid_id: UUID,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    get_owned_project(firestore_ops, project_id, current_user, "accept bids for")
    project, _ = transition_or_500(firestore_ops, project_id, lambda p: transitions.accept_bid(p, bid_id))
    logger.info("Bid %s accepted on project %s", bid_id, project_id)
    return project


@router.put("/{bid_id}/reject", response_model=Project)
async def reject_bid(
    project_id: UUID,
    bid_id: UUID,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    get_owned_project(firestore_ops, project_id, current_user, "reject bids for")
    project, _ = transition_or_500(firestore_ops, project_id, lambda p: transitions.reject_bid(p, bid_id))
    return project


@router.put("/{bid_id}/counter", response_model=Project)
async def send_counter_offer(
    project_id: UUID,
    bid_id: UUID,
    counter_in: CounterOfferCreate,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    get_owned_project(firestore_ops, project_id, current_user, "counter bids for")
    project, _ = transition_or_500(
        firestore_ops, project_id,
        lambda p: transitions.send_counter_offer(p, bid_id, counter_in.amount, counter_in.message),
    )
    return project
