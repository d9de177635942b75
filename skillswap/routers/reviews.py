import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status

from skillswap.core.dependencies import get_current_user
from skillswap.db.firebase_ops import FirestoreBaseModel, get_firestore_ops_instance
from skillswap.models.schemas import (
    Project, ProjectStatus, Review, ReviewCreate, ReviewResponseCreate, User, utcnow,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["Reviews"])


def _reviews_by(firestore_ops: FirestoreBaseModel, field: str, value: UUID) -> List[Review]:
    reviews = firestore_ops.query(
        collection_name="reviews",
        field=field,
        operator="==",
        value=str(value),
        pydantic_model=Review,
    )
    reviews.sort(key=lambda rev: rev.review_date, reverse=True)
    return reviews


def refresh_average_rating(firestore_ops: FirestoreBaseModel, user_id: UUID) -> None:
    received = _reviews_by(firestore_ops, "reviewee_user_id", user_id)
    average = round(sum(r.rating for r in received) / len(received), 2) if received else None
    if not firestore_ops.update(collection_name="users", document_id=str(user_id), updates={"average_rating": average}):
        # The review itself is stored; the cached average catches up on the next review.
        logger.warning("Failed to update average rating for user %s", user_id)


@router.post("", response_model=Review, status_code=status.HTTP_201_CREATED)
async def submit_review(
    review_in: ReviewCreate,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    target_project = firestore_ops.get(collection_name="projects", document_id=str(review_in.project_id), pydantic_model=Project)
    if not target_project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")

    if target_project.status != ProjectStatus.COMPLETED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Reviews can only be submitted for completed projects.")

    # The reviewee is always the other party of the project.
    if current_user.user_id == target_project.client_user_id:
        reviewee_id = target_project.freelancer_user_id
    elif current_user.user_id == target_project.freelancer_user_id:
        reviewee_id = target_project.client_user_id
    else:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to review this project.")

    existing_reviews = _reviews_by(firestore_ops, "project_id", review_in.project_id)
    if any(rev.reviewer_user_id == current_user.user_id for rev in existing_reviews):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You have already reviewed this project.")

    review = Review(
        project_id=review_in.project_id,
        reviewer_user_id=current_user.user_id,
        reviewee_user_id=reviewee_id,
        rating=review_in.rating,
        comment=review_in.comment,
    )
    saved_id = firestore_ops.save(
        collection_name="reviews",
        data_model=review.model_dump(mode="json"),
        document_id=str(review.review_id),
    )
    if not saved_id:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not save review.")

    refresh_average_rating(firestore_ops, reviewee_id)
    return review


@router.get("/project/{project_id}", response_model=List[Review])
async def get_reviews_for_project(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    if not firestore_ops.get(collection_name="projects", document_id=str(project_id)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return _reviews_by(firestore_ops, "project_id", project_id)


@router.get("/user/{user_id}", response_model=List[Review])
async def get_reviews_by_reviewer(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    """Reviews written by the given user."""
    return _reviews_by(firestore_ops, "reviewer_user_id", user_id)


@router.get("/freelancer/{freelancer_id}", response_model=List[Review])
async def get_freelancer_reviews(
    freelancer_id: UUID,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    """Reviews received by the given freelancer."""
    if not firestore_ops.get(collection_name="users", document_id=str(freelancer_id)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Freelancer not found")
    return _reviews_by(firestore_ops, "reviewee_user_id", freelancer_id)


@router.put("/{review_id}/response", response_model=Review)
async def respond_to_review(
    review_id: UUID,
    response_in: ReviewResponseCreate,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    review = firestore_ops.get(collection_name="reviews", document_id=str(review_id), pydantic_model=Review)
    if not review:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    if review.reviewee_user_id != current_user.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the reviewed user can respond to this review")
    if review.response:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This review already has a response")

    responded = review.model_copy(update={"response": response_in.response, "response_date": utcnow()})
    if not firestore_ops.update(
        collection_name="reviews",
        document_id=str(review_id),
        updates={"response": responded.response, "response_date": responded.response_date.isoformat()},
    ):
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not save response")
    return responded


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    review_id: UUID,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    review = firestore_ops.get(collection_name="reviews", document_id=str(review_id), pydantic_model=Review)
    if not review:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    if review.reviewer_user_id != current_user.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to delete this review")

    if not firestore_ops.delete(collection_name="reviews", document_id=str(review_id)):
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not delete review")
    refresh_average_rating(firestore_ops, review.reviewee_user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
