import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from skillswap.core.dependencies import get_current_user
from skillswap.db.firebase_ops import FirestoreBaseModel, get_firestore_ops_instance
from skillswap.lifecycle.earnings import summarize_earnings
from skillswap.models.schemas import (
    EarningsSummary, Experience, ExperienceCreate, FreelancerProfileUpdate, User, UserRole,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


def require_freelancer(user: User, detail: str) -> None:
    if user.role != UserRole.FREELANCER:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def save_user_or_500(firestore_ops: FirestoreBaseModel, user: User, fields: set) -> User:
    """Write only `fields`; earnings live on the same document and change concurrently."""
    if not firestore_ops.update(
        collection_name="users",
        document_id=str(user.user_id),
        updates=user.model_dump(mode="json", include=fields),
    ):
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not update profile")
    return user


@router.get("/earnings", response_model=EarningsSummary)
async def get_earnings(current_user: User = Depends(get_current_user)):
    require_freelancer(current_user, "Only freelancers can access earnings data")
    return summarize_earnings(current_user.earnings)


@router.get("/skills", response_model=List[str])
async def get_skills(current_user: User = Depends(get_current_user)):
    return current_user.skills


@router.get("/freelancer/{freelancer_id}", response_model=User)
async def get_freelancer_profile(
    freelancer_id: UUID,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    freelancer = firestore_ops.get(collection_name="users", document_id=str(freelancer_id), pydantic_model=User)
    if not freelancer or freelancer.role != UserRole.FREELANCER:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Freelancer not found")
    return freelancer


@router.put("/freelancer/profile", response_model=User)
async def update_freelancer_profile(
    profile_in: FreelancerProfileUpdate,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    require_freelancer(current_user, "Only freelancers have a freelancer profile")
    changes = profile_in.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid fields to update")
    return save_user_or_500(firestore_ops, current_user.model_copy(update=changes), set(changes))


@router.post("/freelancer/experience", response_model=User, status_code=status.HTTP_201_CREATED)
async def add_experience(
    experience_in: ExperienceCreate,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    require_freelancer(current_user, "Only freelancers can add experience")
    experience = Experience(**experience_in.model_dump())
    updated = current_user.model_copy(update={"experience": [*current_user.experience, experience]})
    return save_user_or_500(firestore_ops, updated, {"experience"})


@router.put("/freelancer/experience/{experience_id}", response_model=User)
async def update_experience(
    experience_id: UUID,
    experience_in: ExperienceCreate,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    require_freelancer(current_user, "Only freelancers can update experience")
    if not any(e.experience_id == experience_id for e in current_user.experience):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Experience not found")

    replacement = Experience(experience_id=experience_id, **experience_in.model_dump())
    experience = [replacement if e.experience_id == experience_id else e for e in current_user.experience]
    return save_user_or_500(firestore_ops, current_user.model_copy(update={"experience": experience}), {"experience"})


@router.delete("/freelancer/experience/{experience_id}", response_model=User)
async def delete_experience(
    experience_id: UUID,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    require_freelancer(current_user, "Only freelancers can delete experience")
    remaining = [e for e in current_user.experience if e.experience_id != experience_id]
    if len(remaining) == len(current_user.experience):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Experience not found")
    return save_user_or_500(firestore_ops, current_user.model_copy(update={"experience": remaining}), {"experience"})


@router.get("/{user_id}", response_model=User)
async def get_user_profile(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    user_data = firestore_ops.get(collection_name="users", document_id=str(user_id), pydantic_model=User)
    if not user_data:
        raise HTTPException(status_code=404, detail="User not found")
    return user_data
