import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status

from skillswap.core.dependencies import get_current_user
from skillswap.db.firebase_ops import FirestoreBaseModel, get_firestore_ops_instance
from skillswap.lifecycle import transitions
from skillswap.lifecycle.earnings import credit_earning
from skillswap.lifecycle.service import apply_project_transition
from skillswap.models.schemas import (
    EarningEntry, Milestone, MilestoneCreate, MilestoneStatusUpdate, Project,
    ProjectCompletion, ProjectCreate, ProjectStatus, ProjectStatusUpdate, ProjectUpdate,
    User, UserRole,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["Projects"])


def get_project_or_404(firestore_ops: FirestoreBaseModel, project_id: UUID) -> Project:
    project = firestore_ops.get(collection_name="projects", document_id=str(project_id), pydantic_model=Project)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project


def get_owned_project(firestore_ops: FirestoreBaseModel, project_id: UUID, user: User, action: str) -> Project:
    project = get_project_or_404(firestore_ops, project_id)
    if project.client_user_id != user.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Not authorized to {action} this project")
    return project


def transition_or_500(firestore_ops: FirestoreBaseModel, project_id: UUID, transition):
    project, extra = apply_project_transition(firestore_ops, project_id, transition)
    if project is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not update project")
    return project, extra


@router.post("", response_model=Project, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_in: ProjectCreate,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    if current_user.role != UserRole.CLIENT:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only clients can create projects")

    project = Project(client_user_id=current_user.user_id, **project_in.model_dump())
    saved_id = firestore_ops.save(
        collection_name="projects",
        data_model=project.model_dump(mode="json"),
        document_id=str(project.project_id),
    )
    if not saved_id:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not create project")

    logger.info("Project %s created by %s", project.project_id, current_user.user_id)
    return project


@router.get("", response_model=List[Project])
async def list_open_projects(
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    open_projects = firestore_ops.query(
        collection_name="projects",
        field="status",
        operator="==",
        value=ProjectStatus.OPEN.value,
        pydantic_model=Project,
    )
    open_projects.sort(key=lambda p: p.creation_date, reverse=True)
    return open_projects


@router.get("/mine", response_model=List[Project])
async def list_my_projects(
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    """Projects the user owns (clients) or is assigned to (freelancers)."""
    field = "client_user_id" if current_user.role == UserRole.CLIENT else "freelancer_user_id"
    projects = firestore_ops.query(
        collection_name="projects",
        field=field,
        operator="==",
        value=str(current_user.user_id),
        pydantic_model=Project,
    )
    projects.sort(key=lambda p: p.last_updated_date, reverse=True)
    return projects


@router.get("/{project_id}", response_model=Project)
async def get_project_details(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    return get_project_or_404(firestore_ops, project_id)


@router.put("/{project_id}", response_model=Project)
async def update_project(
    project_id: UUID,
    project_update: ProjectUpdate,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    get_owned_project(firestore_ops, project_id, current_user, "update")
    if not project_update.model_dump(exclude_unset=True):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid fields to update")

    project, _ = transition_or_500(
        firestore_ops, project_id, lambda p: transitions.update_details(p, project_update)
    )
    return project


@router.put("/{project_id}/status", response_model=Project)
async def update_project_status(
    project_id: UUID,
    status_update: ProjectStatusUpdate,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    get_owned_project(firestore_ops, project_id, current_user, "update the status of")
    project, _ = transition_or_500(
        firestore_ops, project_id, lambda p: transitions.change_status(p, status_update.status)
    )
    logger.info("Project %s moved to %s", project_id, project.status.value)
    return project


@router.put("/{project_id}/complete", response_model=ProjectCompletion)
async def complete_project(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    get_owned_project(firestore_ops, project_id, current_user, "complete")
    project, accepted_bid = transition_or_500(firestore_ops, project_id, transitions.complete_project)

    entry = EarningEntry(
        project_id=project.project_id,
        project_title=project.title,
        amount=accepted_bid.amount,
        date=project.completed_at,
    )
    earnings = credit_earning(firestore_ops, accepted_bid.freelancer_user_id, entry)
    if earnings is None:
        # The project is already completed; the ledger update is reported, not rolled back.
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Project completed, but failed to update freelancer earnings. Please check system logs.",
        )

    logger.info("Project %s completed; credited %.2f to %s", project_id, entry.amount, accepted_bid.freelancer_user_id)
    return ProjectCompletion(project=project, earnings=earnings)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    project = get_owned_project(firestore_ops, project_id, current_user, "delete")
    if project.status == ProjectStatus.IN_PROGRESS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cancel the project before deleting it")

    if not firestore_ops.delete(collection_name="projects", document_id=str(project_id)):
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not delete project")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{project_id}/milestones", response_model=Milestone, status_code=status.HTTP_201_CREATED)
async def add_milestone(
    project_id: UUID,
    milestone_in: MilestoneCreate,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    get_owned_project(firestore_ops, project_id, current_user, "add milestones to")
    _, milestone = transition_or_500(
        firestore_ops, project_id, lambda p: transitions.add_milestone(p, milestone_in)
    )
    return milestone


@router.put("/{project_id}/milestones/{milestone_id}/status", response_model=Project)
async def update_milestone_status(
    project_id: UUID,
    milestone_id: UUID,
    status_update: MilestoneStatusUpdate,
    current_user: User = Depends(get_current_user),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
):
    project = get_project_or_404(firestore_ops, project_id)
    if current_user.user_id not in (project.client_user_id, project.freelancer_user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to update milestones for this project")

    updated, _ = transition_or_500(
        firestore_ops, project_id,
        lambda p: transitions.update_milestone_status(p, milestone_id, status_update.status),
    )
    return updated
