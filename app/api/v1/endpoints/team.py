"""Team role assignments (owner only)."""
from uuid import UUID

from fastapi import APIRouter, status

from app.api.deps import DB, CurrentActor
from app.schemas.auth import (
    RoleAssignmentCreate,
    RoleAssignmentResponse,
    RoleAssignmentListResponse,
)
from app.schemas.base import SuccessResponse
from app.services.auth_service import AuthService


router = APIRouter(prefix="/team", tags=["Team"])


@router.get("", response_model=RoleAssignmentListResponse)
async def list_team(actor: CurrentActor, db: DB):
    assignments = await AuthService(db).list_assignments(actor)
    return RoleAssignmentListResponse(
        items=[RoleAssignmentResponse.model_validate(a) for a in assignments],
        total=len(assignments),
    )


@router.post("", response_model=RoleAssignmentResponse, status_code=status.HTTP_201_CREATED)
async def add_team_member(data: RoleAssignmentCreate, actor: CurrentActor, db: DB):
    assignment = await AuthService(db).assign_role(
        actor,
        email=data.email,
        name=data.name,
        role=data.role,
        supplier_id=data.supplier_id,
    )
    return RoleAssignmentResponse.model_validate(assignment)


@router.delete("/{assignment_id}", response_model=SuccessResponse)
async def remove_team_member(assignment_id: UUID, actor: CurrentActor, db: DB):
    await AuthService(db).remove_assignment(actor, assignment_id)
    return SuccessResponse(message="Team member removed")
