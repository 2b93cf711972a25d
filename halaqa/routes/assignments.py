"""Assignment endpoints: create, list, detail, edit, delete and lifecycle transitions."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query

from halaqa.auth import get_permission_context
from halaqa.config import Settings, get_settings
from halaqa.dependencies import get_assignment_service
from halaqa.permissions import PermissionContext
from halaqa.repositories.base import validate_pagination
from halaqa.schemas import (
    AssignmentCreate,
    AssignmentDetailResponse,
    AssignmentEventResponse,
    AssignmentResponse,
    AssignmentSortField,
    AssignmentTransitionRequest,
    AssignmentUpdate,
    Pagination,
    ReopenAction,
    ReopenRequest,
    SortOrder,
    SubmissionResponse,
    SubmitAction,
    SubmitRequest,
)
from halaqa.services.assignment_service import AssignmentService

router = APIRouter(prefix="/api/assignments", tags=["assignments"])


def _assignment(row) -> dict:
    return AssignmentResponse.model_validate(row).model_dump(mode="json")


@router.post("", status_code=201)
async def create_assignment(
    body: AssignmentCreate,
    ctx: PermissionContext = Depends(get_permission_context),
    service: AssignmentService = Depends(get_assignment_service),
):
    """Create an assignment for a student. Teachers, owners and admins only."""
    assignment = await service.create(ctx, body)
    return {"success": True, "assignment": _assignment(assignment)}


@router.get("")
async def list_assignments(
    student_id: UUID | None = Query(None),
    teacher_id: UUID | None = Query(None),
    status: str | None = Query(None),
    late_only: bool = Query(False),
    due_before: datetime | None = Query(None),
    due_after: datetime | None = Query(None),
    sort_by: AssignmentSortField = Query("due_at"),
    sort_order: SortOrder = Query("asc"),
    page: int = Query(1),
    limit: int | None = Query(None),
    ctx: PermissionContext = Depends(get_permission_context),
    service: AssignmentService = Depends(get_assignment_service),
    settings: Settings = Depends(get_settings),
):
    """List the assignments visible to the caller, soonest due first by default."""
    limit, offset = validate_pagination(
        page, limit or settings.pagination_default_limit, settings.pagination_max_limit
    )
    rows, total = await service.list_visible(
        ctx,
        student_id=student_id,
        teacher_id=teacher_id,
        status=status,
        late_only=late_only,
        due_before=due_before,
        due_after=due_after,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )
    return {
        "success": True,
        "assignments": [_assignment(row) for row in rows],
        "pagination": Pagination.build(page, limit, total).model_dump(),
    }


@router.get("/{assignment_id}")
async def get_assignment(
    assignment_id: UUID,
    ctx: PermissionContext = Depends(get_permission_context),
    service: AssignmentService = Depends(get_assignment_service),
):
    """Assignment detail with submissions and event history."""
    assignment, submissions, events = await service.get_detail(ctx, assignment_id)
    detail = AssignmentDetailResponse(
        **AssignmentResponse.model_validate(assignment).model_dump(),
        submissions=[SubmissionResponse.model_validate(s) for s in submissions],
        events=[AssignmentEventResponse.model_validate(e) for e in events],
    )
    return {"success": True, "assignment": detail.model_dump(mode="json")}


@router.patch("/{assignment_id}")
async def update_assignment(
    assignment_id: UUID,
    body: AssignmentUpdate,
    ctx: PermissionContext = Depends(get_permission_context),
    service: AssignmentService = Depends(get_assignment_service),
):
    """Edit title, description or due date before the student submits."""
    assignment = await service.update(ctx, assignment_id, body)
    return {"success": True, "assignment": _assignment(assignment)}


@router.delete("/{assignment_id}")
async def delete_assignment(
    assignment_id: UUID,
    ctx: PermissionContext = Depends(get_permission_context),
    service: AssignmentService = Depends(get_assignment_service),
):
    """Delete an assignment that carries no student work."""
    await service.delete(ctx, assignment_id)
    return {"success": True, "deleted": str(assignment_id)}


@router.post("/{assignment_id}/transition")
async def transition_assignment(
    assignment_id: UUID,
    body: AssignmentTransitionRequest = Body(...),
    ctx: PermissionContext = Depends(get_permission_context),
    service: AssignmentService = Depends(get_assignment_service),
):
    """Apply a lifecycle action: view, submit, review, complete or reopen."""
    assignment = await service.transition(ctx, assignment_id, body)
    return {"success": True, "assignment": _assignment(assignment)}


@router.post("/{assignment_id}/submit")
async def submit_assignment(
    assignment_id: UUID,
    body: SubmitRequest,
    ctx: PermissionContext = Depends(get_permission_context),
    service: AssignmentService = Depends(get_assignment_service),
):
    """Shortcut for the submit action."""
    request = SubmitAction(action="submit", **body.model_dump())
    assignment = await service.transition(ctx, assignment_id, request)
    return {"success": True, "assignment": _assignment(assignment)}


@router.post("/{assignment_id}/reopen")
async def reopen_assignment(
    assignment_id: UUID,
    body: ReopenRequest,
    ctx: PermissionContext = Depends(get_permission_context),
    service: AssignmentService = Depends(get_assignment_service),
):
    """Shortcut for the reopen action; the reopen cap applies here too."""
    request = ReopenAction(action="reopen", reason=body.reason)
    assignment = await service.transition(ctx, assignment_id, request)
    return {"success": True, "assignment": _assignment(assignment)}
