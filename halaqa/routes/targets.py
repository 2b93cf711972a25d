"""Target endpoints: goals, their progress/status and their milestones."""

from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query

from halaqa.auth import get_permission_context
from halaqa.config import Settings, get_settings
from halaqa.dependencies import get_target_service
from halaqa.permissions import PermissionContext
from halaqa.repositories.base import validate_pagination
from halaqa.schemas import (
    MilestoneCompleteRequest,
    MilestoneCreate,
    MilestoneResponse,
    Pagination,
    TargetCreate,
    TargetDetailResponse,
    TargetProgressRequest,
    TargetResponse,
)
from halaqa.services.target_service import TargetService

router = APIRouter(prefix="/api/targets", tags=["targets"])


def _target(row, milestones=None) -> dict:
    if milestones is None:
        return TargetResponse.model_validate(row).model_dump(mode="json")
    detail = TargetDetailResponse(
        **TargetResponse.model_validate(row).model_dump(),
        milestones=[MilestoneResponse.model_validate(m) for m in milestones],
    )
    return detail.model_dump(mode="json")


def _milestone(row) -> dict:
    return MilestoneResponse.model_validate(row).model_dump(mode="json")


@router.post("", status_code=201)
async def create_target(
    body: TargetCreate,
    ctx: PermissionContext = Depends(get_permission_context),
    service: TargetService = Depends(get_target_service),
):
    """Create a target, optionally with up to 20 milestones."""
    target, milestones = await service.create(ctx, body)
    return {"success": True, "target": _target(target, milestones)}


@router.get("")
async def list_targets(
    status: str | None = Query(None),
    type: str | None = Query(None),
    page: int = Query(1),
    limit: int | None = Query(None),
    ctx: PermissionContext = Depends(get_permission_context),
    service: TargetService = Depends(get_target_service),
    settings: Settings = Depends(get_settings),
):
    limit, offset = validate_pagination(
        page, limit or settings.pagination_default_limit, settings.pagination_max_limit
    )
    rows, total = await service.list_visible(
        ctx, status=status, target_type=type, limit=limit, offset=offset
    )
    return {
        "success": True,
        "targets": [_target(row) for row in rows],
        "pagination": Pagination.build(page, limit, total).model_dump(),
    }


@router.get("/{target_id}")
async def get_target(
    target_id: UUID,
    ctx: PermissionContext = Depends(get_permission_context),
    service: TargetService = Depends(get_target_service),
):
    """Target detail with milestones ordered by order_index."""
    target, milestones = await service.get_detail(ctx, target_id)
    return {"success": True, "target": _target(target, milestones)}


@router.patch("/{target_id}/progress")
async def update_target_progress(
    target_id: UUID,
    body: TargetProgressRequest = Body(...),
    ctx: PermissionContext = Depends(get_permission_context),
    service: TargetService = Depends(get_target_service),
):
    """set_progress (clamped to 0-100), complete or cancel (with a reason)."""
    target = await service.update_progress(ctx, target_id, body)
    return {"success": True, "target": _target(target)}


@router.post("/{target_id}/milestones", status_code=201)
async def add_milestone(
    target_id: UUID,
    body: MilestoneCreate,
    ctx: PermissionContext = Depends(get_permission_context),
    service: TargetService = Depends(get_target_service),
):
    milestone = await service.add_milestone(ctx, target_id, body)
    return {"success": True, "milestone": _milestone(milestone)}


@router.patch("/milestones/{milestone_id}/complete")
async def complete_milestone(
    milestone_id: UUID,
    body: MilestoneCompleteRequest | None = Body(None),
    ctx: PermissionContext = Depends(get_permission_context),
    service: TargetService = Depends(get_target_service),
):
    """Complete a milestone; the target's progress becomes the completed share."""
    milestone, target = await service.complete_milestone(ctx, milestone_id, body)
    return {"success": True, "milestone": _milestone(milestone), "target": _target(target)}


@router.delete("/{target_id}")
async def delete_target(
    target_id: UUID,
    ctx: PermissionContext = Depends(get_permission_context),
    service: TargetService = Depends(get_target_service),
):
    await service.delete(ctx, target_id)
    return {"success": True, "deleted": str(target_id)}
