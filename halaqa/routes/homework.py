"""Homework endpoints. Homework is a green (pending) or gold (completed) highlight."""

from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query

from halaqa.auth import get_permission_context
from halaqa.config import Settings, get_settings
from halaqa.dependencies import get_homework_service
from halaqa.permissions import PermissionContext
from halaqa.repositories.base import validate_pagination
from halaqa.schemas import HomeworkCompleteRequest, HomeworkCreate, HomeworkResponse, Pagination
from halaqa.services.homework_service import HomeworkService

router = APIRouter(prefix="/api/homework", tags=["homework"])


def _homework(row) -> dict:
    return HomeworkResponse.model_validate(row).model_dump(mode="json")


@router.post("", status_code=201)
async def create_homework(
    body: HomeworkCreate,
    ctx: PermissionContext = Depends(get_permission_context),
    service: HomeworkService = Depends(get_homework_service),
):
    homework = await service.create(ctx, body)
    return {"success": True, "homework": _homework(homework)}


@router.get("")
async def list_homework(
    student_id: UUID | None = Query(None),
    include_completed: bool = Query(False),
    page: int = Query(1),
    limit: int | None = Query(None),
    ctx: PermissionContext = Depends(get_permission_context),
    service: HomeworkService = Depends(get_homework_service),
    settings: Settings = Depends(get_settings),
):
    """Pending homework visible to the caller; add include_completed=true for gold too."""
    limit, offset = validate_pagination(
        page, limit or settings.pagination_default_limit, settings.pagination_max_limit
    )
    rows, total = await service.list_visible(
        ctx,
        student_id=student_id,
        include_completed=include_completed,
        limit=limit,
        offset=offset,
    )
    return {
        "success": True,
        "homework": [_homework(row) for row in rows],
        "pagination": Pagination.build(page, limit, total).model_dump(),
    }


@router.get("/{homework_id}")
async def get_homework(
    homework_id: UUID,
    ctx: PermissionContext = Depends(get_permission_context),
    service: HomeworkService = Depends(get_homework_service),
):
    homework = await service.get(ctx, homework_id)
    return {"success": True, "homework": _homework(homework)}


@router.patch("/{homework_id}/complete")
async def complete_homework(
    homework_id: UUID,
    body: HomeworkCompleteRequest | None = Body(None),
    ctx: PermissionContext = Depends(get_permission_context),
    service: HomeworkService = Depends(get_homework_service),
):
    """Mark homework done (green to gold). Any teacher of the school."""
    homework = await service.complete(ctx, homework_id, body)
    return {
        "success": True,
        "homework": _homework(homework),
        "message": "Homework marked as completed",
    }


@router.delete("/{homework_id}")
async def delete_homework(
    homework_id: UUID,
    ctx: PermissionContext = Depends(get_permission_context),
    service: HomeworkService = Depends(get_homework_service),
):
    await service.delete(ctx, homework_id)
    return {"success": True, "deleted": str(homework_id)}
