"""Notification endpoints: list, count and mark-read for the current user."""

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from halaqa.auth import get_current_user
from halaqa.config import Settings, get_settings
from halaqa.database import get_db
from halaqa.exceptions import AuthorizationError, NotFoundError
from halaqa.models import Profile
from halaqa.repositories.base import validate_pagination
from halaqa.repositories.notifications import NotificationRepository
from halaqa.schemas import NotificationResponse, NotificationUnreadCountResponse, Pagination

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _notification(row) -> dict:
    return NotificationResponse.model_validate(row).model_dump(mode="json")


@router.get("")
async def list_notifications(
    unread_only: bool = Query(False),
    page: int = Query(1),
    limit: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
    user: Profile = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
):
    """List notifications for the current user, newest first."""
    limit, offset = validate_pagination(
        page, limit or settings.pagination_default_limit, settings.pagination_max_limit
    )
    repo = NotificationRepository(db)
    rows, total = await repo.list_for_user(
        user.id, unread_only=unread_only, limit=limit, offset=offset
    )
    unread_count = await repo.unread_count(user.id)
    return {
        "success": True,
        "notifications": [_notification(row) for row in rows],
        "unread_count": unread_count,
        "pagination": Pagination.build(page, limit, total).model_dump(),
    }


@router.get("/unread-count", response_model=NotificationUnreadCountResponse)
async def get_unread_count(
    db: AsyncSession = Depends(get_db),
    user: Profile = Depends(get_current_user),
):
    count = await NotificationRepository(db).unread_count(user.id)
    return NotificationUnreadCountResponse(unread_count=count)


@router.post("/{notification_id}/read")
async def mark_notification_read(
    notification_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: Profile = Depends(get_current_user),
):
    """Mark a single notification as read."""
    notif = await NotificationRepository(db).get(notification_id)
    if notif is None:
        raise NotFoundError("notification", notification_id)
    if notif.user_id != user.id:
        raise AuthorizationError("read", "notification")

    if notif.read_at is None:
        notif.read_at = datetime.now(timezone.utc)
        await db.commit()
        await db.refresh(notif)

    return {"success": True, "notification": _notification(notif)}


@router.post("/read-all")
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    user: Profile = Depends(get_current_user),
):
    """Mark every unread notification of the current user as read."""
    updated = await NotificationRepository(db).mark_all_read(user.id)
    await db.commit()
    return {"success": True, "updated": updated}
