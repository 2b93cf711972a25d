"""Notification service: insert an inbox row, then publish it on Redis.

Notifications are fire-and-forget. They are sent after the transition that
caused them has committed, and any failure here is logged and swallowed.
"""

import enum
import json
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from halaqa.logging_config import get_logger
from halaqa.models import Notification
from halaqa.repositories.notifications import NotificationRepository
from halaqa.repositories.people import PeopleRepository

logger = get_logger(__name__)


class NotificationType(str, enum.Enum):
    assignment_created = "assignment_created"
    assignment_submitted = "assignment_submitted"
    assignment_reviewed = "assignment_reviewed"
    assignment_completed = "assignment_completed"
    assignment_reopened = "assignment_reopened"
    homework_assigned = "homework_assigned"
    homework_completed = "homework_completed"
    target_created = "target_created"
    target_completed = "target_completed"
    target_milestone_completed = "target_milestone_completed"


def channel_for(user_id: UUID) -> str:
    return f"notifications:{user_id}"


class Notifier:
    """Writes notifications for teachers and students by their role ids."""

    def __init__(self, session, redis=None):
        self.session = session
        self.redis = redis
        self.notifications = NotificationRepository(session)
        self.people = PeopleRepository(session)

    async def notify(
        self,
        school_id: UUID,
        user_id: UUID,
        notification_type: NotificationType,
        payload: dict[str, Any] | None = None,
        channel: str = "in_app",
    ) -> Notification | None:
        """Insert and commit one notification, then publish it. Never raises."""
        payload = payload or {}
        try:
            notif = await self.notifications.add(
                Notification(
                    school_id=school_id,
                    user_id=user_id,
                    channel=channel,
                    type=NotificationType(notification_type).value,
                    payload=payload,
                    sent_at=datetime.now(timezone.utc),
                )
            )
            await self.session.commit()
        except Exception as e:
            logger.warning(
                "notification_insert_failed",
                user_id=str(user_id),
                notification_type=str(notification_type),
                error=str(e),
            )
            try:
                await self.session.rollback()
            except Exception as rollback_error:
                logger.warning("notification_rollback_failed", error=str(rollback_error))
            return None

        if self.redis is not None:
            message = json.dumps(
                {
                    "id": str(notif.id),
                    "type": notif.type,
                    "channel": channel,
                    "payload": payload,
                },
                default=str,
            )
            try:
                await self.redis.publish(channel_for(user_id), message)
            except Exception as e:
                logger.warning("redis_publish_failed", channel=channel_for(user_id), error=str(e))

        logger.info(
            "notification_sent",
            user_id=str(user_id),
            notification_type=notif.type,
        )
        return notif

    async def notify_student(
        self,
        school_id: UUID,
        student_id: UUID,
        notification_type: NotificationType,
        payload: dict[str, Any] | None = None,
    ) -> Notification | None:
        try:
            user_id = await self.people.user_id_for_student(student_id)
        except Exception as e:
            logger.warning("notification_recipient_lookup_failed", student_id=str(student_id), error=str(e))
            return None
        if user_id is None:
            logger.warning("notification_recipient_missing", student_id=str(student_id))
            return None
        return await self.notify(school_id, user_id, notification_type, payload)

    async def notify_teacher(
        self,
        school_id: UUID,
        teacher_id: UUID,
        notification_type: NotificationType,
        payload: dict[str, Any] | None = None,
    ) -> Notification | None:
        try:
            user_id = await self.people.user_id_for_teacher(teacher_id)
        except Exception as e:
            logger.warning("notification_recipient_lookup_failed", teacher_id=str(teacher_id), error=str(e))
            return None
        if user_id is None:
            logger.warning("notification_recipient_missing", teacher_id=str(teacher_id))
            return None
        return await self.notify(school_id, user_id, notification_type, payload)
