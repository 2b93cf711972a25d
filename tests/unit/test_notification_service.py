"""Tests for the fire-and-forget Notifier."""

import json
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from halaqa.services.notification_service import NotificationType, Notifier, channel_for


def _lookup_result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


class TestChannel:
    def test_channel_per_user(self):
        user_id = uuid4()
        assert channel_for(user_id) == f"notifications:{user_id}"


class TestNotify:
    @pytest.mark.asyncio
    async def test_inserts_commits_and_publishes(self, mock_session):
        redis = AsyncMock()
        notifier = Notifier(mock_session, redis)
        user_id = uuid4()

        notif = await notifier.notify(
            uuid4(), user_id, NotificationType.homework_assigned, {"homework_id": "h1"}
        )

        assert notif is not None
        assert notif.type == "homework_assigned"
        mock_session.add.assert_called_once()
        mock_session.commit.assert_awaited_once()
        redis.publish.assert_awaited_once()
        channel, message = redis.publish.await_args.args
        assert channel == f"notifications:{user_id}"
        assert json.loads(message)["payload"] == {"homework_id": "h1"}

    @pytest.mark.asyncio
    async def test_without_redis_still_writes(self, mock_session):
        notif = await Notifier(mock_session).notify(
            uuid4(), uuid4(), NotificationType.target_created
        )
        assert notif is not None
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_insert_failure_is_swallowed(self, mock_session):
        mock_session.commit.side_effect = RuntimeError("db down")
        redis = AsyncMock()

        result = await Notifier(mock_session, redis).notify(
            uuid4(), uuid4(), NotificationType.assignment_created
        )

        assert result is None
        mock_session.rollback.assert_awaited_once()
        redis.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_publish_failure_is_swallowed(self, mock_session):
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")

        notif = await Notifier(mock_session, redis).notify(
            uuid4(), uuid4(), NotificationType.assignment_reviewed
        )

        assert notif is not None
        mock_session.commit.assert_awaited_once()


class TestRecipients:
    @pytest.mark.asyncio
    async def test_notify_student_resolves_profile(self, mock_session):
        user_id = uuid4()
        mock_session.execute.return_value = _lookup_result(user_id)

        notif = await Notifier(mock_session).notify_student(
            uuid4(), uuid4(), NotificationType.assignment_completed
        )

        assert notif.user_id == user_id

    @pytest.mark.asyncio
    async def test_unknown_recipient_is_skipped(self, mock_session):
        mock_session.execute.return_value = _lookup_result(None)

        result = await Notifier(mock_session).notify_teacher(
            uuid4(), uuid4(), NotificationType.assignment_submitted
        )

        assert result is None
        mock_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_lookup_failure_is_swallowed(self, mock_session):
        mock_session.execute.side_effect = RuntimeError("db down")

        result = await Notifier(mock_session).notify_student(
            uuid4(), uuid4(), NotificationType.homework_completed
        )

        assert result is None


class TestTransitionsSurviveNotificationFailures:
    @pytest.mark.asyncio
    async def test_review_succeeds_when_inbox_is_down(
        self, mock_session, assignment_repo, people, school_id, teacher_id, student_id, teacher_ctx
    ):
        from halaqa.schemas import ReviewAction
        from halaqa.services.assignment_service import AssignmentService

        mock_session.execute.return_value = _lookup_result(uuid4())
        mock_session.commit.side_effect = RuntimeError("db down")
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")
        service = AssignmentService(assignment_repo, people, Notifier(mock_session, redis))
        row = assignment_repo.seed(
            school_id=school_id,
            class_id=None,
            created_by_teacher_id=teacher_id,
            student_id=student_id,
            title="Al-Mulk",
            status="submitted",
            reopen_count=0,
        )

        updated = await service.transition(teacher_ctx, row.id, ReviewAction(action="review"))

        assert updated.status == "reviewed"
        assert assignment_repo.commits == 1
        mock_session.rollback.assert_awaited_once()
