"""Concurrent writers racing on the same row.

Both callers read the row before either writes; the compare-and-swap (or the
status-guarded delete) lets exactly one through and the other sees a
stale-state conflict.
"""

import asyncio

import pytest

from halaqa.exceptions import AlreadyCompletedError, LimitExceededError, StaleStateError
from halaqa.schemas import (
    CancelTargetAction,
    CompleteTargetAction,
    MilestoneCreate,
    ReviewAction,
    SubmitAction,
)


def _split(results):
    wins = [r for r in results if not isinstance(r, BaseException)]
    losses = [r for r in results if isinstance(r, BaseException)]
    return wins, losses


@pytest.mark.asyncio
async def test_double_submit_has_one_winner(
    assignment_service, assignment_repo, school_id, teacher_id, student_id, student_ctx
):
    row = assignment_repo.seed(
        school_id=school_id,
        class_id=None,
        created_by_teacher_id=teacher_id,
        student_id=student_id,
        title="Al-Mulk",
        status="viewed",
        reopen_count=0,
    )

    results = await asyncio.gather(
        assignment_service.transition(student_ctx, row.id, SubmitAction(action="submit", text="one")),
        assignment_service.transition(student_ctx, row.id, SubmitAction(action="submit", text="two")),
        return_exceptions=True,
    )

    wins, losses = _split(results)
    assert len(wins) == 1
    assert len(losses) == 1
    assert isinstance(losses[0], StaleStateError)
    assert assignment_repo.stored(row.id).status == "submitted"
    # The loser wrote nothing.
    assert len(assignment_repo.submissions) == 1
    assert len(assignment_repo.events) == 1


@pytest.mark.asyncio
async def test_racing_teachers_one_review(
    assignment_service, assignment_repo, school_id, teacher_id, student_id, teacher_ctx, admin_ctx
):
    row = assignment_repo.seed(
        school_id=school_id,
        class_id=None,
        created_by_teacher_id=teacher_id,
        student_id=student_id,
        title="Al-Mulk",
        status="submitted",
        reopen_count=0,
    )

    results = await asyncio.gather(
        assignment_service.transition(teacher_ctx, row.id, ReviewAction(action="review")),
        assignment_service.transition(admin_ctx, row.id, ReviewAction(action="review")),
        return_exceptions=True,
    )

    wins, losses = _split(results)
    assert len(wins) == 1
    assert isinstance(losses[0], StaleStateError)
    assert assignment_repo.stored(row.id).status == "reviewed"


@pytest.mark.asyncio
async def test_complete_versus_cancel(
    target_service, target_repo, school_id, teacher_id, student_id, teacher_ctx
):
    row = target_repo.seed(
        school_id=school_id,
        teacher_id=teacher_id,
        type="individual",
        student_id=student_id,
        title="Juz 30",
        status="active",
        progress_percentage=50,
    )

    results = await asyncio.gather(
        target_service.update_progress(teacher_ctx, row.id, CompleteTargetAction(action="complete")),
        target_service.update_progress(
            teacher_ctx, row.id, CancelTargetAction(action="cancel", reason="left school")
        ),
        return_exceptions=True,
    )

    wins, losses = _split(results)
    assert len(wins) == 1
    assert isinstance(losses[0], StaleStateError)
    assert target_repo.stored(row.id).status == wins[0].status


@pytest.mark.asyncio
async def test_homework_completed_once(
    homework_service, homework_repo, school_id, teacher_id, student_id, teacher_ctx, admin_ctx
):
    row = homework_repo.seed(
        school_id=school_id,
        teacher_id=teacher_id,
        student_id=student_id,
        surah=1,
        ayah_start=1,
        ayah_end=7,
        note=None,
        color="green",
    )

    results = await asyncio.gather(
        homework_service.complete(teacher_ctx, row.id),
        homework_service.complete(admin_ctx, row.id),
        return_exceptions=True,
    )

    wins, losses = _split(results)
    assert len(wins) == 1
    assert isinstance(losses[0], StaleStateError)
    stored = homework_repo.stored(row.id)
    assert stored.color == "gold"
    assert stored.completed_by == wins[0].completed_by


@pytest.mark.asyncio
async def test_delete_versus_submit(
    assignment_service, assignment_repo, school_id, teacher_id, student_id, student_ctx, teacher_ctx
):
    row = assignment_repo.seed(
        school_id=school_id,
        class_id=None,
        created_by_teacher_id=teacher_id,
        student_id=student_id,
        title="Al-Mulk",
        status="viewed",
        reopen_count=0,
    )

    results = await asyncio.gather(
        assignment_service.transition(student_ctx, row.id, SubmitAction(action="submit", text="done")),
        assignment_service.delete(teacher_ctx, row.id),
        return_exceptions=True,
    )

    submitted, deleted = results
    assert submitted.status == "submitted"
    assert isinstance(deleted, StaleStateError)
    # The student's work survives the stale delete.
    assert assignment_repo.stored(row.id).status == "submitted"
    assert len(assignment_repo.submissions) == 1


@pytest.mark.asyncio
async def test_homework_delete_versus_complete(
    homework_service, homework_repo, school_id, teacher_id, student_id, teacher_ctx
):
    row = homework_repo.seed(
        school_id=school_id,
        teacher_id=teacher_id,
        student_id=student_id,
        surah=67,
        ayah_start=1,
        ayah_end=5,
        note=None,
        color="green",
    )

    results = await asyncio.gather(
        homework_service.complete(teacher_ctx, row.id),
        homework_service.delete(teacher_ctx, row.id),
        return_exceptions=True,
    )

    completed, deleted = results
    assert completed.color == "gold"
    assert isinstance(deleted, StaleStateError)
    assert homework_repo.stored(row.id).color == "gold"


@pytest.mark.asyncio
async def test_milestone_completed_once(
    target_service, target_repo, milestone_repo, school_id, teacher_id, student_id, teacher_ctx
):
    target = target_repo.seed(
        school_id=school_id,
        teacher_id=teacher_id,
        type="individual",
        student_id=student_id,
        title="Juz 30",
        status="active",
    )
    milestone = milestone_repo.seed(
        target_id=target.id, title="An-Naba", target_value=None, order_index=1, completed=False
    )

    results = await asyncio.gather(
        target_service.complete_milestone(teacher_ctx, milestone.id),
        target_service.complete_milestone(teacher_ctx, milestone.id),
        return_exceptions=True,
    )

    wins, losses = _split(results)
    assert len(wins) == 1
    assert isinstance(losses[0], AlreadyCompletedError)
    assert target_repo.stored(target.id).progress_percentage == 100


@pytest.mark.asyncio
async def test_milestone_cap_holds_under_concurrent_adds(
    target_service, target_repo, milestone_repo, school_id, teacher_id, student_id, teacher_ctx
):
    target = target_repo.seed(
        school_id=school_id,
        teacher_id=teacher_id,
        type="individual",
        student_id=student_id,
        title="Juz 30",
        status="active",
    )
    for i in range(1, 20):
        milestone_repo.seed(target_id=target.id, title=str(i), order_index=i, completed=False)

    results = await asyncio.gather(
        target_service.add_milestone(teacher_ctx, target.id, MilestoneCreate(title="a")),
        target_service.add_milestone(teacher_ctx, target.id, MilestoneCreate(title="b")),
        return_exceptions=True,
    )

    wins, losses = _split(results)
    assert len(wins) == 1
    assert isinstance(losses[0], LimitExceededError)
    assert len(milestone_repo.rows) == 20
