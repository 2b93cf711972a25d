"""FastAPI dependencies that build services around the request's session."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from halaqa.config import Settings, get_settings
from halaqa.database import get_db
from halaqa.redis import get_redis_optional
from halaqa.repositories import (
    AssignmentRepository,
    HomeworkRepository,
    MilestoneRepository,
    PeopleRepository,
    TargetRepository,
)
from halaqa.services.assignment_service import AssignmentService
from halaqa.services.homework_service import HomeworkService
from halaqa.services.notification_service import Notifier
from halaqa.services.target_service import TargetService


def get_notifier(
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis_optional),
) -> Notifier:
    return Notifier(db, redis)


def get_assignment_service(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> AssignmentService:
    return AssignmentService(
        AssignmentRepository(db),
        PeopleRepository(db),
        notifier,
        max_reopen_count=settings.max_reopen_count,
    )


def get_homework_service(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> HomeworkService:
    return HomeworkService(HomeworkRepository(db), PeopleRepository(db), notifier)


def get_target_service(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> TargetService:
    return TargetService(
        TargetRepository(db),
        MilestoneRepository(db),
        PeopleRepository(db),
        notifier,
        max_milestones=settings.max_milestones,
    )
