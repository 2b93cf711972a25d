"""Repositories: row access and the compare-and-swap status write."""

from halaqa.repositories.assignments import AssignmentRepository
from halaqa.repositories.base import SqlStatusRepository, StatusRepository, validate_pagination
from halaqa.repositories.homework import HomeworkRepository
from halaqa.repositories.notifications import NotificationRepository
from halaqa.repositories.people import PeopleRepository
from halaqa.repositories.targets import MilestoneRepository, TargetRepository

__all__ = [
    "AssignmentRepository",
    "HomeworkRepository",
    "MilestoneRepository",
    "NotificationRepository",
    "PeopleRepository",
    "SqlStatusRepository",
    "StatusRepository",
    "TargetRepository",
    "validate_pagination",
]
