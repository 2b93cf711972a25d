"""Shared pytest fixtures for the Halaqa test suite.

Provides:
- A mock async database session for repository tests
- Permission contexts for each role within one school
- In-memory repositories and services wired to them
"""

import os
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

os.environ.setdefault("HALAQA_JWT_SECRET_KEY", "test-secret-key-for-halaqa-tests-only")
os.environ.setdefault("HALAQA_LOG_JSON", "false")

from halaqa.permissions import PermissionContext, Role  # noqa: E402
from halaqa.services.assignment_service import AssignmentService  # noqa: E402
from halaqa.services.homework_service import HomeworkService  # noqa: E402
from halaqa.services.target_service import TargetService  # noqa: E402
from tests.fakes import (  # noqa: E402
    FakeAssignmentRepository,
    FakeHomeworkRepository,
    FakeMilestoneRepository,
    FakePeople,
    FakeTargetRepository,
)


# ===========================================
# DATABASE SESSION FIXTURES
# ===========================================


@pytest.fixture
def mock_session():
    """Create a mock async database session."""
    session = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    return session


# ===========================================
# IDENTITIES
# ===========================================


@pytest.fixture
def school_id():
    return uuid4()


@pytest.fixture
def teacher_id():
    return uuid4()


@pytest.fixture
def student_id():
    return uuid4()


@pytest.fixture
def class_id():
    return uuid4()


@pytest.fixture
def teacher_ctx(school_id, teacher_id, class_id):
    return PermissionContext(
        user_id=uuid4(),
        role=Role.teacher,
        school_id=school_id,
        teacher_id=teacher_id,
        class_ids=frozenset({class_id}),
    )


@pytest.fixture
def other_teacher_ctx(school_id):
    return PermissionContext(
        user_id=uuid4(), role=Role.teacher, school_id=school_id, teacher_id=uuid4()
    )


@pytest.fixture
def student_ctx(school_id, student_id):
    return PermissionContext(
        user_id=uuid4(), role=Role.student, school_id=school_id, student_id=student_id
    )


@pytest.fixture
def other_student_ctx(school_id):
    return PermissionContext(
        user_id=uuid4(), role=Role.student, school_id=school_id, student_id=uuid4()
    )


@pytest.fixture
def parent_ctx(school_id, student_id):
    return PermissionContext(
        user_id=uuid4(),
        role=Role.parent,
        school_id=school_id,
        child_student_ids=frozenset({student_id}),
    )


@pytest.fixture
def admin_ctx(school_id):
    return PermissionContext(user_id=uuid4(), role=Role.admin, school_id=school_id)


@pytest.fixture
def foreign_admin_ctx():
    return PermissionContext(user_id=uuid4(), role=Role.owner, school_id=uuid4())


# ===========================================
# IN-MEMORY SERVICES
# ===========================================


@pytest.fixture
def people(school_id, student_id, teacher_id, class_id):
    people = FakePeople(school_id)
    people.add_student(student_id)
    people.add_teacher(teacher_id)
    people.add_class(class_id)
    return people


@pytest.fixture
def notifier():
    notifier = MagicMock()
    notifier.notify = AsyncMock()
    notifier.notify_student = AsyncMock()
    notifier.notify_teacher = AsyncMock()
    return notifier


@pytest.fixture
def assignment_repo():
    return FakeAssignmentRepository()


@pytest.fixture
def assignment_service(assignment_repo, people, notifier):
    return AssignmentService(assignment_repo, people, notifier, max_reopen_count=10)


@pytest.fixture
def homework_repo():
    return FakeHomeworkRepository()


@pytest.fixture
def homework_service(homework_repo, people, notifier):
    return HomeworkService(homework_repo, people, notifier)


@pytest.fixture
def target_repo():
    return FakeTargetRepository()


@pytest.fixture
def milestone_repo(target_repo):
    return FakeMilestoneRepository(target_repo)


@pytest.fixture
def target_service(target_repo, milestone_repo, people, notifier):
    return TargetService(target_repo, milestone_repo, people, notifier, max_milestones=20)
