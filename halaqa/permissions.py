"""Capability predicates evaluated before any transition engine runs.

Every predicate takes the caller's ``PermissionContext`` and the row being
acted on (any object exposing the relevant attributes) and returns a bool.
Owners and admins pass every predicate inside their own school. A caller
from another school fails every predicate.
"""

import enum
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from halaqa.exceptions import AuthorizationError
from halaqa.state_machines.assignment import STUDENT_ACTIONS, AssignmentAction
from halaqa.state_machines.target import TargetType


class Role(str, enum.Enum):
    owner = "owner"
    admin = "admin"
    teacher = "teacher"
    student = "student"
    parent = "parent"


ADMIN_ROLES = frozenset({Role.owner, Role.admin})


@dataclass(frozen=True)
class PermissionContext:
    """Who is calling, and which teacher/student/parent identities they hold."""

    user_id: UUID
    role: Role
    school_id: UUID
    teacher_id: UUID | None = None
    student_id: UUID | None = None
    class_ids: frozenset[UUID] = field(default_factory=frozenset)
    child_student_ids: frozenset[UUID] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_teacher(self) -> bool:
        return self.role is Role.teacher and self.teacher_id is not None

    @property
    def is_student(self) -> bool:
        return self.role is Role.student and self.student_id is not None

    @property
    def is_parent(self) -> bool:
        return self.role is Role.parent


def _same_school(ctx: PermissionContext, row: Any) -> bool:
    return getattr(row, "school_id", None) == ctx.school_id


def _is_parent_of(ctx: PermissionContext, student_id: UUID | None) -> bool:
    return ctx.is_parent and student_id is not None and student_id in ctx.child_student_ids


def require(allowed: bool, action: str, entity: str) -> None:
    """Raise ``AuthorizationError`` unless ``allowed``."""
    if not allowed:
        raise AuthorizationError(action, entity)


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------


def _teaches_assignment(ctx: PermissionContext, assignment: Any) -> bool:
    if not ctx.is_teacher:
        return False
    if assignment.created_by_teacher_id == ctx.teacher_id:
        return True
    return assignment.class_id is not None and assignment.class_id in ctx.class_ids


def can_create_assignment(ctx: PermissionContext) -> bool:
    return ctx.is_admin or ctx.is_teacher


def can_view_assignment(ctx: PermissionContext, assignment: Any) -> bool:
    if not _same_school(ctx, assignment):
        return False
    if ctx.is_admin or _teaches_assignment(ctx, assignment):
        return True
    if ctx.is_student and assignment.student_id == ctx.student_id:
        return True
    return _is_parent_of(ctx, assignment.student_id)


def can_transition_assignment(
    ctx: PermissionContext, assignment: Any, action: "AssignmentAction | str"
) -> bool:
    """View and submit belong to the assigned student; the rest to the teacher."""
    if not _same_school(ctx, assignment):
        return False
    if AssignmentAction(action) in STUDENT_ACTIONS:
        return ctx.is_student and assignment.student_id == ctx.student_id
    return ctx.is_admin or _teaches_assignment(ctx, assignment)


def can_update_assignment(ctx: PermissionContext, assignment: Any) -> bool:
    if not _same_school(ctx, assignment):
        return False
    return ctx.is_admin or _teaches_assignment(ctx, assignment)


can_delete_assignment = can_update_assignment


# ---------------------------------------------------------------------------
# Homework
# ---------------------------------------------------------------------------


def can_create_homework(ctx: PermissionContext) -> bool:
    return ctx.is_admin or ctx.is_teacher


def can_view_homework(ctx: PermissionContext, homework: Any) -> bool:
    if not _same_school(ctx, homework):
        return False
    if ctx.is_admin:
        return True
    if ctx.is_teacher and homework.teacher_id == ctx.teacher_id:
        return True
    if ctx.is_student and homework.student_id == ctx.student_id:
        return True
    return _is_parent_of(ctx, homework.student_id)


def can_complete_homework(ctx: PermissionContext, homework: Any) -> bool:
    """Any teacher in the school may mark homework done."""
    if not _same_school(ctx, homework):
        return False
    return ctx.is_admin or ctx.is_teacher


def can_delete_homework(ctx: PermissionContext, homework: Any) -> bool:
    if not _same_school(ctx, homework):
        return False
    return ctx.is_admin or (ctx.is_teacher and homework.teacher_id == ctx.teacher_id)


# ---------------------------------------------------------------------------
# Targets
# ---------------------------------------------------------------------------


def _owns_target(ctx: PermissionContext, target: Any) -> bool:
    return ctx.is_teacher and target.teacher_id == ctx.teacher_id


def can_create_target(ctx: PermissionContext) -> bool:
    return ctx.is_admin or ctx.is_teacher


def can_view_target(ctx: PermissionContext, target: Any) -> bool:
    if not _same_school(ctx, target):
        return False
    if ctx.is_admin or _owns_target(ctx, target):
        return True
    if TargetType(target.type) is TargetType.individual:
        if ctx.is_student and target.student_id == ctx.student_id:
            return True
        return _is_parent_of(ctx, target.student_id)
    # Class and school targets are visible to the school's teachers and students.
    return ctx.is_teacher or ctx.is_student


def can_update_target(ctx: PermissionContext, target: Any) -> bool:
    if not _same_school(ctx, target):
        return False
    return ctx.is_admin or _owns_target(ctx, target)


can_add_milestone = can_update_target
can_delete_target = can_update_target


def can_complete_milestone(ctx: PermissionContext, target: Any) -> bool:
    if not _same_school(ctx, target):
        return False
    return ctx.is_admin or ctx.is_teacher
