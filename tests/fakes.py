"""In-memory stand-ins for the SQL repositories.

Rows are stored as plain column dicts and every read hands out a fresh
snapshot, the way a database does. ``get`` yields to the event loop after
reading so concurrent callers interleave between their read and their
compare-and-swap.
"""

import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import UUID, uuid4

from halaqa.exceptions import NotFoundError, StaleStateError
from halaqa.repositories.base import StatusRepository


def _columns(row) -> dict:
    if isinstance(row, SimpleNamespace):
        values = dict(vars(row))
    else:
        values = {column.key: getattr(row, column.key) for column in row.__table__.columns}
    if values.get("id") is None:
        values["id"] = uuid4()
    return values


class InMemoryStatusRepository(StatusRepository):
    def __init__(self, entity: str = "resource", status_field: str = "status"):
        self.entity = entity
        self.status_field = status_field
        self.rows: dict[UUID, dict] = {}
        self.commits = 0
        self.cas_calls = 0

    def seed(self, **values) -> SimpleNamespace:
        values.setdefault("id", uuid4())
        self.rows[values["id"]] = dict(values)
        return SimpleNamespace(**values)

    def stored(self, entity_id: UUID) -> SimpleNamespace:
        return SimpleNamespace(**self.rows[entity_id])

    async def get(self, entity_id):
        stored = self.rows.get(entity_id)
        snapshot = SimpleNamespace(**stored) if stored is not None else None
        await asyncio.sleep(0)
        return snapshot

    async def insert(self, row):
        values = _columns(row)
        self.rows[values["id"]] = values
        return SimpleNamespace(**values)

    async def delete(self, entity_id) -> bool:
        return self.rows.pop(entity_id, None) is not None

    async def delete_if_status(self, entity_id, allowed) -> None:
        allowed = list(allowed)
        stored = self.rows.get(entity_id)
        if stored is None:
            raise NotFoundError(self.entity, entity_id)
        if stored[self.status_field] not in allowed:
            raise StaleStateError(
                self.entity, "|".join(str(v) for v in allowed), str(stored[self.status_field])
            )
        del self.rows[entity_id]

    async def compare_and_swap(self, entity_id, expected, values):
        self.cas_calls += 1
        stored = self.rows.get(entity_id)
        if stored is None:
            raise NotFoundError(self.entity, entity_id)
        if stored[self.status_field] != expected:
            raise StaleStateError(self.entity, str(expected), str(stored[self.status_field]))
        stored.update(values)
        return SimpleNamespace(**stored)

    async def commit(self) -> None:
        self.commits += 1


class FakeAssignmentRepository(InMemoryStatusRepository):
    def __init__(self):
        super().__init__(entity="assignment")
        self.submissions: list[SimpleNamespace] = []
        self.events: list[SimpleNamespace] = []

    async def add_submission(self, submission):
        row = SimpleNamespace(**_columns(submission))
        self.submissions.append(row)
        return row

    async def add_event(self, event):
        row = SimpleNamespace(**_columns(event))
        self.events.append(row)
        return row

    async def list_assignments(
        self,
        school_id,
        *,
        teacher_id=None,
        class_ids=None,
        student_ids=None,
        student_id=None,
        status=None,
        created_by=None,
        late_only=False,
        due_before=None,
        due_after=None,
        sort_by="due_at",
        sort_order="asc",
        limit=20,
        offset=0,
    ):
        now = datetime.now(timezone.utc)

        def visible(row):
            scoped = teacher_id is not None or class_ids or student_ids is not None
            if not scoped:
                return True
            return (
                (teacher_id is not None and row["created_by_teacher_id"] == teacher_id)
                or (bool(class_ids) and row["class_id"] in class_ids)
                or (student_ids is not None and row["student_id"] in student_ids)
            )

        def dated(row):
            due = row.get("due_at")
            if late_only and (due is None or row["status"] == "completed" or due >= now):
                return False
            if due_before is not None and (due is None or due >= due_before):
                return False
            if due_after is not None and (due is None or due <= due_after):
                return False
            return True

        rows = [
            SimpleNamespace(**row)
            for row in self.rows.values()
            if row["school_id"] == school_id
            and visible(row)
            and dated(row)
            and (student_id is None or row["student_id"] == student_id)
            and (status is None or row["status"] == status)
            and (created_by is None or row["created_by_teacher_id"] == created_by)
        ]
        # Nulls sort last ascending, as in Postgres.
        rows.sort(
            key=lambda r: (getattr(r, sort_by, None) is None, getattr(r, sort_by, None)),
            reverse=sort_order == "desc",
        )
        return rows[offset : offset + limit], len(rows)

    async def list_submissions(self, assignment_id):
        return [s for s in self.submissions if s.assignment_id == assignment_id]

    async def list_events(self, assignment_id):
        return [e for e in self.events if e.assignment_id == assignment_id]


class FakeHomeworkRepository(InMemoryStatusRepository):
    def __init__(self):
        super().__init__(entity="homework", status_field="color")

    async def list_homework(
        self,
        school_id,
        *,
        teacher_id=None,
        student_ids=None,
        student_id=None,
        include_completed=False,
        limit=20,
        offset=0,
    ):
        colors = {"green", "gold"} if include_completed else {"green"}
        rows = [
            SimpleNamespace(**row)
            for row in self.rows.values()
            if row["school_id"] == school_id
            and row["color"] in colors
            and (
                (teacher_id is None and student_ids is None)
                or (teacher_id is not None and row["teacher_id"] == teacher_id)
                or (student_ids is not None and row["student_id"] in student_ids)
            )
            and (student_id is None or row["student_id"] == student_id)
        ]
        return rows[offset : offset + limit], len(rows)


class FakeTargetRepository(InMemoryStatusRepository):
    def __init__(self):
        super().__init__(entity="target")

    async def list_targets(
        self,
        school_id,
        *,
        teacher_id=None,
        student_ids=None,
        include_shared=False,
        status=None,
        target_type=None,
        limit=20,
        offset=0,
    ):
        def visible(row):
            if teacher_id is None and student_ids is None and not include_shared:
                return True
            return (
                (teacher_id is not None and row["teacher_id"] == teacher_id)
                or (
                    student_ids is not None
                    and row["type"] == "individual"
                    and row["student_id"] in student_ids
                )
                or (include_shared and row["type"] != "individual")
            )

        rows = [
            SimpleNamespace(**row)
            for row in self.rows.values()
            if row["school_id"] == school_id
            and visible(row)
            and (status is None or row["status"] == status)
            and (target_type is None or row["type"] == target_type)
        ]
        return rows[offset : offset + limit], len(rows)


class FakeMilestoneRepository(InMemoryStatusRepository):
    def __init__(self, targets: FakeTargetRepository):
        super().__init__(entity="milestone", status_field="completed")
        self.targets = targets
        self.locks: dict[UUID, asyncio.Lock] = {}
        self.held: set[UUID] = set()

    async def lock_target(self, target_id):
        lock = self.locks.setdefault(target_id, asyncio.Lock())
        await lock.acquire()
        self.held.add(target_id)
        return await self.targets.get(target_id)

    async def commit(self) -> None:
        await super().commit()
        for target_id in list(self.held):
            self.held.discard(target_id)
            self.locks[target_id].release()

    async def order_indexes(self, target_id):
        await asyncio.sleep(0)
        return [r["order_index"] for r in self.rows.values() if r["target_id"] == target_id]

    async def list_for_target(self, target_id):
        rows = [SimpleNamespace(**r) for r in self.rows.values() if r["target_id"] == target_id]
        return sorted(rows, key=lambda r: r.order_index)

    async def add_many(self, milestones):
        return [await self.insert(m) for m in milestones]


class FakePeople:
    """Maps student/teacher ids to profile ids and tracks classes within one school."""

    def __init__(self, school_id: UUID):
        self.school_id = school_id
        self.students: dict[UUID, UUID] = {}
        self.teachers: dict[UUID, UUID] = {}
        self.classes: set[UUID] = set()

    def add_student(self, student_id: UUID, user_id: UUID | None = None) -> None:
        self.students[student_id] = user_id or uuid4()

    def add_teacher(self, teacher_id: UUID, user_id: UUID | None = None) -> None:
        self.teachers[teacher_id] = user_id or uuid4()

    async def student_in_school(self, student_id, school_id) -> bool:
        return school_id == self.school_id and student_id in self.students

    async def user_id_for_student(self, student_id):
        return self.students.get(student_id)

    async def user_id_for_teacher(self, teacher_id):
        return self.teachers.get(teacher_id)

    def add_class(self, class_id: UUID) -> None:
        self.classes.add(class_id)

    async def class_in_school(self, class_id, school_id) -> bool:
        return school_id == self.school_id and class_id in self.classes

    async def teacher_in_school(self, teacher_id, school_id) -> bool:
        return school_id == self.school_id and teacher_id in self.teachers
