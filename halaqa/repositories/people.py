"""Lookups that resolve a profile to its teacher/student/parent identities."""

from uuid import UUID

from sqlalchemy import select

from halaqa.models import Class, Parent, ParentStudent, Profile, Student, Teacher


class PeopleRepository:
    def __init__(self, session) -> None:
        self.session = session

    async def get_profile(self, user_id: UUID) -> Profile | None:
        result = await self.session.execute(select(Profile).where(Profile.id == user_id))
        return result.scalar_one_or_none()

    async def teacher_id_for_user(self, user_id: UUID) -> UUID | None:
        result = await self.session.execute(select(Teacher.id).where(Teacher.user_id == user_id))
        return result.scalar_one_or_none()

    async def student_id_for_user(self, user_id: UUID) -> UUID | None:
        result = await self.session.execute(select(Student.id).where(Student.user_id == user_id))
        return result.scalar_one_or_none()

    async def class_ids_for_teacher(self, teacher_id: UUID) -> frozenset[UUID]:
        result = await self.session.execute(select(Class.id).where(Class.teacher_id == teacher_id))
        return frozenset(result.scalars().all())

    async def child_student_ids(self, user_id: UUID) -> frozenset[UUID]:
        result = await self.session.execute(
            select(ParentStudent.student_id)
            .join(Parent, Parent.id == ParentStudent.parent_id)
            .where(Parent.user_id == user_id)
        )
        return frozenset(result.scalars().all())

    async def user_id_for_student(self, student_id: UUID) -> UUID | None:
        result = await self.session.execute(select(Student.user_id).where(Student.id == student_id))
        return result.scalar_one_or_none()

    async def user_id_for_teacher(self, teacher_id: UUID) -> UUID | None:
        result = await self.session.execute(select(Teacher.user_id).where(Teacher.id == teacher_id))
        return result.scalar_one_or_none()

    async def student_in_school(self, student_id: UUID, school_id: UUID) -> bool:
        result = await self.session.execute(
            select(Student.id).where(Student.id == student_id, Student.school_id == school_id)
        )
        return result.scalar_one_or_none() is not None

    async def teacher_in_school(self, teacher_id: UUID, school_id: UUID) -> bool:
        result = await self.session.execute(
            select(Teacher.id).where(Teacher.id == teacher_id, Teacher.school_id == school_id)
        )
        return result.scalar_one_or_none() is not None

    async def class_in_school(self, class_id: UUID, school_id: UUID) -> bool:
        result = await self.session.execute(
            select(Class.id).where(Class.id == class_id, Class.school_id == school_id)
        )
        return result.scalar_one_or_none() is not None
