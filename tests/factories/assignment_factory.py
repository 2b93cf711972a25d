"""Factory functions for assignment request payloads."""

from datetime import datetime, timedelta, timezone


def due_in(days: float = 7) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


def make_assignment_data(
    student_id,
    title: str = "Memorize Al-Mulk 1-5",
    description: str | None = "Recite to a parent before class",
    due_at: str | None = None,
    class_id=None,
    teacher_id=None,
) -> dict:
    data = {
        "student_id": str(student_id),
        "title": title,
        "description": description,
        "due_at": due_at or due_in().isoformat(),
    }
    if class_id is not None:
        data["class_id"] = str(class_id)
    if teacher_id is not None:
        data["teacher_id"] = str(teacher_id)
    return data


def make_transition(action: str, **fields) -> dict:
    return {"action": action, **fields}
