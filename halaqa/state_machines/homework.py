"""Homework state machine.

Homework is a highlight: green = pending, gold = completed.
The only edge is green → gold; gold is terminal.
"""

import enum

from halaqa.exceptions import AlreadyCompletedError, NotFoundError, ValidationError


class HomeworkColor(str, enum.Enum):
    green = "green"
    gold = "gold"


class HomeworkStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"


_STATUS_BY_COLOR = {
    HomeworkColor.green: HomeworkStatus.pending,
    HomeworkColor.gold: HomeworkStatus.completed,
}


def is_homework(color: str | None) -> bool:
    return color in (HomeworkColor.green.value, HomeworkColor.gold.value)


def homework_status(color: "HomeworkColor | str") -> HomeworkStatus:
    """Map a homework color to its status."""
    return _STATUS_BY_COLOR[HomeworkColor(color)]


def complete(current: "HomeworkColor | str | None") -> HomeworkColor:
    """Complete pending homework, returning the new color.

    Raises:
        NotFoundError: no homework record
        ValidationError: the highlight is not homework
        AlreadyCompletedError: the homework is already gold
    """
    if current is None:
        raise NotFoundError("homework")
    if not is_homework(current):
        raise ValidationError("This highlight is not homework")
    if HomeworkColor(current) is HomeworkColor.gold:
        raise AlreadyCompletedError("homework", HomeworkColor.gold.value)
    return HomeworkColor.gold
