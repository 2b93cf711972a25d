"""Request payload factories for the Halaqa API tests."""

from tests.factories.assignment_factory import due_in, make_assignment_data, make_transition
from tests.factories.homework_factory import make_homework_data
from tests.factories.target_factory import make_milestones, make_target_data

__all__ = [
    "due_in",
    "make_assignment_data",
    "make_transition",
    "make_homework_data",
    "make_target_data",
    "make_milestones",
]
