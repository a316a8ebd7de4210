import pytest

from breaks.engine import ConstraintValidator
from breaks.grid import IntervalGrid
from breaks.shifts import ShiftWindowResolver
from breaks.types import (
    BreakAssignment,
    BreakRule,
    BreakType,
    DurationBucket,
    Shift,
    DEFAULT_BREAK_RULES,
)
from db.memory import InMemoryScheduleRepository

DATE = "2026-01-20"


@pytest.fixture
def grid():
    """09:00-21:00 in 15-minute slots."""
    return IntervalGrid("09:00", "21:00", 15)


@pytest.fixture
def resolver():
    return ShiftWindowResolver()


@pytest.fixture
def default_rules():
    return list(DEFAULT_BREAK_RULES)


@pytest.fixture
def validator(grid, resolver):
    return ConstraintValidator(grid, resolver)


@pytest.fixture
def make_shift():
    """Factory to create Shift objects."""
    def _make_shift(user_id: str, shift_code: str = "AM", date: str = DATE, department: str = None) -> Shift:
        return Shift(user_id=user_id, date=date, shift_code=shift_code, department=department)
    return _make_shift


@pytest.fixture
def make_assignment():
    """Factory to create BreakAssignment objects."""
    def _make_assignment(
        user_id: str,
        slot: int,
        break_type: BreakType = BreakType.HB1,
        shift_code: str = "AM",
        date: str = DATE,
    ) -> BreakAssignment:
        return BreakAssignment(
            user_id=user_id,
            date=date,
            shift_code_at_assignment=shift_code,
            interval_slot=slot,
            break_type=break_type,
        )
    return _make_assignment


@pytest.fixture
def tiny_rules():
    """HB1 and B both needed from one hour on, 90 minutes apart, no edges."""
    return [
        BreakRule(BreakType.HB1, (DurationBucket(60, 1),), min_spacing_slots=6, forbidden_edge_slots=0, sequence=1),
        BreakRule(BreakType.B, (DurationBucket(60, 1),), min_spacing_slots=6, forbidden_edge_slots=0, sequence=2),
    ]


@pytest.fixture
def repository(make_shift):
    """In-memory repository with two AM agents and one PM agent."""
    return InMemoryScheduleRepository(
        shifts=[
            make_shift("alice", "AM", department="support"),
            make_shift("bob", "AM", department="support"),
            make_shift("carol", "PM", department="sales"),
        ],
    )


# A valid HB1/B/HB2 set for an AM shift (09:00-17:00)
AM_VALID_BREAKS = [(4, BreakType.HB1), (12, BreakType.B), (20, BreakType.HB2)]
