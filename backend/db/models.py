from datetime import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field
from pymongo import IndexModel

from utils import utc_now


class EmployeeDoc(Document):
    user_id: Indexed(str, unique=True)
    name: str
    department: Optional[str] = None
    disabled: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "employees"


class ShiftDoc(Document):
    """
    Roster entry: which shift code an agent works on a date.

    Owned by the rostering side of the application; read-only here.
    """
    user_id: str
    date: str  # ISO date string: "2026-01-20"
    shift_code: str
    department: Optional[str] = None

    class Settings:
        name = "shifts"
        indexes = [
            IndexModel(
                [("user_id", 1), ("date", 1)],
                unique=True,
                name="unique_user_date",
            ),
            IndexModel([("date", 1), ("department", 1)]),
        ]


class BreakAssignmentDoc(Document):
    """One break slot for one agent on one date."""
    user_id: str
    date: str
    shift_code_at_assignment: str
    interval_slot: int
    break_type: str  # "HB1", "B", "HB2"
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "break_assignments"
        indexes = [
            IndexModel(
                [("user_id", 1), ("date", 1), ("interval_slot", 1)],
                unique=True,
                name="unique_user_date_slot",
            ),
            IndexModel([("date", 1)]),
        ]


class BreakWarningDoc(Document):
    """
    A break schedule invalidated by a roster change; closed by dismissal.

    Dismissed rows are deleted when the break set is rewritten or the
    mismatch clears, which frees the signature for a repeat mismatch.
    """
    user_id: str
    date: str
    warning_type: str  # "shift_changed", "shift_removed", "no_shift_window"
    old_shift_code: Optional[str] = None
    new_shift_code: Optional[str] = None
    message: str = ""
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "break_warnings"
        indexes = [
            IndexModel(
                [
                    ("user_id", 1),
                    ("date", 1),
                    ("warning_type", 1),
                    ("old_shift_code", 1),
                    ("new_shift_code", 1),
                ],
                unique=True,
                name="unique_warning_signature",
            ),
            IndexModel([("date", 1), ("resolved", 1)]),
        ]


class DurationBucketEmbed(BaseModel):
    min_shift_minutes: int
    count: int


class BreakRuleDoc(Document):
    break_type: Indexed(str, unique=True)
    buckets: list[DurationBucketEmbed] = []
    min_spacing_slots: int = 6
    forbidden_edge_slots: int = 2
    sequence: int = 0
    max_gap_slots: Optional[int] = 18
    is_blocking: bool = True
    is_active: bool = True
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "break_rules"


class CoverageRuleDoc(Document):
    max_concurrent_on_break: Optional[int] = None
    max_concurrent_percent: Optional[float] = None
    min_available: int = 0
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "coverage_rules"


class ShiftConfigurationDoc(Document):
    shift_code: Indexed(str, unique=True)
    start_time: str  # "HH:MM"
    end_time: str
    description: Optional[str] = None
    is_active: bool = True
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "shift_configurations"


class ScheduleConfigDoc(Document):
    day_start: str = "09:00"
    day_end: str = "21:00"
    interval_minutes: int = 15
    solver_type: str = "greedy"
    solver_time_limit_sec: float = 10.0
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "break_schedule_config"


DOCUMENT_MODELS = [
    EmployeeDoc,
    ShiftDoc,
    BreakAssignmentDoc,
    BreakWarningDoc,
    BreakRuleDoc,
    CoverageRuleDoc,
    ShiftConfigurationDoc,
    ScheduleConfigDoc,
]
