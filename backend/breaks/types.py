"""Type definitions for the break scheduling module."""

import hashlib
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional

from utils.time import minutes_to_label


class BreakType(str, Enum):
    """Break kinds an agent takes during a shift."""
    HB1 = "HB1"  # First half break
    B = "B"  # Full break
    HB2 = "HB2"  # Second half break


class ViolationType(str, Enum):
    """Types of break schedule violations."""
    NO_SHIFT_WINDOW = "no_shift_window"
    OUTSIDE_SHIFT = "outside_shift"
    FORBIDDEN_EDGE = "forbidden_edge"
    SPACING = "spacing"
    COUNT_MISMATCH = "count_mismatch"
    DUPLICATE_SLOT = "duplicate_slot"
    ORDERING = "ordering"
    MAX_GAP = "max_gap"
    UNPLACEABLE = "unplaceable"
    COVERAGE_EXCEEDED = "coverage_exceeded"


class ViolationSeverity(str, Enum):
    """Severity levels for violations."""
    ERROR = "error"  # Blocks the save
    WARNING = "warning"  # Reported but allows the save


class WarningType(str, Enum):
    """Reasons a stored break assignment no longer matches the roster."""
    SHIFT_CHANGED = "shift_changed"
    SHIFT_REMOVED = "shift_removed"
    NO_SHIFT_WINDOW = "no_shift_window"


@dataclass(frozen=True)
class ShiftWindow:
    """Concrete start/end of a shift, in minutes from midnight."""
    start_minute: int
    end_minute: int

    @property
    def duration_minutes(self) -> int:
        return self.end_minute - self.start_minute

    @property
    def start(self) -> str:
        return minutes_to_label(self.start_minute)

    @property
    def end(self) -> str:
        return minutes_to_label(self.end_minute)


@dataclass(frozen=True)
class Shift:
    """A roster entry: one agent working one shift code on one date."""
    user_id: str
    date: str  # ISO date string
    shift_code: str
    department: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class DurationBucket:
    """Shifts lasting at least min_shift_minutes need `count` breaks of a type."""
    min_shift_minutes: int
    count: int


@dataclass(frozen=True)
class BreakRule:
    """How many breaks of one type a shift needs, and where they may go."""
    break_type: BreakType
    buckets: tuple[DurationBucket, ...] = ()
    min_spacing_slots: int = 6
    forbidden_edge_slots: int = 2
    sequence: int = 0  # Breaks must appear in ascending sequence order
    max_gap_slots: Optional[int] = 18  # Longest stretch to the next break; None = no limit
    is_blocking: bool = True  # False reports this type's violations as warnings
    is_active: bool = True  # Inactive rules are ignored; the type is then not scheduled

    def required_count(self, shift_minutes: int) -> int:
        """Count mandated for a shift of the given duration."""
        required = 0
        for bucket in sorted(self.buckets, key=lambda b: b.min_shift_minutes):
            if shift_minutes >= bucket.min_shift_minutes:
                required = bucket.count
        return required

    def to_dict(self) -> dict:
        return {
            "break_type": self.break_type.value,
            "buckets": [
                {"min_shift_minutes": b.min_shift_minutes, "count": b.count}
                for b in self.buckets
            ],
            "min_spacing_slots": self.min_spacing_slots,
            "forbidden_edge_slots": self.forbidden_edge_slots,
            "sequence": self.sequence,
            "max_gap_slots": self.max_gap_slots,
            "is_blocking": self.is_blocking,
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BreakRule":
        max_gap = data.get("max_gap_slots", 18)
        return cls(
            break_type=BreakType(data["break_type"]),
            buckets=tuple(
                DurationBucket(int(b["min_shift_minutes"]), int(b["count"]))
                for b in data.get("buckets", [])
            ),
            min_spacing_slots=int(data.get("min_spacing_slots", 6)),
            forbidden_edge_slots=int(data.get("forbidden_edge_slots", 2)),
            sequence=int(data.get("sequence", 0)),
            max_gap_slots=None if max_gap is None else int(max_gap),
            is_blocking=bool(data.get("is_blocking", True)),
            is_active=bool(data.get("is_active", True)),
        )


DEFAULT_BREAK_RULES: tuple[BreakRule, ...] = (
    BreakRule(BreakType.HB1, (DurationBucket(240, 1),), min_spacing_slots=6, forbidden_edge_slots=2, sequence=1),
    BreakRule(BreakType.B, (DurationBucket(360, 1),), min_spacing_slots=6, forbidden_edge_slots=2, sequence=2),
    BreakRule(BreakType.HB2, (DurationBucket(420, 1),), min_spacing_slots=6, forbidden_edge_slots=2, sequence=3),
)


@dataclass(frozen=True)
class CoverageRule:
    """
    Limits on how many agents may be on break in the same slot.

    max_concurrent_on_break is an absolute cap, max_concurrent_percent a
    share of the staffed headcount; when both are set the stricter wins.
    min_available keeps that many agents working whenever anyone is on break.
    """
    max_concurrent_on_break: Optional[int] = None
    max_concurrent_percent: Optional[float] = None
    min_available: int = 0

    def capacity(self, staffed: int) -> Optional[int]:
        """Maximum agents on break in a slot with `staffed` agents; None = unlimited."""
        limits = []
        if self.max_concurrent_on_break is not None:
            limits.append(self.max_concurrent_on_break)
        if self.max_concurrent_percent is not None and staffed > 0:
            # A staffed slot always allows at least one break
            limits.append(max(1, math.floor(staffed * self.max_concurrent_percent / 100)))
        if self.min_available > 0:
            limits.append(max(0, staffed - self.min_available))
        return min(limits) if limits else None

    def to_dict(self) -> dict:
        return {
            "max_concurrent_on_break": self.max_concurrent_on_break,
            "max_concurrent_percent": self.max_concurrent_percent,
            "min_available": self.min_available,
        }


@dataclass(frozen=True)
class BreakAssignment:
    """One break slot for one agent on one date."""
    user_id: str
    date: str
    shift_code_at_assignment: str
    interval_slot: int
    break_type: BreakType
    created_by: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "date": self.date,
            "shift_code_at_assignment": self.shift_code_at_assignment,
            "interval_slot": self.interval_slot,
            "break_type": self.break_type.value,
            "created_by": self.created_by,
        }


@dataclass
class BreakScheduleWarning:
    """A stored assignment that no longer matches the agent's current shift."""
    user_id: str
    date: str
    warning_type: WarningType
    old_shift_code: Optional[str]
    new_shift_code: Optional[str]
    message: str = ""
    resolved: bool = False
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def signature(self) -> tuple:
        """Identity of the mismatch; at most one stored warning per signature."""
        return (
            self.user_id,
            self.date,
            self.warning_type.value,
            self.old_shift_code,
            self.new_shift_code,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "date": self.date,
            "warning_type": self.warning_type.value,
            "old_shift_code": self.old_shift_code,
            "new_shift_code": self.new_shift_code,
            "message": self.message,
            "resolved": self.resolved,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class Violation:
    """A single rule violation."""
    violation_type: ViolationType
    message: str
    user_id: Optional[str] = None
    slot: Optional[int] = None
    break_type: Optional[BreakType] = None
    details: dict[str, Any] = field(default_factory=dict)
    severity: ViolationSeverity = ViolationSeverity.ERROR

    @property
    def is_blocking(self) -> bool:
        return self.severity == ViolationSeverity.ERROR

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "violation_type": self.violation_type.value,
            "severity": self.severity.value,
            "message": self.message,
            "user_id": self.user_id,
            "slot": self.slot,
            "break_type": self.break_type.value if self.break_type else None,
            "details": self.details,
        }


@dataclass
class ValidationResult:
    """
    Result of validating one agent's proposed breaks.

    Holds every violation found; only error-level ones make the result
    not ok.
    """
    violations: list[Violation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error_count == 0

    @property
    def error_count(self) -> int:
        return sum(1 for v in self.violations if v.severity == ViolationSeverity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for v in self.violations if v.severity == ViolationSeverity.WARNING)

    @property
    def errors(self) -> list[Violation]:
        return [v for v in self.violations if v.is_blocking]

    def add_violation(self, violation: Violation):
        self.violations.append(violation)

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "violations": [v.to_dict() for v in self.violations],
            "error_count": self.error_count,
            "warning_count": self.warning_count,
        }


@dataclass
class ScheduleConfig:
    """Operating-day grid, shift window table and solver choice for one invocation."""
    day_start: str = "09:00"
    day_end: str = "21:00"
    interval_minutes: int = 15
    shift_windows: dict[str, tuple[str, str]] = field(default_factory=lambda: dict(DEFAULT_SHIFT_WINDOWS))
    solver_type: str = "greedy"
    solver_time_limit_sec: float = 10.0


DEFAULT_SHIFT_WINDOWS: dict[str, tuple[str, str]] = {
    "AM": ("09:00", "17:00"),
    "PM": ("13:00", "21:00"),
    "BET": ("11:00", "19:00"),
    "OFF": ("00:00", "00:00"),
}


def schedule_version(shift_code: Optional[str], assignments: Iterable[BreakAssignment]) -> str:
    """
    Version token for one agent's break set on one date.

    Changes whenever the agent's current shift code or any stored row
    changes; used for compare-and-swap on replace.
    """
    rows = sorted(
        (a.interval_slot, a.break_type.value, a.shift_code_at_assignment)
        for a in assignments
    )
    payload = repr((shift_code, rows)).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()
