from .types import (
    BreakType,
    ViolationType,
    ViolationSeverity,
    WarningType,
    ShiftWindow,
    Shift,
    DurationBucket,
    BreakRule,
    CoverageRule,
    BreakAssignment,
    BreakScheduleWarning,
    Violation,
    ValidationResult,
    ScheduleConfig,
    DEFAULT_BREAK_RULES,
    DEFAULT_SHIFT_WINDOWS,
    schedule_version,
)
from .errors import (
    BreakScheduleError,
    ShiftNotFoundError,
    WarningNotFoundError,
    ConcurrentModificationError,
    RepositoryError,
)
from .shifts import ShiftWindowResolver
from .grid import IntervalGrid
from .engine import ConstraintValidator, rules_by_type
from .coverage import CoverageCalculator, CoverageSnapshot, SlotCoverage
from .warnings import WarningDetector

__all__ = [
    "BreakType",
    "ViolationType",
    "ViolationSeverity",
    "WarningType",
    "ShiftWindow",
    "Shift",
    "DurationBucket",
    "BreakRule",
    "CoverageRule",
    "BreakAssignment",
    "BreakScheduleWarning",
    "Violation",
    "ValidationResult",
    "ScheduleConfig",
    "DEFAULT_BREAK_RULES",
    "DEFAULT_SHIFT_WINDOWS",
    "schedule_version",
    "BreakScheduleError",
    "ShiftNotFoundError",
    "WarningNotFoundError",
    "ConcurrentModificationError",
    "RepositoryError",
    "ShiftWindowResolver",
    "IntervalGrid",
    "ConstraintValidator",
    "rules_by_type",
    "CoverageCalculator",
    "CoverageSnapshot",
    "SlotCoverage",
    "WarningDetector",
]
