from .database import init_db, close_db
from .models import (
    EmployeeDoc,
    ShiftDoc,
    BreakAssignmentDoc,
    BreakWarningDoc,
    BreakRuleDoc,
    CoverageRuleDoc,
    ShiftConfigurationDoc,
    ScheduleConfigDoc,
    DurationBucketEmbed,
)
from .repository import ScheduleRepository, BeanieScheduleRepository
from .memory import InMemoryScheduleRepository

__all__ = [
    "init_db",
    "close_db",
    "EmployeeDoc",
    "ShiftDoc",
    "BreakAssignmentDoc",
    "BreakWarningDoc",
    "BreakRuleDoc",
    "CoverageRuleDoc",
    "ShiftConfigurationDoc",
    "ScheduleConfigDoc",
    "DurationBucketEmbed",
    "ScheduleRepository",
    "BeanieScheduleRepository",
    "InMemoryScheduleRepository",
]
