"""Type definitions for the break distribution solvers."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from breaks.coverage import CoverageSnapshot
from breaks.grid import IntervalGrid
from breaks.shifts import ShiftWindowResolver
from breaks.types import (
    BreakAssignment,
    BreakRule,
    CoverageRule,
    Shift,
    Violation,
    DEFAULT_BREAK_RULES,
)


class SolverType(str, Enum):
    """Available solver types."""
    GREEDY = "greedy"
    ORTOOLS = "ortools"
    STAGGERED = "staggered"


class SolverStatus(str, Enum):
    """Solver result status."""
    OPTIMAL = "optimal"
    SUBOPTIMAL = "suboptimal"
    INFEASIBLE = "infeasible"
    ERROR = "error"


class ApplyMode(str, Enum):
    """Which agents a distribution may touch."""
    ALL = "all"
    ONLY_UNSCHEDULED = "only_unscheduled"


@dataclass
class SolverConfig:
    """Configuration parameters for the solver."""
    time_limit_sec: float = 10.0
    random_seed: int = 0
    num_workers: int = 1  # More than one worker makes CP-SAT non-deterministic


@dataclass
class DistributionProblem:
    """Input data for one day's break distribution."""
    date: str
    shifts: list[Shift]
    grid: IntervalGrid
    resolver: ShiftWindowResolver
    rules: list[BreakRule] = field(default_factory=lambda: list(DEFAULT_BREAK_RULES))
    coverage_rule: CoverageRule = field(default_factory=CoverageRule)
    apply_mode: ApplyMode = ApplyMode.ALL
    existing_assignments: list[BreakAssignment] = field(default_factory=list)
    created_by: Optional[str] = None


@dataclass
class DistributionResult:
    """Result from a distribution run. Not persisted until applied."""
    assignments_by_user: dict[str, list[BreakAssignment]]
    violations: list[Violation]
    feasible: bool
    coverage: CoverageSnapshot
    skipped_users: list[str] = field(default_factory=list)
    kept_users: list[str] = field(default_factory=list)
    solver: str = SolverType.GREEDY.value
    rule_compliance: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "assignments_by_user": {
                user_id: [a.to_dict() for a in sorted(rows, key=lambda a: a.interval_slot)]
                for user_id, rows in sorted(self.assignments_by_user.items())
            },
            "violations": [v.to_dict() for v in self.violations],
            "feasible": self.feasible,
            "coverage": self.coverage.to_dict(),
            "coverage_stats": self.coverage.stats(),
            "skipped_users": sorted(self.skipped_users),
            "kept_users": sorted(self.kept_users),
            "solver": self.solver,
            "rule_compliance": self.rule_compliance,
        }
