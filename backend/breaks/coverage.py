"""Per-slot staffing versus on-break aggregation."""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

import numpy as np
import pandas as pd

from .grid import IntervalGrid
from .shifts import ShiftWindowResolver
from .types import (
    BreakAssignment,
    BreakType,
    CoverageRule,
    Shift,
    Violation,
    ViolationType,
)


@dataclass
class SlotCoverage:
    """Headcount in one interval slot."""
    slot: int
    staffed: int = 0
    on_break: int = 0
    by_type: dict[BreakType, int] = field(default_factory=dict)

    @property
    def available(self) -> int:
        return self.staffed - self.on_break

    def to_dict(self) -> dict:
        return {
            "slot": self.slot,
            "staffed": self.staffed,
            "on_break": self.on_break,
            "available": self.available,
            "by_type": {bt.value: self.by_type.get(bt, 0) for bt in BreakType},
        }


@dataclass
class CoverageSnapshot:
    """Coverage for every slot touched by a shift window or an assignment."""
    slots: dict[int, SlotCoverage] = field(default_factory=dict)

    def get(self, slot: int) -> SlotCoverage:
        return self.slots.get(slot) or SlotCoverage(slot)

    def exceeding(self, rule: CoverageRule) -> list[Violation]:
        """Slots with more agents on break than the coverage rule allows."""
        violations = []
        for slot in sorted(self.slots):
            cov = self.slots[slot]
            if cov.on_break == 0:
                continue
            capacity = rule.capacity(cov.staffed)
            if capacity is not None and cov.on_break > capacity:
                violations.append(Violation(
                    violation_type=ViolationType.COVERAGE_EXCEEDED,
                    message=(
                        f"{cov.on_break} agents on break at slot {slot} "
                        f"(staffed {cov.staffed}, capacity {capacity})"
                    ),
                    slot=slot,
                    details={
                        "staffed": cov.staffed,
                        "on_break": cov.on_break,
                        "capacity": capacity,
                    },
                ))
        return violations

    def stats(self) -> dict:
        """Min/max/mean/variance of available headcount over staffed slots."""
        available = np.array(
            [cov.available for cov in self.slots.values() if cov.staffed > 0],
            dtype=float,
        )
        if available.size == 0:
            return {"min_available": 0, "max_available": 0, "avg_available": 0.0, "variance": 0.0}
        return {
            "min_available": int(available.min()),
            "max_available": int(available.max()),
            "avg_available": round(float(available.mean()), 2),
            "variance": round(float(available.var()), 2),
        }

    def to_frame(self, grid: IntervalGrid) -> pd.DataFrame:
        """Wide table indexed by slot label, one column per measure."""
        rows = []
        for slot in sorted(self.slots):
            cov = self.slots[slot]
            row = {
                "time": grid.label(slot) if 0 <= slot < grid.total_slots else str(slot),
                "staffed": cov.staffed,
                "on_break": cov.on_break,
            }
            for bt in BreakType:
                row[bt.value] = cov.by_type.get(bt, 0)
            row["available"] = cov.available
            rows.append(row)
        columns = ["time", "staffed", "on_break"] + [bt.value for bt in BreakType] + ["available"]
        return pd.DataFrame(rows, columns=columns).set_index("time")

    def to_dict(self) -> list[dict]:
        return [self.slots[slot].to_dict() for slot in sorted(self.slots)]


class CoverageCalculator:
    """Aggregates shifts and break assignments into a CoverageSnapshot."""

    def __init__(self, grid: IntervalGrid, resolver: ShiftWindowResolver):
        self.grid = grid
        self.resolver = resolver

    def summarize(
        self,
        assignments: Iterable[BreakAssignment],
        shifts: Iterable[Shift],
    ) -> CoverageSnapshot:
        snapshot = CoverageSnapshot()

        for shift in shifts:
            window = self.resolver.resolve(shift.shift_code)
            if window is None:
                continue
            for slot in self.grid.window_slots(window):
                snapshot.slots.setdefault(slot, SlotCoverage(slot)).staffed += 1

        # Distinct agents per slot; a user double-booked in one slot counts once
        users_by_slot: dict[int, set[str]] = defaultdict(set)
        for assignment in assignments:
            cov = snapshot.slots.setdefault(assignment.interval_slot, SlotCoverage(assignment.interval_slot))
            cov.by_type[assignment.break_type] = cov.by_type.get(assignment.break_type, 0) + 1
            users_by_slot[assignment.interval_slot].add(assignment.user_id)

        for slot, users in users_by_slot.items():
            snapshot.slots[slot].on_break = len(users)

        return snapshot
