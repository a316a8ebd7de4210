"""In-memory schedule repository for tests and local runs without MongoDB."""

import threading
import uuid
from dataclasses import replace
from typing import Iterable, Optional

from breaks.errors import ConcurrentModificationError, WarningNotFoundError
from breaks.types import (
    BreakAssignment,
    BreakRule,
    BreakScheduleWarning,
    CoverageRule,
    ScheduleConfig,
    Shift,
    schedule_version,
    DEFAULT_BREAK_RULES,
)
from utils import utc_now


class InMemoryScheduleRepository:
    """
    Dict-backed ScheduleRepository.

    replace_assignments runs its version check and swap under one lock,
    so concurrent replaces of the same agent serialize.
    """

    def __init__(
        self,
        shifts: Iterable[Shift] = (),
        rules: Optional[Iterable[BreakRule]] = None,
        coverage_rule: Optional[CoverageRule] = None,
        shift_configurations: Iterable[dict] = (),
        schedule_config: Optional[ScheduleConfig] = None,
    ):
        self._lock = threading.Lock()
        self.shifts: dict[tuple[str, str], Shift] = {}
        for shift in shifts:
            self.set_shift(shift)
        self.rules: dict[str, BreakRule] = {
            r.break_type.value: r for r in (DEFAULT_BREAK_RULES if rules is None else rules)
        }
        self.coverage_rule = coverage_rule or CoverageRule()
        self.shift_configurations: dict[str, dict] = {}
        for row in shift_configurations:
            self.shift_configurations[row["shift_code"].upper()] = dict(row)
        self.schedule_config = schedule_config
        self.assignments: dict[tuple[str, str], list[BreakAssignment]] = {}
        self.warnings: dict[str, BreakScheduleWarning] = {}

    # Roster helpers; the roster is owned elsewhere in production
    def set_shift(self, shift: Shift):
        self.shifts[(shift.user_id, shift.date)] = shift

    def remove_shift(self, user_id: str, date: str):
        self.shifts.pop((user_id, date), None)

    async def get_shifts(self, date: str, department: Optional[str] = None) -> list[Shift]:
        return sorted(
            (s for s in self.shifts.values() if s.date == date and (not department or s.department == department)),
            key=lambda s: s.user_id,
        )

    async def get_shift(self, user_id: str, date: str) -> Optional[Shift]:
        return self.shifts.get((user_id, date))

    async def get_break_rules(self) -> list[BreakRule]:
        return sorted(self.rules.values(), key=lambda r: (r.sequence, r.break_type.value))

    async def get_coverage_rule(self) -> CoverageRule:
        return self.coverage_rule

    async def get_schedule_config(self) -> Optional[ScheduleConfig]:
        return self.schedule_config

    async def get_shift_configurations(self) -> list[dict]:
        return [dict(self.shift_configurations[code]) for code in sorted(self.shift_configurations)]

    async def get_assignments(self, date: str, user_id: Optional[str] = None) -> list[BreakAssignment]:
        rows = [
            a
            for (uid, d), assignments in self.assignments.items()
            if d == date and (user_id is None or uid == user_id)
            for a in assignments
        ]
        return sorted(rows, key=lambda a: (a.user_id, a.interval_slot))

    async def get_warnings(self, date: str) -> list[BreakScheduleWarning]:
        return [w for w in self.warnings.values() if w.date == date]

    async def get_unresolved_warnings(self, date: str) -> list[BreakScheduleWarning]:
        return [w for w in self.warnings.values() if w.date == date and not w.resolved]

    def _version(self, user_id: str, date: str) -> str:
        shift = self.shifts.get((user_id, date))
        return schedule_version(shift.shift_code if shift else None, self.assignments.get((user_id, date), []))

    def _retire_resolved(self, date: str, user_id: Optional[str] = None):
        for warning_id, warning in list(self.warnings.items()):
            if warning.resolved and warning.date == date and (user_id is None or warning.user_id == user_id):
                del self.warnings[warning_id]

    async def replace_assignments(
        self,
        user_id: str,
        date: str,
        assignments: list[BreakAssignment],
        expected_version: Optional[str] = None,
    ) -> str:
        with self._lock:
            if expected_version is not None:
                actual = self._version(user_id, date)
                if actual != expected_version:
                    raise ConcurrentModificationError(user_id, date, expected_version, actual)
            if assignments:
                self.assignments[(user_id, date)] = list(assignments)
            else:
                self.assignments.pop((user_id, date), None)
            self._retire_resolved(date, user_id)
            return self._version(user_id, date)

    async def delete_assignments(self, user_id: str, date: str) -> int:
        with self._lock:
            self._retire_resolved(date, user_id)
            return len(self.assignments.pop((user_id, date), []))

    async def delete_assignments_for_date(self, date: str) -> int:
        with self._lock:
            keys = [key for key in self.assignments if key[1] == date]
            self._retire_resolved(date)
            return sum(len(self.assignments.pop(key)) for key in keys)

    async def save_warnings(self, warnings: list[BreakScheduleWarning]) -> list[BreakScheduleWarning]:
        saved = []
        with self._lock:
            signatures = {w.signature for w in self.warnings.values()}
            for warning in warnings:
                if warning.signature in signatures:
                    continue
                stored = replace(warning, id=uuid.uuid4().hex, created_at=utc_now())
                self.warnings[stored.id] = stored
                signatures.add(stored.signature)
                saved.append(stored)
        return saved

    async def resolve_warning(self, warning_id: str) -> BreakScheduleWarning:
        warning = self.warnings.get(warning_id)
        if warning is None:
            raise WarningNotFoundError(warning_id)
        warning.resolved = True
        return warning

    async def delete_warnings(self, warning_ids: list[str]) -> int:
        with self._lock:
            return sum(1 for warning_id in warning_ids if self.warnings.pop(warning_id, None) is not None)

    async def save_break_rule(self, rule: BreakRule) -> BreakRule:
        self.rules[rule.break_type.value] = rule
        return rule

    async def save_coverage_rule(self, rule: CoverageRule) -> CoverageRule:
        self.coverage_rule = rule
        return rule

    async def save_shift_configuration(self, row: dict) -> dict:
        stored = {
            "shift_code": row["shift_code"].upper(),
            "start_time": row["start_time"],
            "end_time": row["end_time"],
            "description": row.get("description"),
            "is_active": row.get("is_active", True),
        }
        self.shift_configurations[stored["shift_code"]] = stored
        return dict(stored)

    async def save_schedule_config(self, config: ScheduleConfig) -> ScheduleConfig:
        self.schedule_config = config
        return config
