"""Constraint validator that runs every break check in order."""

from typing import Iterable, Optional

from .grid import IntervalGrid
from .shifts import ShiftWindowResolver
from .types import BreakRule, BreakType, Shift, ValidationResult, DEFAULT_BREAK_RULES
from .validators import (
    BaseCheck,
    ValidationContext,
    ShiftWindowCheck,
    ForbiddenEdgeCheck,
    SpacingCheck,
    CountCheck,
    DuplicateSlotCheck,
    OrderingCheck,
    MaxGapCheck,
)


def rules_by_type(rules: Iterable[BreakRule]) -> dict[BreakType, BreakRule]:
    """Index the active rules by break type, rejecting two rules for one type."""
    indexed: dict[BreakType, BreakRule] = {}
    seen = set()
    for rule in rules:
        if rule.break_type in seen:
            raise ValueError(f"Duplicate break rule for {rule.break_type.value}")
        seen.add(rule.break_type)
        if rule.is_active:
            indexed[rule.break_type] = rule
    return indexed


def normalize_proposed(proposed: Iterable) -> list[tuple[int, BreakType]]:
    """Accept (slot, type) pairs or BreakAssignment-like objects."""
    result = []
    for item in proposed:
        if hasattr(item, "interval_slot"):
            slot, break_type = item.interval_slot, item.break_type
        else:
            slot, break_type = item
        if isinstance(slot, bool) or not isinstance(slot, int):
            raise ValueError(f"Interval slot must be an integer, got {slot!r}")
        result.append((slot, BreakType(break_type)))
    return result


class ConstraintValidator:
    """
    Validates one agent's proposed breaks against the break rules.

    Every violation is collected; a break already reported by an earlier
    check is not reported again by a later one. Inactive rules are ignored.
    """

    def __init__(self, grid: IntervalGrid, resolver: ShiftWindowResolver):
        self.grid = grid
        self.resolver = resolver
        self.checks: list[BaseCheck] = [
            ShiftWindowCheck(),
            ForbiddenEdgeCheck(),
            SpacingCheck(),
            CountCheck(),
            DuplicateSlotCheck(),
            OrderingCheck(),
            MaxGapCheck(),
        ]

    def validate(
        self,
        shift: Shift,
        proposed: Iterable,
        rules: Optional[Iterable[BreakRule]] = None,
    ) -> ValidationResult:
        """
        Run all checks.

        Args:
            shift: The agent's current roster shift
            proposed: (slot, break_type) pairs or BreakAssignment rows
            rules: Break rules; defaults to the standard HB1/B/HB2 set

        Returns:
            ValidationResult with all violations found
        """
        window = self.resolver.resolve(shift.shift_code)
        context = ValidationContext(
            shift=shift,
            window=window,
            window_slots=self.grid.window_slots(window) if window else range(0),
            proposed=normalize_proposed(proposed),
            rules=rules_by_type(DEFAULT_BREAK_RULES if rules is None else rules),
        )

        result = ValidationResult()
        for check in self.checks:
            check.check(context, result)

        return result
