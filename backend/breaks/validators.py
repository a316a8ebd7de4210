"""Per-agent break rule checks."""

from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from .types import (
    BreakRule,
    BreakType,
    Shift,
    ShiftWindow,
    ValidationResult,
    Violation,
    ViolationSeverity,
    ViolationType,
)


@dataclass
class ValidationContext:
    """Everything the checks need about one agent's proposed breaks."""
    shift: Shift
    window: Optional[ShiftWindow]
    window_slots: range
    proposed: list[tuple[int, BreakType]]
    rules: dict[BreakType, BreakRule]
    # Indexes into `proposed` already reported by an earlier check
    flagged: set[int] = field(default_factory=set)

    def unflagged(self) -> list[tuple[int, int, BreakType]]:
        """(index, slot, break_type) of breaks no check has reported yet, by slot."""
        items = [
            (i, slot, break_type)
            for i, (slot, break_type) in enumerate(self.proposed)
            if i not in self.flagged
        ]
        return sorted(items, key=lambda item: (item[1], item[0]))

    def spacing_for(self, break_type: BreakType) -> int:
        rule = self.rules.get(break_type)
        return rule.min_spacing_slots if rule else 0

    def severity_for(self, break_type: BreakType) -> ViolationSeverity:
        rule = self.rules.get(break_type)
        if rule is not None and not rule.is_blocking:
            return ViolationSeverity.WARNING
        return ViolationSeverity.ERROR


class BaseCheck(ABC):
    """Base class for break checks."""

    @abstractmethod
    def check(self, context: ValidationContext, result: ValidationResult) -> None:
        """Check the proposal and add violations to result."""
        pass

    @staticmethod
    def _report(
        context: ValidationContext,
        result: ValidationResult,
        index: int,
        violation_type: ViolationType,
        message: str,
        **details,
    ):
        slot, break_type = context.proposed[index]
        context.flagged.add(index)
        result.add_violation(Violation(
            violation_type=violation_type,
            message=message,
            user_id=context.shift.user_id,
            slot=slot,
            break_type=break_type,
            details=details,
            severity=context.severity_for(break_type),
        ))


class ShiftWindowCheck(BaseCheck):
    """Every break must lie inside the agent's shift window."""

    def check(self, context: ValidationContext, result: ValidationResult) -> None:
        shift = context.shift
        if context.window is None:
            for i in range(len(context.proposed)):
                self._report(
                    context, result, i, ViolationType.NO_SHIFT_WINDOW,
                    f"Shift code {shift.shift_code!r} has no schedulable window",
                    shift_code=shift.shift_code,
                )
            return

        for i, slot, break_type in context.unflagged():
            if slot not in context.window_slots:
                self._report(
                    context, result, i, ViolationType.OUTSIDE_SHIFT,
                    f"{break_type.value} at slot {slot} is outside the "
                    f"{shift.shift_code} shift ({context.window.start}-{context.window.end})",
                    shift_start=context.window.start,
                    shift_end=context.window.end,
                )


class ForbiddenEdgeCheck(BaseCheck):
    """No break in the first or last slots of the shift."""

    def check(self, context: ValidationContext, result: ValidationResult) -> None:
        slots = context.window_slots
        if not slots:
            return

        for i, slot, break_type in context.unflagged():
            rule = context.rules.get(break_type)
            edge = rule.forbidden_edge_slots if rule else 0
            if edge <= 0:
                continue
            if slot < slots.start + edge or slot >= slots.stop - edge:
                self._report(
                    context, result, i, ViolationType.FORBIDDEN_EDGE,
                    f"{break_type.value} at slot {slot} falls within {edge} slots "
                    f"of the shift start or end",
                    forbidden_edge_slots=edge,
                )


class SpacingCheck(BaseCheck):
    """Distinct breaks must be at least min_spacing_slots apart."""

    def check(self, context: ValidationContext, result: ValidationResult) -> None:
        accepted: list[tuple[int, BreakType]] = []

        for i, slot, break_type in context.unflagged():
            conflict = None
            for other_slot, other_type in accepted:
                if other_slot == slot:
                    continue  # Same slot is a duplicate, not a spacing problem
                needed = max(context.spacing_for(break_type), context.spacing_for(other_type))
                if abs(slot - other_slot) < needed:
                    conflict = (other_slot, other_type, needed)
                    break

            if conflict is None:
                accepted.append((slot, break_type))
                continue

            other_slot, other_type, needed = conflict
            self._report(
                context, result, i, ViolationType.SPACING,
                f"{break_type.value} at slot {slot} is {abs(slot - other_slot)} slots from "
                f"{other_type.value} at slot {other_slot}; minimum is {needed}",
                conflicting_slot=other_slot,
                min_spacing_slots=needed,
            )


class CountCheck(BaseCheck):
    """Each break type must appear exactly as often as the shift length requires."""

    def check(self, context: ValidationContext, result: ValidationResult) -> None:
        if context.window is None:
            return

        duration = context.window.duration_minutes
        actual = Counter(break_type for _, break_type in context.proposed)
        types = set(context.rules) | set(actual)

        for break_type in sorted(types, key=_type_order(context.rules)):
            rule = context.rules.get(break_type)
            required = rule.required_count(duration) if rule else 0
            found = actual.get(break_type, 0)
            if found != required:
                result.add_violation(Violation(
                    violation_type=ViolationType.COUNT_MISMATCH,
                    message=(
                        f"{context.shift.shift_code} shift of {duration} minutes needs "
                        f"{required} {break_type.value}, got {found}"
                    ),
                    user_id=context.shift.user_id,
                    break_type=break_type,
                    details={"required": required, "actual": found, "shift_minutes": duration},
                    severity=context.severity_for(break_type),
                ))


class DuplicateSlotCheck(BaseCheck):
    """An agent cannot take two breaks in the same slot."""

    def check(self, context: ValidationContext, result: ValidationResult) -> None:
        seen: dict[int, BreakType] = {}
        for i, slot, break_type in context.unflagged():
            if slot in seen:
                self._report(
                    context, result, i, ViolationType.DUPLICATE_SLOT,
                    f"Slot {slot} already holds {seen[slot].value}",
                    existing_break_type=seen[slot].value,
                )
            else:
                seen[slot] = break_type


class OrderingCheck(BaseCheck):
    """Breaks must follow rule sequence order (HB1, then B, then HB2)."""

    def check(self, context: ValidationContext, result: ValidationResult) -> None:
        latest: Optional[tuple[int, BreakType]] = None
        for i, slot, break_type in context.unflagged():
            rule = context.rules.get(break_type)
            if rule is None:
                continue
            if latest is not None and rule.sequence < latest[0]:
                self._report(
                    context, result, i, ViolationType.ORDERING,
                    f"{break_type.value} at slot {slot} comes after {latest[1].value}",
                    preceding_break_type=latest[1].value,
                )
                continue
            latest = (rule.sequence, break_type)


class MaxGapCheck(BaseCheck):
    """
    Consecutive breaks should not be further apart than max_gap_slots.

    Advisory only: always reported as a warning.
    """

    def check(self, context: ValidationContext, result: ValidationResult) -> None:
        previous = None
        for i, slot, break_type in context.unflagged():
            if previous is not None:
                prev_slot, prev_type = previous
                limits = [
                    rule.max_gap_slots
                    for rule in (context.rules.get(prev_type), context.rules.get(break_type))
                    if rule is not None and rule.max_gap_slots is not None
                ]
                gap = slot - prev_slot
                if limits and gap > min(limits):
                    result.add_violation(Violation(
                        violation_type=ViolationType.MAX_GAP,
                        message=(
                            f"{break_type.value} at slot {slot} is {gap} slots after "
                            f"{prev_type.value} at slot {prev_slot}; maximum is {min(limits)}"
                        ),
                        user_id=context.shift.user_id,
                        slot=slot,
                        break_type=break_type,
                        details={"previous_slot": prev_slot, "max_gap_slots": min(limits)},
                        severity=ViolationSeverity.WARNING,
                    ))
            previous = (slot, break_type)


def _type_order(rules: dict[BreakType, BreakRule]):
    def key(break_type: BreakType):
        rule = rules.get(break_type)
        return (rule.sequence if rule else 1 << 30, break_type.value)
    return key
