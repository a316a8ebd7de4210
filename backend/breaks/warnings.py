"""Detection of break assignments made stale by roster changes."""

from typing import Iterable, Optional

from .shifts import ShiftWindowResolver
from .types import BreakAssignment, BreakScheduleWarning, Shift, WarningType


class WarningDetector:
    """
    Compares stored assignments with the current roster.

    Emits at most one warning per (user, date). A warning whose signature
    matches an existing warning, resolved or not, is not emitted again.
    A dismissed warning only lasts while its mismatch does: once the
    mismatch clears or changes, `obsolete` hands it back for removal so a
    later repeat of the same mismatch is reported afresh.
    """

    def __init__(self, resolver: Optional[ShiftWindowResolver] = None):
        self.resolver = resolver

    def detect(
        self,
        assignments: Iterable[BreakAssignment],
        current_shifts: Iterable[Shift],
        existing_warnings: Iterable[BreakScheduleWarning] = (),
    ) -> list[BreakScheduleWarning]:
        seen = {w.signature for w in existing_warnings}

        warnings = []
        mismatches = self._mismatches(assignments, current_shifts)
        for key in sorted(mismatches):
            warning = mismatches[key]
            if warning is None or warning.signature in seen:
                continue
            seen.add(warning.signature)
            warnings.append(warning)

        return warnings

    def obsolete(
        self,
        assignments: Iterable[BreakAssignment],
        current_shifts: Iterable[Shift],
        existing_warnings: Iterable[BreakScheduleWarning],
    ) -> list[BreakScheduleWarning]:
        """Resolved warnings whose mismatch no longer holds."""
        current = self._mismatches(assignments, current_shifts)
        stale = []
        for warning in existing_warnings:
            if not warning.resolved:
                continue
            now = current.get((warning.user_id, warning.date))
            if now is None or now.signature != warning.signature:
                stale.append(warning)
        return stale

    def _mismatches(
        self,
        assignments: Iterable[BreakAssignment],
        current_shifts: Iterable[Shift],
    ) -> dict[tuple[str, str], Optional[BreakScheduleWarning]]:
        shifts = {(s.user_id, s.date): s for s in current_shifts}

        # The stored code for each (user, date); rows are written together
        stored: dict[tuple[str, str], str] = {}
        for assignment in sorted(assignments, key=lambda a: (a.user_id, a.date, a.interval_slot)):
            stored.setdefault((assignment.user_id, assignment.date), assignment.shift_code_at_assignment)

        return {
            (user_id, date): self._check(user_id, date, old_code, shifts.get((user_id, date)))
            for (user_id, date), old_code in stored.items()
        }

    def _check(
        self,
        user_id: str,
        date: str,
        old_code: str,
        shift: Optional[Shift],
    ) -> Optional[BreakScheduleWarning]:
        if shift is None:
            return BreakScheduleWarning(
                user_id=user_id,
                date=date,
                warning_type=WarningType.SHIFT_REMOVED,
                old_shift_code=old_code,
                new_shift_code=None,
                message=f"Shift {old_code} was removed; break schedule needs review",
            )

        if shift.shift_code.upper() != old_code.upper():
            return BreakScheduleWarning(
                user_id=user_id,
                date=date,
                warning_type=WarningType.SHIFT_CHANGED,
                old_shift_code=old_code,
                new_shift_code=shift.shift_code,
                message=(
                    f"Shift changed from {old_code} to {shift.shift_code}; "
                    f"break schedule needs review"
                ),
            )

        if self.resolver is not None and self.resolver.resolve(shift.shift_code) is None:
            return BreakScheduleWarning(
                user_id=user_id,
                date=date,
                warning_type=WarningType.NO_SHIFT_WINDOW,
                old_shift_code=old_code,
                new_shift_code=shift.shift_code,
                message=f"Shift {shift.shift_code} no longer has a schedulable window",
            )

        return None
