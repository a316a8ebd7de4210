"""Resolve shift codes to concrete working windows."""

from typing import Iterable, Optional

from utils.time import to_minutes

from .types import ShiftWindow, DEFAULT_SHIFT_WINDOWS


class ShiftWindowResolver:
    """
    Maps shift codes (AM, PM, BET, ...) to start/end windows.

    Codes are matched case-insensitively. Unknown codes, inactive codes
    and zero-length windows (OFF) resolve to None.
    """

    def __init__(self, windows: Optional[dict[str, tuple]] = None, inactive: Iterable[str] = ()):
        self._windows: dict[str, ShiftWindow] = {}
        self._inactive = {code.upper() for code in inactive}
        for code, (start, end) in (windows if windows is not None else DEFAULT_SHIFT_WINDOWS).items():
            self._windows[code.upper()] = ShiftWindow(to_minutes(start), to_minutes(end))

    @classmethod
    def from_configurations(cls, rows: Iterable[dict]) -> "ShiftWindowResolver":
        """Build from shift configuration rows: {shift_code, start_time, end_time, is_active}."""
        windows = {}
        inactive = []
        for row in rows:
            code = row["shift_code"]
            windows[code] = (row["start_time"], row["end_time"])
            if not row.get("is_active", True):
                inactive.append(code)
        return cls(windows, inactive)

    def resolve(self, shift_code: Optional[str]) -> Optional[ShiftWindow]:
        if not shift_code:
            return None
        code = shift_code.strip().upper()
        if code in self._inactive:
            return None
        window = self._windows.get(code)
        if window is None or window.duration_minutes <= 0:
            return None
        return window

    def codes(self) -> list[str]:
        return sorted(self._windows)
