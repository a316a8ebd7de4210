"""Discretized operating day."""

from datetime import time

from utils.time import to_minutes, minutes_to_label, minutes_to_time

from .types import ShiftWindow


class IntervalGrid:
    """
    Fixed-size slots between day_start and day_end.

    Slot 0 starts at day_start; slot i covers
    [day_start + i*interval, day_start + (i+1)*interval).
    """

    def __init__(self, day_start="09:00", day_end="21:00", interval_minutes: int = 15):
        if isinstance(interval_minutes, bool) or not isinstance(interval_minutes, int):
            raise ValueError(f"Interval must be an integer number of minutes, got {interval_minutes!r}")
        if interval_minutes <= 0:
            raise ValueError(f"Interval must be positive, got {interval_minutes}")

        self.start_minute = to_minutes(day_start)
        self.end_minute = to_minutes(day_end)
        self.interval_minutes = interval_minutes

        span = self.end_minute - self.start_minute
        if span <= 0:
            raise ValueError(f"Day window {day_start}-{day_end} is empty")
        if span % interval_minutes:
            raise ValueError(
                f"Interval of {interval_minutes} minutes does not divide the "
                f"{span}-minute day window"
            )

    @property
    def total_slots(self) -> int:
        return (self.end_minute - self.start_minute) // self.interval_minutes

    def slot_of(self, time_of_day) -> int:
        """Slot containing time_of_day; unaligned times floor to their slot."""
        minute = to_minutes(time_of_day)
        if not self.start_minute <= minute < self.end_minute:
            raise ValueError(
                f"{minutes_to_label(minute)} is outside the operating day "
                f"{minutes_to_label(self.start_minute)}-{minutes_to_label(self.end_minute)}"
            )
        return (minute - self.start_minute) // self.interval_minutes

    def minute_of(self, slot: int) -> int:
        if isinstance(slot, bool) or not isinstance(slot, int) or not 0 <= slot < self.total_slots:
            raise ValueError(f"Slot {slot!r} out of range 0..{self.total_slots - 1}")
        return self.start_minute + slot * self.interval_minutes

    def time_of_day_of(self, slot: int) -> time:
        return minutes_to_time(self.minute_of(slot))

    def label(self, slot: int) -> str:
        return minutes_to_label(self.minute_of(slot))

    def labels(self) -> list[str]:
        return [self.label(slot) for slot in range(self.total_slots)]

    def window_slots(self, window: ShiftWindow) -> range:
        """Slots fully inside [window.start, window.end), clamped to the grid."""
        start = max(window.start_minute, self.start_minute)
        end = min(window.end_minute, self.end_minute)
        if end <= start:
            return range(0)
        # Round the start up and the end down to slot boundaries
        first = -(-(start - self.start_minute) // self.interval_minutes)
        last = (end - self.start_minute) // self.interval_minutes
        return range(first, max(first, last))
