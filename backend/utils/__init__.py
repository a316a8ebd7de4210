from .time import utc_now, normalize_time, to_minutes, minutes_to_label, minutes_to_time

__all__ = [
    "utc_now",
    "normalize_time",
    "to_minutes",
    "minutes_to_label",
    "minutes_to_time",
]
