"""Exceptions raised by the break scheduling service and repositories."""


class BreakScheduleError(Exception):
    """Base class for break scheduling errors."""


class ShiftNotFoundError(BreakScheduleError):
    """No roster shift exists for the requested (user, date)."""

    def __init__(self, user_id: str, date: str):
        self.user_id = user_id
        self.date = date
        super().__init__(f"No shift found for {user_id} on {date}")


class WarningNotFoundError(BreakScheduleError):
    """The warning to dismiss does not exist."""

    def __init__(self, warning_id: str):
        self.warning_id = warning_id
        super().__init__(f"Warning not found: {warning_id}")


class ConcurrentModificationError(BreakScheduleError):
    """
    The agent's shift or break set changed since it was read.

    Raised by the optimistic-concurrency check on replace; the caller
    should re-read and retry the edit.
    """

    def __init__(self, user_id: str, date: str, expected_version: str, actual_version: str):
        self.user_id = user_id
        self.date = date
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Break schedule for {user_id} on {date} was modified "
            f"(expected version {expected_version[:12]}, found {actual_version[:12]})"
        )


class RepositoryError(BreakScheduleError):
    """I/O failure in the schedule repository. Propagated unchanged."""
