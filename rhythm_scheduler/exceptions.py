"""
Error types raised at the host boundary.

The engine itself degrades to neutral values (zero averages, empty
schedules); exceptions are reserved for input the host hands back to us,
such as persisted adaptive state that no longer parses.
"""
from typing import Optional


class SchedulerError(Exception):
    """Base class for known engine errors."""

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def get_user_message(self) -> str:
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


class StateError(SchedulerError):
    """Persisted weights or preferences could not be loaded."""

    def __init__(self, message: str, corrupted_data: Optional[str] = None):
        super().__init__(message, hint="reset the saved model state or restore a backup")
        self.corrupted_data = corrupted_data
