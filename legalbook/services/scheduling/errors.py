class SchedulingError(Exception):
    """Base error for the scheduling core."""
    pass

class ValidationError(SchedulingError):
    """Raised when a booking or update breaks a business rule."""

    def __init__(self, message: str, field: str | None = None, rule: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.rule = rule

class ConflictError(SchedulingError):
    """Raised when the requested interval overlaps active appointments."""

    def __init__(self, conflicts: list, message: str = "Appointment conflicts with existing schedule"):
        super().__init__(message)
        self.message = message
        self.conflicts = conflicts

class NotFoundError(SchedulingError):
    """Raised for unknown appointment ids."""
    pass

class AuthorizationError(SchedulingError):
    """Raised when a known appointment may not be touched by the caller."""
    pass

class FinalizedStateError(SchedulingError):
    """Raised on any transition out of a terminal status."""

    def __init__(self, status):
        super().__init__(f"Appointment is already finalized ({status.value})")
        self.status = status

class ConcurrentWriteError(SchedulingError):
    """Raised by a calendar store when the database reports a lost race."""
    pass
