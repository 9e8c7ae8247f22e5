class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class SchedulingRejected(AppError):
    """Raised when a timetable candidate breaks a scheduling rule."""
    def __init__(self, reason: str, message: str, conflicting_entry: dict | None = None):
        status_code = 422 if reason == "incomplete_selection" else 409
        super().__init__(
            message,
            status_code=status_code,
            details={"reason": reason, "conflicting_entry": conflicting_entry},
        )
        self.reason = reason

class PersistenceError(AppError):
    """Raised when the entry store fails to create or delete a record.

    Kept apart from ``SchedulingRejected`` so callers can tell a rule
    rejection from an infrastructure failure. Never retried by the core.
    """
    reason = "persistence_failed"

    def __init__(self, operation: str, message: str, entry_id: str | None = None, status_code: int = 503):
        super().__init__(
            message,
            status_code=status_code,
            details={"reason": self.reason, "operation": operation, "entry_id": entry_id},
        )
        self.operation = operation
        self.entry_id = entry_id

class SessionBusyError(AppError):
    """Raised when a scheduling session is submitted while a submit is in flight."""
    def __init__(self, message: str = "A submission is already in progress for this session"):
        super().__init__(message, status_code=409)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)
