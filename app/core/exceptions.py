"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class BookingConflictException(ConflictException):
    """Proposed booking overlaps an existing patient or doctor appointment."""

    def __init__(self, message: str, reason: str, conflicting_id: str | None = None):
        """Initialize with the conflict reason and the clashing appointment."""
        super().__init__(message)
        self.reason = reason
        self.conflicting_id = conflicting_id


class PastBookingException(ValidationException):
    """Proposed booking starts at or before the current time."""

    reason = "past_date"

    def __init__(self, message: str = "Cannot schedule appointment for past date/time."):
        """Initialize with 422 status code."""
        super().__init__(message)


class InvalidTransitionException(ConflictException):
    """Requested status change is not permitted by the appointment lifecycle."""

    reason = "invalid_transition"
