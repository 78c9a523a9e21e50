GENERIC_SUBMISSION_MESSAGE = "Could not save the booking. Please try again."


class BookingValidationError(ValueError):
    """Raised when a booking draft has field-level errors. Never reaches the store."""

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__(", ".join(f"{k}={v}" for k, v in errors.items()))
        self.errors = dict(errors)


class RepositoryError(RuntimeError):
    """Raised when the booking store rejects or fails an operation."""
    pass


class BookingNotFound(RepositoryError):
    """Raised when an update targets a booking id the store does not know."""
    pass


class InvalidStatusTransition(RuntimeError):
    """Raised when a status change would leave a terminal status."""

    def __init__(self, booking_id: str, current: str, target: str) -> None:
        super().__init__(f"Invalid booking transition for {booking_id}: {current} -> {target}")
        self.booking_id = booking_id
        self.current = current
        self.target = target


class BookingSubmissionError(RuntimeError):
    """User-facing wrapper for store failures. The cause is logged, not shown."""

    def __init__(self, message: str = GENERIC_SUBMISSION_MESSAGE) -> None:
        super().__init__(message)


class AuthenticationError(RuntimeError):
    """Raised when admin credentials or a session token are rejected."""
    pass
