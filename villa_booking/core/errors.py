class BookingError(Exception):
    """Base class for booking rule violations surfaced to the client."""

    code = "booking_error"
    status_code = 422

    def __init__(self, message: str, detail=None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail if detail is not None else message


class ValidationError(BookingError):
    code = "validation_error"


class ConflictError(BookingError):
    code = "booking_conflict"


class InvalidStateError(BookingError):
    code = "invalid_state"
