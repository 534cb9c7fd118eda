"""Calendar client exceptions."""


class CalendarError(Exception):
    """Base exception for Calendar API errors."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class EventNotFoundError(CalendarError):
    """Raised when the calendar or event does not exist."""

    pass


class InvalidInputError(CalendarError):
    """Raised when the provider rejects a request as malformed."""

    pass


class UpstreamError(CalendarError):
    """Raised for network failures and any other provider error."""

    pass


class ListCancelled(CalendarError):
    """Raised by an event stream after its cancellation token is set."""

    def __init__(self, message: str = "event listing cancelled"):
        super().__init__(message)
