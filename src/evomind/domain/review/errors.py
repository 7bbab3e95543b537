"""Typed errors raised by the review scheduler."""


class SchedulerError(Exception):
    """Base class for every error the scheduler reports to callers."""


class CardNotFound(SchedulerError):
    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(f"Card not found: {card_id}")


class SessionNotFound(SchedulerError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Review session not found: {session_id}")


class SessionAlreadyCompleted(SchedulerError):
    """Raised when a completed session is submitted again. Nothing is written."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Review session already completed: {session_id}")


class InvalidQuality(SchedulerError):
    def __init__(self, quality: object):
        self.quality = quality
        super().__init__(f"Quality must be an integer between 0 and 5, got {quality!r}")


class StoreUnavailable(SchedulerError):
    """Wraps an underlying persistence failure."""

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Store unavailable during {operation}{detail}")
