# Domain Review Package
from .errors import (
    CardNotFound,
    InvalidQuality,
    SchedulerError,
    SessionAlreadyCompleted,
    SessionNotFound,
    StoreUnavailable,
)
from .models import (
    Card,
    ReviewQuality,
    ReviewSession,
    ScheduleResult,
    SessionType,
    describe_quality,
)
from .ports import CardStore, Clock, ReviewUnitOfWork, SessionStore

__all__ = [
    "Card",
    "ReviewSession",
    "ReviewQuality",
    "ScheduleResult",
    "SessionType",
    "describe_quality",
    "Clock",
    "CardStore",
    "SessionStore",
    "ReviewUnitOfWork",
    "SchedulerError",
    "CardNotFound",
    "SessionNotFound",
    "SessionAlreadyCompleted",
    "InvalidQuality",
    "StoreUnavailable",
]
