# Application Review Package
from .algorithm import calculate_next_review, is_due, update_ease_factor
from .due import DueSelector, classify_urgency, urgency_for_card
from .service import ReviewSessionService, validate_quality

__all__ = [
    "calculate_next_review",
    "update_ease_factor",
    "is_due",
    "DueSelector",
    "classify_urgency",
    "urgency_for_card",
    "ReviewSessionService",
    "validate_quality",
]
