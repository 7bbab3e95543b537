"""
Domain models for review scheduling.

These are pure data structures with no I/O or external dependencies.
Timestamps are timezone-aware datetimes; adapters convert them to
whatever unit their storage uses.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from evomind.domain.constants import MAX_QUALITY, MIN_QUALITY


class SessionType(str, Enum):
    """How the learner engaged with the card. Opaque to the algorithm."""

    QUICK = "quick"  # skim
    DEEP = "deep"  # close reading
    TEST = "test"  # self-test
    ASSOCIATIVE = "associative"  # linking to other knowledge


class ReviewQuality(int, Enum):
    """
    The published 0-5 recall grade scale.

    This scale is shared with the UI layer and must not be renumbered.
    """

    COMPLETELY_FORGOTTEN = 0
    FORGOTTEN = 1
    DIFFICULT = 2
    HARD = 3
    GOOD = 4
    PERFECT = 5

    @property
    def description(self) -> str:
        return _QUALITY_DESCRIPTIONS[self]


_QUALITY_DESCRIPTIONS = {
    ReviewQuality.PERFECT: "Perfect answer - effortless recall",
    ReviewQuality.GOOD: "Correct answer - some hesitation",
    ReviewQuality.HARD: "Correct answer - serious difficulty",
    ReviewQuality.DIFFICULT: "Wrong answer - familiar once shown",
    ReviewQuality.FORGOTTEN: "Wrong answer - remembered once shown",
    ReviewQuality.COMPLETELY_FORGOTTEN: "Total forgetting",
}


def describe_quality(quality: int) -> str:
    """Return the human-readable meaning of a quality grade."""
    if isinstance(quality, bool) or not isinstance(quality, int):
        return "Unknown quality"
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        return "Unknown quality"
    return ReviewQuality(quality).description


@dataclass(frozen=True)
class Card:
    """
    Scheduling view of a learned card.

    Attributes:
        id: Stable card identifier.
        review_count: Completed review sessions for this card.
        last_reviewed_at: Time of the last completed review, None if never reviewed.
        next_review_at: The card is due at or after this time.
        created_at: Creation time; also the default for next_review_at.
        updated_at: Last time the schedule fields changed.
        title: Display text, not used for scheduling.
    """

    id: str
    next_review_at: datetime
    created_at: datetime
    review_count: int = 0
    last_reviewed_at: datetime | None = None
    updated_at: datetime | None = None
    title: str | None = None


@dataclass(frozen=True)
class ReviewSession:
    """
    One review of a single card, bounded by start and completion.

    A session is open while ``quality`` is None. ``ease_factor`` is the
    ease factor in effect when the session started; ``new_ease_factor``
    is what the algorithm produced on completion.
    """

    id: str
    card_id: str
    session_type: SessionType
    ease_factor: float
    reviewed_at: datetime
    quality: int | None = None
    interval_days: int | None = None
    review_duration: timedelta | None = None
    notes: str | None = None
    new_ease_factor: float | None = None
    completed_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.quality is not None


@dataclass(frozen=True)
class ScheduleResult:
    """
    Output of the scheduling algorithm.

    Attributes:
        next_interval_days: Days until the next review (1..MAX_INTERVAL_DAYS).
        new_ease_factor: Updated ease factor (>= MIN_EASE_FACTOR).
        reset: True when a poor grade sent the card back to the first interval.
    """

    next_interval_days: int
    new_ease_factor: float
    reset: bool

