"""
Domain models for review statistics.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class StatsWindow:
    """
    A half-open reporting window ``[start, now]``.

    Attributes:
        today_start: Local midnight of the current day.
        week_start: Local midnight seven days before today_start.
    """

    today_start: datetime
    week_start: datetime


@dataclass
class ReviewStats:
    """
    Aggregate review activity for reporting.

    Only completed sessions are counted. ``average_quality`` is None when
    no session was completed in the week window.
    """

    today_reviews: int = 0
    today_distinct_cards: int = 0
    week_reviews: int = 0
    week_distinct_cards: int = 0
    due_cards_count: int = 0
    average_quality: float | None = None
    session_type_counts: dict[str, int] = field(default_factory=dict)
