"""
SM-2 style scheduling algorithm.

Pure computation module with no I/O. Maps a quality grade and the card's
review history to the next interval and the updated ease factor.

Interval progression for good answers: 1 day, 6 days, then the previous
real interval multiplied by the ease factor (1 -> 6 -> 16 -> ...).
"""

import logging
import math
from datetime import datetime

from evomind.domain.constants import (
    INITIAL_INTERVAL,
    MAX_INTERVAL_DAYS,
    MIN_EASE_FACTOR,
    PASSING_QUALITY,
    RESET_EASE_PENALTY,
    SECOND_INTERVAL,
)
from evomind.domain.review.models import Card, ScheduleResult

logger = logging.getLogger(__name__)


def update_ease_factor(current_ease_factor: float, quality: int) -> float:
    """
    Apply the SM-2 ease factor update.

    EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)), floored at 1.3.
    Higher grades raise EF, lower grades shrink it.
    """
    miss = 5 - quality
    delta = 0.1 - miss * (0.08 + miss * 0.02)
    return max(current_ease_factor + delta, MIN_EASE_FACTOR)


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _clamp_interval(days: int) -> int:
    return max(1, min(days, MAX_INTERVAL_DAYS))


def _compound_interval(base_days: float, ease_factor: float, exponent: int = 1) -> int:
    """
    ``round(base_days * ease_factor ** exponent)``, saturating at MAX_INTERVAL_DAYS.

    The magnitude is checked in log space first so very long histories
    cannot overflow a float.
    """
    if base_days <= 0:
        return INITIAL_INTERVAL
    log_days = math.log(base_days) + exponent * math.log(ease_factor)
    if log_days > math.log(MAX_INTERVAL_DAYS + 1):
        return MAX_INTERVAL_DAYS
    return round_half_up(base_days * ease_factor**exponent)


def calculate_next_review(
    quality: int,
    review_count: int,
    current_ease_factor: float,
    days_since_last_review: int | None = None,
) -> ScheduleResult:
    """
    Compute the next interval and ease factor for one review.

    Args:
        quality: Recall grade 0-5. Callers validate the range.
        review_count: Completed reviews of the card before this one.
        current_ease_factor: Ease factor captured when the session started.
        days_since_last_review: Whole days since the previous review. Only
            consulted once the card has more than two completed reviews.

    Returns:
        ScheduleResult. The interval is always within 1..MAX_INTERVAL_DAYS and
        the ease factor never drops below MIN_EASE_FACTOR.
    """
    # Poor recall: back to the first step, memory judged weaker
    if quality < PASSING_QUALITY:
        new_ease = max(current_ease_factor - RESET_EASE_PENALTY, MIN_EASE_FACTOR)
        logger.debug(f"quality={quality} below passing, reset to {INITIAL_INTERVAL}d")
        return ScheduleResult(
            next_interval_days=INITIAL_INTERVAL,
            new_ease_factor=new_ease,
            reset=True,
        )

    new_ease = update_ease_factor(current_ease_factor, quality)

    if review_count <= 0:
        interval = INITIAL_INTERVAL
    elif review_count == 1:
        interval = SECOND_INTERVAL
    elif review_count == 2:
        interval = _compound_interval(SECOND_INTERVAL, new_ease)
    elif days_since_last_review is not None and days_since_last_review > 0:
        # Ease factor >= 1.3, so capping the input first cannot lower the result below the cap
        interval = _compound_interval(
            min(days_since_last_review, MAX_INTERVAL_DAYS), new_ease
        )
    else:
        # No usable last interval; grow from the second step instead
        interval = _compound_interval(SECOND_INTERVAL, new_ease, review_count - 1)

    interval = _clamp_interval(interval)
    logger.debug(
        f"review #{review_count + 1}: quality={quality}, interval={interval}d, "
        f"ease {current_ease_factor:.2f} -> {new_ease:.2f}"
    )
    return ScheduleResult(next_interval_days=interval, new_ease_factor=new_ease, reset=False)


def days_between(earlier: datetime | None, later: datetime) -> int:
    """Whole days elapsed from ``earlier`` to ``later``; 0 if unknown or negative."""
    if earlier is None:
        return 0
    seconds = (later - earlier).total_seconds()
    if seconds <= 0:
        return 0
    return int(seconds // 86400)


def is_due(card: Card, now: datetime) -> bool:
    """Check whether a card needs review at ``now``."""
    return now >= card.next_review_at
