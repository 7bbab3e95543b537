"""
Due-card selection and urgency bucketing.

The selector is a thin read query over CardStore; ordering is oldest
``next_review_at`` first so long-overdue cards are never starved.
"""

from datetime import datetime

from evomind.domain.constants import URGENCY_BUCKETS, URGENCY_MAX
from evomind.domain.review.models import Card
from evomind.domain.review.ports import CardStore

from .algorithm import days_between


class DueSelector:
    """Returns the cards that need review, most overdue first."""

    def __init__(self, card_store: CardStore):
        self._cards = card_store

    async def select(self, now: datetime) -> list[Card]:
        """All cards with ``next_review_at <= now``, ascending by next_review_at."""
        return await self._cards.get_due(now)

    async def count_due(self, now: datetime) -> int:
        return await self._cards.count_due(now)


def days_overdue(next_review_at: datetime, now: datetime) -> int:
    """Whole days past ``next_review_at``; 0 when not yet due."""
    return days_between(next_review_at, now)


def classify_urgency(overdue_days: float) -> float:
    """
    Map days overdue to a coarse urgency weight in [0, 1].

    <=0 -> 0.0, (0,1] -> 0.3, (1,3] -> 0.6, (3,7] -> 0.8, >7 -> 1.0.
    Presentation only; never affects the stored schedule.
    """
    for upper, weight in URGENCY_BUCKETS:
        if overdue_days <= upper:
            return weight
    return URGENCY_MAX


def urgency_for_card(card: Card, now: datetime) -> float:
    return classify_urgency(days_overdue(card.next_review_at, now))
