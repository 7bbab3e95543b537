"""
Review Stats Service — Application layer orchestrator.

Coordinates fetching session history from the stores and summarizing it
with the metrics calculator. Read-only.
"""

import logging
from datetime import tzinfo

from evomind.domain.review.ports import CardStore, Clock, SessionStore
from evomind.domain.stats.models import ReviewStats

from .metrics_calculator import MetricsCalculator

logger = logging.getLogger(__name__)


class ReviewStatsService:
    """
    Application service for review activity reporting.

    Never mutates state and never fails on an empty history.
    """

    def __init__(
        self,
        card_store: CardStore,
        session_store: SessionStore,
        clock: Clock,
        tz: tzinfo | None = None,
        calculator: MetricsCalculator | None = None,
    ):
        """
        Args:
            card_store: Used for the due-card count.
            session_store: Source of completed sessions.
            clock: Time source.
            tz: Timezone whose midnight bounds the "today" window; system local when None.
            calculator: Optional custom calculator; uses default if not provided.
        """
        self._cards = card_store
        self._sessions = session_store
        self._clock = clock
        self._tz = tz
        self._calc = calculator or MetricsCalculator()

    async def get_stats(self) -> ReviewStats:
        """
        Counts for today and the last week, distinct cards, due cards,
        and the average quality over the week window.
        """
        now = self._clock.now()
        window = self._calc.window(now, self._tz)

        week_sessions = await self._sessions.get_completed_since(window.week_start)
        type_counts = await self._sessions.count_completed_by_session_type()
        due_count = await self._cards.count_due(now)

        stats = self._calc.summarize(
            week_sessions,
            window,
            due_cards_count=due_count,
            session_type_counts=type_counts,
        )
        logger.debug(f"Review stats: {stats}")
        return stats
