"""
Metrics calculator for deriving review statistics from session history.

This is a pure computation module with no I/O.
"""

from datetime import datetime, timedelta, tzinfo

from evomind.domain.constants import STATS_WEEK_DAYS
from evomind.domain.review.models import ReviewSession
from evomind.domain.stats.models import ReviewStats, StatsWindow


class MetricsCalculator:
    """
    Computes aggregate review metrics from completed sessions.

    Stateless and side-effect free.
    """

    def window(self, now: datetime, tz: tzinfo | None = None) -> StatsWindow:
        """
        Compute the today/week window boundaries.

        The day boundary is local midnight in ``tz`` (system local time when
        None). The week window starts seven days before today's midnight.
        """
        local_now = now.astimezone(tz)
        today_start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        return StatsWindow(
            today_start=today_start,
            week_start=today_start - timedelta(days=STATS_WEEK_DAYS),
        )

    def summarize(
        self,
        week_sessions: list[ReviewSession],
        window: StatsWindow,
        due_cards_count: int = 0,
        session_type_counts: dict[str, int] | None = None,
    ) -> ReviewStats:
        """
        Build ReviewStats from the completed sessions of the week window.

        Args:
            week_sessions: Completed sessions with reviewed_at >= window.week_start.
            window: Boundaries from ``window()``.
            due_cards_count: Cards currently due.
            session_type_counts: Completed sessions per session type, all time.
        """
        completed = [s for s in week_sessions if s.is_completed]
        week = [s for s in completed if s.reviewed_at >= window.week_start]
        today = [s for s in week if s.reviewed_at >= window.today_start]

        return ReviewStats(
            today_reviews=len(today),
            today_distinct_cards=len({s.card_id for s in today}),
            week_reviews=len(week),
            week_distinct_cards=len({s.card_id for s in week}),
            due_cards_count=due_cards_count,
            average_quality=self._average_quality(week),
            session_type_counts=dict(sorted((session_type_counts or {}).items())),
        )

    def _average_quality(self, sessions: list[ReviewSession]) -> float | None:
        qualities = [s.quality for s in sessions if s.quality is not None]
        if not qualities:
            return None
        return sum(qualities) / len(qualities)
