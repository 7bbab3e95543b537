from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest

from evomind.application.stats.metrics_calculator import MetricsCalculator
from evomind.application.stats.service import ReviewStatsService
from evomind.domain.review.models import ReviewSession, SessionType
from evomind.domain.stats.models import ReviewStats
from conftest import NOW, make_card


def session(sid, card_id, reviewed_at, quality=4, session_type=SessionType.QUICK):
    return ReviewSession(
        id=sid,
        card_id=card_id,
        session_type=session_type,
        ease_factor=2.5,
        reviewed_at=reviewed_at,
        quality=quality,
        interval_days=1 if quality is not None else None,
    )


@pytest.fixture
def calculator():
    return MetricsCalculator()


def test_window_uses_local_midnight(calculator):
    window = calculator.window(NOW, timezone.utc)
    assert window.today_start == datetime(2024, 3, 15, tzinfo=timezone.utc)
    assert window.week_start == datetime(2024, 3, 8, tzinfo=timezone.utc)


def test_window_respects_timezone(calculator):
    # 12:00 UTC is 21:00 in Tokyo, same calendar day
    tokyo = ZoneInfo("Asia/Tokyo")
    window = calculator.window(NOW, tokyo)
    assert window.today_start == datetime(2024, 3, 15, tzinfo=tokyo)

    # 02:00 UTC on the 15th is still the 14th in New York
    ny = ZoneInfo("America/New_York")
    window = calculator.window(datetime(2024, 3, 15, 2, tzinfo=timezone.utc), ny)
    assert window.today_start == datetime(2024, 3, 14, tzinfo=ny)


def test_summarize_counts_windows(calculator):
    window = calculator.window(NOW, timezone.utc)
    sessions = [
        session("rs_1", "card_a", NOW - timedelta(hours=1), quality=5),
        session("rs_2", "card_a", NOW - timedelta(hours=2), quality=3),
        session("rs_3", "card_b", NOW - timedelta(days=2), quality=1, session_type=SessionType.DEEP),
        session("rs_4", "card_c", NOW - timedelta(hours=3), quality=None),  # still open
    ]

    stats = calculator.summarize(
        sessions, window, due_cards_count=4, session_type_counts={"quick": 2, "deep": 1}
    )

    assert stats.today_reviews == 2
    assert stats.today_distinct_cards == 1
    assert stats.week_reviews == 3
    assert stats.week_distinct_cards == 2
    assert stats.average_quality == pytest.approx(3.0)
    assert stats.due_cards_count == 4
    assert stats.session_type_counts == {"deep": 1, "quick": 2}


def test_summarize_ignores_sessions_before_week(calculator):
    window = calculator.window(NOW, timezone.utc)
    old = session("rs_old", "card_a", NOW - timedelta(days=30), quality=0)
    stats = calculator.summarize([old], window)
    assert stats.week_reviews == 0
    assert stats.average_quality is None


def test_summarize_empty_history(calculator):
    stats = calculator.summarize([], calculator.window(NOW, timezone.utc))
    assert stats == ReviewStats()


@pytest.mark.asyncio
async def test_stats_service_orchestration(clock):
    cards, sessions = AsyncMock(), AsyncMock()
    sessions.get_completed_since.return_value = [
        session("rs_1", "card_a", NOW - timedelta(minutes=5), quality=4)
    ]
    sessions.count_completed_by_session_type.return_value = {"test": 3}
    cards.count_due.return_value = 2

    service = ReviewStatsService(cards, sessions, clock, tz=timezone.utc)
    stats = await service.get_stats()

    assert stats.today_reviews == 1
    assert stats.due_cards_count == 2
    assert stats.session_type_counts == {"test": 3}
    sessions.count_completed_by_session_type.assert_awaited_once_with()
    sessions.get_completed_since.assert_awaited_once_with(datetime(2024, 3, 8, tzinfo=timezone.utc))
    cards.count_due.assert_awaited_once_with(NOW)


@pytest.mark.asyncio
async def test_stats_service_end_to_end(service, card_store, session_store, clock):
    await card_store.insert(make_card("card_a", NOW - timedelta(days=1)))
    await card_store.insert(make_card("card_b", NOW - timedelta(days=1)))

    for card_id, quality in [("card_a", 5), ("card_b", 2)]:
        session_id = await service.start(card_id, SessionType.TEST)
        await service.complete(session_id, quality)
    await service.start("card_a", SessionType.QUICK)  # left open

    stats = await ReviewStatsService(card_store, session_store, clock, tz=timezone.utc).get_stats()

    assert stats.today_reviews == 2
    assert stats.today_distinct_cards == 2
    assert stats.average_quality == pytest.approx(3.5)
    assert stats.due_cards_count == 0
    assert stats.session_type_counts == {"test": 2}


@pytest.mark.asyncio
async def test_stats_service_empty_history(card_store, session_store, clock):
    stats = await ReviewStatsService(card_store, session_store, clock).get_stats()
    assert stats.week_reviews == 0
    assert stats.average_quality is None
