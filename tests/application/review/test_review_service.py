import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from evomind.application.review.service import ReviewSessionService, validate_quality
from evomind.domain.constants import DEFAULT_EASE_FACTOR
from evomind.domain.review.errors import (
    CardNotFound,
    InvalidQuality,
    SessionAlreadyCompleted,
    SessionNotFound,
    StoreUnavailable,
)
from evomind.domain.review.models import ReviewSession, SessionType
from conftest import NOW, make_card


@pytest_asyncio.fixture
async def card(card_store):
    card = make_card("card_1", next_review_at=NOW - timedelta(days=1))
    await card_store.insert(card)
    return card


# --- start ---


@pytest.mark.asyncio
async def test_start_creates_open_session_with_default_ease(service, session_store, card):
    session_id = await service.start(card.id, SessionType.DEEP)

    session = await session_store.get_by_id(session_id)
    assert session.card_id == card.id
    assert session.session_type is SessionType.DEEP
    assert session.ease_factor == DEFAULT_EASE_FACTOR
    assert session.quality is None
    assert session.reviewed_at == NOW
    assert not session.is_completed


@pytest.mark.asyncio
async def test_start_accepts_session_type_string(service, session_store, card):
    session_id = await service.start(card.id, "associative")
    session = await session_store.get_by_id(session_id)
    assert session.session_type is SessionType.ASSOCIATIVE


@pytest.mark.asyncio
async def test_start_unknown_card(service, memory_db):
    with pytest.raises(CardNotFound):
        await service.start("card_missing", SessionType.QUICK)
    assert memory_db.sessions == {}


@pytest.mark.asyncio
async def test_start_averages_prior_session_ease(service, session_store, card):
    for i, ef in enumerate([2.0, 3.0]):
        await session_store.insert(
            ReviewSession(
                id=f"rs_{i}",
                card_id=card.id,
                session_type=SessionType.QUICK,
                ease_factor=ef,
                reviewed_at=NOW - timedelta(days=10 - i),
            )
        )

    session_id = await service.start(card.id, SessionType.QUICK)
    session = await session_store.get_by_id(session_id)
    assert session.ease_factor == pytest.approx(2.5)


@pytest.mark.asyncio
async def test_start_last_result_ease_source(
    card_store, session_store, unit_of_work, clock, card
):
    service = ReviewSessionService(
        card_store, session_store, unit_of_work, clock, ease_source="last_result"
    )
    first = await service.start(card.id, SessionType.QUICK)
    await service.complete(first, 5)

    clock.advance(days=1)
    second = await service.start(card.id, SessionType.QUICK)
    session = await session_store.get_by_id(second)
    assert session.ease_factor == pytest.approx(2.6)


# --- complete ---


@pytest.mark.asyncio
async def test_complete_first_review(service, session_store, clock, card):
    session_id = await service.start(card.id, SessionType.QUICK)
    clock.advance(seconds=42)

    updated = await service.complete(session_id, 5, notes="easy")

    assert updated.review_count == 1
    assert updated.last_reviewed_at == clock.now()
    assert updated.next_review_at == clock.now() + timedelta(days=1)
    assert updated.updated_at == clock.now()

    session = await session_store.get_by_id(session_id)
    assert session.quality == 5
    assert session.interval_days == 1
    assert session.notes == "easy"
    assert session.review_duration == timedelta(seconds=42)
    assert session.new_ease_factor == pytest.approx(2.6)
    assert session.completed_at == clock.now()


@pytest.mark.asyncio
async def test_complete_grade_zero_is_a_completed_review(service, session_store, card):
    session_id = await service.start(card.id, SessionType.TEST)
    updated = await service.complete(session_id, 0)

    session = await session_store.get_by_id(session_id)
    assert session.is_completed
    assert session.quality == 0
    assert updated.review_count == 1


@pytest.mark.asyncio
async def test_review_progression(service, card_store, clock, card):
    intervals = []
    for quality in [5, 4, 5]:
        session_id = await service.start(card.id, SessionType.QUICK)
        updated = await service.complete(session_id, quality)
        intervals.append((updated.next_review_at - clock.now()).days)
        clock.set(updated.next_review_at)

    # ease captured as the session average (2.5) every time
    assert intervals == [1, 6, 16]
    stored = await card_store.get_by_id(card.id)
    assert stored.review_count == 3


@pytest.mark.asyncio
async def test_fourth_review_uses_days_since_last_review(service, card_store, clock, card):
    for _ in range(3):
        session_id = await service.start(card.id, SessionType.QUICK)
        await service.complete(session_id, 4)

    clock.advance(days=10, hours=5)
    session_id = await service.start(card.id, SessionType.QUICK)
    updated = await service.complete(session_id, 4)

    # 10 whole days * ease 2.5
    assert updated.next_review_at == clock.now() + timedelta(days=25)


@pytest.mark.asyncio
async def test_complete_twice_is_rejected_without_mutation(service, card_store, card):
    session_id = await service.start(card.id, SessionType.QUICK)
    first = await service.complete(session_id, 5)

    with pytest.raises(SessionAlreadyCompleted):
        await service.complete(session_id, 3)

    assert await card_store.get_by_id(card.id) == first


@pytest.mark.asyncio
async def test_concurrent_double_submit_applies_once(service, card_store, card):
    session_id = await service.start(card.id, SessionType.QUICK)

    results = await asyncio.gather(
        service.complete(session_id, 5),
        service.complete(session_id, 5),
        return_exceptions=True,
    )

    assert sum(isinstance(r, SessionAlreadyCompleted) for r in results) == 1
    stored = await card_store.get_by_id(card.id)
    assert stored.review_count == 1


@pytest.mark.asyncio
async def test_complete_unknown_session(service):
    with pytest.raises(SessionNotFound):
        await service.complete("rs_missing", 4)


@pytest.mark.asyncio
async def test_complete_when_card_was_removed(service, memory_db, card):
    session_id = await service.start(card.id, SessionType.QUICK)
    del memory_db.cards[card.id]

    with pytest.raises(CardNotFound):
        await service.complete(session_id, 4)

    assert not memory_db.sessions[session_id].is_completed


@pytest.mark.asyncio
@pytest.mark.parametrize("quality", [-1, 6, 2.5, "4", None, True])
async def test_invalid_quality_touches_no_store(quality):
    cards, sessions, uow = AsyncMock(), AsyncMock(), MagicMock()
    service = ReviewSessionService(cards, sessions, uow, MagicMock())

    with pytest.raises(InvalidQuality):
        await service.complete("rs_1", quality)

    sessions.get_by_id.assert_not_called()
    cards.get_by_id.assert_not_called()
    uow.transaction.assert_not_called()


@pytest.mark.asyncio
async def test_failed_card_update_rolls_back_session(service, card_store, memory_db, card):
    session_id = await service.start(card.id, SessionType.QUICK)
    card_store.update = AsyncMock(side_effect=StoreUnavailable("update card"))

    with pytest.raises(StoreUnavailable):
        await service.complete(session_id, 5)

    session = memory_db.sessions[session_id]
    assert not session.is_completed
    assert session.interval_days is None
    assert memory_db.cards[card.id] == card


# --- history ---


@pytest.mark.asyncio
async def test_history_newest_first(service, clock, card):
    first = await service.start(card.id, SessionType.QUICK)
    await service.complete(first, 4)
    clock.advance(days=1)
    second = await service.start(card.id, SessionType.DEEP)

    history = await service.history(card.id)
    assert [s.id for s in history] == [second, first]


@pytest.mark.asyncio
async def test_history_unknown_card(service):
    with pytest.raises(CardNotFound):
        await service.history("card_missing")


def test_validate_quality_accepts_scale():
    assert [validate_quality(q) for q in range(6)] == [0, 1, 2, 3, 4, 5]
