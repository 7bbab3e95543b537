from datetime import datetime, timedelta, timezone

import pytest

from evomind.application.review.service import ReviewSessionService
from evomind.domain.review.models import Card
from evomind.infrastructure.adapters.memory_store import (
    InMemoryCardStore,
    InMemoryDatabase,
    InMemorySessionStore,
    InMemoryUnitOfWork,
)
from evomind.infrastructure.clock import FixedClock

NOW = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_card(card_id: str = "card_1", next_review_at: datetime = NOW, **kwargs) -> Card:
    created = kwargs.pop("created_at", next_review_at - timedelta(days=1))
    return Card(id=card_id, next_review_at=next_review_at, created_at=created, **kwargs)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def memory_db():
    return InMemoryDatabase()


@pytest.fixture
def card_store(memory_db):
    return InMemoryCardStore(memory_db)


@pytest.fixture
def session_store(memory_db):
    return InMemorySessionStore(memory_db)


@pytest.fixture
def unit_of_work(memory_db):
    return InMemoryUnitOfWork(memory_db)


@pytest.fixture
def service(card_store, session_store, unit_of_work, clock):
    return ReviewSessionService(card_store, session_store, unit_of_work, clock)


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config/logs
    monkeypatch.setenv("HOME", str(home))
    return home
