"""
In-Memory Store — Infrastructure adapter backed by process-local dicts.

Implements CardStore, SessionStore and ReviewUnitOfWork over one shared
InMemoryDatabase. Writes made inside a transaction are journaled per task
and undone if the transaction body raises.
"""

import asyncio
import logging
from collections import Counter
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime

from evomind.domain.review.errors import CardNotFound, SessionNotFound
from evomind.domain.review.models import Card, ReviewSession
from evomind.domain.review.ports import CardStore, ReviewUnitOfWork, SessionStore

logger = logging.getLogger(__name__)

_MISSING = object()

# (table, key) -> value before the first write in this transaction
_journal: ContextVar[dict[tuple[str, str], object] | None] = ContextVar(
    "evomind_memory_journal", default=None
)


class InMemoryDatabase:
    """Shared state for the in-memory stores."""

    def __init__(self) -> None:
        self.cards: dict[str, Card] = {}
        self.sessions: dict[str, ReviewSession] = {}
        # card_id -> (lock, tasks holding or waiting on it)
        self.locks: dict[str, tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def card_lock(self, card_id: str) -> AsyncIterator[None]:
        """Hold the card's lock; it is discarded once no task holds or awaits it."""
        lock, users = self.locks.get(card_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self.locks[card_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self.locks[card_id]
            if users == 1:
                del self.locks[card_id]
            else:
                self.locks[card_id] = (lock, users - 1)

    def _table(self, name: str) -> dict:
        return self.cards if name == "cards" else self.sessions

    def write(self, table: str, key: str, value: object) -> None:
        rows = self._table(table)
        journal = _journal.get()
        if journal is not None and (table, key) not in journal:
            journal[(table, key)] = rows.get(key, _MISSING)
        rows[key] = value

    def rollback(self, journal: dict[tuple[str, str], object]) -> None:
        for (table, key), previous in journal.items():
            rows = self._table(table)
            if previous is _MISSING:
                rows.pop(key, None)
            else:
                rows[key] = previous


class InMemoryCardStore(CardStore):
    def __init__(self, db: InMemoryDatabase):
        self._db = db

    async def get_by_id(self, card_id: str) -> Card | None:
        return self._db.cards.get(card_id)

    async def insert(self, card: Card) -> str:
        self._db.write("cards", card.id, card)
        return card.id

    async def update(self, card: Card) -> None:
        if card.id not in self._db.cards:
            raise CardNotFound(card.id)
        self._db.write("cards", card.id, card)

    async def get_due(self, now: datetime) -> list[Card]:
        due = [c for c in self._db.cards.values() if c.next_review_at <= now]
        return sorted(due, key=lambda c: (c.next_review_at, c.id))

    async def count_due(self, now: datetime) -> int:
        return sum(1 for c in self._db.cards.values() if c.next_review_at <= now)


class InMemorySessionStore(SessionStore):
    def __init__(self, db: InMemoryDatabase):
        self._db = db

    def _for_card(self, card_id: str) -> list[ReviewSession]:
        return [s for s in self._db.sessions.values() if s.card_id == card_id]

    async def insert(self, session: ReviewSession) -> str:
        self._db.write("sessions", session.id, session)
        return session.id

    async def update(self, session: ReviewSession) -> None:
        if session.id not in self._db.sessions:
            raise SessionNotFound(session.id)
        self._db.write("sessions", session.id, session)

    async def get_by_id(self, session_id: str) -> ReviewSession | None:
        return self._db.sessions.get(session_id)

    async def count_completed_before_for_card(
        self, card_id: str, before_session_id: str
    ) -> int:
        return sum(
            1
            for s in self._for_card(card_id)
            if s.is_completed and s.id != before_session_id
        )

    async def average_ease_factor_for_card(self, card_id: str) -> float | None:
        factors = [s.ease_factor for s in self._for_card(card_id)]
        if not factors:
            return None
        return sum(factors) / len(factors)

    async def latest_completed_for_card(self, card_id: str) -> ReviewSession | None:
        completed = [s for s in self._for_card(card_id) if s.completed_at is not None]
        if not completed:
            return None
        return max(completed, key=lambda s: (s.completed_at, s.id))

    async def get_by_card(
        self, card_id: str, newest_first: bool = True
    ) -> list[ReviewSession]:
        return sorted(
            self._for_card(card_id),
            key=lambda s: (s.reviewed_at, s.id),
            reverse=newest_first,
        )

    async def get_completed_since(self, start: datetime) -> list[ReviewSession]:
        sessions = [
            s for s in self._db.sessions.values() if s.is_completed and s.reviewed_at >= start
        ]
        return sorted(sessions, key=lambda s: (s.reviewed_at, s.id), reverse=True)

    async def count_completed_by_session_type(self) -> dict[str, int]:
        return dict(
            Counter(s.session_type.value for s in self._db.sessions.values() if s.is_completed)
        )


class InMemoryUnitOfWork(ReviewUnitOfWork):
    """Per-card asyncio lock plus an undo journal for the writes in the block."""

    def __init__(self, db: InMemoryDatabase):
        self._db = db

    @asynccontextmanager
    async def transaction(self, card_id: str) -> AsyncIterator[None]:
        async with self._db.card_lock(card_id):
            journal: dict[tuple[str, str], object] = {}
            token = _journal.set(journal)
            try:
                yield
            except BaseException:
                logger.debug(f"Rolling back {len(journal)} write(s) for card {card_id}")
                self._db.rollback(journal)
                raise
            finally:
                _journal.reset(token)
