"""
Review Backend Factory
Centralizes the logic for selecting and wiring the store adapters.
"""

import logging
from dataclasses import dataclass

from evomind.application.config import AppConfig
from evomind.application.review.due import DueSelector
from evomind.application.review.service import ReviewSessionService
from evomind.application.stats.service import ReviewStatsService
from evomind.domain.review.ports import CardStore, Clock, ReviewUnitOfWork, SessionStore
from evomind.infrastructure.adapters.memory_store import (
    InMemoryCardStore,
    InMemoryDatabase,
    InMemorySessionStore,
    InMemoryUnitOfWork,
)
from evomind.infrastructure.adapters.sqlite_store import (
    SqliteCardStore,
    SqliteDatabase,
    SqliteSessionStore,
    SqliteUnitOfWork,
)
from evomind.infrastructure.clock import SystemClock

logger = logging.getLogger(__name__)


@dataclass
class ReviewBackend:
    """The stores, transaction boundary and clock one process works against."""

    cards: CardStore
    sessions: SessionStore
    unit_of_work: ReviewUnitOfWork
    clock: Clock
    config: AppConfig
    database: SqliteDatabase | None = None

    def review_service(self) -> ReviewSessionService:
        return ReviewSessionService(
            self.cards,
            self.sessions,
            self.unit_of_work,
            self.clock,
            ease_source=self.config.ease_source,
        )

    def stats_service(self) -> ReviewStatsService:
        return ReviewStatsService(self.cards, self.sessions, self.clock, tz=self.config.tzinfo)

    def due_selector(self) -> DueSelector:
        return DueSelector(self.cards)

    def close(self) -> None:
        if self.database is not None:
            self.database.close()


def get_review_backend(config: AppConfig, clock: Clock | None = None) -> ReviewBackend:
    """
    Returns the store adapters selected by ``config.backend``.
    """
    clock = clock or SystemClock()

    if config.backend == "memory":
        db = InMemoryDatabase()
        return ReviewBackend(
            cards=InMemoryCardStore(db),
            sessions=InMemorySessionStore(db),
            unit_of_work=InMemoryUnitOfWork(db),
            clock=clock,
            config=config,
        )

    sqlite_db = SqliteDatabase(config.database_path).connect()
    logger.debug(f"Backend: SQLite ({config.database_path})")
    return ReviewBackend(
        cards=SqliteCardStore(sqlite_db),
        sessions=SqliteSessionStore(sqlite_db),
        unit_of_work=SqliteUnitOfWork(sqlite_db),
        clock=clock,
        config=config,
        database=sqlite_db,
    )
