"""
SQLite Store — Infrastructure adapter for a local SQLite database.

Implements CardStore, SessionStore and ReviewUnitOfWork over one shared
connection. Timestamps are stored as epoch milliseconds and durations as
milliseconds, matching the column names the rest of the app reads.
"""

import asyncio
import logging
import sqlite3
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from contextvars import ContextVar
from datetime import datetime, timedelta, timezone
from pathlib import Path

from evomind.domain.review.errors import CardNotFound, SessionNotFound, StoreUnavailable
from evomind.domain.review.models import Card, ReviewSession, SessionType
from evomind.domain.review.ports import CardStore, ReviewUnitOfWork, SessionStore

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS cards (
    id TEXT PRIMARY KEY,
    title TEXT,
    review_count INTEGER NOT NULL DEFAULT 0,
    last_reviewed_at INTEGER,
    next_review_at INTEGER NOT NULL,
    created_at INTEGER NOT NULL,
    updated_at INTEGER
);
CREATE INDEX IF NOT EXISTS idx_cards_next_review_at ON cards (next_review_at);

CREATE TABLE IF NOT EXISTS review_sessions (
    id TEXT PRIMARY KEY,
    card_id TEXT NOT NULL REFERENCES cards (id) ON DELETE CASCADE,
    session_type TEXT NOT NULL,
    ease_factor REAL NOT NULL,
    quality INTEGER,
    interval_days INTEGER,
    reviewed_at INTEGER NOT NULL,
    review_duration INTEGER,
    notes TEXT,
    new_ease_factor REAL,
    completed_at INTEGER
);
CREATE INDEX IF NOT EXISTS idx_review_sessions_card_id ON review_sessions (card_id);
CREATE INDEX IF NOT EXISTS idx_review_sessions_reviewed_at ON review_sessions (reviewed_at);
"""

CARD_COLUMNS = (
    "id, title, review_count, last_reviewed_at, next_review_at, created_at, updated_at"
)
SESSION_COLUMNS = (
    "id, card_id, session_type, ease_factor, quality, interval_days, reviewed_at, "
    "review_duration, notes, new_ease_factor, completed_at"
)


def _to_ms(value: datetime | None) -> int | None:
    if value is None:
        return None
    return round(value.timestamp() * 1000)


def _from_ms(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def _row_to_card(row: sqlite3.Row) -> Card:
    return Card(
        id=row["id"],
        title=row["title"],
        review_count=row["review_count"],
        last_reviewed_at=_from_ms(row["last_reviewed_at"]),
        next_review_at=_from_ms(row["next_review_at"]),
        created_at=_from_ms(row["created_at"]),
        updated_at=_from_ms(row["updated_at"]),
    )


def _row_to_session(row: sqlite3.Row) -> ReviewSession:
    duration = row["review_duration"]
    return ReviewSession(
        id=row["id"],
        card_id=row["card_id"],
        session_type=SessionType(row["session_type"]),
        ease_factor=row["ease_factor"],
        quality=row["quality"],
        interval_days=row["interval_days"],
        reviewed_at=_from_ms(row["reviewed_at"]),
        review_duration=timedelta(milliseconds=duration) if duration is not None else None,
        notes=row["notes"],
        new_ease_factor=row["new_ease_factor"],
        completed_at=_from_ms(row["completed_at"]),
    )


class SqliteDatabase:
    """
    Owns the connection and the lock that serializes access to it.

    SQLite allows one writer at a time, so every transaction takes the
    connection lock, which also serializes work per card. Plain reads take
    the same lock, so no reader sees a half-committed review.
    """

    def __init__(self, path: Path | str):
        self.path = path
        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()
        self._in_transaction: ContextVar[bool] = ContextVar(
            f"evomind_sqlite_tx_{id(self)}", default=False
        )

    def connect(self) -> "SqliteDatabase":
        if self._conn is not None:
            return self
        if str(self.path) != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        try:
            # Autocommit mode; transactions are opened explicitly with BEGIN
            self._conn = sqlite3.connect(
                str(self.path), isolation_level=None, check_same_thread=False
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise StoreUnavailable("connect", e) from e
        logger.info(f"Opened review database at {self.path}")
        return self

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "SqliteDatabase":
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.connect()
        return self._conn

    @asynccontextmanager
    async def access(self) -> AsyncIterator[sqlite3.Connection]:
        """Yield the connection, taking the lock unless this task already holds it."""
        if self._in_transaction.get():
            yield self.conn
            return
        async with self._lock:
            yield self.conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            token = self._in_transaction.set(True)
            try:
                with _translate_errors("begin"):
                    self.conn.execute("BEGIN IMMEDIATE")
                try:
                    yield
                except BaseException:
                    with _translate_errors("rollback"):
                        self.conn.execute("ROLLBACK")
                    raise
                try:
                    with _translate_errors("commit"):
                        self.conn.execute("COMMIT")
                except StoreUnavailable:
                    # A failed COMMIT leaves the transaction open on the connection
                    self._abandon_transaction()
                    raise
            finally:
                self._in_transaction.reset(token)

    def _abandon_transaction(self) -> None:
        if not self.conn.in_transaction:
            return
        try:
            self.conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.error(f"SQLite rollback after failed commit also failed: {e}")


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as e:
        logger.warning(f"SQLite {operation} failed: {e}")
        raise StoreUnavailable(operation, e) from e


class SqliteCardStore(CardStore):
    def __init__(self, db: SqliteDatabase):
        self._db = db

    async def get_by_id(self, card_id: str) -> Card | None:
        async with self._db.access() as conn:
            with _translate_errors("get card"):
                row = conn.execute(
                    f"SELECT {CARD_COLUMNS} FROM cards WHERE id = ?", (card_id,)
                ).fetchone()
        return _row_to_card(row) if row else None

    async def insert(self, card: Card) -> str:
        async with self._db.access() as conn:
            with _translate_errors("insert card"):
                conn.execute(
                    f"INSERT INTO cards ({CARD_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        card.id,
                        card.title,
                        card.review_count,
                        _to_ms(card.last_reviewed_at),
                        _to_ms(card.next_review_at),
                        _to_ms(card.created_at),
                        _to_ms(card.updated_at),
                    ),
                )
        return card.id

    async def update(self, card: Card) -> None:
        async with self._db.access() as conn:
            with _translate_errors("update card"):
                cursor = conn.execute(
                    "UPDATE cards SET title = ?, review_count = ?, last_reviewed_at = ?, "
                    "next_review_at = ?, updated_at = ? WHERE id = ?",
                    (
                        card.title,
                        card.review_count,
                        _to_ms(card.last_reviewed_at),
                        _to_ms(card.next_review_at),
                        _to_ms(card.updated_at),
                        card.id,
                    ),
                )
        if cursor.rowcount == 0:
            raise CardNotFound(card.id)

    async def get_due(self, now: datetime) -> list[Card]:
        async with self._db.access() as conn:
            with _translate_errors("get due cards"):
                rows = conn.execute(
                    f"SELECT {CARD_COLUMNS} FROM cards WHERE next_review_at <= ? "
                    "ORDER BY next_review_at ASC, id ASC",
                    (_to_ms(now),),
                ).fetchall()
        return [_row_to_card(r) for r in rows]

    async def count_due(self, now: datetime) -> int:
        async with self._db.access() as conn:
            with _translate_errors("count due cards"):
                return conn.execute(
                    "SELECT COUNT(*) FROM cards WHERE next_review_at <= ?", (_to_ms(now),)
                ).fetchone()[0]


class SqliteSessionStore(SessionStore):
    def __init__(self, db: SqliteDatabase):
        self._db = db

    async def _fetch(self, operation: str, query: str, params: tuple = ()) -> list[ReviewSession]:
        async with self._db.access() as conn:
            with _translate_errors(operation):
                rows = conn.execute(query, params).fetchall()
        return [_row_to_session(r) for r in rows]

    async def _scalar(self, operation: str, query: str, params: tuple = ()):
        async with self._db.access() as conn:
            with _translate_errors(operation):
                return conn.execute(query, params).fetchone()[0]

    async def insert(self, session: ReviewSession) -> str:
        async with self._db.access() as conn:
            with _translate_errors("insert session"):
                conn.execute(
                    f"INSERT INTO review_sessions ({SESSION_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    self._params(session),
                )
        return session.id

    async def update(self, session: ReviewSession) -> None:
        params = self._params(session)
        async with self._db.access() as conn:
            with _translate_errors("update session"):
                cursor = conn.execute(
                    "UPDATE review_sessions SET card_id = ?, session_type = ?, "
                    "ease_factor = ?, quality = ?, interval_days = ?, reviewed_at = ?, "
                    "review_duration = ?, notes = ?, new_ease_factor = ?, completed_at = ? "
                    "WHERE id = ?",
                    params[1:] + (session.id,),
                )
        if cursor.rowcount == 0:
            raise SessionNotFound(session.id)

    async def get_by_id(self, session_id: str) -> ReviewSession | None:
        rows = await self._fetch(
            "get session",
            f"SELECT {SESSION_COLUMNS} FROM review_sessions WHERE id = ?",
            (session_id,),
        )
        return rows[0] if rows else None

    async def count_completed_before_for_card(
        self, card_id: str, before_session_id: str
    ) -> int:
        return await self._scalar(
            "count completed sessions",
            "SELECT COUNT(*) FROM review_sessions "
            "WHERE card_id = ? AND quality IS NOT NULL AND id != ?",
            (card_id, before_session_id),
        )

    async def average_ease_factor_for_card(self, card_id: str) -> float | None:
        return await self._scalar(
            "average ease factor",
            "SELECT AVG(ease_factor) FROM review_sessions WHERE card_id = ?",
            (card_id,),
        )

    async def latest_completed_for_card(self, card_id: str) -> ReviewSession | None:
        rows = await self._fetch(
            "latest completed session",
            f"SELECT {SESSION_COLUMNS} FROM review_sessions "
            "WHERE card_id = ? AND completed_at IS NOT NULL "
            "ORDER BY completed_at DESC, id DESC LIMIT 1",
            (card_id,),
        )
        return rows[0] if rows else None

    async def get_by_card(
        self, card_id: str, newest_first: bool = True
    ) -> list[ReviewSession]:
        direction = "DESC" if newest_first else "ASC"
        return await self._fetch(
            "get sessions by card",
            f"SELECT {SESSION_COLUMNS} FROM review_sessions WHERE card_id = ? "
            f"ORDER BY reviewed_at {direction}, id {direction}",
            (card_id,),
        )

    async def get_completed_since(self, start: datetime) -> list[ReviewSession]:
        return await self._fetch(
            "get sessions since",
            f"SELECT {SESSION_COLUMNS} FROM review_sessions "
            "WHERE quality IS NOT NULL AND reviewed_at >= ? "
            "ORDER BY reviewed_at DESC, id DESC",
            (_to_ms(start),),
        )

    async def count_completed_by_session_type(self) -> dict[str, int]:
        async with self._db.access() as conn:
            with _translate_errors("count sessions by type"):
                rows = conn.execute(
                    "SELECT session_type, COUNT(*) AS n FROM review_sessions "
                    "WHERE quality IS NOT NULL GROUP BY session_type"
                ).fetchall()
        return {row["session_type"]: row["n"] for row in rows}

    def _params(self, session: ReviewSession) -> tuple:
        duration = session.review_duration
        return (
            session.id,
            session.card_id,
            session.session_type.value,
            session.ease_factor,
            session.quality,
            session.interval_days,
            _to_ms(session.reviewed_at),
            round(duration.total_seconds() * 1000) if duration is not None else None,
            session.notes,
            session.new_ease_factor,
            _to_ms(session.completed_at),
        )


class SqliteUnitOfWork(ReviewUnitOfWork):
    """One BEGIN IMMEDIATE ... COMMIT per review, rolled back if the body raises."""

    def __init__(self, db: SqliteDatabase):
        self._db = db

    @asynccontextmanager
    async def transaction(self, card_id: str) -> AsyncIterator[None]:
        async with self._db.transaction():
            logger.debug(f"Transaction opened for card {card_id}")
            yield
