"""
Ports (interfaces) for review scheduling.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime

from .models import Card, ReviewSession


class Clock(ABC):
    """
    Port for the current time.

    Implementations:
        - SystemClock: wall-clock time in UTC.
        - FixedClock: a settable instant, for deterministic tests.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as a timezone-aware datetime."""
        pass


class CardStore(ABC):
    """
    Port for reading and writing card schedule fields.

    Implementations:
        - InMemoryCardStore: process-local dict, used by tests and the memory backend.
        - SqliteCardStore: the ``cards`` table of a SQLite database.
    """

    @abstractmethod
    async def get_by_id(self, card_id: str) -> Card | None:
        """
        Fetch a card by id.

        Returns:
            The card, or None if no card has this id.
        """
        pass

    @abstractmethod
    async def insert(self, card: Card) -> str:
        """Persist a new card and return its id."""
        pass

    @abstractmethod
    async def update(self, card: Card) -> None:
        """
        Overwrite the stored card with the same id.

        Raises:
            CardNotFound: If the card no longer exists.
        """
        pass

    @abstractmethod
    async def get_due(self, now: datetime) -> list[Card]:
        """
        Fetch every card with ``next_review_at <= now``.

        Returns:
            Cards sorted by next_review_at ascending (most overdue first).
        """
        pass

    @abstractmethod
    async def count_due(self, now: datetime) -> int:
        pass


class SessionStore(ABC):
    """
    Port for the review session log.

    Sessions are append-then-finalize: inserted open, updated once on
    completion, never deleted.
    """

    @abstractmethod
    async def insert(self, session: ReviewSession) -> str:
        """Persist a new session and return its id."""
        pass

    @abstractmethod
    async def update(self, session: ReviewSession) -> None:
        """
        Overwrite the stored session with the same id.

        Raises:
            SessionNotFound: If the session does not exist.
        """
        pass

    @abstractmethod
    async def get_by_id(self, session_id: str) -> ReviewSession | None:
        pass

    @abstractmethod
    async def count_completed_before_for_card(
        self, card_id: str, before_session_id: str
    ) -> int:
        """
        Count completed sessions of a card, excluding ``before_session_id``.

        Called while ``before_session_id`` is still open, so every session
        counted was completed before it.
        """
        pass

    @abstractmethod
    async def average_ease_factor_for_card(self, card_id: str) -> float | None:
        """
        Average ``ease_factor`` over all sessions of a card.

        Returns:
            The mean, or None if the card has no sessions.
        """
        pass

    @abstractmethod
    async def latest_completed_for_card(self, card_id: str) -> ReviewSession | None:
        """Most recently completed session of a card, or None."""
        pass

    @abstractmethod
    async def get_by_card(
        self, card_id: str, newest_first: bool = True
    ) -> list[ReviewSession]:
        """
        Fetch every session of a card ordered by ``reviewed_at``.

        Args:
            card_id: The card whose history to fetch.
            newest_first: Descending order when True, ascending otherwise.
        """
        pass

    @abstractmethod
    async def get_completed_since(self, start: datetime) -> list[ReviewSession]:
        """
        Fetch completed sessions with ``reviewed_at >= start``.

        Returns:
            Sessions sorted by reviewed_at descending.
        """
        pass

    @abstractmethod
    async def count_completed_by_session_type(self) -> dict[str, int]:
        """
        Count completed sessions per session type over the whole history.

        Returns:
            Mapping of session type value to count. Types never used are absent.
        """
        pass


class ReviewUnitOfWork(ABC):
    """
    Port for the transaction boundary around a review completion.

    ``complete`` reads review_count and last_reviewed_at and then writes
    derived values; both writes must land together and no other writer
    may touch the same card in between.
    """

    @abstractmethod
    def transaction(self, card_id: str) -> AbstractAsyncContextManager[None]:
        """
        Serialize work on ``card_id`` and make every store write inside the
        ``async with`` block atomic.

        On a normal exit the writes are committed. If the block raises, every
        write made inside it is discarded and the exception propagates.
        """
        pass
