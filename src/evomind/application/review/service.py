"""
Review Session Service — Application layer orchestrator.

Drives the per-session state machine (NotStarted -> Active -> Completed),
calls the scheduling algorithm, and commits the session and card updates
as one unit through the ReviewUnitOfWork port.
"""

import logging
from dataclasses import replace
from datetime import timedelta
from typing import Literal

from evomind.application.id_service import generate_session_id
from evomind.domain.constants import DEFAULT_EASE_FACTOR, MAX_QUALITY, MIN_QUALITY
from evomind.domain.review.errors import (
    CardNotFound,
    InvalidQuality,
    SchedulerError,
    SessionAlreadyCompleted,
    SessionNotFound,
)
from evomind.domain.review.models import Card, ReviewSession, SessionType
from evomind.domain.review.ports import CardStore, Clock, ReviewUnitOfWork, SessionStore

from .algorithm import calculate_next_review, days_between

logger = logging.getLogger(__name__)

EaseSource = Literal["session_average", "last_result"]


def validate_quality(quality: object) -> int:
    """Return ``quality`` as an int if it is on the 0-5 scale, else raise InvalidQuality."""
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidQuality(quality)
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise InvalidQuality(quality)
    return int(quality)


class ReviewSessionService:
    """
    Application service for starting and completing review sessions.

    Follows Dependency Inversion: depends on the store, unit-of-work and
    clock abstractions, not concrete adapter implementations. Performs no
    retries; store failures reach the caller unchanged.
    """

    def __init__(
        self,
        card_store: CardStore,
        session_store: SessionStore,
        unit_of_work: ReviewUnitOfWork,
        clock: Clock,
        ease_source: EaseSource = "session_average",
    ):
        """
        Args:
            card_store: Port for card schedule fields.
            session_store: Port for the review session log.
            unit_of_work: Transaction boundary shared by both stores.
            clock: Time source.
            ease_source: How ``start`` captures the ease factor. "session_average"
                averages the card's prior sessions; "last_result" prefers the
                ease factor produced by the latest completed review.
        """
        self._cards = card_store
        self._sessions = session_store
        self._uow = unit_of_work
        self._clock = clock
        self._ease_source = ease_source

    async def start(self, card_id: str, session_type: SessionType | str) -> str:
        """
        Open a review session for a card.

        Args:
            card_id: The card being reviewed.
            session_type: quick, deep, test or associative.

        Returns:
            The new session id.

        Raises:
            CardNotFound: If the card does not exist.
        """
        session_type = SessionType(session_type)
        try:
            async with self._uow.transaction(card_id):
                card = await self._cards.get_by_id(card_id)
                if card is None:
                    raise CardNotFound(card_id)

                ease_factor = await self._capture_ease_factor(card_id)
                session = ReviewSession(
                    id=generate_session_id(),
                    card_id=card_id,
                    session_type=session_type,
                    ease_factor=ease_factor,
                    reviewed_at=self._clock.now(),
                )
                session_id = await self._sessions.insert(session)
        except SchedulerError as e:
            logger.warning(f"Could not start review for card {card_id}: {e}")
            raise

        logger.info(
            f"Started review session {session_id}: card={card_id}, "
            f"type={session_type.value}, ease_factor={ease_factor:.2f}"
        )
        return session_id

    async def complete(self, session_id: str, quality: int, notes: str | None = None) -> Card:
        """
        Finish a review session and reschedule its card.

        The session row and the card row are written in one transaction.
        A session can be completed exactly once; resubmitting it raises
        SessionAlreadyCompleted and changes nothing.

        Args:
            session_id: The open session.
            quality: Recall grade 0-5.
            notes: Optional learner notes stored on the session.

        Returns:
            The updated card.

        Raises:
            InvalidQuality: If quality is not an integer in 0-5.
            SessionNotFound: If the session does not exist.
            SessionAlreadyCompleted: If the session was already completed.
            CardNotFound: If the session's card no longer exists.
        """
        try:
            quality = validate_quality(quality)

            session = await self._sessions.get_by_id(session_id)
            if session is None:
                raise SessionNotFound(session_id)

            async with self._uow.transaction(session.card_id):
                updated_card = await self._complete_locked(session_id, quality, notes)
        except SchedulerError as e:
            logger.warning(f"Could not complete review session {session_id}: {e}")
            raise

        return updated_card

    async def _complete_locked(self, session_id: str, quality: int, notes: str | None) -> Card:
        # Re-read under the card lock so a concurrent double submit sees the first commit
        session = await self._sessions.get_by_id(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        if session.is_completed:
            raise SessionAlreadyCompleted(session_id)

        card = await self._cards.get_by_id(session.card_id)
        if card is None:
            raise CardNotFound(session.card_id)

        now = self._clock.now()
        review_count = await self._sessions.count_completed_before_for_card(
            card.id, session_id
        )
        days_since = days_between(card.last_reviewed_at, now) if review_count > 2 else None

        result = calculate_next_review(
            quality=quality,
            review_count=review_count,
            current_ease_factor=session.ease_factor,
            days_since_last_review=days_since,
        )

        completed = replace(
            session,
            quality=quality,
            interval_days=result.next_interval_days,
            notes=notes,
            review_duration=max(now - session.reviewed_at, timedelta(0)),
            new_ease_factor=result.new_ease_factor,
            completed_at=now,
        )
        updated_card = replace(
            card,
            review_count=card.review_count + 1,
            last_reviewed_at=now,
            next_review_at=now + timedelta(days=result.next_interval_days),
            updated_at=now,
        )

        await self._sessions.update(completed)
        await self._cards.update(updated_card)

        logger.info(
            f"Completed review session {session_id}: card={card.id}, quality={quality}, "
            f"next_review_in={result.next_interval_days}d, "
            f"ease_factor={result.new_ease_factor:.2f}, reset={result.reset}"
        )
        return updated_card

    async def history(self, card_id: str) -> list[ReviewSession]:
        """
        Review history of a card, newest first.

        Raises:
            CardNotFound: If the card does not exist.
        """
        if await self._cards.get_by_id(card_id) is None:
            raise CardNotFound(card_id)
        return await self._sessions.get_by_card(card_id, newest_first=True)

    async def _capture_ease_factor(self, card_id: str) -> float:
        if self._ease_source == "last_result":
            latest = await self._sessions.latest_completed_for_card(card_id)
            if latest is not None and latest.new_ease_factor is not None:
                return latest.new_ease_factor

        average = await self._sessions.average_ease_factor_for_card(card_id)
        if average is None:
            return DEFAULT_EASE_FACTOR
        return average
