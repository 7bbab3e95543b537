"""Registering cards handed over by the card-generation pipeline."""

import logging

from evomind.application.id_service import generate_card_id
from evomind.domain.review.models import Card
from evomind.domain.review.ports import CardStore, Clock

logger = logging.getLogger(__name__)


async def register_card(card_store: CardStore, clock: Clock, title: str | None = None) -> Card:
    """
    Create a never-reviewed card that is due immediately.

    ``next_review_at`` defaults to the creation time, so a new card shows
    up in the next due query.
    """
    now = clock.now()
    card = Card(
        id=generate_card_id(),
        title=title,
        next_review_at=now,
        created_at=now,
        updated_at=now,
    )
    await card_store.insert(card)
    logger.info(f"Registered card {card.id}")
    return card
