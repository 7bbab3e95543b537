"""Service for generating stable, time-sortable ids for cards and sessions."""

from ulid import ULID

from evomind.domain.constants import CARD_ID_PREFIX, SESSION_ID_PREFIX


def generate_card_id() -> str:
    """Generate a card id using ULID."""
    return f"{CARD_ID_PREFIX}_{ULID()}"


def generate_session_id() -> str:
    """Generate a review session id using ULID."""
    return f"{SESSION_ID_PREFIX}_{ULID()}"
