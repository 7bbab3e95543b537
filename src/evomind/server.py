import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from evomind.application.factory import ReviewBackend
from evomind.consts import VERSION
from evomind.domain.review.errors import (
    CardNotFound,
    InvalidQuality,
    SchedulerError,
    SessionAlreadyCompleted,
    SessionNotFound,
    StoreUnavailable,
)
from evomind.domain.review.models import Card, ReviewSession, SessionType

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("evomind.server")

_backend: ReviewBackend | None = None


def get_backend() -> ReviewBackend:
    """Lazily build the backend from the resolved configuration."""
    global _backend
    if _backend is None:
        from evomind.application.config import resolve_config
        from evomind.application.factory import get_review_backend

        try:
            _backend = get_review_backend(resolve_config())
        except SchedulerError as e:
            logger.error(f"Could not open the review store: {e}")
            raise _http_error(e) from e
    return _backend


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"evomind server v{VERSION} starting up...")
    yield
    # Shutdown
    global _backend
    if _backend is not None:
        _backend.close()
        _backend = None
    logger.info("evomind server shutting down...")


app = FastAPI(
    title="evomind",
    description="Spaced-repetition review scheduling API.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()

_STATUS_CODES = {
    CardNotFound: 404,
    SessionNotFound: 404,
    SessionAlreadyCompleted: 409,
    InvalidQuality: 422,
    StoreUnavailable: 503,
}


def _http_error(e: SchedulerError) -> HTTPException:
    status = _STATUS_CODES.get(type(e), 400)
    return HTTPException(status_code=status, detail=str(e))


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class CardResponse(BaseModel):
    id: str
    title: str | None
    review_count: int
    last_reviewed_at: datetime | None
    next_review_at: datetime
    urgency: float | None = None

    @classmethod
    def from_card(cls, card: Card, urgency: float | None = None) -> "CardResponse":
        return cls(
            id=card.id,
            title=card.title,
            review_count=card.review_count,
            last_reviewed_at=card.last_reviewed_at,
            next_review_at=card.next_review_at,
            urgency=urgency,
        )


class SessionResponse(BaseModel):
    id: str
    card_id: str
    session_type: SessionType
    ease_factor: float
    quality: int | None
    interval_days: int | None
    reviewed_at: datetime
    review_duration_ms: int | None
    notes: str | None

    @classmethod
    def from_session(cls, s: ReviewSession) -> "SessionResponse":
        duration = s.review_duration
        return cls(
            id=s.id,
            card_id=s.card_id,
            session_type=s.session_type,
            ease_factor=s.ease_factor,
            quality=s.quality,
            interval_days=s.interval_days,
            reviewed_at=s.reviewed_at,
            review_duration_ms=(
                int(duration.total_seconds() * 1000) if duration is not None else None
            ),
            notes=s.notes,
        )


class CreateCardRequest(BaseModel):
    title: str | None = None


class StartSessionRequest(BaseModel):
    card_id: str
    session_type: SessionType = SessionType.QUICK


class StartSessionResponse(BaseModel):
    session_id: str


class CompleteSessionRequest(BaseModel):
    # Range is checked by the scheduler so the error type stays InvalidQuality
    quality: int = Field(description="Recall quality, 0 (forgot) to 5 (perfect).")
    notes: str | None = None


class StatsResponse(BaseModel):
    today_reviews: int
    today_distinct_cards: int
    week_reviews: int
    week_distinct_cards: int
    due_cards_count: int
    average_quality: float | None
    session_type_counts: dict[str, int]


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.post("/cards", response_model=CardResponse, status_code=201)
async def create_card(req: CreateCardRequest, backend: ReviewBackend = Depends(get_backend)):
    """Register a card handed over by the card-generation pipeline."""
    from evomind.application.cards import register_card

    try:
        card = await register_card(backend.cards, backend.clock, req.title)
    except SchedulerError as e:
        raise _http_error(e) from e
    return CardResponse.from_card(card)


@app.post("/sessions", response_model=StartSessionResponse, status_code=201)
async def start_session(req: StartSessionRequest, backend: ReviewBackend = Depends(get_backend)):
    """
    Start a review session for a card.
    """
    try:
        session_id = await backend.review_service().start(req.card_id, req.session_type)
    except SchedulerError as e:
        raise _http_error(e) from e
    return StartSessionResponse(session_id=session_id)


@app.post("/sessions/{session_id}/complete", response_model=CardResponse)
async def complete_session(
    session_id: str,
    req: CompleteSessionRequest,
    backend: ReviewBackend = Depends(get_backend),
):
    """
    Complete a review session. Returns the rescheduled card.
    """
    try:
        card = await backend.review_service().complete(session_id, req.quality, req.notes)
    except SchedulerError as e:
        raise _http_error(e) from e
    except Exception as e:
        logger.error(f"Completing session {session_id} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e
    return CardResponse.from_card(card)


@app.get("/cards/{card_id}/sessions", response_model=list[SessionResponse])
async def card_history(card_id: str, backend: ReviewBackend = Depends(get_backend)):
    try:
        sessions = await backend.review_service().history(card_id)
    except SchedulerError as e:
        raise _http_error(e) from e
    return [SessionResponse.from_session(s) for s in sessions]


@app.get("/due", response_model=list[CardResponse])
async def due_cards(backend: ReviewBackend = Depends(get_backend)):
    """
    Cards due now, most overdue first, with an urgency weight for display.
    """
    from evomind.application.review.due import urgency_for_card

    now = backend.clock.now()
    try:
        cards = await backend.due_selector().select(now)
    except SchedulerError as e:
        raise _http_error(e) from e
    return [CardResponse.from_card(c, urgency_for_card(c, now)) for c in cards]


@app.get("/stats", response_model=StatsResponse)
async def review_stats(backend: ReviewBackend = Depends(get_backend)):
    try:
        stats = await backend.stats_service().get_stats()
    except SchedulerError as e:
        raise _http_error(e) from e
    return StatsResponse(
        today_reviews=stats.today_reviews,
        today_distinct_cards=stats.today_distinct_cards,
        week_reviews=stats.week_reviews,
        week_distinct_cards=stats.week_distinct_cards,
        due_cards_count=stats.due_cards_count,
        average_quality=stats.average_quality,
        session_type_counts=stats.session_type_counts,
    )
