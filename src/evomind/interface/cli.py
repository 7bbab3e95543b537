"""evomind CLI: review sessions, due cards, stats and configuration."""

import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import typer

from evomind.application.config import resolve_config
from evomind.application.factory import ReviewBackend, get_review_backend
from evomind.domain.review.errors import SchedulerError
from evomind.domain.review.models import SessionType, describe_quality

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="evomind: spaced-repetition review scheduler.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Subgroups
# ---------------------------------------------------------------------------

card_app = typer.Typer(help="Manage cards.", no_args_is_help=True)
app.add_typer(card_app, name="card")

review_app = typer.Typer(help="Start and complete review sessions.", no_args_is_help=True)
app.add_typer(review_app, name="review")

config_app = typer.Typer(help="Manage evomind configuration.")
app.add_typer(config_app, name="config")


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
    database: Annotated[
        Path | None, typer.Option("--database", help="SQLite database path override.")
    ] = None,
):
    """Global settings for evomind."""
    ctx.ensure_object(dict)
    ctx.obj["database_path"] = database
    if verbose >= 2:
        logging.getLogger().setLevel(logging.DEBUG)
    elif verbose == 1:
        logging.getLogger().setLevel(logging.INFO)


def _backend(ctx: typer.Context) -> ReviewBackend:
    obj = ctx.obj or {}
    config = resolve_config({"database_path": obj.get("database_path")})
    return get_review_backend(config)


def _run(ctx: typer.Context, action):
    """Run ``action(backend)`` to completion, reporting scheduler errors."""
    backend = None
    try:
        backend = _backend(ctx)
        return asyncio.run(action(backend))
    except SchedulerError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from None
    finally:
        if backend is not None:
            backend.close()


def _fmt(value) -> str:
    return value.isoformat() if value is not None else "-"


# ---------------------------------------------------------------------------
# Card subgroup
# ---------------------------------------------------------------------------


@card_app.command("add")
def card_add(
    ctx: typer.Context,
    title: Annotated[str | None, typer.Argument(help="Display title for the card.")] = None,
):
    """Register a new card. It is due immediately."""
    from evomind.application.cards import register_card

    async def run(backend: ReviewBackend):
        return await register_card(backend.cards, backend.clock, title)

    card = _run(ctx, run)
    typer.echo(card.id)


# ---------------------------------------------------------------------------
# Review subgroup
# ---------------------------------------------------------------------------


@review_app.command("start")
def review_start(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card to review.")],
    session_type: Annotated[
        SessionType, typer.Option("--type", "-t", help="How the card is reviewed.")
    ] = SessionType.QUICK,
):
    """Open a review session and print its id."""

    async def run(backend: ReviewBackend):
        return await backend.review_service().start(card_id, session_type)

    typer.echo(_run(ctx, run))


@review_app.command("complete")
def review_complete(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Open session id.")],
    quality: Annotated[int, typer.Argument(help="Recall quality, 0 (forgot) to 5 (perfect).")],
    notes: Annotated[str | None, typer.Option(help="Notes stored on the session.")] = None,
):
    """[bold green]Complete[/bold green] a review session and reschedule the card."""

    async def run(backend: ReviewBackend):
        return await backend.review_service().complete(session_id, quality, notes)

    card = _run(ctx, run)
    typer.secho(f"{describe_quality(quality)}", fg="green")
    typer.echo(f"Card {card.id}: reviews={card.review_count}")
    typer.echo(f"Next review: {_fmt(card.next_review_at)}")


@review_app.command("history")
def review_history(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card whose history to show.")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show the review sessions of a card, newest first."""

    async def run(backend: ReviewBackend):
        return await backend.review_service().history(card_id)

    sessions = _run(ctx, run)

    if json_output:
        typer.echo(
            json.dumps(
                [
                    {
                        "id": s.id,
                        "session_type": s.session_type.value,
                        "ease_factor": s.ease_factor,
                        "quality": s.quality,
                        "interval_days": s.interval_days,
                        "reviewed_at": _fmt(s.reviewed_at),
                        "review_duration_ms": (
                            int(s.review_duration.total_seconds() * 1000)
                            if s.review_duration is not None
                            else None
                        ),
                        "notes": s.notes,
                    }
                    for s in sessions
                ],
                indent=2,
            )
        )
        return

    if not sessions:
        typer.secho("No review sessions.", fg="yellow")
        return
    for s in sessions:
        status = f"q={s.quality} +{s.interval_days}d" if s.is_completed else "open"
        typer.echo(f"{_fmt(s.reviewed_at)}  {s.session_type.value:<11} {status}  ef={s.ease_factor:.2f}")


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command("due")
def due(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List due cards, most overdue first."""
    from evomind.application.review.due import urgency_for_card

    async def run(backend: ReviewBackend):
        now = backend.clock.now()
        cards = await backend.due_selector().select(now)
        return [(card, urgency_for_card(card, now)) for card in cards]

    rows = _run(ctx, run)

    if json_output:
        typer.echo(
            json.dumps(
                [
                    {
                        "id": card.id,
                        "title": card.title,
                        "next_review_at": _fmt(card.next_review_at),
                        "review_count": card.review_count,
                        "urgency": urgency,
                    }
                    for card, urgency in rows
                ],
                indent=2,
            )
        )
        return

    if not rows:
        typer.secho("No cards due.", fg="green")
        return
    typer.echo(f"Due cards: {len(rows)}")
    for card, urgency in rows:
        typer.echo(f"  [{urgency:.1f}] {card.id}  {card.title or ''}")


@app.command("stats")
def stats(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show review activity for today and the last week."""

    async def run(backend: ReviewBackend):
        return await backend.stats_service().get_stats()

    result = _run(ctx, run)

    if json_output:
        typer.echo(json.dumps(asdict(result), indent=2))
        return

    avg = f"{result.average_quality:.2f}" if result.average_quality is not None else "-"
    typer.echo(f"Today: {result.today_reviews} reviews, {result.today_distinct_cards} cards")
    typer.echo(f"Week:  {result.week_reviews} reviews, {result.week_distinct_cards} cards")
    typer.echo(f"Average quality (week): {avg}")
    typer.echo(f"Due now: {result.due_cards_count}")


@app.command("serve")
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8777,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("evomind.server:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))
