"""
CLI commands for the forecast scoring engine.

Provides command-line access to database setup, users, forecasts,
resolution, leaderboards and the expiry sweeper.
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Callable

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from forecast_scoring import __version__
from forecast_scoring.cache.backends import build_cache_backend
from forecast_scoring.config.logging import configure_logging
from forecast_scoring.config.settings import get_settings
from forecast_scoring.db.connection import close_database, get_connection
from forecast_scoring.db.indexes import ensure_indexes
from forecast_scoring.db.store import MongoStore
from forecast_scoring.errors import (
    DuplicateForecastError,
    ForecastAlreadyResolvedError,
    ForecastNotEditableError,
    ForecastPermissionError,
    NotFoundError,
    ScoringEngineError,
    StoreUnavailableError,
    UserAlreadyExistsError,
    UserInactiveError,
    ValidationError,
)
from forecast_scoring.jobs.scheduler import create_scheduler
from forecast_scoring.models.forecast import EventType, ForecastStatus, PredictedOutcome
from forecast_scoring.models.leaderboard import LeaderboardCategory
from forecast_scoring.services.engine import ScoringEngine

console = Console()

USER_ERRORS = (
    NotFoundError,
    ValidationError,
    UserAlreadyExistsError,
    UserInactiveError,
    DuplicateForecastError,
    ForecastAlreadyResolvedError,
    ForecastNotEditableError,
    ForecastPermissionError,
)


def async_command(f: Callable) -> Callable:
    """Decorator to run async functions in Click commands."""

    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))

    return wrapper


def handle_errors(f: Callable) -> Callable:
    """Decorator to handle common errors in CLI commands."""

    @wraps(f)
    async def wrapper(*args, **kwargs):
        try:
            return await f(*args, **kwargs)
        except USER_ERRORS as e:
            console.print(f"[red]Error:[/red] {e}")
            raise SystemExit(1) from e
        except StoreUnavailableError as e:
            console.print(f"[red]Store unavailable:[/red] {e}")
            raise SystemExit(2) from e
        except Exception as e:
            console.print(f"[red]Unexpected error:[/red] {e}")
            raise
        finally:
            await close_database()

    return wrapper


async def get_engine() -> ScoringEngine:
    """Connect and build an engine from the configured settings."""
    settings = get_settings()
    connection = await get_connection()
    return ScoringEngine(
        MongoStore.from_connection(connection),
        cache=build_cache_backend(settings.cache, connection.database),
        settings=settings,
    )


def format_rank(rank: int | None) -> str:
    if rank is None:
        return "-"
    return {1: "🥇 1", 2: "🥈 2", 3: "🥉 3"}.get(rank, str(rank))


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version=__version__, prog_name="forecast-scoring")
def cli():
    """Forecast Scoring Engine - CLI Interface.

    Resolve economic forecasts, award points and inspect leaderboards.
    """
    configure_logging()


# =============================================================================
# Database Commands
# =============================================================================


@cli.group()
def db():
    """Database management commands."""
    pass


@db.command("init")
@async_command
@handle_errors
async def db_init():
    """Initialize database with indexes."""
    console.print("[yellow]Initializing database...[/yellow]")

    connection = await get_connection()
    results = await ensure_indexes(connection.database, get_settings().cache.collection_name)

    table = Table(title="Created Indexes", box=box.ROUNDED)
    table.add_column("Collection", style="cyan")
    table.add_column("Indexes", style="green")

    for collection, indexes in results.items():
        table.add_row(collection, ", ".join(indexes))

    console.print(table)
    console.print("[green]Database initialized successfully![/green]")


@db.command("status")
@async_command
@handle_errors
async def db_status():
    """Check database connection status."""
    connection = await get_connection()
    health = await connection.health_check()

    if health["healthy"]:
        transactions = "[green]yes[/green]" if health["transactions"] else "[red]no[/red]"
        console.print(
            Panel(
                f"[green]Connected[/green]\n"
                f"Server: MongoDB {health.get('server_version', 'unknown')}\n"
                f"Replica set: {health.get('replica_set') or '-'}\n"
                f"Transactions: {transactions}\n"
                f"Latency: {health.get('latency_ms', 'N/A')} ms",
                title="Database Status",
                border_style="green",
            )
        )
    else:
        console.print(
            Panel(
                f"[red]Disconnected[/red]\nError: {health.get('error', 'Unknown')}",
                title="Database Status",
                border_style="red",
            )
        )


# =============================================================================
# User Commands
# =============================================================================


@cli.group()
def user():
    """User management commands."""
    pass


@user.command("create")
@click.option("--username", "-u", required=True, help="Unique username")
@click.option("--email", "-e", required=True, help="Email address")
@click.option("--display-name", "-n", default=None, help="Display name")
@async_command
@handle_errors
async def user_create(username: str, email: str, display_name: str | None):
    """Register a new user."""
    engine = await get_engine()
    new_user = await engine.users.register_user(username, email, display_name)

    console.print(
        Panel(
            f"[green]User created successfully![/green]\n\n"
            f"ID: {new_user.id}\n"
            f"Username: {new_user.username}\n"
            f"Email: {new_user.email}\n"
            f"Display Name: {new_user.effective_display_name}",
            title="New User",
            border_style="green",
        )
    )


@user.command("accuracy")
@click.argument("user_id")
@click.option(
    "--event-type",
    "-t",
    type=click.Choice([e.value for e in EventType]),
    default=None,
    help="Restrict to one event type",
)
@async_command
@handle_errors
async def user_accuracy(user_id: str, event_type: str | None):
    """Show accuracy over a user's resolved forecasts."""
    engine = await get_engine()
    report = await engine.get_user_accuracy(user_id, event_type)

    console.print(
        Panel(
            f"Resolved: {report.total}\n"
            f"Correct: {report.correct}\n"
            f"[green]Accuracy: {report.accuracy_percentage}%[/green]\n"
            f"Avg Confidence: {report.avg_confidence}\n"
            f"Points: {report.total_points}",
            title=f"Accuracy ({report.event_type or 'all events'})",
            border_style="cyan",
        )
    )


@user.command("rankings")
@click.argument("user_id")
@async_command
@handle_errors
async def user_rankings(user_id: str):
    """Show a user's rank in every category."""
    engine = await get_engine()
    rankings = await engine.leaderboard.get_user_rankings(user_id)

    table = Table(title=f"{rankings.username} ({rankings.tier})", box=box.ROUNDED)
    table.add_column("Category", style="cyan")
    table.add_column("Rank", justify="center", style="bold")
    table.add_column("Points", justify="right", style="green")
    table.add_column("Resolved", justify="right")
    table.add_column("Accuracy", justify="right")

    for category, entry in rankings.rankings.items():
        if entry is None:
            table.add_row(category, "-", "-", "-", "-")
        else:
            table.add_row(
                category,
                format_rank(entry.rank),
                str(entry.points),
                str(entry.total_predictions),
                f"{entry.accuracy_percentage}%",
            )

    console.print(table)


# =============================================================================
# Forecast Commands
# =============================================================================


@cli.group()
def forecast():
    """Forecast management commands."""
    pass


@forecast.command("create")
@click.option("--user", "-u", "user_id", required=True, help="User ID")
@click.option(
    "--event-type", "-t", required=True, type=click.Choice([e.value for e in EventType])
)
@click.option("--title", required=True, help="Event title, e.g. 'CPI March 2025'")
@click.option(
    "--outcome", "-o", required=True, type=click.Choice([o.value for o in PredictedOutcome])
)
@click.option("--confidence", "-c", required=True, type=click.IntRange(0, 100))
@click.option("--days", "-d", default=7.0, type=float, help="Days until the forecast expires")
@click.option("--value", "-v", default=None, help="Prediction value as JSON")
@async_command
@handle_errors
async def forecast_create(
    user_id: str,
    event_type: str,
    title: str,
    outcome: str,
    confidence: int,
    days: float,
    value: str | None,
):
    """Submit a forecast."""
    try:
        prediction_value = json.loads(value) if value else None
    except json.JSONDecodeError as e:
        raise ValidationError(f"--value is not valid JSON: {e}") from e

    engine = await get_engine()
    created = await engine.forecasts.create_forecast(
        user_id,
        {
            "event_type": event_type,
            "event_title": title,
            "predicted_outcome": outcome,
            "prediction_value": prediction_value,
            "confidence": confidence,
            "expires_at": datetime.now(timezone.utc) + timedelta(days=days),
        },
    )

    console.print(
        Panel(
            f"[green]Forecast created![/green]\n\n"
            f"ID: {created.id}\n"
            f"{created.event_title} ({created.event_type})\n"
            f"Outcome: {created.predicted_outcome} @ {created.confidence}%\n"
            f"Expires: {created.expires_at:%Y-%m-%d %H:%M} UTC",
            title="New Forecast",
            border_style="green",
        )
    )


@forecast.command("list")
@click.option("--user", "-u", "user_id", required=True, help="User ID")
@click.option(
    "--status",
    "-s",
    type=click.Choice([s.value for s in ForecastStatus]),
    default=ForecastStatus.ALL.value,
)
@click.option("--page", "-p", default=1, type=click.IntRange(min=1))
@click.option("--page-size", "-l", default=20, type=click.IntRange(1, 100))
@async_command
@handle_errors
async def forecast_list(user_id: str, status: str, page: int, page_size: int):
    """List a user's forecasts."""
    engine = await get_engine()
    listing = await engine.forecasts.get_user_forecasts(user_id, status, page, page_size)
    now = datetime.now(timezone.utc)

    table = Table(
        title=f"Forecasts (page {page}/{max(listing['total_pages'], 1)}, "
        f"{listing['total_count']} total)",
        box=box.ROUNDED,
    )
    table.add_column("ID", style="dim")
    table.add_column("Event", style="cyan")
    table.add_column("Call", justify="center")
    table.add_column("Conf.", justify="right")
    table.add_column("Outcome", justify="center")
    table.add_column("Points", justify="right", style="green")
    table.add_column("Status")

    for f in listing["forecasts"]:
        status_str = {
            "active": "[yellow]Active[/yellow]",
            "expired": "[dim]Expired[/dim]",
            "resolved": "[green]Resolved[/green]" if f.is_correct else "[red]Resolved[/red]",
        }[f.status(now)]
        table.add_row(
            str(f.id),
            f"{f.event_title} ({f.event_type})",
            f.predicted_outcome,
            f"{f.confidence}%",
            f.actual_outcome or "-",
            str(f.points_awarded) if f.is_resolved else "-",
            status_str,
        )

    console.print(table)


@forecast.command("resolve")
@click.argument("forecast_id")
@click.option("--outcome", "-o", required=True, help="Declared outcome")
@click.option("--actual-value", type=float, default=None)
@click.option("--previous-value", type=float, default=None)
@click.option("--actual-rate", type=float, default=None)
@async_command
@handle_errors
async def forecast_resolve(
    forecast_id: str,
    outcome: str,
    actual_value: float | None,
    previous_value: float | None,
    actual_rate: float | None,
):
    """Resolve a forecast and award points."""
    data: dict[str, Any] = {
        "actual_value": actual_value,
        "previous_value": previous_value,
        "actual_rate": actual_rate,
    }
    engine = await get_engine()
    result = await engine.resolve_forecast(forecast_id, outcome, data)

    verdict = "[green]Correct[/green]" if result.is_correct else "[red]Incorrect[/red]"
    console.print(
        Panel(
            f"{verdict}\n\n"
            f"Base: {result.breakdown.base_points}\n"
            f"Time bonus: {result.breakdown.time_bonus}\n"
            f"Streak bonus: {result.breakdown.streak_bonus}\n"
            f"[bold]Total: {result.points_awarded}[/bold]\n\n"
            f"Streak: {result.new_streak}",
            title="Resolution",
            border_style="green" if result.is_correct else "red",
        )
    )


# =============================================================================
# Leaderboard Commands
# =============================================================================


@cli.group()
def leaderboard():
    """Leaderboard commands."""
    pass


@leaderboard.command("show")
@click.option(
    "--category",
    "-c",
    type=click.Choice([c.value for c in LeaderboardCategory]),
    default=LeaderboardCategory.OVERALL.value,
)
@click.option("--page", "-p", default=1, type=click.IntRange(min=1))
@click.option("--page-size", "-l", default=20, type=click.IntRange(1, 100))
@click.option("--me", "requesting_user_id", default=None, help="Show this user's rank too")
@async_command
@handle_errors
async def leaderboard_show(
    category: str, page: int, page_size: int, requesting_user_id: str | None
):
    """Show a leaderboard page."""
    engine = await get_engine()
    result = await engine.get_leaderboard_page(category, page, page_size, requesting_user_id)

    table = Table(
        title=f"🏆 Leaderboard ({result.category}) page {result.page}/{max(result.total_pages, 1)}",
        box=box.ROUNDED,
    )
    table.add_column("Rank", justify="center", style="bold")
    table.add_column("User", style="cyan")
    table.add_column("Points", justify="right", style="green")
    table.add_column("Resolved", justify="right")
    table.add_column("Accuracy", justify="right")
    table.add_column("Tier", style="yellow")

    for entry in result.rows:
        table.add_row(
            format_rank(entry.rank),
            entry.display_name or entry.username,
            str(entry.points),
            str(entry.total_predictions),
            f"{entry.accuracy_percentage}%",
            entry.tier,
        )

    console.print(table)
    console.print(f"\nTotal participants: {result.total_count}")
    if requesting_user_id is not None:
        console.print(f"Your rank: {format_rank(result.requester_rank)}")


@leaderboard.command("stats")
@async_command
@handle_errors
async def leaderboard_stats():
    """Show leaderboard population statistics."""
    engine = await get_engine()
    stats = await engine.leaderboard.get_stats()

    tiers = "\n".join(
        f"  {tier.name} ({tier.min_points}"
        f"{'-' + str(tier.max_points) if tier.max_points is not None else '+'}): {tier.users}"
        for tier in stats.tiers
    )
    console.print(
        Panel(
            f"[bold]Users[/bold]: {stats.total_users}\n"
            f"[bold]Active predictors[/bold]: {stats.active_predictors}\n"
            f"[bold]Average points[/bold]: {stats.avg_points}\n"
            f"[bold]Top score[/bold]: {stats.max_points}\n\n"
            f"[bold]Tiers[/bold]\n{tiers}",
            title="📊 Leaderboard Statistics",
            border_style="blue",
        )
    )


@leaderboard.command("refresh")
@click.option(
    "--category",
    "-c",
    type=click.Choice([c.value for c in LeaderboardCategory]),
    default=LeaderboardCategory.OVERALL.value,
)
@async_command
@handle_errors
async def leaderboard_refresh(category: str):
    """Recompute a leaderboard and drop its cached pages."""
    engine = await get_engine()
    count = await engine.leaderboard.refresh(category)
    console.print(f"[green]Refreshed {category}[/green] ({count} rows)")


# =============================================================================
# Sweep Commands
# =============================================================================


@cli.group()
def sweep():
    """Expiry sweep commands."""
    pass


@sweep.command("run")
@async_command
@handle_errors
async def sweep_run():
    """Resolve every expired forecast now."""
    engine = await get_engine()
    report = await engine.run_expiry_sweep()

    console.print(
        Panel(
            f"Candidates: {report.candidates}\n"
            f"[green]Resolved: {report.resolved_count}[/green]\n"
            f"Skipped: {report.skipped_count}\n"
            f"[red]Errors: {len(report.errors)}[/red]\n"
            f"Duration: {report.duration_seconds:.2f}s",
            title="Expiry Sweep",
            border_style="red" if report.errors else "green",
        )
    )
    for error in report.errors:
        console.print(f"  [red]{error.forecast_id or '-'}[/red] {error.error_type}: {error.message}")


@sweep.command("schedule")
@async_command
@handle_errors
async def sweep_schedule():
    """Run the expiry sweep on its configured interval until interrupted."""
    engine = await get_engine()
    scheduler = create_scheduler(engine)
    scheduler.start()
    console.print(
        f"[green]Sweeping every {engine.settings.sweeper.interval_minutes} minutes.[/green] "
        "Press Ctrl+C to stop."
    )
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown(wait=False)


if __name__ == "__main__":
    cli()
