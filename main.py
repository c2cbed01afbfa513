"""
Forecast Scoring Engine - Main Entry Point

Demonstrates the engine against MongoDB: registers users, submits
forecasts on economic releases, resolves them and prints the leaderboard.
"""

import asyncio
import sys
from datetime import datetime, timedelta, timezone

import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from forecast_scoring.cache.backends import build_cache_backend
from forecast_scoring.config.logging import configure_logging
from forecast_scoring.config.settings import get_settings
from forecast_scoring.db.connection import close_database, get_connection
from forecast_scoring.db.indexes import ensure_indexes
from forecast_scoring.db.store import MongoStore
from forecast_scoring.errors import (
    DuplicateForecastError,
    ScoringEngineError,
    UserAlreadyExistsError,
)
from forecast_scoring.models.user import User
from forecast_scoring.services.engine import ScoringEngine

logger = structlog.get_logger(__name__)
console = Console()

DEMO_USERS = [
    ("macro_maven", "maven@example.com", "Macro Maven"),
    ("rate_watcher", "rates@example.com", "Rate Watcher"),
    ("data_dove", "dove@example.com", "Data Dove"),
]

# (event_type, title, outcome, value, confidence, days until expiry)
DEMO_FORECASTS = [
    ("cpi", "CPI Demo Release", "higher", {"threshold": 0.0}, 80, 7),
    ("fed_rate", "FOMC Demo Decision", "same", {"rate": 5.25}, 70, 3),
    ("unemployment", "Jobs Demo Report", "lower", None, 60, 1),
]

# title -> (actual outcome, resolution data)
DEMO_RESULTS = {
    "CPI Demo Release": ("higher", {"actual_value": 3.4, "previous_value": 3.1}),
    "FOMC Demo Decision": ("same", {"actual_rate": 5.30}),
    "Jobs Demo Report": ("higher", {"actual_value": 4.1, "previous_value": 3.9}),
}


async def check_connection() -> bool:
    """Check MongoDB connection health."""
    try:
        connection = await get_connection()
    except Exception as e:
        console.print(f"[red]✗[/red] Failed to connect to MongoDB: {e}")
        return False

    health = await connection.health_check()
    if not health["healthy"]:
        console.print(f"[red]✗[/red] MongoDB unhealthy: {health.get('error', 'Unknown error')}")
        return False

    console.print(
        f"[green]✓[/green] Connected to MongoDB "
        f"(version: {health.get('server_version', 'unknown')}, "
        f"replica set: {health.get('replica_set') or '-'}, "
        f"latency: {health.get('latency_ms', 'N/A')}ms)"
    )
    if not health["transactions"]:
        console.print("[red]✗[/red] Resolution needs a replica set with transactions")
        return False
    return True


async def demo_register_users(engine: ScoringEngine) -> list[User]:
    console.print("\n[bold cyan]Registering demo users...[/bold cyan]")

    users = []
    for username, email, display_name in DEMO_USERS:
        try:
            user = await engine.users.register_user(username, email, display_name)
            console.print(f"  [green]✓[/green] Registered {username}")
        except UserAlreadyExistsError:
            user = await engine.users.get_user_by_username(username)
            console.print(f"  [yellow]○[/yellow] User exists: {username}")
        users.append(user)

    return users


async def demo_submit_and_resolve(engine: ScoringEngine, users: list[User]) -> None:
    console.print("\n[bold cyan]Submitting and resolving forecasts...[/bold cyan]")

    now = datetime.now(timezone.utc)
    for user in users:
        for event_type, title, outcome, value, confidence, days in DEMO_FORECASTS:
            try:
                forecast = await engine.forecasts.create_forecast(
                    user.id,
                    {
                        "event_type": event_type,
                        "event_title": title,
                        "predicted_outcome": outcome,
                        "prediction_value": value,
                        "confidence": confidence,
                        "expires_at": now + timedelta(days=days),
                    },
                )
            except DuplicateForecastError:
                console.print(f"  [yellow]○[/yellow] {user.username} already has '{title}' open")
                continue

            actual, data = DEMO_RESULTS[title]
            try:
                result = await engine.resolve_forecast(forecast.id, actual, data)
            except ScoringEngineError as e:
                console.print(f"  [red]✗[/red] Could not resolve {title}: {e}")
                continue

            mark = "[green]✓[/green]" if result.is_correct else "[red]✗[/red]"
            console.print(
                f"  {mark} {user.username}: {title} -> {result.points_awarded} pts "
                f"(streak {result.new_streak})"
            )


async def demo_show_leaderboard(engine: ScoringEngine) -> None:
    console.print("\n[bold cyan]Leaderboard:[/bold cyan]")

    page = await engine.get_leaderboard_page("overall", 1, 10)

    table = Table(title="🏆 Overall Leaderboard")
    table.add_column("Rank", justify="center", style="cyan")
    table.add_column("User", style="green")
    table.add_column("Points", justify="right", style="yellow")
    table.add_column("Resolved", justify="right")
    table.add_column("Accuracy", justify="right", style="magenta")
    table.add_column("Tier")

    for entry in page.rows:
        table.add_row(
            f"#{entry.rank}",
            entry.display_name or entry.username,
            str(entry.points),
            str(entry.total_predictions),
            f"{entry.accuracy_percentage}%",
            entry.tier,
        )

    console.print(table)


async def demo_show_stats(engine: ScoringEngine) -> None:
    stats = await engine.leaderboard.get_stats()

    table = Table(title="📊 Leaderboard Stats")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")

    table.add_row("Total Users", str(stats.total_users))
    table.add_row("Active Predictors", str(stats.active_predictors))
    table.add_row("Average Points", f"{stats.avg_points:.2f}")
    table.add_row("Top Score", str(stats.max_points))
    for tier in stats.tiers:
        table.add_row(f"Tier: {tier.name}", str(tier.users))

    console.print(table)


async def run_demo() -> None:
    """Run a complete demo of the scoring engine."""
    console.print(
        Panel.fit(
            "[bold blue]Forecast Scoring Engine Demo[/bold blue]\nMongoDB + Motor + Pydantic",
            border_style="blue",
        )
    )

    settings = get_settings()
    configure_logging(settings.app)
    console.print(f"\n[dim]Environment: {settings.app.environment}[/dim]")

    if not await check_connection():
        console.print("\n[red]Cannot proceed without a transactional MongoDB.[/red]")
        console.print("Start a single-node replica set, for example:")
        console.print("  docker run -d -p 27017:27017 mongo:7 --replSet rs0")
        return

    connection = await get_connection()
    await ensure_indexes(connection.database, settings.cache.collection_name)

    engine = ScoringEngine(
        MongoStore.from_connection(connection),
        cache=build_cache_backend(settings.cache, connection.database),
        settings=settings,
    )

    users = await demo_register_users(engine)
    await demo_submit_and_resolve(engine, users)
    await demo_show_leaderboard(engine)
    await demo_show_stats(engine)

    console.print("\n[green]Demo completed![/green]")


async def main() -> None:
    """Main entry point."""
    try:
        await run_demo()
    except Exception as e:
        logger.exception("Application error")
        console.print(f"\n[red]Error: {e}[/red]")
        sys.exit(1)
    finally:
        await close_database()


if __name__ == "__main__":
    asyncio.run(main())
