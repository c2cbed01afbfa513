"""
Scoring engine facade.

Wires the services around one store, cache and notifier and exposes the
engine's public operations.
"""

from datetime import datetime
from typing import Any, Callable

from forecast_scoring.cache.backends import CacheBackend, MemoryCache, ResilientCache
from forecast_scoring.config.settings import Settings, get_settings
from forecast_scoring.models.base import utc_now
from forecast_scoring.models.leaderboard import AccuracyReport, LeaderboardPage
from forecast_scoring.models.resolution import ResolutionData, ResolutionResult, SweepReport
from forecast_scoring.services.forecast_service import ForecastService
from forecast_scoring.services.leaderboard_service import LeaderboardService
from forecast_scoring.services.notifications import LoggingNotifier, Notifier
from forecast_scoring.services.resolution_service import ResolutionService
from forecast_scoring.services.sweeper import ExpirySweeper
from forecast_scoring.services.user_service import UserService


class ScoringEngine:
    """
    Entry point for resolving forecasts and reading leaderboards.

    Usage:
        connection = await get_connection()
        engine = ScoringEngine(MongoStore.from_connection(connection))
        result = await engine.resolve_forecast(forecast_id, "higher", {...})
    """

    def __init__(
        self,
        store: Any,
        cache: CacheBackend | None = None,
        notifier: Notifier | None = None,
        settings: Settings | None = None,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store
        self.cache = ResilientCache(
            cache if cache is not None else MemoryCache(),
            timeout=self.settings.cache.operation_timeout_seconds,
        )
        self.notifier = notifier or LoggingNotifier()

        self.leaderboard = LeaderboardService(
            store, self.cache, self.settings.cache, self.settings.scoring, now=now
        )
        self.resolution = ResolutionService(
            store,
            self.leaderboard,
            self.cache,
            self.notifier,
            self.settings.scoring,
            self.settings.cache,
            now=now,
        )
        self.sweeper = ExpirySweeper(store, self.resolution, self.settings.sweeper, now=now)
        self.users = UserService(store, self.leaderboard, now=now)
        self.forecasts = ForecastService(store, now=now)

    async def resolve_forecast(
        self,
        forecast_id: Any,
        actual_outcome: str,
        resolution_data: ResolutionData | dict[str, Any] | None = None,
    ) -> ResolutionResult:
        return await self.resolution.resolve(forecast_id, actual_outcome, resolution_data)

    async def get_leaderboard_page(
        self,
        category: Any = "overall",
        page: int = 1,
        page_size: int | None = None,
        requesting_user_id: Any = None,
    ) -> LeaderboardPage:
        return await self.leaderboard.get_page(
            category,
            page,
            self.settings.app.default_page_size if page_size is None else page_size,
            requesting_user_id,
        )

    async def get_user_accuracy(self, user_id: Any, event_type: str | None = None) -> AccuracyReport:
        return await self.users.get_accuracy(user_id, event_type)

    async def run_expiry_sweep(self) -> SweepReport:
        return await self.sweeper.run()
