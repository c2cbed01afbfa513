"""
Service layer for business logic.

Services orchestrate operations between repositories, enforce the
forecast lifecycle rules and implement scoring and ranking.
"""

from forecast_scoring.services.engine import ScoringEngine
from forecast_scoring.services.forecast_service import ForecastService
from forecast_scoring.services.leaderboard_service import LeaderboardService
from forecast_scoring.services.notifications import LoggingNotifier, Notifier, QueueNotifier
from forecast_scoring.services.resolution_service import ResolutionService
from forecast_scoring.services.sweeper import ExpirySweeper
from forecast_scoring.services.user_service import UserService

__all__ = [
    "ExpirySweeper",
    "ForecastService",
    "LeaderboardService",
    "LoggingNotifier",
    "Notifier",
    "QueueNotifier",
    "ResolutionService",
    "ScoringEngine",
    "UserService",
]
