"""
Repository layer for data access.

Provides abstraction over MongoDB collections with async operations
using the Motor driver. Every write accepts a transaction session.
"""

from forecast_scoring.repositories.base import BaseRepository
from forecast_scoring.repositories.forecast_repository import ForecastRepository
from forecast_scoring.repositories.leaderboard_repository import LeaderboardRepository
from forecast_scoring.repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "ForecastRepository",
    "LeaderboardRepository",
    "UserRepository",
]
