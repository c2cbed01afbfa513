"""
Pydantic models for the forecast scoring engine.

This module exports all domain models used throughout the application:
- User: registered forecaster with running statistics
- Forecast: a call on an economic release
- Resolution models: resolution inputs, results and sweep reports
- Leaderboard models: ranked pages, rankings and stats
"""

from forecast_scoring.models.base import EmbeddedModel, MongoBaseModel, TimestampedModel, utc_now
from forecast_scoring.models.forecast import (
    EventType,
    Forecast,
    ForecastCreate,
    ForecastStatus,
    ForecastUpdate,
    FreeformValue,
    PredictedOutcome,
    RateValue,
    ThresholdValue,
)
from forecast_scoring.models.leaderboard import (
    AccuracyReport,
    CategoryRank,
    LeaderboardCategory,
    LeaderboardEntry,
    LeaderboardPage,
    LeaderboardRow,
    LeaderboardStats,
    TierCount,
    UserRankings,
)
from forecast_scoring.models.resolution import (
    EXPIRED_OUTCOME,
    BatchResolutionItem,
    PointsBreakdown,
    ResolutionData,
    ResolutionRequest,
    ResolutionResult,
    SweepError,
    SweepReport,
)
from forecast_scoring.models.user import User, UserCreate

__all__ = [
    # Base
    "EmbeddedModel",
    "MongoBaseModel",
    "TimestampedModel",
    "utc_now",
    # User
    "User",
    "UserCreate",
    # Forecast
    "EventType",
    "Forecast",
    "ForecastCreate",
    "ForecastStatus",
    "ForecastUpdate",
    "FreeformValue",
    "PredictedOutcome",
    "RateValue",
    "ThresholdValue",
    # Resolution
    "EXPIRED_OUTCOME",
    "BatchResolutionItem",
    "PointsBreakdown",
    "ResolutionData",
    "ResolutionRequest",
    "ResolutionResult",
    "SweepError",
    "SweepReport",
    # Leaderboard
    "AccuracyReport",
    "CategoryRank",
    "LeaderboardCategory",
    "LeaderboardEntry",
    "LeaderboardPage",
    "LeaderboardRow",
    "LeaderboardStats",
    "TierCount",
    "UserRankings",
]
