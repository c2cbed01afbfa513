"""Configuration module for the forecast scoring engine."""

from forecast_scoring.config.logging import configure_logging
from forecast_scoring.config.settings import (
    AppSettings,
    CacheSettings,
    MongoSettings,
    ScoringPolicy,
    Settings,
    SweeperSettings,
    get_settings,
)

__all__ = [
    "AppSettings",
    "CacheSettings",
    "MongoSettings",
    "ScoringPolicy",
    "Settings",
    "SweeperSettings",
    "configure_logging",
    "get_settings",
]
