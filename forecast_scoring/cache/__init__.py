"""Leaderboard cache backends and key layout."""

from forecast_scoring.cache.backends import (
    CacheBackend,
    MemoryCache,
    MongoCache,
    NullCache,
    ResilientCache,
    build_cache_backend,
)
from forecast_scoring.cache.keys import (
    LEADERBOARD_STATS_KEY,
    leaderboard_invalidation_keys,
    leaderboard_page_key,
    session_key,
)

__all__ = [
    "CacheBackend",
    "LEADERBOARD_STATS_KEY",
    "MemoryCache",
    "MongoCache",
    "NullCache",
    "ResilientCache",
    "build_cache_backend",
    "leaderboard_invalidation_keys",
    "leaderboard_page_key",
    "session_key",
]
