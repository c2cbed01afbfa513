"""
Application settings using pydantic-settings.

Loads configuration from environment variables with validation.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MongoSettings(BaseSettings):
    """MongoDB connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="MONGO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="MongoDB host")
    port: int = Field(default=27017, ge=1, le=65535, description="MongoDB port")
    root_user: str = Field(default="admin", description="MongoDB root username")
    root_password: SecretStr = Field(
        default=SecretStr("secret"), description="MongoDB root password"
    )
    db_name: str = Field(default="forecast_scoring", description="Database name")
    auth_source: str = Field(default="admin", description="Authentication database")
    replica_set: str | None = Field(
        default="rs0",
        description="Replica set name (multi-document transactions need one)",
    )

    # Connection pool settings
    min_pool_size: int = Field(default=5, ge=1, description="Minimum connection pool size")
    max_pool_size: int = Field(default=50, ge=1, description="Maximum connection pool size")
    max_idle_time_ms: int = Field(default=60000, ge=0, description="Max idle time in milliseconds")

    # Timeouts
    connect_timeout_ms: int = Field(default=5000, ge=1000, description="Connection timeout in ms")
    server_selection_timeout_ms: int = Field(
        default=5000, ge=1000, description="Server selection timeout in ms"
    )
    socket_timeout_ms: int = Field(default=10000, ge=1000, description="Socket timeout in ms")
    max_commit_time_ms: int = Field(
        default=5000, ge=100, description="Upper bound for a transaction commit in ms"
    )

    @computed_field  # type: ignore[misc]
    @property
    def uri(self) -> str:
        """Build MongoDB connection URI."""
        password = self.root_password.get_secret_value()
        uri = (
            f"mongodb://{self.root_user}:{password}@{self.host}:{self.port}"
            f"/{self.db_name}?authSource={self.auth_source}"
        )
        if self.replica_set:
            uri += f"&replicaSet={self.replica_set}"
        return uri


class CacheSettings(BaseSettings):
    """Leaderboard cache settings."""

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    backend: Literal["memory", "mongo", "none"] = Field(
        default="memory", description="Cache backend"
    )
    collection_name: str = Field(
        default="cache_entries", description="Collection used by the mongo backend"
    )
    page_ttl_seconds: int = Field(default=300, ge=1, description="Leaderboard page TTL")
    stats_ttl_seconds: int = Field(default=600, ge=1, description="Leaderboard stats TTL")
    operation_timeout_seconds: float = Field(
        default=0.25, gt=0, description="Upper bound for a single cache call"
    )
    invalidation_pages: int = Field(
        default=10, ge=1, description="Pages per category dropped on invalidation"
    )
    invalidation_page_sizes: list[int] = Field(
        default_factory=lambda: [20, 50, 100],
        description="Page sizes dropped on invalidation",
    )
    session_key_prefix: str = Field(default="session", description="Per-user session key prefix")


class ScoringPolicy(BaseSettings):
    """Tunable scoring and ranking policy."""

    model_config = SettingsConfigDict(
        env_prefix="SCORING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_points: int = Field(default=100, ge=0, description="Points before multipliers")
    confidence_multiplier: float = Field(
        default=0.01, ge=0, description="Weight of one confidence point"
    )
    streak_bonus: int = Field(default=10, ge=0, description="Streak bonus unit")
    difficulty_multipliers: dict[str, float] = Field(
        default_factory=lambda: {
            "cpi": 1.5,
            "unemployment": 1.3,
            "fed_rate": 2.0,
            "gdp": 1.8,
            "payrolls": 1.4,
            "housing": 1.2,
            "retail_sales": 1.1,
            "ppi": 1.3,
            "custom": 1.0,
        },
        description="Per event type difficulty multipliers",
    )
    default_difficulty: float = Field(default=1.0, gt=0, description="Multiplier for unknown types")
    # (minimum days early, bonus rate), checked in order
    time_bonus_steps: list[tuple[float, float]] = Field(
        default_factory=lambda: [(7, 0.20), (3, 0.10), (1, 0.05)],
        description="Early submission bonus steps",
    )
    fed_rate_tolerance: float = Field(
        default=0.125, ge=0, description="Allowed fed rate error in percentage points"
    )
    category_min_resolved: int = Field(
        default=3, ge=1, description="Resolved forecasts needed for an event type leaderboard"
    )
    weekly_window_days: int = Field(default=7, ge=1, description="Weekly leaderboard window")
    monthly_window_days: int = Field(default=30, ge=1, description="Monthly leaderboard window")
    # (minimum points, tier name), highest first
    tiers: list[tuple[int, str]] = Field(
        default_factory=lambda: [
            (10000, "Legend"),
            (5000, "Expert"),
            (1000, "Pro"),
            (500, "Advanced"),
            (100, "Intermediate"),
            (0, "Beginner"),
        ],
        description="Point tiers",
    )

    @field_validator("time_bonus_steps")
    @classmethod
    def sort_time_bonus_steps(cls, value: list[tuple[float, float]]) -> list[tuple[float, float]]:
        return sorted(value, key=lambda step: step[0], reverse=True)

    @field_validator("tiers")
    @classmethod
    def validate_tiers(cls, value: list[tuple[int, str]]) -> list[tuple[int, str]]:
        ordered = sorted(value, key=lambda tier: tier[0], reverse=True)
        if not ordered or ordered[-1][0] != 0:
            raise ValueError("Tiers must include a tier starting at 0 points")
        return ordered


class SweeperSettings(BaseSettings):
    """Expiry sweeper settings."""

    model_config = SettingsConfigDict(
        env_prefix="SWEEPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    interval_minutes: int = Field(default=60, ge=1, description="Minutes between sweeps")
    batch_limit: int = Field(default=500, ge=1, description="Forecasts fetched per sweep chunk")
    run_on_start: bool = Field(default=False, description="Run a sweep when the scheduler starts")


class AppSettings(BaseSettings):
    """Application-level settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    name: str = Field(default="Forecast Scoring Engine", description="Application name")
    version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Environment name",
    )
    debug: bool = Field(default=False, description="Debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    json_logs: bool = Field(default=False, description="Render logs as JSON lines")

    # Pagination defaults
    default_page_size: int = Field(default=50, ge=1, le=100, description="Default page size")
    max_page_size: int = Field(default=100, ge=1, le=1000, description="Maximum page size")


class Settings(BaseSettings):
    """Main settings container."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    mongo: MongoSettings = Field(default_factory=MongoSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    scoring: ScoringPolicy = Field(default_factory=ScoringPolicy)
    sweeper: SweeperSettings = Field(default_factory=SweeperSettings)
    app: AppSettings = Field(default_factory=AppSettings)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    """
    return Settings()
