"""
Pytest configuration and fixtures for testing.

Provides an in-memory store, a controllable clock, a fully wired engine
and data factories for the forecast scoring engine.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from bson import ObjectId

from forecast_scoring.cache.backends import MemoryCache
from forecast_scoring.config.settings import (
    AppSettings,
    CacheSettings,
    MongoSettings,
    ScoringPolicy,
    Settings,
    SweeperSettings,
)
from forecast_scoring.models.forecast import Forecast
from forecast_scoring.models.user import User
from forecast_scoring.services.engine import ScoringEngine
from tests.fakes import FakeStore, FixedClock, RecordingNotifier

START = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Core Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to a Monday noon UTC."""
    return FixedClock(START)


@pytest.fixture
def settings() -> Settings:
    """Default settings, isolated from the environment and any .env file."""
    return Settings(
        mongo=MongoSettings(_env_file=None),
        cache=CacheSettings(_env_file=None, operation_timeout_seconds=0.05),
        scoring=ScoringPolicy(_env_file=None),
        sweeper=SweeperSettings(_env_file=None),
        app=AppSettings(_env_file=None),
    )


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def engine(
    store: FakeStore,
    cache: MemoryCache,
    notifier: RecordingNotifier,
    settings: Settings,
    clock: FixedClock,
) -> ScoringEngine:
    """Engine wired to the in-memory store and cache."""
    return ScoringEngine(store, cache=cache, notifier=notifier, settings=settings, now=clock)


# =============================================================================
# Factory Fixtures
# =============================================================================


class UserFactory:
    """Factory for creating test User objects."""

    _counter = 0

    @classmethod
    def create(
        cls,
        username: str | None = None,
        created_at: datetime | None = None,
        **overrides: Any,
    ) -> User:
        cls._counter += 1
        created_at = created_at or START
        return User(
            id=ObjectId(),
            username=username or f"testuser_{cls._counter}",
            email=f"{username or f'testuser_{cls._counter}'}@example.com",
            created_at=created_at,
            updated_at=created_at,
            **overrides,
        )


class ForecastFactory:
    """Factory for creating test Forecast objects."""

    @classmethod
    def create(
        cls,
        user_id: ObjectId | None = None,
        event_type: str = "cpi",
        predicted_outcome: str = "higher",
        prediction_value: Any = None,
        confidence: int = 80,
        created_at: datetime | None = None,
        days_early: float = 7,
        **overrides: Any,
    ) -> Forecast:
        created_at = created_at or START
        return Forecast(
            id=ObjectId(),
            user_id=user_id or ObjectId(),
            event_type=event_type,
            event_title=overrides.pop("event_title", f"{event_type} release"),
            predicted_outcome=predicted_outcome,
            prediction_value=prediction_value,
            confidence=confidence,
            expires_at=created_at + timedelta(days=days_early),
            created_at=created_at,
            updated_at=created_at,
            **overrides,
        )


@pytest.fixture
def user_factory() -> type[UserFactory]:
    """Provide UserFactory class."""
    UserFactory._counter = 0
    return UserFactory


@pytest.fixture
def forecast_factory() -> type[ForecastFactory]:
    """Provide ForecastFactory class."""
    return ForecastFactory


# =============================================================================
# Scenario Helpers
# =============================================================================


@pytest.fixture
def register(engine: ScoringEngine, clock: FixedClock):
    """
    Register a user through the engine, one minute after the previous one.

    Usage:
        alice = await register("alice")
    """

    async def _register(username: str, display_name: str | None = None) -> User:
        user = await engine.users.register_user(username, f"{username}@example.com", display_name)
        clock.advance(minutes=1)
        return user

    return _register


@pytest.fixture
def submit(engine: ScoringEngine, clock: FixedClock):
    """
    Submit a forecast through the engine.

    Usage:
        forecast = await submit(alice, event_type="cpi", outcome="higher")
    """
    counter = {"n": 0}

    async def _submit(
        user: User,
        event_type: str = "cpi",
        outcome: str = "higher",
        value: Any = None,
        confidence: int = 80,
        days: float = 7,
        title: str | None = None,
    ) -> Forecast:
        counter["n"] += 1
        return await engine.forecasts.create_forecast(
            user.id,
            {
                "event_type": event_type,
                "event_title": title or f"{event_type} release #{counter['n']}",
                "predicted_outcome": outcome,
                "prediction_value": value,
                "confidence": confidence,
                "expires_at": clock.now + timedelta(days=days),
            },
        )

    return _submit


@pytest.fixture
def score(engine: ScoringEngine, submit):
    """
    Submit and immediately resolve a forecast.

    Resolves with the predicted outcome when ``correct`` and with its
    opposite otherwise.
    """

    async def _score(user: User, correct: bool = True, event_type: str = "payrolls", **kwargs):
        outcome = kwargs.pop("outcome", "yes")
        forecast = await submit(user, event_type=event_type, outcome=outcome, **kwargs)
        actual = outcome if correct else ("no" if outcome != "no" else "yes")
        return await engine.resolve_forecast(forecast.id, actual)

    return _score
