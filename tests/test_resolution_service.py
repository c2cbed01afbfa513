"""
Tests for the resolution transaction.

Covers scoring, at-most-once resolution, rollback on store failure and the
post-commit cache invalidation and notification.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect

from forecast_scoring.cache.keys import LEADERBOARD_STATS_KEY, leaderboard_page_key, session_key
from forecast_scoring.errors import (
    ForecastAlreadyResolvedError,
    ForecastNotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from forecast_scoring.models.resolution import EXPIRED_OUTCOME
from forecast_scoring.services.engine import ScoringEngine
from tests.fakes import FailingCache, FailingNotifier


@pytest.fixture
async def alice(register):
    return await register("alice")


class TestResolve:
    async def test_correct_resolution(self, engine, store, submit, alice):
        forecast = await submit(alice, event_type="cpi", outcome="higher", confidence=80, days=7)

        result = await engine.resolve_forecast(
            forecast.id, "higher", {"actualValue": 3.4, "previousValue": 3.1}
        )

        assert result.is_correct
        assert result.points_awarded == 324
        assert result.new_streak == 1
        stored = await store.forecasts.get_by_id(forecast.id)
        assert stored.is_resolved
        assert stored.points_awarded == 324
        assert stored.points_breakdown.time_bonus == 54
        user = await store.users.get_by_id(alice.id)
        assert (user.total_points, user.win_streak, user.resolved_predictions) == (324, 1, 1)
        row = await store.leaderboard.get_overall_entry(alice.id)
        assert (row.points, row.rank, row.total_predictions) == (324, 1, 1)

    async def test_figures_override_declared_outcome(self, engine, submit, alice):
        forecast = await submit(alice, event_type="cpi", outcome="higher")
        result = await engine.resolve_forecast(
            forecast.id, "higher", {"actual_value": 3.0, "previous_value": 3.1}
        )
        assert not result.is_correct
        assert result.points_awarded == 0

    async def test_streak_builds_and_resets(self, engine, store, score, alice):
        first = await score(alice, correct=True)
        second = await score(alice, correct=True)
        third = await score(alice, correct=False)

        assert (first.new_streak, second.new_streak, third.new_streak) == (1, 2, 0)
        assert second.breakdown.streak_bonus == 10
        user = await store.users.get_by_id(alice.id)
        assert user.win_streak == 0
        assert user.total_points == first.points_awarded + second.points_awarded
        assert (user.correct_predictions, user.resolved_predictions) == (2, 3)

    async def test_expired_outcome_scores_incorrect(self, engine, submit, alice):
        forecast = await submit(alice, event_type="housing", outcome="yes")
        result = await engine.resolve_forecast(forecast.id, EXPIRED_OUTCOME)
        assert not result.is_correct
        assert result.actual_outcome == "expired"

    async def test_notifies_after_commit(self, engine, notifier, submit, alice):
        forecast = await submit(alice)
        result = await engine.resolve_forecast(forecast.id, "higher")
        assert notifier.published == [result]


class TestAtMostOnce:
    async def test_second_resolution_rejected(self, engine, store, submit, alice):
        forecast = await submit(alice)
        await engine.resolve_forecast(forecast.id, "higher")

        with pytest.raises(ForecastAlreadyResolvedError):
            await engine.resolve_forecast(forecast.id, "lower")

        user = await store.users.get_by_id(alice.id)
        assert user.resolved_predictions == 1
        stored = await store.forecasts.get_by_id(forecast.id)
        assert stored.actual_outcome == "higher"

    async def test_concurrent_resolutions(self, engine, store, submit, alice):
        forecast = await submit(alice)

        results = await asyncio.gather(
            engine.resolve_forecast(forecast.id, "higher"),
            engine.resolve_forecast(forecast.id, "higher"),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, BaseException)]
        failures = [r for r in results if isinstance(r, BaseException)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], ForecastAlreadyResolvedError)
        user = await store.users.get_by_id(alice.id)
        assert user.total_points == successes[0].points_awarded
        assert user.resolved_predictions == 1

    async def test_lost_conditional_update(self, engine, store, submit, alice, monkeypatch):
        """A concurrent commit between read and write leaves nothing applied."""
        forecast = await submit(alice)
        monkeypatch.setattr(store.forecasts, "mark_resolved", AsyncMock(return_value=None))

        with pytest.raises(ForecastAlreadyResolvedError):
            await engine.resolve_forecast(forecast.id, "higher")

        user = await store.users.get_by_id(alice.id)
        assert user.total_points == 0
        assert store.rollbacks == 1


class TestFailures:
    async def test_store_failure_rolls_back(self, engine, store, notifier, submit, alice, monkeypatch):
        forecast = await submit(alice)
        monkeypatch.setattr(
            store.leaderboard,
            "upsert_overall",
            AsyncMock(side_effect=AutoReconnect("primary stepped down")),
        )

        with pytest.raises(StoreUnavailableError):
            await engine.resolve_forecast(forecast.id, "higher")

        stored = await store.forecasts.get_by_id(forecast.id)
        assert not stored.is_resolved
        user = await store.users.get_by_id(alice.id)
        assert (user.total_points, user.resolved_predictions) == (0, 0)
        assert notifier.published == []

    async def test_retry_after_store_failure(self, engine, store, submit, alice, monkeypatch):
        forecast = await submit(alice)
        original = store.leaderboard.upsert_overall
        monkeypatch.setattr(
            store.leaderboard, "upsert_overall", AsyncMock(side_effect=AutoReconnect("blip"))
        )
        with pytest.raises(StoreUnavailableError):
            await engine.resolve_forecast(forecast.id, "higher")

        monkeypatch.setattr(store.leaderboard, "upsert_overall", original)
        result = await engine.resolve_forecast(forecast.id, "higher")
        assert result.is_correct

    async def test_notifier_failure_does_not_fail_resolution(
        self, store, cache, settings, clock, submit, alice
    ):
        engine = ScoringEngine(
            store, cache=cache, notifier=FailingNotifier(), settings=settings, now=clock
        )
        forecast = await submit(alice)

        result = await engine.resolve_forecast(forecast.id, "higher")

        assert result.is_correct
        assert (await store.forecasts.get_by_id(forecast.id)).is_resolved

    async def test_cache_backend_bug_does_not_fail_committed_resolution(
        self, store, settings, clock, submit, alice
    ):
        broken = FailingCache(RuntimeError("serializer exploded"))
        engine = ScoringEngine(store, cache=broken, settings=settings, now=clock)
        forecast = await submit(alice)

        result = await engine.resolve_forecast(forecast.id, "higher")

        assert result.is_correct
        assert broken.calls > 0
        assert (await store.forecasts.get_by_id(forecast.id)).is_resolved

    async def test_unknown_forecast(self, engine):
        with pytest.raises(ForecastNotFoundError):
            await engine.resolve_forecast(ObjectId(), "higher")

    @pytest.mark.parametrize("forecast_id", ["not-an-id", "", 42])
    async def test_malformed_id(self, engine, forecast_id):
        with pytest.raises(ValidationError):
            await engine.resolve_forecast(forecast_id, "higher")

    async def test_blank_outcome(self, engine, submit, alice):
        forecast = await submit(alice)
        with pytest.raises(ValidationError):
            await engine.resolve_forecast(forecast.id, "   ")

    async def test_malformed_resolution_data(self, engine, store, submit, alice):
        forecast = await submit(alice)
        with pytest.raises(ValidationError):
            await engine.resolve_forecast(forecast.id, "higher", {"actual_value": "lots"})
        assert store.transactions == 2  # registration and submission only


class TestAfterCommit:
    async def test_invalidates_affected_cache_keys(self, engine, cache, submit, alice):
        forecast = await submit(alice, event_type="fed_rate", outcome="same", value={"rate": 5.25})
        stale = {"stale": True}
        keys = [
            leaderboard_page_key("overall", 1, 50),
            leaderboard_page_key("weekly", 3, 20),
            leaderboard_page_key("monthly", 10, 100),
            leaderboard_page_key("fed_rate", 1, 50),
            LEADERBOARD_STATS_KEY,
            session_key(alice.id),
        ]
        untouched = leaderboard_page_key("cpi", 1, 50)
        for key in keys + [untouched]:
            await cache.set(key, stale, 300)

        await engine.resolve_forecast(forecast.id, "same", {"actualRate": 5.3})

        for key in keys:
            assert await cache.get(key) is None, key
        assert await cache.get(untouched) == stale

    async def test_pages_reflect_resolution(self, engine, submit, alice, register):
        bob = await register("bob")
        forecast = await submit(bob)
        before = await engine.get_leaderboard_page("overall", 1, 50)
        assert before.rows[0].user_id == alice.id

        await engine.resolve_forecast(forecast.id, "higher")

        after = await engine.get_leaderboard_page("overall", 1, 50)
        assert after.rows[0].user_id == bob.id


class TestResolveMany:
    async def test_isolates_failures(self, engine, submit, alice):
        good = await submit(alice)
        items = await engine.resolution.resolve_many(
            [
                {"forecast_id": str(good.id), "actual_outcome": "higher"},
                {"forecast_id": str(ObjectId()), "actual_outcome": "higher"},
                {"forecast_id": "bogus", "actual_outcome": "higher"},
                {"forecast_id": str(good.id), "actual_outcome": "higher"},
            ]
        )

        assert [item.succeeded for item in items] == [True, False, False, False]
        assert items[1].error_type == "ForecastNotFoundError"
        assert items[2].error_type == "ValidationError"
        assert items[3].error_type == "ForecastAlreadyResolvedError"
