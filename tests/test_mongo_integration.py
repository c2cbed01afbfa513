"""
Integration tests against a real MongoDB replica set.

Skipped unless TEST_MONGO_URI points at a reachable replica set, e.g.
``mongodb://localhost:27017/?replicaSet=rs0``.
"""

import asyncio
import os
from datetime import timedelta

import pytest
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from forecast_scoring.cache.backends import MongoCache
from forecast_scoring.db.indexes import ensure_indexes
from forecast_scoring.db.store import MongoStore
from forecast_scoring.errors import ForecastAlreadyResolvedError
from forecast_scoring.services.engine import ScoringEngine

MONGO_URI = os.getenv("TEST_MONGO_URI")

pytestmark = pytest.mark.skipif(not MONGO_URI, reason="TEST_MONGO_URI not set")


@pytest.fixture
async def mongo_store():
    """Store on a throwaway database, dropped after the test."""
    client = AsyncIOMotorClient(MONGO_URI, tz_aware=True, serverSelectionTimeoutMS=2000)
    try:
        hello = await client.admin.command("hello")
    except PyMongoError as e:
        client.close()
        pytest.skip(f"MongoDB unreachable: {e}")
    if "setName" not in hello:
        client.close()
        pytest.skip("MongoDB is not a replica set; transactions unavailable")

    db_name = f"test_forecast_scoring_{ObjectId()}"
    database = client[db_name]
    await ensure_indexes(database)
    try:
        yield MongoStore(client, database)
    finally:
        await client.drop_database(db_name)
        client.close()


@pytest.fixture
def mongo_engine(mongo_store, settings, clock):
    return ScoringEngine(
        mongo_store,
        cache=MongoCache(mongo_store.database["cache_entries"]),
        settings=settings,
        now=clock,
    )


async def _forecast(engine, user, clock, title="CPI March 2025"):
    return await engine.forecasts.create_forecast(
        user.id,
        {
            "event_type": "cpi",
            "event_title": title,
            "predicted_outcome": "higher",
            "confidence": 80,
            "expires_at": clock.now + timedelta(days=7),
        },
    )


async def test_resolution_end_to_end(mongo_engine, mongo_store, clock):
    ann = await mongo_engine.users.register_user("ann", "ann@example.com")
    clock.advance(minutes=1)
    ben = await mongo_engine.users.register_user("ben", "ben@example.com")
    forecast = await _forecast(mongo_engine, ben, clock)

    result = await mongo_engine.resolve_forecast(
        forecast.id, "higher", {"actualValue": 3.4, "previousValue": 3.1}
    )

    assert result.points_awarded == 324
    page = await mongo_engine.get_leaderboard_page("overall", 1, 20, requesting_user_id=ann.id)
    assert [row.username for row in page.rows] == ["ben", "ann"]
    assert page.requester_rank == 2
    user = await mongo_store.users.get_by_id(ben.id)
    assert (user.total_points, user.win_streak, user.resolved_predictions) == (324, 1, 1)


async def test_concurrent_resolution_commits_once(mongo_engine, mongo_store, clock):
    ann = await mongo_engine.users.register_user("ann", "ann@example.com")
    forecast = await _forecast(mongo_engine, ann, clock)

    results = await asyncio.gather(
        *(mongo_engine.resolve_forecast(forecast.id, "higher") for _ in range(4)),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, BaseException)]
    assert len(successes) == 1
    assert all(
        isinstance(r, ForecastAlreadyResolvedError)
        for r in results
        if isinstance(r, BaseException)
    )
    user = await mongo_store.users.get_by_id(ann.id)
    assert user.resolved_predictions == 1
    assert user.total_points == successes[0].points_awarded


async def test_expiry_sweep(mongo_engine, mongo_store, clock):
    ann = await mongo_engine.users.register_user("ann", "ann@example.com")
    forecast = await _forecast(mongo_engine, ann, clock)
    clock.advance(days=8)

    report = await mongo_engine.run_expiry_sweep()

    assert report.resolved_count == 1
    stored = await mongo_store.forecasts.get_by_id(forecast.id)
    assert stored.actual_outcome == "expired"
    assert stored.is_correct is False
