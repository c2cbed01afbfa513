"""Tests for user registration, lookups and accuracy reports."""

import pytest
from bson import ObjectId

from forecast_scoring.cache.keys import LEADERBOARD_STATS_KEY, leaderboard_page_key
from forecast_scoring.errors import UserAlreadyExistsError, UserNotFoundError, ValidationError


class TestRegisterUser:
    async def test_register_creates_overall_row(self, engine, store, clock):
        user = await engine.users.register_user("macro_maven", "Maven@Example.com", "Macro Maven")

        assert user.email == "maven@example.com"
        assert user.created_at == clock.now
        row = await store.leaderboard.get_overall_entry(user.id)
        assert (row.points, row.rank, row.display_name) == (0, 1, "Macro Maven")

    async def test_duplicate_username(self, engine, register):
        await register("macro_maven")
        with pytest.raises(UserAlreadyExistsError, match="Username"):
            await engine.users.register_user("macro_maven", "other@example.com")

    async def test_duplicate_email(self, engine, register):
        await register("macro_maven")
        with pytest.raises(UserAlreadyExistsError, match="Email"):
            await engine.users.register_user("someone_else", "MACRO_MAVEN@example.com")

    @pytest.mark.parametrize(
        "username,email",
        [("ab", "ab@example.com"), ("9lives", "nine@example.com"), ("valid_name", "nope")],
    )
    async def test_invalid_input(self, engine, username, email):
        with pytest.raises(ValidationError):
            await engine.users.register_user(username, email)

    async def test_invalidates_overall_pages(self, engine, cache, register):
        key = leaderboard_page_key("overall", 1, 50)
        await cache.set(key, {"stale": True}, 300)
        await cache.set(LEADERBOARD_STATS_KEY, {"stale": True}, 300)

        await register("macro_maven")

        assert await cache.get(key) is None
        assert await cache.get(LEADERBOARD_STATS_KEY) is None


class TestLookups:
    async def test_get_user(self, engine, register):
        user = await register("macro_maven")
        assert (await engine.users.get_user(str(user.id))).username == "macro_maven"
        assert (await engine.users.get_user_by_username("macro_maven")).id == user.id

    async def test_missing_user(self, engine):
        with pytest.raises(UserNotFoundError):
            await engine.users.get_user(ObjectId())
        with pytest.raises(UserNotFoundError):
            await engine.users.get_user_by_username("ghost")


class TestAccuracy:
    async def test_accuracy_over_resolved_forecasts(self, engine, register, submit, score):
        ann = await register("ann")
        await score(ann, correct=True, confidence=90)
        await score(ann, correct=False, confidence=60)
        await score(ann, correct=True, confidence=30)
        await submit(ann)  # still open, not counted

        report = await engine.get_user_accuracy(ann.id)

        assert (report.total, report.correct) == (3, 2)
        assert report.accuracy_percentage == 66.67
        assert report.avg_confidence == 60.0
        assert report.total_points > 0

    async def test_accuracy_for_event_type(self, engine, register, score):
        ann = await register("ann")
        await score(ann, event_type="housing", correct=True)
        await score(ann, event_type="payrolls", correct=False)

        report = await engine.get_user_accuracy(ann.id, "housing")

        assert report.event_type == "housing"
        assert (report.total, report.correct, report.accuracy_percentage) == (1, 1, 100.0)

    async def test_no_resolutions(self, engine, register):
        ann = await register("ann")
        report = await engine.get_user_accuracy(ann.id)
        assert (report.total, report.accuracy_percentage) == (0, 0.0)

    async def test_unknown_event_type(self, engine, register):
        ann = await register("ann")
        with pytest.raises(ValidationError):
            await engine.get_user_accuracy(ann.id, "crypto")
