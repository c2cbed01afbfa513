"""Tests for forecast submission, edits, deletion and listing."""

from datetime import timedelta

import pytest
from bson import ObjectId

from forecast_scoring.errors import (
    DuplicateForecastError,
    ForecastNotEditableError,
    ForecastPermissionError,
    UserInactiveError,
    UserNotFoundError,
    ValidationError,
)
from forecast_scoring.models.forecast import RateValue


@pytest.fixture
async def ann(register):
    return await register("ann")


class TestCreateForecast:
    async def test_create(self, engine, store, clock, submit, ann):
        forecast = await submit(ann, event_type="fed_rate", outcome="same", value={"rate": 5.25})

        assert forecast.created_at == clock.now
        assert isinstance(forecast.prediction_value, RateValue)
        assert not forecast.is_resolved
        assert (await store.users.get_by_id(ann.id)).total_predictions == 1

    async def test_expiry_must_be_in_future(self, engine, submit, ann):
        with pytest.raises(ValidationError, match="future"):
            await submit(ann, days=0)

    async def test_malformed_data(self, engine, ann, clock):
        with pytest.raises(ValidationError):
            await engine.forecasts.create_forecast(
                ann.id,
                {"event_type": "cpi", "event_title": "x", "predicted_outcome": "up",
                 "confidence": 50, "expires_at": clock.now + timedelta(days=1)},
            )

    async def test_unknown_user(self, engine, clock):
        with pytest.raises(UserNotFoundError):
            await engine.forecasts.create_forecast(
                ObjectId(),
                {"event_type": "cpi", "event_title": "CPI", "predicted_outcome": "higher",
                 "confidence": 50, "expires_at": clock.now + timedelta(days=1)},
            )

    async def test_inactive_user(self, engine, store, submit, ann):
        user = store.data["users"][ann.id]
        store.data["users"][ann.id] = user.model_copy(update={"is_active": False})
        with pytest.raises(UserInactiveError):
            await submit(ann)

    async def test_duplicate_open_title(self, engine, submit, ann):
        await submit(ann, title="CPI March 2025")
        with pytest.raises(DuplicateForecastError):
            await submit(ann, title="CPI March 2025")

    async def test_title_reusable_after_resolution(self, engine, submit, ann):
        first = await submit(ann, title="CPI March 2025")
        await engine.resolve_forecast(first.id, "higher")
        second = await submit(ann, title="CPI March 2025")
        assert second.id != first.id


class TestUpdateForecast:
    async def test_update_open_forecast(self, engine, submit, ann):
        forecast = await submit(ann, event_type="cpi")
        updated = await engine.forecasts.update_forecast(
            forecast.id, ann.id, {"confidence": 40, "prediction_value": {"threshold": 0.3}}
        )
        assert updated.confidence == 40
        assert updated.prediction_value.threshold == 0.3
        assert updated.event_title == forecast.event_title

    async def test_invalid_value_for_event_type(self, engine, submit, ann):
        forecast = await submit(ann, event_type="cpi")
        with pytest.raises(ValidationError):
            await engine.forecasts.update_forecast(
                forecast.id, ann.id, {"prediction_value": {"threshold": -1}}
            )

    async def test_other_users_forecast(self, engine, submit, register, ann):
        forecast = await submit(ann)
        ben = await register("ben")
        with pytest.raises(ForecastPermissionError):
            await engine.forecasts.update_forecast(forecast.id, ben.id, {"confidence": 10})

    async def test_resolved_forecast_is_frozen(self, engine, submit, ann):
        forecast = await submit(ann)
        await engine.resolve_forecast(forecast.id, "higher")
        with pytest.raises(ForecastNotEditableError):
            await engine.forecasts.update_forecast(forecast.id, ann.id, {"confidence": 10})

    async def test_expired_forecast_is_frozen(self, engine, clock, submit, ann):
        forecast = await submit(ann, days=1)
        clock.advance(days=2)
        with pytest.raises(ForecastNotEditableError):
            await engine.forecasts.update_forecast(forecast.id, ann.id, {"confidence": 10})


class TestDeleteForecast:
    async def test_delete_open(self, engine, store, submit, ann):
        forecast = await submit(ann)
        await engine.forecasts.delete_forecast(forecast.id, ann.id)
        assert await store.forecasts.get_by_id(forecast.id) is None
        assert (await store.users.get_by_id(ann.id)).total_predictions == 0

    async def test_resolved_cannot_be_deleted(self, engine, submit, ann):
        forecast = await submit(ann)
        await engine.resolve_forecast(forecast.id, "higher")
        with pytest.raises(ForecastNotEditableError):
            await engine.forecasts.delete_forecast(forecast.id, ann.id)


class TestListForecasts:
    async def test_status_filters(self, engine, clock, submit, ann):
        resolved = await submit(ann)
        await engine.resolve_forecast(resolved.id, "higher")
        await submit(ann, days=1)
        clock.advance(minutes=1)
        active = await submit(ann, days=10)
        clock.advance(days=2)

        listing = await engine.forecasts.get_user_forecasts(ann.id, "all")
        assert listing["total_count"] == 3

        active_only = await engine.forecasts.get_user_forecasts(ann.id, "active")
        assert [f.id for f in active_only["forecasts"]] == [active.id]

        resolved_only = await engine.forecasts.get_user_forecasts(ann.id, "resolved")
        assert [f.id for f in resolved_only["forecasts"]] == [resolved.id]

    async def test_paging(self, engine, clock, submit, ann):
        for _ in range(5):
            await submit(ann)
            clock.advance(minutes=1)
        listing = await engine.forecasts.get_user_forecasts(ann.id, "all", page=2, page_size=2)
        assert len(listing["forecasts"]) == 2
        assert listing["total_pages"] == 3

    async def test_unknown_status(self, engine, ann):
        with pytest.raises(ValidationError):
            await engine.forecasts.get_user_forecasts(ann.id, "pending")
