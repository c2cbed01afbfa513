"""
Forecast service for business logic.

Handles forecast submission, edits, deletion and listing. Scoring fields
are never touched here; only the resolution service closes a forecast.
"""

from datetime import datetime
from math import ceil
from typing import Any, Callable

import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from forecast_scoring.errors import (
    DuplicateForecastError,
    ForecastNotEditableError,
    ForecastNotFoundError,
    ForecastPermissionError,
    UserInactiveError,
    UserNotFoundError,
    ValidationError,
    as_object_id,
    translate_store_errors,
)
from forecast_scoring.models.base import utc_now
from forecast_scoring.models.forecast import (
    Forecast,
    ForecastCreate,
    ForecastStatus,
    ForecastUpdate,
    PredictionValue,
    coerce_prediction_value,
)

logger = structlog.get_logger(__name__)

_prediction_value_adapter: TypeAdapter[Any] = TypeAdapter(PredictionValue)


class ForecastService:
    """
    Service layer for forecast operations.

    Encapsulates the rules for creating, editing and deleting forecasts.
    """

    def __init__(self, store: Any, now: Callable[[], datetime] = utc_now) -> None:
        self.store = store
        self._now = now

    async def create_forecast(self, user_id: Any, data: ForecastCreate | dict[str, Any]) -> Forecast:
        """
        Submit a new forecast.

        Args:
            user_id: Submitting user
            data: Forecast fields

        Returns:
            The stored forecast

        Raises:
            ValidationError: Malformed data or an expiry not in the future
            UserNotFoundError: No such user
            UserInactiveError: User is deactivated
            DuplicateForecastError: An open forecast with the same title exists
        """
        user_oid = as_object_id(user_id, "user id")
        if not isinstance(data, ForecastCreate):
            try:
                data = ForecastCreate.model_validate(data)
            except PydanticValidationError as e:
                raise ValidationError(str(e)) from e

        now = self._now()
        if data.expires_at <= now:
            raise ValidationError("expires_at must be in the future")

        with translate_store_errors("create_forecast"):
            user = await self.store.users.get_by_id(user_oid)
            if user is None:
                raise UserNotFoundError(f"User {user_id} not found")
            if not user.is_active:
                raise UserInactiveError(f"User {user.username} is inactive")

            if await self.store.forecasts.find_open_by_title(user_oid, data.event_title):
                raise DuplicateForecastError(
                    f"An open forecast titled '{data.event_title}' already exists"
                )

            forecast = Forecast.from_create(user_oid, data, now)

            async def create(session: Any) -> Forecast:
                await self.store.forecasts.insert(forecast, session=session)
                await self.store.users.adjust_total_predictions(user_oid, 1, session=session)
                return forecast

            created = await self.store.run_in_transaction(create)

        logger.info(
            "Forecast created",
            forecast_id=str(created.id),
            user_id=str(user_oid),
            event_type=created.event_type,
        )
        return created

    async def get_forecast(self, forecast_id: Any) -> Forecast:
        forecast_oid = as_object_id(forecast_id, "forecast id")
        with translate_store_errors("get_forecast"):
            forecast = await self.store.forecasts.get_by_id(forecast_oid)
        if forecast is None:
            raise ForecastNotFoundError(f"Forecast {forecast_id} not found")
        return forecast

    async def _get_owned(self, forecast_id: Any, user_id: Any) -> Forecast:
        user_oid = as_object_id(user_id, "user id")
        forecast = await self.get_forecast(forecast_id)
        if forecast.user_id != user_oid:
            raise ForecastPermissionError("Forecast belongs to another user")
        return forecast

    async def update_forecast(
        self,
        forecast_id: Any,
        user_id: Any,
        data: ForecastUpdate | dict[str, Any],
    ) -> Forecast:
        """
        Edit an open forecast's non-scoring fields.

        Raises:
            ForecastNotFoundError: No such forecast
            ForecastPermissionError: Not the owner
            ForecastNotEditableError: Resolved or expired
            ValidationError: Malformed fields
        """
        if not isinstance(data, ForecastUpdate):
            try:
                data = ForecastUpdate.model_validate(data)
            except PydanticValidationError as e:
                raise ValidationError(str(e)) from e

        forecast = await self._get_owned(forecast_id, user_id)
        now = self._now()
        if not forecast.is_open(now):
            raise ForecastNotEditableError("Only open, unexpired forecasts can be edited")

        fields = data.model_dump(exclude_none=True)
        if "prediction_value" in fields:
            try:
                value = _prediction_value_adapter.validate_python(
                    coerce_prediction_value(forecast.event_type, fields["prediction_value"])
                )
            except PydanticValidationError as e:
                raise ValidationError(str(e)) from e
            fields["prediction_value"] = value.model_dump()
        if not fields:
            return forecast

        with translate_store_errors("update_forecast"):
            updated = await self.store.forecasts.update_open(
                forecast.id, forecast.user_id, fields, now
            )
        if updated is None:
            # Resolved or expired between the read and the write
            raise ForecastNotEditableError("Only open, unexpired forecasts can be edited")

        logger.info("Forecast updated", forecast_id=str(forecast.id), fields=sorted(fields))
        return updated

    async def delete_forecast(self, forecast_id: Any, user_id: Any) -> None:
        """
        Delete an unresolved forecast.

        Raises:
            ForecastNotFoundError: No such forecast
            ForecastPermissionError: Not the owner
            ForecastNotEditableError: Already resolved
        """
        forecast = await self._get_owned(forecast_id, user_id)
        if forecast.is_resolved:
            raise ForecastNotEditableError("Resolved forecasts cannot be deleted")

        async def delete(session: Any) -> bool:
            deleted = await self.store.forecasts.delete_open(
                forecast.id, forecast.user_id, session=session
            )
            if deleted:
                await self.store.users.adjust_total_predictions(
                    forecast.user_id, -1, session=session
                )
            return deleted

        with translate_store_errors("delete_forecast"):
            deleted = await self.store.run_in_transaction(delete)
        if not deleted:
            raise ForecastNotEditableError("Resolved forecasts cannot be deleted")

        logger.info("Forecast deleted", forecast_id=str(forecast.id))

    async def get_user_forecasts(
        self,
        user_id: Any,
        status: ForecastStatus | str = ForecastStatus.ALL,
        page: int = 1,
        page_size: int = 20,
    ) -> dict[str, Any]:
        """
        List a user's forecasts, newest first.

        Returns:
            Dict with forecasts, total_count, page, page_size and total_pages
        """
        user_oid = as_object_id(user_id, "user id")
        try:
            status = ForecastStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown status filter: {status!r}") from e
        if page < 1 or not 1 <= page_size <= 100:
            raise ValidationError("page must be >= 1 and page_size within 1..100")

        now = self._now()
        with translate_store_errors("get_user_forecasts"):
            forecasts = await self.store.forecasts.find_by_user(
                user_oid, status, now, skip=(page - 1) * page_size, limit=page_size
            )
            total = await self.store.forecasts.count_by_user(user_oid, status, now)

        return {
            "forecasts": forecasts,
            "total_count": total,
            "page": page,
            "page_size": page_size,
            "total_pages": ceil(total / page_size) if total else 0,
        }
