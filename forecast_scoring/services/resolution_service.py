"""
Resolution service.

Resolves one forecast atomically: evaluation, point award, the user's
running statistics and the ``overall`` ranks commit together or not at
all. Cache invalidation and notification run after commit and never undo
or fail a committed resolution.
"""

from datetime import datetime
from functools import partial
from typing import Any, Callable, Iterable

import structlog
from bson import ObjectId
from pydantic import ValidationError as PydanticValidationError

from forecast_scoring.cache.backends import ResilientCache
from forecast_scoring.cache.keys import session_key
from forecast_scoring.config.settings import CacheSettings, ScoringPolicy
from forecast_scoring.errors import (
    ForecastAlreadyResolvedError,
    ForecastNotFoundError,
    ScoringEngineError,
    UserNotFoundError,
    ValidationError,
    as_object_id,
    translate_store_errors,
)
from forecast_scoring.models.base import utc_now
from forecast_scoring.models.leaderboard import LeaderboardCategory
from forecast_scoring.models.resolution import (
    BatchResolutionItem,
    ResolutionData,
    ResolutionRequest,
    ResolutionResult,
)
from forecast_scoring.repositories.base import Session
from forecast_scoring.scoring.evaluator import OutcomeEvaluator
from forecast_scoring.scoring.points import PointCalculator
from forecast_scoring.services.leaderboard_service import LeaderboardService
from forecast_scoring.services.notifications import Notifier

logger = structlog.get_logger(__name__)


class ResolutionService:
    """
    Service layer for forecast resolution.

    At most one resolution per forecast commits: the forecast is closed
    with a conditional update on ``is_resolved: False`` inside the
    transaction, so a concurrent second attempt fails with
    ForecastAlreadyResolvedError and changes nothing.
    """

    def __init__(
        self,
        store: Any,
        leaderboard: LeaderboardService,
        cache: ResilientCache,
        notifier: Notifier,
        policy: ScoringPolicy,
        cache_settings: CacheSettings,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.leaderboard = leaderboard
        self.cache = cache
        self.notifier = notifier
        self.cache_settings = cache_settings
        self.evaluator = OutcomeEvaluator(policy)
        self.calculator = PointCalculator(policy)
        self._now = now

    async def resolve(
        self,
        forecast_id: Any,
        actual_outcome: str,
        resolution_data: ResolutionData | dict[str, Any] | None = None,
    ) -> ResolutionResult:
        """
        Resolve a forecast.

        Args:
            forecast_id: Forecast to resolve
            actual_outcome: Declared outcome ("expired" for sweeps)
            resolution_data: Published figures, optional

        Returns:
            ResolutionResult of the committed resolution

        Raises:
            ValidationError: Malformed id, outcome or resolution data
            ForecastNotFoundError: No such forecast
            UserNotFoundError: The forecast's owner no longer exists
            ForecastAlreadyResolvedError: Another resolution committed first
            StoreUnavailableError: Store failure; nothing was committed
        """
        forecast_oid = as_object_id(forecast_id, "forecast id")
        if not isinstance(actual_outcome, str) or not actual_outcome.strip():
            raise ValidationError("actual_outcome must be a non-empty string")
        data = self._parse_resolution_data(resolution_data)

        with translate_store_errors("resolve_forecast"):
            result = await self.store.run_in_transaction(
                partial(
                    self._resolve_in_transaction,
                    forecast_id=forecast_oid,
                    actual_outcome=actual_outcome.strip(),
                    data=data,
                )
            )

        logger.info(
            "Forecast resolved",
            forecast_id=str(result.forecast_id),
            user_id=str(result.user_id),
            event_type=result.event_type,
            is_correct=result.is_correct,
            points_awarded=result.points_awarded,
            new_streak=result.new_streak,
        )

        await self._after_commit(result)
        return result

    async def resolve_many(
        self, requests: Iterable[ResolutionRequest | dict[str, Any]]
    ) -> list[BatchResolutionItem]:
        """
        Resolve several forecasts, one transaction each.

        A failing item is reported in its slot and does not stop the batch.
        """
        items: list[BatchResolutionItem] = []
        for raw in requests:
            forecast_ref = str(raw.get("forecast_id")) if isinstance(raw, dict) else None
            try:
                request = (
                    raw
                    if isinstance(raw, ResolutionRequest)
                    else ResolutionRequest.model_validate(raw)
                )
                forecast_ref = str(request.forecast_id)
                result = await self.resolve(
                    request.forecast_id, request.actual_outcome, request.resolution_data
                )
                items.append(BatchResolutionItem(forecast_id=forecast_ref, result=result))
            except PydanticValidationError as e:
                items.append(
                    BatchResolutionItem(
                        forecast_id=forecast_ref or "",
                        error_type=ValidationError.__name__,
                        error=str(e),
                    )
                )
            except ScoringEngineError as e:
                items.append(
                    BatchResolutionItem(
                        forecast_id=forecast_ref or "",
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                )

        logger.info(
            "Batch resolution finished",
            total=len(items),
            failed=sum(1 for item in items if not item.succeeded),
        )
        return items

    @staticmethod
    def _parse_resolution_data(
        resolution_data: ResolutionData | dict[str, Any] | None,
    ) -> ResolutionData | None:
        if resolution_data is None or isinstance(resolution_data, ResolutionData):
            return resolution_data
        try:
            return ResolutionData.model_validate(resolution_data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid resolution data: {e}") from e

    async def _resolve_in_transaction(
        self,
        session: Session,
        *,
        forecast_id: ObjectId,
        actual_outcome: str,
        data: ResolutionData | None,
    ) -> ResolutionResult:
        forecast = await self.store.forecasts.get_by_id(forecast_id, session=session)
        if forecast is None:
            raise ForecastNotFoundError(f"Forecast {forecast_id} not found")
        if forecast.is_resolved:
            raise ForecastAlreadyResolvedError(f"Forecast {forecast_id} is already resolved")

        user = await self.store.users.get_by_id(forecast.user_id, session=session)
        if user is None:
            raise UserNotFoundError(f"User {forecast.user_id} not found")

        is_correct = self.evaluator.evaluate_forecast(forecast, actual_outcome, data)
        breakdown = self.calculator.calculate_for_forecast(forecast, is_correct, user.win_streak)
        resolved_at = self._now()

        resolved = await self.store.forecasts.mark_resolved(
            forecast_id,
            actual_outcome=actual_outcome,
            is_correct=is_correct,
            breakdown=breakdown,
            resolved_at=resolved_at,
            session=session,
        )
        if resolved is None:
            logger.warning("Conditional resolve lost a race", forecast_id=str(forecast_id))
            raise ForecastAlreadyResolvedError(f"Forecast {forecast_id} is already resolved")

        updated_user = await self.store.users.apply_resolution(
            user.id,
            points_awarded=breakdown.total,
            new_streak=breakdown.new_streak,
            is_correct=is_correct,
            session=session,
        )
        if updated_user is None:
            raise UserNotFoundError(f"User {user.id} not found")

        await self.leaderboard.sync_overall_entry(updated_user, session=session)

        return ResolutionResult(
            forecast_id=forecast.id,
            user_id=user.id,
            event_type=forecast.event_type,
            actual_outcome=actual_outcome,
            is_correct=is_correct,
            points_awarded=breakdown.total,
            breakdown=breakdown,
            new_streak=breakdown.new_streak,
            resolved_at=resolved_at,
        )

    async def _after_commit(self, result: ResolutionResult) -> None:
        categories = [
            LeaderboardCategory.OVERALL.value,
            LeaderboardCategory.WEEKLY.value,
            LeaderboardCategory.MONTHLY.value,
            LeaderboardCategory.for_event_type(result.event_type).value,
        ]
        await self.leaderboard.invalidate_pages(categories)
        await self.leaderboard.invalidate_stats()
        await self.cache.delete(session_key(result.user_id, self.cache_settings.session_key_prefix))

        try:
            await self.notifier.publish(result)
        except Exception:
            logger.exception("Resolution notification failed", forecast_id=str(result.forecast_id))
