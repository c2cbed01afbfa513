"""
Expiry sweeper.

Closes every unresolved forecast whose expiry has passed by resolving it
with the ``expired`` outcome, which scores as incorrect.
"""

from datetime import datetime
from typing import Any, Callable

import structlog

from forecast_scoring.config.settings import SweeperSettings
from forecast_scoring.errors import (
    ForecastAlreadyResolvedError,
    ScoringEngineError,
    translate_store_errors,
)
from forecast_scoring.models.base import utc_now
from forecast_scoring.models.resolution import EXPIRED_OUTCOME, SweepError, SweepReport
from forecast_scoring.services.resolution_service import ResolutionService

logger = structlog.get_logger(__name__)


class ExpirySweeper:
    """
    Resolves expired forecasts one transaction at a time.

    A failing forecast is recorded in the report and the sweep moves on;
    a forecast resolved concurrently by someone else counts as skipped.
    """

    def __init__(
        self,
        store: Any,
        resolution: ResolutionService,
        settings: SweeperSettings,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.resolution = resolution
        self.settings = settings
        self._now = now

    async def run(self) -> SweepReport:
        """
        Resolve every forecast expired as of the sweep's start.

        Candidates are fetched ``batch_limit`` at a time until a chunk comes
        back empty. Resolved forecasts drop out of the query by themselves;
        skipped and failed ones are excluded explicitly so each is attempted once.
        """
        started_at = self._now()
        report = SweepReport(started_at=started_at, finished_at=started_at)
        passed_over: list[Any] = []

        while True:
            try:
                with translate_store_errors("find_expired_forecasts"):
                    expired = await self.store.forecasts.find_expired_unresolved(
                        started_at, limit=self.settings.batch_limit, exclude_ids=passed_over
                    )
            except ScoringEngineError as e:
                logger.error("Expiry sweep could not list candidates", error=str(e))
                report.errors.append(SweepError(error_type=type(e).__name__, message=str(e)))
                break

            if not expired:
                break
            report.candidates += len(expired)
            for forecast in expired:
                if not await self._resolve_one(forecast.id, report):
                    passed_over.append(forecast.id)

        report.finished_at = self._now()
        logger.info("Expiry sweep finished", **report.summary())
        return report

    async def _resolve_one(self, forecast_id: Any, report: SweepReport) -> bool:
        """Resolve one forecast as expired; False when this sweep did not resolve it."""
        try:
            await self.resolution.resolve(forecast_id, EXPIRED_OUTCOME)
            report.resolved_count += 1
        except ForecastAlreadyResolvedError:
            report.skipped_count += 1
            return False
        except ScoringEngineError as e:
            logger.warning(
                "Expiry sweep failed for forecast",
                forecast_id=str(forecast_id),
                error_type=type(e).__name__,
                error=str(e),
            )
            report.errors.append(self._error(forecast_id, e))
            return False
        except Exception as e:
            # A malformed document must not stop the rest of the batch
            logger.exception("Unexpected expiry sweep failure", forecast_id=str(forecast_id))
            report.errors.append(self._error(forecast_id, e))
            return False
        return True

    @staticmethod
    def _error(forecast_id: Any, error: Exception) -> SweepError:
        return SweepError(
            forecast_id=str(forecast_id),
            error_type=type(error).__name__,
            message=str(error),
        )
