"""
Resolution notifications.

Publishing is fire-and-forget: a notifier hands the result off and returns
without waiting for delivery.
"""

import asyncio
from abc import ABC, abstractmethod

import structlog

from forecast_scoring.models.resolution import ResolutionResult

logger = structlog.get_logger(__name__)


class Notifier(ABC):
    """Outbound channel for committed resolutions."""

    @abstractmethod
    async def publish(self, result: ResolutionResult) -> None: ...


class LoggingNotifier(Notifier):
    """Emits each resolution as a structured log event."""

    async def publish(self, result: ResolutionResult) -> None:
        logger.info(
            "Forecast resolution published",
            forecast_id=str(result.forecast_id),
            user_id=str(result.user_id),
            is_correct=result.is_correct,
            points_awarded=result.points_awarded,
        )


class QueueNotifier(Notifier):
    """
    Hands results to an asyncio.Queue for an in-process consumer
    (for example a websocket fan-out task).

    When the queue is full the result is dropped and logged.
    """

    def __init__(self, queue: asyncio.Queue[ResolutionResult] | None = None) -> None:
        self.queue: asyncio.Queue[ResolutionResult] = queue or asyncio.Queue(maxsize=1000)

    async def publish(self, result: ResolutionResult) -> None:
        try:
            self.queue.put_nowait(result)
        except asyncio.QueueFull:
            logger.warning("Notification queue full, dropping", forecast_id=str(result.forecast_id))
