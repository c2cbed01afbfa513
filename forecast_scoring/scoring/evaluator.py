"""
Outcome evaluation.

Decides whether a forecast was correct given the declared outcome and any
published figures. Pure: no I/O, no clock.
"""

from typing import Any

from forecast_scoring.config.settings import ScoringPolicy
from forecast_scoring.models.forecast import (
    NUMERIC_CHANGE_EVENTS,
    EventType,
    Forecast,
    PredictedOutcome,
    RateValue,
    ThresholdValue,
)
from forecast_scoring.models.resolution import ResolutionData


def outcomes_match(predicted_outcome: str, actual_outcome: str) -> bool:
    """Case-insensitive comparison of the predicted and declared outcome."""
    return predicted_outcome.strip().casefold() == actual_outcome.strip().casefold()


class OutcomeEvaluator:
    """
    Judges forecasts per event type.

    - cpi, unemployment, gdp: direction of ``actual - previous`` against the
      forecast threshold when both figures are published
    - fed_rate: absolute rate error within the policy tolerance when both
      rates are known
    - everything else, and any branch missing its figures: outcome equality
    """

    def __init__(self, policy: ScoringPolicy | None = None) -> None:
        self.policy = policy or ScoringPolicy()

    def evaluate(
        self,
        event_type: str,
        predicted_outcome: str,
        prediction_value: Any,
        actual_outcome: str,
        resolution_data: ResolutionData | None = None,
    ) -> bool:
        data = resolution_data or ResolutionData()

        if event_type in NUMERIC_CHANGE_EVENTS and data.has_change:
            threshold = (
                prediction_value.threshold if isinstance(prediction_value, ThresholdValue) else 0.0
            )
            return self._evaluate_change(
                predicted_outcome,
                data.actual_value - data.previous_value,
                threshold,
            )

        if event_type == EventType.FED_RATE:
            predicted_rate = (
                prediction_value.rate if isinstance(prediction_value, RateValue) else None
            )
            if predicted_rate is not None and data.actual_rate is not None:
                return abs(predicted_rate - data.actual_rate) <= self.policy.fed_rate_tolerance

        return outcomes_match(predicted_outcome, actual_outcome)

    def evaluate_forecast(
        self,
        forecast: Forecast,
        actual_outcome: str,
        resolution_data: ResolutionData | None = None,
    ) -> bool:
        """Evaluate a stored forecast."""
        return self.evaluate(
            forecast.event_type,
            forecast.predicted_outcome,
            forecast.prediction_value,
            actual_outcome,
            resolution_data,
        )

    @staticmethod
    def _evaluate_change(predicted_outcome: str, change: float, threshold: float) -> bool:
        if predicted_outcome == PredictedOutcome.HIGHER:
            return change > threshold
        if predicted_outcome == PredictedOutcome.LOWER:
            return change < -threshold
        if predicted_outcome == PredictedOutcome.SAME:
            return abs(change) <= threshold
        return False
