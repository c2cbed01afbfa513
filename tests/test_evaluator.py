"""Tests for outcome evaluation."""

import pytest

from forecast_scoring.config.settings import ScoringPolicy
from forecast_scoring.models.forecast import FreeformValue, RateValue, ThresholdValue
from forecast_scoring.models.resolution import ResolutionData
from forecast_scoring.scoring.evaluator import OutcomeEvaluator, outcomes_match


@pytest.fixture
def evaluator() -> OutcomeEvaluator:
    return OutcomeEvaluator(ScoringPolicy(_env_file=None))


def change(actual: float, previous: float) -> ResolutionData:
    return ResolutionData(actual_value=actual, previous_value=previous)


class TestNumericChange:
    @pytest.mark.parametrize(
        "predicted,expected",
        [("higher", True), ("lower", False), ("same", False)],
    )
    def test_rise_without_threshold(self, evaluator, predicted, expected):
        result = evaluator.evaluate("cpi", predicted, ThresholdValue(), "ignored", change(3.4, 3.1))
        assert result is expected

    def test_threshold_must_be_exceeded(self, evaluator):
        value = ThresholdValue(threshold=0.5)
        data = change(3.4, 3.1)
        assert evaluator.evaluate("cpi", "higher", value, "higher", data) is False
        assert evaluator.evaluate("cpi", "same", value, "higher", data) is True

    def test_fall_beyond_threshold(self, evaluator):
        value = ThresholdValue(threshold=0.1)
        assert evaluator.evaluate("unemployment", "lower", value, "x", change(3.7, 4.0)) is True

    def test_zero_figures_are_used(self, evaluator):
        """0.0 is a published figure, not a missing one."""
        assert evaluator.evaluate("gdp", "higher", ThresholdValue(), "lower", change(0.2, 0.0)) is True
        assert evaluator.evaluate("gdp", "lower", ThresholdValue(), "higher", change(0.0, 0.1)) is True

    def test_non_directional_call_is_incorrect(self, evaluator):
        assert evaluator.evaluate("cpi", "yes", ThresholdValue(), "yes", change(3.4, 3.1)) is False

    def test_missing_figure_falls_back_to_outcome(self, evaluator):
        data = ResolutionData(actual_value=3.4)
        assert evaluator.evaluate("cpi", "higher", ThresholdValue(), "HIGHER", data) is True
        assert evaluator.evaluate("cpi", "higher", ThresholdValue(), "lower", data) is False


class TestFedRate:
    @pytest.mark.parametrize(
        "actual_rate,expected",
        [(5.30, True), (5.375, True), (5.40, False), (5.0, False)],
    )
    def test_tolerance(self, evaluator, actual_rate, expected):
        data = ResolutionData(actual_rate=actual_rate)
        result = evaluator.evaluate("fed_rate", "same", RateValue(rate=5.25), "lower", data)
        assert result is expected

    def test_zero_rate_is_data(self, evaluator):
        data = ResolutionData(actual_rate=0.0)
        assert evaluator.evaluate("fed_rate", "lower", RateValue(rate=0.0), "higher", data) is True

    def test_without_actual_rate_uses_outcome(self, evaluator):
        assert evaluator.evaluate("fed_rate", "same", RateValue(rate=5.25), "same", None) is True

    def test_without_predicted_rate_uses_outcome(self, evaluator):
        data = ResolutionData(actual_rate=5.25)
        assert evaluator.evaluate("fed_rate", "higher", RateValue(), "lower", data) is False

    def test_custom_tolerance(self):
        evaluator = OutcomeEvaluator(ScoringPolicy(_env_file=None, fed_rate_tolerance=0.25))
        data = ResolutionData(actual_rate=5.45)
        assert evaluator.evaluate("fed_rate", "same", RateValue(rate=5.25), "x", data) is True


class TestOutcomeEquality:
    def test_case_and_whitespace_insensitive(self):
        assert outcomes_match("yes", " YES ")
        assert not outcomes_match("yes", "no")

    def test_other_event_types_ignore_figures(self, evaluator):
        data = change(250.0, 180.0)
        assert evaluator.evaluate("payrolls", "yes", FreeformValue(), "Yes", data) is True
        assert evaluator.evaluate("payrolls", "higher", FreeformValue(), "yes", data) is False

    def test_expired_outcome_never_matches(self, evaluator):
        for predicted in ["yes", "no", "higher", "lower", "same", "custom"]:
            assert evaluator.evaluate("housing", predicted, FreeformValue(), "expired") is False

    def test_evaluate_forecast(self, evaluator, forecast_factory):
        forecast = forecast_factory.create(event_type="cpi", predicted_outcome="lower")
        assert evaluator.evaluate_forecast(forecast, "lower", change(2.9, 3.1)) is True
