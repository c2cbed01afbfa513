"""
Point calculation.

total = base + time bonus + streak bonus, where

    base   = round(base_points * difficulty * (1 + confidence * weight)), 0 if wrong
    time   = round(base * rate) for the first early-submission step reached
    streak = round(streak_unit * log2(new_streak)) once new_streak >= 2

Every rounding is half away from zero on the decimal representation of
the float, so 2.5 -> 3 and 0.5 -> 1.
"""

import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from forecast_scoring.config.settings import ScoringPolicy
from forecast_scoring.models.forecast import Forecast
from forecast_scoring.models.resolution import PointsBreakdown


def round_half_away_from_zero(value: float) -> int:
    """Round to the nearest integer, ties away from zero."""
    return int(Decimal(repr(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def next_streak(current_streak: int, is_correct: bool) -> int:
    """Streak after a resolution: extended when correct, reset otherwise."""
    return current_streak + 1 if is_correct else 0


class PointCalculator:
    """Computes point awards from a ScoringPolicy."""

    def __init__(self, policy: ScoringPolicy | None = None) -> None:
        self.policy = policy or ScoringPolicy()

    def difficulty(self, event_type: str) -> float:
        return self.policy.difficulty_multipliers.get(
            str(event_type), self.policy.default_difficulty
        )

    def base_points(self, event_type: str, confidence: int, is_correct: bool) -> int:
        if not is_correct:
            return 0
        confidence_factor = 1 + confidence * self.policy.confidence_multiplier
        return round_half_away_from_zero(
            self.policy.base_points * self.difficulty(event_type) * confidence_factor
        )

    def time_bonus(self, created_at: datetime, expires_at: datetime, base_points: int) -> int:
        if base_points <= 0:
            return 0
        days_early = (expires_at - created_at).total_seconds() / 86400
        for min_days, rate in self.policy.time_bonus_steps:
            if days_early >= min_days:
                return round_half_away_from_zero(base_points * rate)
        return 0

    def streak_bonus(self, new_streak: int) -> int:
        if new_streak < 2:
            return 0
        return round_half_away_from_zero(self.policy.streak_bonus * math.log2(new_streak))

    def calculate(
        self,
        *,
        event_type: str,
        confidence: int,
        created_at: datetime,
        expires_at: datetime,
        is_correct: bool,
        current_streak: int,
    ) -> PointsBreakdown:
        """
        Compute the full award for one resolution.

        Args:
            event_type: Forecast event type (selects the difficulty multiplier)
            confidence: Forecast confidence, 0-100
            created_at: When the forecast was submitted
            expires_at: When the forecast expires
            is_correct: Evaluator verdict
            current_streak: User's streak before this resolution

        Returns:
            PointsBreakdown with every factor and the new streak
        """
        streak = next_streak(current_streak, is_correct)
        base = self.base_points(event_type, confidence, is_correct)
        return PointsBreakdown(
            base_points=base,
            time_bonus=self.time_bonus(created_at, expires_at, base),
            streak_bonus=self.streak_bonus(streak) if is_correct else 0,
            new_streak=streak,
        )

    def calculate_for_forecast(
        self, forecast: Forecast, is_correct: bool, current_streak: int
    ) -> PointsBreakdown:
        return self.calculate(
            event_type=forecast.event_type,
            confidence=forecast.confidence,
            created_at=forecast.created_at,
            expires_at=forecast.expires_at,
            is_correct=is_correct,
            current_streak=current_streak,
        )
