"""Pure scoring logic: outcome evaluation, point awards and ranking."""

from forecast_scoring.scoring.evaluator import OutcomeEvaluator, outcomes_match
from forecast_scoring.scoring.points import (
    PointCalculator,
    next_streak,
    round_half_away_from_zero,
)
from forecast_scoring.scoring.ranking import Standing, rank_standings, tier_for

__all__ = [
    "OutcomeEvaluator",
    "PointCalculator",
    "Standing",
    "next_streak",
    "outcomes_match",
    "rank_standings",
    "round_half_away_from_zero",
    "tier_for",
]
