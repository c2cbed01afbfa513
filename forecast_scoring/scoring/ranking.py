"""
Deterministic dense ranking.

Ordering: points descending, then the user's registration time ascending,
then the user id ascending, so two standings never compare equal and
ranks run 1..N without gaps or ties.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from bson import ObjectId

from forecast_scoring.models.leaderboard import CategoryRank, LeaderboardEntry


@dataclass(frozen=True)
class Standing:
    """A user's aggregate in one category, before ranking."""

    user_id: ObjectId
    username: str
    user_created_at: datetime
    points: int
    total_predictions: int = 0
    correct_predictions: int = 0
    display_name: str | None = None
    current_rank: int | None = field(default=None, compare=False)

    @property
    def accuracy_percentage(self) -> float:
        if self.total_predictions == 0:
            return 0.0
        return round(self.correct_predictions / self.total_predictions * 100, 2)


def ranking_key(standing: Standing) -> tuple[int, datetime, str]:
    return (-standing.points, standing.user_created_at, str(standing.user_id))


def rank_standings(standings: Iterable[Standing]) -> list[tuple[int, Standing]]:
    """Sort standings and pair each with its 1-based rank."""
    ordered = sorted(standings, key=ranking_key)
    return [(position, standing) for position, standing in enumerate(ordered, start=1)]


def tier_for(points: int, tiers: list[tuple[int, str]]) -> str:
    """Name of the highest tier whose floor ``points`` reaches."""
    for floor, name in tiers:
        if points >= floor:
            return name
    return tiers[-1][1]


def to_entry(rank: int, standing: Standing, tiers: list[tuple[int, str]]) -> LeaderboardEntry:
    return LeaderboardEntry(
        rank=rank,
        user_id=standing.user_id,
        username=standing.username,
        display_name=standing.display_name,
        points=standing.points,
        total_predictions=standing.total_predictions,
        accuracy_percentage=standing.accuracy_percentage,
        tier=tier_for(standing.points, tiers),
    )


def to_category_rank(rank: int, standing: Standing) -> CategoryRank:
    return CategoryRank(
        rank=rank,
        points=standing.points,
        total_predictions=standing.total_predictions,
        accuracy_percentage=standing.accuracy_percentage,
    )
