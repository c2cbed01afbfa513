"""
Leaderboard and reporting models.

Only ``overall`` entries are persisted; every other category is computed on
read and shares these shapes.
"""

from datetime import datetime
from enum import StrEnum
from math import ceil
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, computed_field

from forecast_scoring.models.base import MongoBaseModel, utc_now
from forecast_scoring.models.forecast import EventType
from forecast_scoring.validators.custom_types import PyObjectId


class LeaderboardCategory(StrEnum):
    """Rank orderings the engine maintains."""

    OVERALL = "overall"
    CPI = "cpi"
    UNEMPLOYMENT = "unemployment"
    FED_RATE = "fed_rate"
    GDP = "gdp"
    PAYROLLS = "payrolls"
    HOUSING = "housing"
    RETAIL_SALES = "retail_sales"
    PPI = "ppi"
    CUSTOM = "custom"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def is_window(self) -> bool:
        return self in (LeaderboardCategory.WEEKLY, LeaderboardCategory.MONTHLY)

    @property
    def is_event_type(self) -> bool:
        return self in EVENT_TYPE_CATEGORIES

    @classmethod
    def for_event_type(cls, event_type: str) -> "LeaderboardCategory":
        return cls(EventType(event_type).value)


EVENT_TYPE_CATEGORIES = tuple(LeaderboardCategory(event.value) for event in EventType)


class LeaderboardRow(MongoBaseModel):
    """
    Persisted ``overall`` leaderboard document.

    Display fields are denormalized from the user so pages are served
    from this collection alone.

    Indexes:
        - (user_id, category): unique
        - (category, rank): page reads
    """

    user_id: PyObjectId
    category: LeaderboardCategory = LeaderboardCategory.OVERALL
    username: str
    display_name: str | None = None
    user_created_at: datetime
    points: Annotated[int, Field(ge=0)] = 0
    rank: Annotated[int, Field(ge=0)] = 0
    total_predictions: Annotated[int, Field(ge=0)] = 0
    correct_predictions: Annotated[int, Field(ge=0)] = 0
    accuracy_percentage: float = 0.0
    updated_at: datetime = Field(default_factory=utc_now)


class LeaderboardEntry(BaseModel):
    """One ranked row of a leaderboard page."""

    model_config = ConfigDict(frozen=True)

    rank: Annotated[int, Field(ge=1)]
    user_id: PyObjectId
    username: str
    display_name: str | None = None
    points: int
    total_predictions: int
    accuracy_percentage: float
    tier: str


class LeaderboardPage(BaseModel):
    """
    One page of a leaderboard.

    ``requester_rank`` is filled per request and never cached.
    """

    category: LeaderboardCategory
    page: Annotated[int, Field(ge=1)]
    page_size: Annotated[int, Field(ge=1)]
    total_count: Annotated[int, Field(ge=0)]
    rows: list[LeaderboardEntry] = Field(default_factory=list)
    requester_rank: int | None = None

    @computed_field  # type: ignore[misc]
    @property
    def total_pages(self) -> int:
        return ceil(self.total_count / self.page_size) if self.total_count else 0

    @computed_field  # type: ignore[misc]
    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @computed_field  # type: ignore[misc]
    @property
    def has_prev_page(self) -> bool:
        return self.page > 1


class CategoryRank(BaseModel):
    """A user's standing in one category."""

    rank: int
    points: int
    total_predictions: int
    accuracy_percentage: float


class UserRankings(BaseModel):
    """A user's standing across ``overall`` and every event type category."""

    user_id: PyObjectId
    username: str
    tier: str
    rankings: dict[str, CategoryRank | None]


class TierCount(BaseModel):
    name: str
    min_points: int
    max_points: int | None = None
    users: int = 0


class LeaderboardStats(BaseModel):
    """Population summary of the ``overall`` leaderboard."""

    total_users: int = 0
    active_predictors: int = 0
    avg_points: float = 0.0
    max_points: int = 0
    tiers: list[TierCount] = Field(default_factory=list)


class AccuracyReport(BaseModel):
    """Accuracy over a user's resolved forecasts."""

    user_id: PyObjectId
    event_type: str | None = None
    total: int = 0
    correct: int = 0
    accuracy_percentage: float = 0.0
    avg_confidence: float = 0.0
    total_points: int = 0
