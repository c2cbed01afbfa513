"""
User documents.

Besides identity, a user carries the running statistics that only the
resolution transaction mutates: points, streak and the prediction counters.
"""

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, EmailStr, Field

from forecast_scoring.models.base import TimestampedModel
from forecast_scoring.validators.custom_types import validate_username

Username = Annotated[str, Field(min_length=3, max_length=30), AfterValidator(validate_username)]
Email = Annotated[EmailStr, BeforeValidator(lambda v: v.strip().lower() if isinstance(v, str) else v)]
DisplayName = Annotated[str | None, Field(max_length=50)]
Counter = Annotated[int, Field(ge=0)]


class UserCreate(BaseModel):
    """Registration input, validated before anything is written."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: Username = Field(examples=["macro_maven", "cpi-hawk"])
    email: Email
    display_name: DisplayName = None


class User(TimestampedModel):
    """
    User document.

    ``created_at`` is the leaderboard tie-breaker and is never rewritten.

    Indexes:
        - username: unique
        - email: unique
    """

    username: Username
    email: Email
    display_name: DisplayName = None
    is_active: bool = True

    total_points: Counter = 0
    win_streak: Counter = 0
    total_predictions: Counter = Field(default=0, description="Forecasts created")
    correct_predictions: Counter = 0
    resolved_predictions: Counter = Field(default=0, description="Accuracy denominator")

    @property
    def effective_display_name(self) -> str:
        return self.display_name or self.username

    @property
    def accuracy_percentage(self) -> float:
        """Correct share of resolved forecasts, expired ones included."""
        if self.resolved_predictions == 0:
            return 0.0
        return round(self.correct_predictions / self.resolved_predictions * 100, 2)

    @classmethod
    def from_create(cls, data: UserCreate, now: datetime) -> "User":
        return cls(
            username=data.username,
            email=data.email,
            display_name=data.display_name,
            created_at=now,
            updated_at=now,
        )
