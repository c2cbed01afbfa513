"""
Resolution models.

Inputs and outputs of the resolution transaction and the expiry sweeper.
"""

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from forecast_scoring.models.base import EmbeddedModel
from forecast_scoring.validators.custom_types import PyObjectId, ensure_utc

# Outcome recorded for forecasts closed by the expiry sweeper
EXPIRED_OUTCOME = "expired"


class ResolutionData(BaseModel):
    """
    Reference figures published with an outcome.

    Every figure is optional; a value of 0.0 is real data, absence is None.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        allow_inf_nan=False,
        frozen=True,
    )

    actual_value: float | None = Field(default=None, alias="actualValue")
    previous_value: float | None = Field(default=None, alias="previousValue")
    actual_rate: float | None = Field(default=None, alias="actualRate")

    @property
    def has_change(self) -> bool:
        """Whether both figures needed for a numeric change are present."""
        return self.actual_value is not None and self.previous_value is not None


class PointsBreakdown(EmbeddedModel):
    """Per-factor point award for one resolution."""

    model_config = ConfigDict(frozen=True)

    base_points: Annotated[int, Field(ge=0)] = 0
    time_bonus: Annotated[int, Field(ge=0)] = 0
    streak_bonus: Annotated[int, Field(ge=0)] = 0
    new_streak: Annotated[int, Field(ge=0)] = 0

    @computed_field  # type: ignore[misc]
    @property
    def total(self) -> int:
        return self.base_points + self.time_bonus + self.streak_bonus


class ResolutionResult(BaseModel):
    """Outcome of one committed resolution."""

    model_config = ConfigDict(frozen=True)

    forecast_id: PyObjectId
    user_id: PyObjectId
    event_type: str
    actual_outcome: str
    is_correct: bool
    points_awarded: int
    breakdown: PointsBreakdown
    new_streak: int
    resolved_at: datetime

    @field_validator("resolved_at", mode="after")
    @classmethod
    def normalize_resolved_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class ResolutionRequest(BaseModel):
    """One item of a batch resolution."""

    forecast_id: PyObjectId
    actual_outcome: str = Field(min_length=1)
    resolution_data: ResolutionData | None = None


class BatchResolutionItem(BaseModel):
    """Per-item outcome of a batch resolution: a result or an error."""

    forecast_id: str
    result: ResolutionResult | None = None
    error_type: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None


class SweepError(BaseModel):
    """A forecast the expiry sweeper could not resolve."""

    forecast_id: str | None = None
    error_type: str
    message: str


class SweepReport(BaseModel):
    """Summary of one expiry sweep."""

    started_at: datetime
    finished_at: datetime
    candidates: int = 0
    resolved_count: int = 0
    skipped_count: int = 0
    errors: list[SweepError] = Field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    def summary(self) -> dict[str, Any]:
        """Compact key/value summary for logs."""
        return {
            "candidates": self.candidates,
            "resolved": self.resolved_count,
            "skipped": self.skipped_count,
            "errors": len(self.errors),
            "duration_s": round(self.duration_seconds, 3),
        }
