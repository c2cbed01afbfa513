"""
Forecast model.

A forecast is one user's call on an economic release. It is open until the
resolution transaction (or the expiry sweeper) closes it, after which it
is immutable.
"""

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from forecast_scoring.models.base import EmbeddedModel, TimestampedModel
from forecast_scoring.models.resolution import PointsBreakdown
from forecast_scoring.validators.custom_types import PyObjectId, ensure_utc


class EventType(StrEnum):
    """Economic releases forecasts can target."""

    CPI = "cpi"
    UNEMPLOYMENT = "unemployment"
    FED_RATE = "fed_rate"
    GDP = "gdp"
    PAYROLLS = "payrolls"
    HOUSING = "housing"
    RETAIL_SALES = "retail_sales"
    PPI = "ppi"
    CUSTOM = "custom"


# Event types judged on the change between two published figures
NUMERIC_CHANGE_EVENTS = frozenset({EventType.CPI, EventType.UNEMPLOYMENT, EventType.GDP})


class PredictedOutcome(StrEnum):
    """Directional or categorical call a forecast makes."""

    YES = "yes"
    NO = "no"
    HIGHER = "higher"
    LOWER = "lower"
    SAME = "same"
    CUSTOM = "custom"


class ForecastStatus(StrEnum):
    """Listing filter for a user's forecasts."""

    ACTIVE = "active"
    RESOLVED = "resolved"
    ALL = "all"


class ThresholdValue(EmbeddedModel):
    """Change threshold for cpi/unemployment/gdp forecasts."""

    kind: Literal["threshold"] = "threshold"
    threshold: float = Field(default=0.0, ge=0, allow_inf_nan=False)


class RateValue(EmbeddedModel):
    """Predicted policy rate for fed_rate forecasts."""

    kind: Literal["rate"] = "rate"
    rate: float | None = Field(default=None, allow_inf_nan=False)


class FreeformValue(EmbeddedModel):
    """Opaque payload for every other event type."""

    kind: Literal["freeform"] = "freeform"
    data: dict[str, Any] = Field(default_factory=dict)


PredictionValue = Annotated[
    ThresholdValue | RateValue | FreeformValue,
    Field(discriminator="kind"),
]


def default_value_kind(event_type: str) -> str:
    """Variant used when a stored or submitted value carries no ``kind``."""
    if event_type in NUMERIC_CHANGE_EVENTS:
        return "threshold"
    if event_type == EventType.FED_RATE:
        return "rate"
    return "freeform"


def coerce_prediction_value(event_type: str, value: Any) -> Any:
    """
    Tag an untagged prediction value with the variant its event type implies.

    ``None`` becomes the empty variant; an untagged freeform dict is wrapped
    as its ``data`` payload.
    """
    if value is None:
        return {"kind": default_value_kind(event_type)}
    if isinstance(value, dict) and "kind" not in value:
        kind = default_value_kind(event_type)
        if kind == "freeform":
            return {"kind": kind, "data": dict(value)}
        return {"kind": kind, **value}
    return value


class _PredictionValueMixin(BaseModel):
    @model_validator(mode="before")
    @classmethod
    def tag_prediction_value(cls, values: Any) -> Any:
        if isinstance(values, dict) and "event_type" in values:
            values = dict(values)
            values["prediction_value"] = coerce_prediction_value(
                str(values["event_type"]), values.get("prediction_value")
            )
        return values


class ForecastCreate(_PredictionValueMixin):
    """Schema for submitting a new forecast."""

    model_config = ConfigDict(str_strip_whitespace=True, use_enum_values=True)

    event_type: EventType
    event_title: Annotated[str, Field(min_length=1, max_length=200)]
    predicted_outcome: PredictedOutcome
    prediction_value: PredictionValue
    confidence: Annotated[int, Field(ge=0, le=100)]
    expires_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("expires_at", mode="after")
    @classmethod
    def normalize_expires_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class ForecastUpdate(BaseModel):
    """
    Schema for editing an open forecast.

    Only non-scoring fields may change; event type, title and expiry are
    fixed at creation.
    """

    model_config = ConfigDict(use_enum_values=True)

    predicted_outcome: PredictedOutcome | None = None
    prediction_value: dict[str, Any] | None = None
    confidence: Annotated[int | None, Field(ge=0, le=100)] = None
    metadata: dict[str, Any] | None = None


class Forecast(_PredictionValueMixin, TimestampedModel):
    """
    Forecast document model.

    Indexes:
        - (is_resolved, expires_at): expiry sweep
        - (user_id, created_at): a user's forecasts
        - (event_type, is_resolved): event type leaderboards
        - (is_resolved, resolved_at): weekly and monthly windows
    """

    user_id: PyObjectId = Field(..., description="Reference to user document")
    event_type: EventType
    event_title: Annotated[str, Field(min_length=1, max_length=200)]
    predicted_outcome: PredictedOutcome
    prediction_value: PredictionValue
    confidence: Annotated[int, Field(ge=0, le=100)]
    expires_at: datetime

    # Resolution state
    is_resolved: bool = False
    actual_outcome: str | None = None
    is_correct: bool | None = None
    points_awarded: Annotated[int, Field(ge=0)] = 0
    points_breakdown: PointsBreakdown | None = None
    resolved_at: datetime | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("expires_at", "resolved_at", mode="after")
    @classmethod
    def normalize_datetimes(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)

    @property
    def days_early(self) -> float:
        """Days between submission and expiry, fractional."""
        return (self.expires_at - self.created_at).total_seconds() / 86400

    def is_open(self, now: datetime) -> bool:
        """Whether the forecast can still be edited."""
        return not self.is_resolved and self.expires_at > now

    def status(self, now: datetime) -> str:
        if self.is_resolved:
            return "resolved"
        if self.expires_at <= now:
            return "expired"
        return "active"

    @classmethod
    def from_create(cls, user_id: PyObjectId, data: ForecastCreate, now: datetime) -> "Forecast":
        """Build a new open forecast from submitted data."""
        return cls(
            user_id=user_id,
            event_type=data.event_type,
            event_title=data.event_title,
            predicted_outcome=data.predicted_outcome,
            prediction_value=data.prediction_value.model_dump(),
            confidence=data.confidence,
            expires_at=data.expires_at,
            metadata=data.metadata,
            created_at=now,
            updated_at=now,
        )
