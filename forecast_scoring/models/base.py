"""
Document base classes.

Top-level documents carry an ObjectId primary key aliased to ``_id``;
embedded values (prediction payloads, point breakdowns) do not.
"""

from datetime import datetime, timezone
from typing import Any, Self

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator

from forecast_scoring.validators.custom_types import PyObjectId, ensure_utc

_DOCUMENT_CONFIG = ConfigDict(
    populate_by_name=True,
    use_enum_values=True,
    validate_assignment=True,
    arbitrary_types_allowed=True,
    str_strip_whitespace=True,
)


def utc_now() -> datetime:
    """Default clock for the engine and its models."""
    return datetime.now(timezone.utc)


class MongoBaseModel(BaseModel):
    """
    A document stored in its own collection.

    ``to_mongo`` keeps ObjectIds and datetimes as BSON types for writes;
    ``to_json_dict`` renders them as strings for the cache and the CLI.
    """

    model_config = _DOCUMENT_CONFIG

    id: PyObjectId = Field(default_factory=ObjectId, alias="_id")

    @classmethod
    def from_mongo(cls, document: dict[str, Any] | None) -> Self | None:
        if document is None:
            return None
        return cls.model_validate(document)

    @classmethod
    def from_mongo_list(cls, documents: list[dict[str, Any]]) -> list[Self]:
        return [cls.model_validate(doc) for doc in documents]

    def to_mongo(self, exclude_none: bool = False) -> dict[str, Any]:
        return self.model_dump(exclude_none=exclude_none, by_alias=True)

    def to_json_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        return self.model_dump(exclude_none=exclude_none, mode="json")


class TimestampedModel(MongoBaseModel):
    """Adds ``created_at``/``updated_at``; repositories refresh ``updated_at`` on writes."""

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def normalize_timestamps(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class EmbeddedModel(BaseModel):
    """A subdocument without its own ``_id``."""

    model_config = _DOCUMENT_CONFIG
