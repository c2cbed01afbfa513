"""
Field types shared by the forecast scoring models.

ObjectIds stay native in documents sent to MongoDB and become hex strings
in JSON, which is what the cache stores.
"""

import re
from datetime import datetime, timezone
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import GetCoreSchemaHandler, GetJsonSchemaHandler
from pydantic.json_schema import JsonSchemaValue
from pydantic_core import CoreSchema, core_schema

USERNAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_-]{2,29}$")


class PyObjectId(ObjectId):
    """
    ObjectId field type for pydantic v2 models.

    Usage:
        class LeaderboardRow(BaseModel):
            user_id: PyObjectId
    """

    @classmethod
    def __get_pydantic_core_schema__(
        cls,
        _source_type: Any,
        _handler: GetCoreSchemaHandler,
    ) -> CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls.validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                str,
                return_schema=core_schema.str_schema(),
                when_used="json",
            ),
        )

    @classmethod
    def __get_pydantic_json_schema__(
        cls,
        _core_schema: CoreSchema,
        handler: GetJsonSchemaHandler,
    ) -> JsonSchemaValue:
        return {"type": "string", "pattern": "^[0-9a-fA-F]{24}$"}

    @classmethod
    def validate(cls, value: Any) -> ObjectId:
        """Accept an ObjectId or its 24-character hex form."""
        if isinstance(value, ObjectId):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Expected ObjectId or hex string, got {type(value).__name__}")
        try:
            return ObjectId(value)
        except InvalidId as e:
            raise ValueError(f"Invalid ObjectId: {value!r}") from e


def ensure_utc(value: datetime | None) -> datetime | None:
    """Tag naive datetimes as UTC (Motor returns them naive) and convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_username(value: str) -> str:
    """3-30 characters: a leading letter, then letters, digits, '_' or '-'."""
    if not USERNAME_PATTERN.match(value or ""):
        raise ValueError(
            "Username must be 3-30 characters, start with a letter and contain only "
            "letters, numbers, underscores, and hyphens"
        )
    return value
