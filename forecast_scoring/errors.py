"""
Service-level exceptions.

Every error the engine raises derives from ScoringEngineError. Driver
failures are chained with ``from`` so the original cause stays visible.
"""

from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from bson import ObjectId
from pymongo.errors import PyMongoError

from forecast_scoring.validators.custom_types import PyObjectId

logger = structlog.get_logger(__name__)


class ScoringEngineError(Exception):
    """Base exception for scoring engine errors."""

    pass


class NotFoundError(ScoringEngineError):
    """Raised when a referenced document does not exist."""

    pass


class ForecastNotFoundError(NotFoundError):
    """Raised when a forecast is not found."""

    pass


class UserNotFoundError(NotFoundError):
    """Raised when a user is not found."""

    pass


class ForecastAlreadyResolvedError(ScoringEngineError):
    """Raised when a forecast was resolved before this attempt committed."""

    pass


class ValidationError(ScoringEngineError):
    """Raised when caller input is malformed or out of range."""

    pass


class StoreUnavailableError(ScoringEngineError):
    """Raised when the store fails; nothing was committed, retry is safe."""

    pass


class CacheUnavailableError(ScoringEngineError):
    """Raised by cache backends; never escapes the engine."""

    pass


class ForecastNotEditableError(ScoringEngineError):
    """Raised when editing or deleting a resolved or expired forecast."""

    pass


class DuplicateForecastError(ScoringEngineError):
    """Raised when the user already has an open forecast with the same title."""

    pass


class ForecastPermissionError(ScoringEngineError):
    """Raised when a user acts on another user's forecast."""

    pass


class UserAlreadyExistsError(ScoringEngineError):
    """Raised when username or email is already registered."""

    pass


class UserInactiveError(ScoringEngineError):
    """Raised when an inactive user submits a forecast."""

    pass


def as_object_id(value: Any, label: str = "id") -> ObjectId:
    """Parse an id argument, raising ValidationError when malformed."""
    try:
        return PyObjectId.validate(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {label}: {value!r}") from e


@contextmanager
def translate_store_errors(operation: str) -> Iterator[None]:
    """Re-raise driver failures inside the block as StoreUnavailableError."""
    try:
        yield
    except PyMongoError as e:
        logger.error("Store operation failed", operation=operation, error=str(e))
        raise StoreUnavailableError(f"{operation} failed: {e}") from e
