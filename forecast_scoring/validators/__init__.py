"""Custom types and validators."""

from forecast_scoring.validators.custom_types import PyObjectId, ensure_utc, validate_username

__all__ = ["PyObjectId", "ensure_utc", "validate_username"]
