"""
User service with business logic for user management.

Provides registration, lookups and per-user accuracy reports.
"""

from datetime import datetime
from typing import Any, Callable

import structlog
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import DuplicateKeyError

from forecast_scoring.errors import (
    UserAlreadyExistsError,
    UserNotFoundError,
    ValidationError,
    as_object_id,
    translate_store_errors,
)
from forecast_scoring.models.base import utc_now
from forecast_scoring.models.forecast import EventType
from forecast_scoring.models.leaderboard import AccuracyReport
from forecast_scoring.models.user import User, UserCreate
from forecast_scoring.services.leaderboard_service import LeaderboardService

logger = structlog.get_logger(__name__)


class UserService:
    """
    Service layer for user operations.

    Usage:
        user_service = UserService(store, leaderboard_service)
        user = await user_service.register_user(username="macro_maven", email="mm@example.com")
    """

    def __init__(
        self,
        store: Any,
        leaderboard: LeaderboardService,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.leaderboard = leaderboard
        self._now = now

    async def register_user(
        self,
        username: str,
        email: str,
        display_name: str | None = None,
    ) -> User:
        """
        Register a new user together with a zero-valued ``overall`` row.

        Args:
            username: Unique username (3-30 characters)
            email: User's email address
            display_name: Optional display name

        Returns:
            Created User instance

        Raises:
            ValidationError: If the username or email is malformed
            UserAlreadyExistsError: If username or email already exists
        """
        try:
            data = UserCreate(username=username, email=email, display_name=display_name)
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e

        with translate_store_errors("register_user"):
            if await self.store.users.find_by_username(data.username):
                raise UserAlreadyExistsError(f"Username '{data.username}' is already taken")
            if await self.store.users.find_by_email(data.email):
                raise UserAlreadyExistsError(f"Email '{data.email}' is already registered")

            now = self._now()
            user = User.from_create(data, now)

            async def create(session: Any) -> User:
                await self.store.users.insert(user, session=session)
                await self.leaderboard.sync_overall_entry(user, session=session)
                return user

            try:
                created = await self.store.run_in_transaction(create)
            except DuplicateKeyError as e:
                # Lost a race against a concurrent registration
                raise UserAlreadyExistsError(f"User '{data.username}' already exists") from e

        await self.leaderboard.invalidate_pages(["overall"])
        await self.leaderboard.invalidate_stats()
        logger.info("User registered", user_id=str(created.id), username=created.username)
        return created

    async def get_user(self, user_id: Any) -> User:
        """
        Get user by ID.

        Raises:
            UserNotFoundError: If user not found
        """
        user_oid = as_object_id(user_id, "user id")
        with translate_store_errors("get_user"):
            user = await self.store.users.get_by_id(user_oid)
        if user is None:
            raise UserNotFoundError(f"User with ID '{user_id}' not found")
        return user

    async def get_user_by_username(self, username: str) -> User:
        with translate_store_errors("get_user_by_username"):
            user = await self.store.users.find_by_username(username)
        if user is None:
            raise UserNotFoundError(f"User '{username}' not found")
        return user

    async def get_accuracy(self, user_id: Any, event_type: str | None = None) -> AccuracyReport:
        """
        Accuracy over the user's resolved forecasts.

        Expired forecasts are resolved incorrect, so they count against it.

        Args:
            user_id: User to report on
            event_type: Restrict to one event type

        Returns:
            AccuracyReport (all zeros when nothing is resolved yet)
        """
        user = await self.get_user(user_id)
        if event_type is not None:
            try:
                event_type = EventType(event_type).value
            except ValueError as e:
                raise ValidationError(f"Unknown event type: {event_type!r}") from e

        with translate_store_errors("get_user_accuracy"):
            stats = await self.store.forecasts.accuracy_stats(user.id, event_type)

        total = stats["total"]
        return AccuracyReport(
            user_id=user.id,
            event_type=event_type,
            total=total,
            correct=stats["correct"],
            accuracy_percentage=round(stats["correct"] / total * 100, 2) if total else 0.0,
            avg_confidence=round(stats["avg_confidence"] or 0.0, 2),
            total_points=stats["total_points"],
        )
