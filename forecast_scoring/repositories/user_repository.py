"""
User repository for database operations.

Provides async queries for User documents and the atomic statistic
updates applied by the resolution transaction.
"""

from bson import ObjectId

from forecast_scoring.models.user import User
from forecast_scoring.repositories.base import BaseRepository, Session


class UserRepository(BaseRepository[User]):
    """
    Repository for User document operations.

    Provides specialized methods for user-related queries
    in addition to base CRUD operations.
    """

    collection_name = "users"
    model_class = User

    async def find_by_username(self, username: str) -> User | None:
        return await self.find_one({"username": username})

    async def find_by_email(self, email: str) -> User | None:
        return await self.find_one({"email": email.lower().strip()})

    async def get_many(self, user_ids: list[ObjectId]) -> dict[ObjectId, User]:
        """Load several users keyed by id."""
        users = await self.find_many({"_id": {"$in": user_ids}}, limit=len(user_ids) or 1)
        return {user.id: user for user in users}

    async def apply_resolution(
        self,
        user_id: ObjectId,
        *,
        points_awarded: int,
        new_streak: int,
        is_correct: bool,
        session: Session = None,
    ) -> User | None:
        """
        Fold one resolution into the user's running statistics.

        Args:
            user_id: User to update
            points_awarded: Points to add to ``total_points``
            new_streak: Streak after this resolution
            is_correct: Whether the resolution was correct
            session: Transaction session

        Returns:
            The updated user, or None if the user does not exist
        """
        return await self.find_one_and_update(
            {"_id": user_id},
            {
                "$inc": {
                    "total_points": points_awarded,
                    "correct_predictions": 1 if is_correct else 0,
                    "resolved_predictions": 1,
                },
                "$set": {"win_streak": new_streak},
            },
            session=session,
        )

    async def adjust_total_predictions(
        self, user_id: ObjectId, delta: int, *, session: Session = None
    ) -> User | None:
        """Add ``delta`` to the user's forecast count, never going below zero."""
        filter: dict = {"_id": user_id}
        if delta < 0:
            filter["total_predictions"] = {"$gte": -delta}
        return await self.find_one_and_update(
            filter,
            {"$inc": {"total_predictions": delta}},
            session=session,
        )
