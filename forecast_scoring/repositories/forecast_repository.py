"""
Forecast repository for database operations.

Holds the conditional writes that guard forecast state transitions and the
aggregations behind the computed leaderboards and accuracy reports.
"""

from datetime import datetime
from typing import Any

from bson import ObjectId

from forecast_scoring.models.forecast import Forecast, ForecastStatus
from forecast_scoring.models.resolution import PointsBreakdown
from forecast_scoring.repositories.base import BaseRepository, Session
from forecast_scoring.scoring.ranking import Standing


class ForecastRepository(BaseRepository[Forecast]):
    """Repository for Forecast document operations."""

    collection_name = "forecasts"
    model_class = Forecast

    async def find_open_by_title(self, user_id: ObjectId, event_title: str) -> Forecast | None:
        """Find the user's unresolved forecast with this title, if any."""
        return await self.find_one(
            {"user_id": user_id, "event_title": event_title, "is_resolved": False}
        )

    async def mark_resolved(
        self,
        forecast_id: ObjectId,
        *,
        actual_outcome: str,
        is_correct: bool,
        breakdown: PointsBreakdown,
        resolved_at: datetime,
        session: Session = None,
    ) -> Forecast | None:
        """
        Close an open forecast.

        The filter requires ``is_resolved: False``, so of two concurrent
        attempts only one can match.

        Returns:
            The resolved forecast, or None if it was missing or already resolved
        """
        return await self.find_one_and_update(
            {"_id": forecast_id, "is_resolved": False},
            {
                "$set": {
                    "is_resolved": True,
                    "actual_outcome": actual_outcome,
                    "is_correct": is_correct,
                    "points_awarded": breakdown.total,
                    "points_breakdown": breakdown.model_dump(),
                    "resolved_at": resolved_at,
                }
            },
            session=session,
        )

    async def update_open(
        self,
        forecast_id: ObjectId,
        user_id: ObjectId,
        fields: dict[str, Any],
        now: datetime,
    ) -> Forecast | None:
        """Apply ``fields`` only while the forecast is unresolved and unexpired."""
        return await self.find_one_and_update(
            {
                "_id": forecast_id,
                "user_id": user_id,
                "is_resolved": False,
                "expires_at": {"$gt": now},
            },
            {"$set": fields},
        )

    async def delete_open(
        self, forecast_id: ObjectId, user_id: ObjectId, *, session: Session = None
    ) -> bool:
        """Delete the forecast only while it is unresolved."""
        return await self.delete_one(
            {"_id": forecast_id, "user_id": user_id, "is_resolved": False},
            session=session,
        )

    async def find_expired_unresolved(
        self,
        now: datetime,
        limit: int = 500,
        exclude_ids: list[ObjectId] | None = None,
    ) -> list[Forecast]:
        """Unresolved forecasts whose expiry has passed, oldest first."""
        query: dict[str, Any] = {"is_resolved": False, "expires_at": {"$lt": now}}
        if exclude_ids:
            query["_id"] = {"$nin": exclude_ids}
        return await self.find_many(query, sort=[("expires_at", 1)], limit=limit)

    def _status_filter(
        self, user_id: ObjectId, status: ForecastStatus, now: datetime
    ) -> dict[str, Any]:
        query: dict[str, Any] = {"user_id": user_id}
        if status == ForecastStatus.ACTIVE:
            query.update({"is_resolved": False, "expires_at": {"$gt": now}})
        elif status == ForecastStatus.RESOLVED:
            query["is_resolved"] = True
        return query

    async def find_by_user(
        self,
        user_id: ObjectId,
        status: ForecastStatus,
        now: datetime,
        *,
        skip: int = 0,
        limit: int = 20,
    ) -> list[Forecast]:
        """A user's forecasts, newest first."""
        return await self.find_many(
            self._status_filter(user_id, status, now),
            sort=[("created_at", -1), ("_id", -1)],
            skip=skip,
            limit=limit,
        )

    async def count_by_user(self, user_id: ObjectId, status: ForecastStatus, now: datetime) -> int:
        return await self.count(self._status_filter(user_id, status, now))

    async def aggregate_standings(
        self,
        *,
        event_type: str | None = None,
        resolved_since: datetime | None = None,
    ) -> list[Standing]:
        """
        Per-user totals over resolved forecasts.

        Args:
            event_type: Restrict to one event type
            resolved_since: Restrict to forecasts resolved at or after this time

        Returns:
            Unranked standings joined with the users' display fields
        """
        match: dict[str, Any] = {"is_resolved": True}
        if event_type is not None:
            match["event_type"] = event_type
        if resolved_since is not None:
            match["resolved_at"] = {"$gte": resolved_since}

        pipeline = [
            {"$match": match},
            {
                "$group": {
                    "_id": "$user_id",
                    "points": {"$sum": "$points_awarded"},
                    "total_predictions": {"$sum": 1},
                    "correct_predictions": {"$sum": {"$cond": ["$is_correct", 1, 0]}},
                }
            },
            {
                "$lookup": {
                    "from": "users",
                    "localField": "_id",
                    "foreignField": "_id",
                    "as": "user",
                }
            },
            {"$unwind": "$user"},
            {
                "$project": {
                    "points": 1,
                    "total_predictions": 1,
                    "correct_predictions": 1,
                    "username": "$user.username",
                    "display_name": "$user.display_name",
                    "user_created_at": "$user.created_at",
                }
            },
        ]

        results = await self.aggregate(pipeline)
        return [
            Standing(
                user_id=doc["_id"],
                username=doc["username"],
                display_name=doc.get("display_name"),
                user_created_at=doc["user_created_at"],
                points=doc["points"],
                total_predictions=doc["total_predictions"],
                correct_predictions=doc["correct_predictions"],
            )
            for doc in results
        ]

    async def accuracy_stats(
        self, user_id: ObjectId, event_type: str | None = None
    ) -> dict[str, Any]:
        """
        Totals over a user's resolved forecasts.

        Returns:
            Dict with total, correct, avg_confidence and total_points
        """
        match: dict[str, Any] = {"user_id": user_id, "is_resolved": True}
        if event_type is not None:
            match["event_type"] = event_type

        pipeline = [
            {"$match": match},
            {
                "$group": {
                    "_id": None,
                    "total": {"$sum": 1},
                    "correct": {"$sum": {"$cond": ["$is_correct", 1, 0]}},
                    "avg_confidence": {"$avg": "$confidence"},
                    "total_points": {"$sum": "$points_awarded"},
                }
            },
        ]

        results = await self.aggregate(pipeline)
        if not results:
            return {"total": 0, "correct": 0, "avg_confidence": 0.0, "total_points": 0}

        stats = results[0]
        stats.pop("_id", None)
        return stats
