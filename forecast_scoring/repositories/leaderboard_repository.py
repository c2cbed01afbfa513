"""
Leaderboard repository.

Persists the ``overall`` rows, one per user, and their dense ranks.
"""

from typing import Any

from bson import ObjectId
from pymongo import UpdateOne

from forecast_scoring.models.base import utc_now
from forecast_scoring.models.leaderboard import LeaderboardCategory, LeaderboardRow
from forecast_scoring.models.user import User
from forecast_scoring.repositories.base import BaseRepository, Session
from forecast_scoring.scoring.ranking import Standing

OVERALL = LeaderboardCategory.OVERALL.value


class LeaderboardRepository(BaseRepository[LeaderboardRow]):
    """Repository for persisted leaderboard rows."""

    collection_name = "leaderboard"
    model_class = LeaderboardRow

    async def upsert_overall(self, user: User, *, session: Session = None) -> None:
        """
        Mirror the user's statistics into their ``overall`` row.

        A new row starts at rank 0 until the next refresh assigns one.
        """
        await self.update_one(
            {"user_id": user.id, "category": OVERALL},
            {
                "$set": {
                    "username": user.username,
                    "display_name": user.display_name,
                    "user_created_at": user.created_at,
                    "points": user.total_points,
                    "total_predictions": user.resolved_predictions,
                    "correct_predictions": user.correct_predictions,
                    "accuracy_percentage": user.accuracy_percentage,
                },
                "$setOnInsert": {"_id": ObjectId(), "rank": 0},
            },
            upsert=True,
            session=session,
        )

    async def list_for_ranking(self, *, session: Session = None) -> list[Standing]:
        """Every ``overall`` row as an unranked standing with its current rank."""
        cursor = self.collection.find(
            {"category": OVERALL},
            {
                "user_id": 1,
                "username": 1,
                "display_name": 1,
                "user_created_at": 1,
                "points": 1,
                "total_predictions": 1,
                "correct_predictions": 1,
                "rank": 1,
            },
            session=session,
        )
        return [
            Standing(
                user_id=doc["user_id"],
                username=doc["username"],
                display_name=doc.get("display_name"),
                user_created_at=doc["user_created_at"],
                points=doc["points"],
                total_predictions=doc.get("total_predictions", 0),
                correct_predictions=doc.get("correct_predictions", 0),
                current_rank=doc.get("rank"),
            )
            async for doc in cursor
        ]

    async def write_ranks(
        self, ranks: dict[ObjectId, int], *, session: Session = None
    ) -> int:
        """
        Persist new ``overall`` ranks.

        Returns:
            Number of rows modified
        """
        now = utc_now()
        operations = [
            UpdateOne(
                {"user_id": user_id, "category": OVERALL},
                {"$set": {"rank": rank, "updated_at": now}},
            )
            for user_id, rank in ranks.items()
        ]
        result = await self.bulk_write(operations, session=session)
        return result.modified_count if result is not None else 0

    async def get_overall_page(self, *, skip: int, limit: int) -> list[LeaderboardRow]:
        return await self.find_many(
            {"category": OVERALL},
            sort=[("rank", 1)],
            skip=skip,
            limit=limit,
        )

    async def count_overall(self) -> int:
        return await self.count({"category": OVERALL})

    async def get_overall_entry(self, user_id: ObjectId) -> LeaderboardRow | None:
        return await self.find_one({"user_id": user_id, "category": OVERALL})

    async def overall_summary(self, tier_floors: list[int]) -> dict[str, Any]:
        """
        Population figures for the ``overall`` rows.

        Args:
            tier_floors: Ascending tier floors starting at 0

        Returns:
            Dict with total_users, active_predictors, avg_points, max_points
            and tier_counts keyed by tier floor
        """
        floors = sorted(tier_floors)
        pipeline: list[dict[str, Any]] = [
            {"$match": {"category": OVERALL}},
            {
                "$facet": {
                    "totals": [
                        {
                            "$group": {
                                "_id": None,
                                "total_users": {"$sum": 1},
                                "active_predictors": {
                                    "$sum": {"$cond": [{"$gt": ["$points", 0]}, 1, 0]}
                                },
                                "avg_points": {"$avg": "$points"},
                                "max_points": {"$max": "$points"},
                            }
                        }
                    ],
                    "tiers": [
                        {
                            "$bucket": {
                                "groupBy": "$points",
                                "boundaries": floors,
                                "default": floors[-1],
                                "output": {"count": {"$sum": 1}},
                            }
                        }
                    ],
                }
            },
        ]
        if len(floors) < 2:
            # $bucket needs two boundaries; a single tier holds everyone
            pipeline[1]["$facet"]["tiers"] = [
                {"$group": {"_id": floors[0], "count": {"$sum": 1}}}
            ]

        results = await self.aggregate(pipeline)
        facet = results[0] if results else {"totals": [], "tiers": []}
        totals = facet["totals"][0] if facet["totals"] else {}

        return {
            "total_users": totals.get("total_users", 0),
            "active_predictors": totals.get("active_predictors", 0),
            "avg_points": round(totals.get("avg_points") or 0.0, 2),
            "max_points": totals.get("max_points") or 0,
            "tier_counts": {bucket["_id"]: bucket["count"] for bucket in facet["tiers"]},
        }
