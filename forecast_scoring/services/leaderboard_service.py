"""
Leaderboard service.

Serves ranked pages per category. ``overall`` ranks are persisted and
recomputed inside every resolution transaction; every other category is
aggregated from resolved forecasts and ranked on read. Pages are cached
without the requester's rank, which is looked up per request.
"""

from datetime import datetime, timedelta
from typing import Any, Callable

import structlog
from bson import ObjectId
from pydantic import ValidationError as PydanticValidationError

from forecast_scoring.cache.backends import ResilientCache
from forecast_scoring.cache.keys import (
    LEADERBOARD_STATS_KEY,
    leaderboard_invalidation_keys,
    leaderboard_page_key,
)
from forecast_scoring.config.settings import CacheSettings, ScoringPolicy
from forecast_scoring.errors import (
    UserNotFoundError,
    ValidationError,
    as_object_id,
    translate_store_errors,
)
from forecast_scoring.models.base import utc_now
from forecast_scoring.models.leaderboard import (
    EVENT_TYPE_CATEGORIES,
    CategoryRank,
    LeaderboardCategory,
    LeaderboardEntry,
    LeaderboardPage,
    LeaderboardStats,
    TierCount,
    UserRankings,
)
from forecast_scoring.models.user import User
from forecast_scoring.repositories.base import Session
from forecast_scoring.scoring.ranking import (
    Standing,
    rank_standings,
    tier_for,
    to_category_rank,
    to_entry,
)

logger = structlog.get_logger(__name__)

MAX_PAGE_SIZE = 100


def parse_category(category: Any) -> LeaderboardCategory:
    try:
        return LeaderboardCategory(str(category).lower())
    except ValueError as e:
        raise ValidationError(f"Unknown leaderboard category: {category!r}") from e


class LeaderboardService:
    """
    Ranked leaderboard reads, refreshes and cache invalidation.

    Args:
        store: MongoStore (or any object exposing the same repositories)
        cache: Fail-open cache facade
        cache_settings: TTLs and invalidation fan-out
        policy: Category thresholds, windows and tiers
        now: Clock, injectable for tests
    """

    def __init__(
        self,
        store: Any,
        cache: ResilientCache,
        cache_settings: CacheSettings,
        policy: ScoringPolicy,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.cache = cache
        self.cache_settings = cache_settings
        self.policy = policy
        self._now = now

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_page(
        self,
        category: Any = LeaderboardCategory.OVERALL,
        page: int = 1,
        page_size: int = 50,
        requesting_user_id: Any = None,
    ) -> LeaderboardPage:
        """
        Get one page of a leaderboard.

        Args:
            category: Leaderboard category name
            page: 1-based page number
            page_size: Rows per page, 1-100
            requesting_user_id: When given, the user's rank is attached

        Returns:
            LeaderboardPage with ``requester_rank`` set for the requester

        Raises:
            ValidationError: Unknown category or out-of-range paging
            StoreUnavailableError: Store failed and no cached page was usable
        """
        category = parse_category(category)
        if not isinstance(page, int) or page < 1:
            raise ValidationError(f"page must be >= 1, got {page!r}")
        if not isinstance(page_size, int) or not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError(f"page_size must be within 1..{MAX_PAGE_SIZE}, got {page_size!r}")
        requester_id = (
            as_object_id(requesting_user_id, "user id") if requesting_user_id is not None else None
        )

        key = leaderboard_page_key(category.value, page, page_size)
        result = await self._cached_page(key)
        standings: list[tuple[int, Standing]] | None = None

        if result is None:
            with translate_store_errors("get_leaderboard_page"):
                if category == LeaderboardCategory.OVERALL:
                    result = await self._overall_page(page, page_size)
                else:
                    standings = await self.ranked_standings(category)
                    result = self._slice_page(category, standings, page, page_size)
            await self.cache.set(
                key, result.model_dump(mode="json"), self.cache_settings.page_ttl_seconds
            )

        if requester_id is None:
            return result

        with translate_store_errors("get_requester_rank"):
            requester_rank = await self._requester_rank(category, requester_id, standings)
        return result.model_copy(update={"requester_rank": requester_rank})

    async def _cached_page(self, key: str) -> LeaderboardPage | None:
        cached = await self.cache.get(key)
        if cached is None:
            return None
        try:
            return LeaderboardPage.model_validate(cached)
        except PydanticValidationError:
            logger.warning("Discarding malformed cached page", key=key)
            await self.cache.delete(key)
            return None

    async def _overall_page(self, page: int, page_size: int) -> LeaderboardPage:
        rows = await self.store.leaderboard.get_overall_page(
            skip=(page - 1) * page_size, limit=page_size
        )
        total = await self.store.leaderboard.count_overall()
        entries = [
            LeaderboardEntry(
                rank=row.rank,
                user_id=row.user_id,
                username=row.username,
                display_name=row.display_name,
                points=row.points,
                total_predictions=row.total_predictions,
                accuracy_percentage=row.accuracy_percentage,
                tier=tier_for(row.points, self.policy.tiers),
            )
            for row in rows
            if row.rank > 0
        ]
        return LeaderboardPage(
            category=LeaderboardCategory.OVERALL,
            page=page,
            page_size=page_size,
            total_count=total,
            rows=entries,
        )

    def _slice_page(
        self,
        category: LeaderboardCategory,
        standings: list[tuple[int, Standing]],
        page: int,
        page_size: int,
    ) -> LeaderboardPage:
        start = (page - 1) * page_size
        window = standings[start : start + page_size]
        return LeaderboardPage(
            category=category,
            page=page,
            page_size=page_size,
            total_count=len(standings),
            rows=[to_entry(rank, standing, self.policy.tiers) for rank, standing in window],
        )

    async def _requester_rank(
        self,
        category: LeaderboardCategory,
        user_id: ObjectId,
        standings: list[tuple[int, Standing]] | None,
    ) -> int | None:
        if category == LeaderboardCategory.OVERALL:
            row = await self.store.leaderboard.get_overall_entry(user_id)
            return row.rank if row is not None and row.rank > 0 else None

        if standings is None:
            standings = await self.ranked_standings(category)
        for rank, standing in standings:
            if standing.user_id == user_id:
                return rank
        return None

    async def ranked_standings(self, category: LeaderboardCategory) -> list[tuple[int, Standing]]:
        """
        Rank a computed category.

        - weekly/monthly: forecasts resolved inside the window; users need
          points > 0 in the window
        - event types: users need ``category_min_resolved`` resolved
          forecasts of that type
        """
        if category.is_window:
            days = (
                self.policy.weekly_window_days
                if category == LeaderboardCategory.WEEKLY
                else self.policy.monthly_window_days
            )
            standings = await self.store.forecasts.aggregate_standings(
                resolved_since=self._now() - timedelta(days=days)
            )
            qualifying = [standing for standing in standings if standing.points > 0]
        elif category.is_event_type:
            standings = await self.store.forecasts.aggregate_standings(event_type=category.value)
            qualifying = [
                standing
                for standing in standings
                if standing.total_predictions >= self.policy.category_min_resolved
            ]
        else:
            raise ValidationError(f"{category.value} is not a computed category")
        return rank_standings(qualifying)

    async def get_user_rankings(self, user_id: Any) -> UserRankings:
        """
        A user's standing in ``overall`` and in every event type category.

        Categories the user does not qualify for map to None.
        """
        user_oid = as_object_id(user_id, "user id")
        with translate_store_errors("get_user_rankings"):
            user = await self.store.users.get_by_id(user_oid)
            if user is None:
                raise UserNotFoundError(f"User {user_id} not found")

            rankings: dict[str, Any] = {}
            row = await self.store.leaderboard.get_overall_entry(user_oid)
            rankings[LeaderboardCategory.OVERALL.value] = (
                CategoryRank(
                    rank=row.rank,
                    points=row.points,
                    total_predictions=row.total_predictions,
                    accuracy_percentage=row.accuracy_percentage,
                )
                if row is not None and row.rank > 0
                else None
            )

            for category in EVENT_TYPE_CATEGORIES:
                ranked = await self.ranked_standings(category)
                rankings[category.value] = next(
                    (
                        to_category_rank(rank, standing)
                        for rank, standing in ranked
                        if standing.user_id == user_oid
                    ),
                    None,
                )

        return UserRankings(
            user_id=user.id,
            username=user.username,
            tier=tier_for(user.total_points, self.policy.tiers),
            rankings=rankings,
        )

    async def get_stats(self) -> LeaderboardStats:
        """Population and tier summary of ``overall``, cached separately from pages."""
        cached = await self.cache.get(LEADERBOARD_STATS_KEY)
        if cached is not None:
            try:
                return LeaderboardStats.model_validate(cached)
            except PydanticValidationError:
                logger.warning("Discarding malformed cached stats")

        ascending = sorted(self.policy.tiers)
        with translate_store_errors("get_leaderboard_stats"):
            summary = await self.store.leaderboard.overall_summary(
                [floor for floor, _ in ascending]
            )

        tiers = []
        for index, (floor, name) in enumerate(ascending):
            ceiling = ascending[index + 1][0] - 1 if index + 1 < len(ascending) else None
            tiers.append(
                TierCount(
                    name=name,
                    min_points=floor,
                    max_points=ceiling,
                    users=summary["tier_counts"].get(floor, 0),
                )
            )

        stats = LeaderboardStats(
            total_users=summary["total_users"],
            active_predictors=summary["active_predictors"],
            avg_points=summary["avg_points"],
            max_points=summary["max_points"],
            tiers=list(reversed(tiers)),
        )
        await self.cache.set(
            LEADERBOARD_STATS_KEY,
            stats.model_dump(mode="json"),
            self.cache_settings.stats_ttl_seconds,
        )
        return stats

    # =========================================================================
    # Writes
    # =========================================================================

    async def sync_overall_entry(self, user: User, *, session: Session = None) -> int:
        """Mirror the user into ``overall`` and re-rank it, inside the caller's transaction."""
        await self.store.leaderboard.upsert_overall(user, session=session)
        return await self._refresh_overall(session=session)

    async def _refresh_overall(self, *, session: Session = None) -> int:
        standings = await self.store.leaderboard.list_for_ranking(session=session)
        changed = {
            standing.user_id: rank
            for rank, standing in rank_standings(standings)
            if standing.current_rank != rank
        }
        if changed:
            await self.store.leaderboard.write_ranks(changed, session=session)
        return len(changed)

    async def refresh(self, category: Any = LeaderboardCategory.OVERALL) -> int:
        """
        Recompute a category.

        ``overall`` ranks are rewritten in their own transaction; for
        computed categories the cached pages are dropped so the next read
        re-ranks them.

        Returns:
            Ranks rewritten (overall) or users ranked (computed categories)
        """
        category = parse_category(category)
        with translate_store_errors("refresh_leaderboard"):
            if category == LeaderboardCategory.OVERALL:
                count = await self.store.run_in_transaction(
                    lambda session: self._refresh_overall(session=session)
                )
            else:
                count = len(await self.ranked_standings(category))

        await self.invalidate_pages([category.value])
        logger.info("Leaderboard refreshed", category=category.value, count=count)
        return count

    async def invalidate_pages(self, categories: list[str]) -> None:
        keys = leaderboard_invalidation_keys(
            categories,
            self.cache_settings.invalidation_pages,
            self.cache_settings.invalidation_page_sizes,
        )
        await self.cache.delete_many(keys)

    async def invalidate_stats(self) -> None:
        await self.cache.delete(LEADERBOARD_STATS_KEY)
