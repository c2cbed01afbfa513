"""
MongoDB index definitions for all collections.

Indexes are applied by ``db init`` or by migration 001.
"""

from dataclasses import dataclass
from typing import Any

import structlog
from pymongo import ASCENDING, DESCENDING, IndexModel
from pymongo.errors import OperationFailure

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class IndexDefinition:
    """Index definition for a collection."""

    collection: str
    indexes: tuple[IndexModel, ...]


# =============================================================================
# Users Collection Indexes
# =============================================================================

USERS_INDEXES = IndexDefinition(
    collection="users",
    indexes=(
        IndexModel(
            [("username", ASCENDING)],
            unique=True,
            name="idx_users_username_unique",
        ),
        IndexModel(
            [("email", ASCENDING)],
            unique=True,
            name="idx_users_email_unique",
        ),
    ),
)

# =============================================================================
# Forecasts Collection Indexes
# =============================================================================

FORECASTS_INDEXES = IndexDefinition(
    collection="forecasts",
    indexes=(
        # Expiry sweep: unresolved forecasts past their expiry
        IndexModel(
            [("is_resolved", ASCENDING), ("expires_at", ASCENDING)],
            name="idx_forecasts_resolved_expires",
        ),
        # A user's forecast history
        IndexModel(
            [("user_id", ASCENDING), ("created_at", DESCENDING)],
            name="idx_forecasts_user_history",
        ),
        # Duplicate open-title check
        IndexModel(
            [("user_id", ASCENDING), ("event_title", ASCENDING), ("is_resolved", ASCENDING)],
            name="idx_forecasts_user_title_open",
        ),
        # Event type leaderboards
        IndexModel(
            [("event_type", ASCENDING), ("is_resolved", ASCENDING)],
            name="idx_forecasts_event_resolved",
        ),
        # Weekly and monthly windows
        IndexModel(
            [("is_resolved", ASCENDING), ("resolved_at", DESCENDING)],
            name="idx_forecasts_resolved_at",
        ),
    ),
)

# =============================================================================
# Leaderboard Collection Indexes
# =============================================================================

LEADERBOARD_INDEXES = IndexDefinition(
    collection="leaderboard",
    indexes=(
        IndexModel(
            [("user_id", ASCENDING), ("category", ASCENDING)],
            unique=True,
            name="idx_leaderboard_user_category_unique",
        ),
        IndexModel(
            [("category", ASCENDING), ("rank", ASCENDING)],
            name="idx_leaderboard_category_rank",
        ),
    ),
)


def cache_indexes(collection: str = "cache_entries") -> IndexDefinition:
    """TTL index for the mongo cache backend."""
    return IndexDefinition(
        collection=collection,
        indexes=(
            IndexModel(
                [("expires_at", ASCENDING)],
                name="idx_cache_entries_ttl",
                expireAfterSeconds=0,
            ),
        ),
    )


# =============================================================================
# All Index Definitions
# =============================================================================

ALL_INDEXES: tuple[IndexDefinition, ...] = (
    USERS_INDEXES,
    FORECASTS_INDEXES,
    LEADERBOARD_INDEXES,
    cache_indexes(),
)


def get_index_definitions(cache_collection: str = "cache_entries") -> dict[str, list[IndexModel]]:
    """
    Get all index definitions as a dictionary.

    Returns:
        Dictionary mapping collection names to their index models.
    """
    definitions = ALL_INDEXES[:-1] + (cache_indexes(cache_collection),)
    return {definition.collection: list(definition.indexes) for definition in definitions}


async def ensure_indexes(db: Any, cache_collection: str = "cache_entries") -> dict[str, list[str]]:
    """
    Create all indexes in the database.

    Args:
        db: Motor database instance.
        cache_collection: Collection used by the mongo cache backend.

    Returns:
        Dictionary mapping collection names to created index names.
    """
    results: dict[str, list[str]] = {}

    for collection_name, indexes in get_index_definitions(cache_collection).items():
        created_indexes = await db[collection_name].create_indexes(indexes)
        results[collection_name] = created_indexes
        logger.info("Indexes ensured", collection=collection_name, indexes=created_indexes)

    return results


async def drop_all_indexes(db: Any, cache_collection: str = "cache_entries") -> dict[str, bool]:
    """
    Drop the indexes defined here, keeping the default _id index.

    Returns:
        Dictionary mapping collection names to success status.
    """
    results: dict[str, bool] = {}

    for collection_name, indexes in get_index_definitions(cache_collection).items():
        collection = db[collection_name]
        results[collection_name] = True
        for index in indexes:
            try:
                await collection.drop_index(index.document["name"])
            except OperationFailure as e:
                # IndexNotFound and NamespaceNotFound leave nothing to drop
                if e.code not in (26, 27):
                    logger.warning(
                        "Could not drop index",
                        collection=collection_name,
                        index=index.document["name"],
                        error=str(e),
                    )
                    results[collection_name] = False

    return results
