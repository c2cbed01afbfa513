"""
Initial migration: Create all indexes for collections.

Migration version: 001
Description: Sets up indexes for users, forecasts, leaderboard and the
cache collection.
"""

from datetime import datetime, timezone
from typing import Any

import structlog
from pymongo.errors import PyMongoError

from forecast_scoring.db.indexes import drop_all_indexes, get_index_definitions

logger = structlog.get_logger(__name__)

# Migration metadata
VERSION = 1
DESCRIPTION = "Create initial indexes for all collections"
MIGRATIONS_COLLECTION = "_migrations"


async def upgrade(db: Any, cache_collection: str = "cache_entries") -> dict[str, list[str]]:
    """
    Apply migration: Create all indexes.

    Args:
        db: Motor database instance
        cache_collection: Collection used by the mongo cache backend

    Returns:
        Dictionary mapping collection names to created index names
    """
    results: dict[str, list[str]] = {}

    for collection_name, indexes in get_index_definitions(cache_collection).items():
        try:
            results[collection_name] = await db[collection_name].create_indexes(indexes)
        except PyMongoError as e:
            logger.warning(
                "Could not create indexes", collection=collection_name, error=str(e)
            )
            results[collection_name] = []

    await db[MIGRATIONS_COLLECTION].update_one(
        {"version": VERSION},
        {
            "$set": {
                "description": DESCRIPTION,
                "applied_at": datetime.now(timezone.utc),
                "status": "applied",
            }
        },
        upsert=True,
    )
    logger.info("Migration applied", version=VERSION)

    return results


async def downgrade(db: Any, cache_collection: str = "cache_entries") -> dict[str, bool]:
    """
    Revert migration: drop the indexes it created and forget the record.

    Returns:
        Dictionary mapping collection names to success status
    """
    results = await drop_all_indexes(db, cache_collection)
    await db[MIGRATIONS_COLLECTION].delete_one({"version": VERSION})
    logger.info("Migration reverted", version=VERSION)

    return results


async def is_applied(db: Any) -> bool:
    """Check if this migration has been applied."""
    record = await db[MIGRATIONS_COLLECTION].find_one({"version": VERSION})
    return record is not None


# For CLI usage
if __name__ == "__main__":
    import asyncio

    from forecast_scoring.config.logging import configure_logging
    from forecast_scoring.config.settings import get_settings
    from forecast_scoring.db.connection import close_database, get_database

    async def main():
        configure_logging()
        db = await get_database()
        try:
            if await is_applied(db):
                logger.info("Migration already applied", version=VERSION)
            else:
                logger.info("Applying migration", version=VERSION, description=DESCRIPTION)
                await upgrade(db, get_settings().cache.collection_name)
        finally:
            await close_database()

    asyncio.run(main())
