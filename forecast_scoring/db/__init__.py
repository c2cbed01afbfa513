"""
Database connection and management module.

Provides async MongoDB connectivity through the Motor driver.
"""

from forecast_scoring.db.connection import (
    DatabaseConnection,
    close_database,
    get_connection,
    get_database,
)
from forecast_scoring.db.indexes import ensure_indexes
from forecast_scoring.db.store import MongoStore

__all__ = [
    "DatabaseConnection",
    "MongoStore",
    "close_database",
    "ensure_indexes",
    "get_connection",
    "get_database",
]
