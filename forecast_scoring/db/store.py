"""
Transactional store.

Bundles the repositories that share one database and runs callbacks inside
MongoDB multi-document transactions.
"""

from typing import Awaitable, Callable, TypeVar

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorClientSession,
    AsyncIOMotorDatabase,
)
from pymongo import ReadPreference
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

from forecast_scoring.db.connection import DatabaseConnection
from forecast_scoring.repositories.forecast_repository import ForecastRepository
from forecast_scoring.repositories.leaderboard_repository import LeaderboardRepository
from forecast_scoring.repositories.user_repository import UserRepository

T = TypeVar("T")


class MongoStore:
    """
    Repositories plus a transaction runner.

    Usage:
        store = MongoStore(client, client["forecast_scoring"])
        result = await store.run_in_transaction(callback)

    ``callback`` receives the session and must pass it to every repository
    call that belongs to the transaction.
    """

    def __init__(
        self,
        client: AsyncIOMotorClient,
        database: AsyncIOMotorDatabase,
        *,
        max_commit_time_ms: int | None = None,
    ) -> None:
        self.client = client
        self.database = database
        self.max_commit_time_ms = max_commit_time_ms
        self.users = UserRepository(database)
        self.forecasts = ForecastRepository(database)
        self.leaderboard = LeaderboardRepository(database)

    @classmethod
    def from_connection(cls, connection: DatabaseConnection) -> "MongoStore":
        return cls(
            connection.client,
            connection.database,
            max_commit_time_ms=connection.settings.max_commit_time_ms,
        )

    async def run_in_transaction(
        self,
        callback: Callable[[AsyncIOMotorClientSession], Awaitable[T]],
    ) -> T:
        """
        Run ``callback`` in a snapshot/majority transaction.

        The driver retries the whole callback on transient transaction
        errors and the commit on unknown commit results. Any exception
        raised by the callback aborts the transaction and propagates.
        """
        async with await self.client.start_session() as session:
            return await session.with_transaction(
                callback,
                read_concern=ReadConcern("snapshot"),
                write_concern=WriteConcern("majority"),
                read_preference=ReadPreference.PRIMARY,
                max_commit_time_ms=self.max_commit_time_ms,
            )
