"""
Motor client lifecycle.

The resolution transaction needs a replica set (or mongos); connecting to a
standalone server works for reads but every resolution will fail, so
``connect`` warns about it and ``health_check`` reports it.
"""

import asyncio
from typing import Any

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from forecast_scoring.config.settings import MongoSettings, get_settings

logger = structlog.get_logger(__name__)


def supports_transactions(hello: dict[str, Any]) -> bool:
    """Replica set members and mongos routers accept multi-document transactions."""
    return "setName" in hello or hello.get("msg") == "isdbgrid"


class DatabaseConnection:
    """
    One Motor client plus the configured database.

        connection = DatabaseConnection()
        await connection.connect()
        store = MongoStore.from_connection(connection)
    """

    def __init__(self, mongo_settings: MongoSettings | None = None) -> None:
        self.settings = mongo_settings or get_settings().mongo
        self._client: AsyncIOMotorClient | None = None
        self._lock = asyncio.Lock()

    @property
    def client(self) -> AsyncIOMotorClient:
        if self._client is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._client

    @property
    def database(self) -> AsyncIOMotorDatabase:
        return self.client[self.settings.db_name]

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def _create_client(self) -> AsyncIOMotorClient:
        s = self.settings
        # tz_aware so resolved_at and window bounds compare as aware datetimes
        return AsyncIOMotorClient(
            s.uri,
            tz_aware=True,
            minPoolSize=s.min_pool_size,
            maxPoolSize=s.max_pool_size,
            maxIdleTimeMS=s.max_idle_time_ms,
            connectTimeoutMS=s.connect_timeout_ms,
            serverSelectionTimeoutMS=s.server_selection_timeout_ms,
            socketTimeoutMS=s.socket_timeout_ms,
        )

    async def connect(self) -> None:
        """Create the client and verify the server answers; idempotent."""
        async with self._lock:
            if self._client is not None:
                return

            log = logger.bind(
                host=self.settings.host,
                port=self.settings.port,
                database=self.settings.db_name,
            )
            log.info("Connecting to MongoDB", replica_set=self.settings.replica_set)
            client = self._create_client()
            try:
                hello = await client.admin.command("hello")
            except PyMongoError as e:
                log.error("Failed to connect to MongoDB", error=str(e))
                client.close()
                raise

            if not supports_transactions(hello):
                log.warning("MongoDB server does not support transactions; resolutions will fail")
            self._client = client
            log.info("Connected to MongoDB")

    async def disconnect(self) -> None:
        async with self._lock:
            if self._client is None:
                return
            self._client.close()
            self._client = None
            logger.info("Disconnected from MongoDB")

    async def health_check(self) -> dict[str, Any]:
        """
        Ping the server.

        Returns a dict with ``healthy`` and, when reachable, ``latency_ms``,
        ``server_version``, ``replica_set`` and ``transactions``; otherwise
        ``error``.
        """
        if self._client is None:
            return {"status": "disconnected", "healthy": False, "error": "No active connection"}

        loop = asyncio.get_running_loop()
        try:
            start = loop.time()
            hello = await self._client.admin.command("hello")
            latency_ms = (loop.time() - start) * 1000
            build = await self._client.admin.command("buildInfo")
        except PyMongoError as e:
            logger.error("Health check failed", error=str(e))
            return {"status": "error", "healthy": False, "error": str(e)}

        return {
            "status": "connected",
            "healthy": True,
            "latency_ms": round(latency_ms, 2),
            "server_version": build.get("version", "unknown"),
            "replica_set": hello.get("setName"),
            "transactions": supports_transactions(hello),
        }

    async def __aenter__(self) -> AsyncIOMotorDatabase:
        await self.connect()
        return self.database

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()


# Process-wide connection shared by the CLI commands and migrations
_db_connection: DatabaseConnection | None = None


async def get_connection() -> DatabaseConnection:
    global _db_connection
    if _db_connection is None:
        _db_connection = DatabaseConnection()
    await _db_connection.connect()
    return _db_connection


async def get_database() -> AsyncIOMotorDatabase:
    return (await get_connection()).database


async def close_database() -> None:
    """Close the shared connection; safe to call when never opened."""
    global _db_connection
    if _db_connection is not None:
        await _db_connection.disconnect()
        _db_connection = None
