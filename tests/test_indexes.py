"""Tests for index setup and the initial migration."""

import importlib
from collections import defaultdict

from pymongo.errors import OperationFailure

from forecast_scoring.db.indexes import drop_all_indexes, ensure_indexes, get_index_definitions

initial_migration = importlib.import_module("migrations.versions.001_initial")


class RecordingCollection:
    """Collection stand-in that records index and record operations."""

    def __init__(self, drop_error_code: int | None = None) -> None:
        self.drop_error_code = drop_error_code
        self.created: list[str] = []
        self.dropped: list[str] = []
        self.deleted: list[dict] = []

    async def create_indexes(self, indexes):
        names = [index.document["name"] for index in indexes]
        self.created.extend(names)
        return names

    async def drop_index(self, name):
        if self.drop_error_code is not None:
            raise OperationFailure("cannot drop", code=self.drop_error_code)
        self.dropped.append(name)

    async def delete_one(self, filter):
        self.deleted.append(filter)


class RecordingDatabase(defaultdict):
    def __init__(self) -> None:
        super().__init__(RecordingCollection)


class TestIndexes:
    async def test_ensure_indexes_creates_every_definition(self):
        db = RecordingDatabase()

        results = await ensure_indexes(db, "page_cache")

        assert set(results) == set(get_index_definitions("page_cache"))
        assert "page_cache" in results
        assert db["users"].created == results["users"]

    async def test_drop_all_indexes(self):
        db = RecordingDatabase()

        results = await drop_all_indexes(db)

        assert all(results.values())
        expected = [index.document["name"] for index in get_index_definitions()["forecasts"]]
        assert db["forecasts"].dropped == expected

    async def test_missing_collection_counts_as_dropped(self):
        db = RecordingDatabase()
        db["leaderboard"] = RecordingCollection(drop_error_code=26)

        results = await drop_all_indexes(db)

        assert results["leaderboard"] is True

    async def test_other_drop_failures_are_reported(self):
        db = RecordingDatabase()
        db["users"] = RecordingCollection(drop_error_code=13)

        results = await drop_all_indexes(db)

        assert results["users"] is False
        assert results["forecasts"] is True


class TestInitialMigration:
    async def test_downgrade_drops_indexes_and_record(self):
        db = RecordingDatabase()

        results = await initial_migration.downgrade(db)

        assert all(results.values())
        assert db["users"].dropped
        assert db[initial_migration.MIGRATIONS_COLLECTION].deleted == [
            {"version": initial_migration.VERSION}
        ]
