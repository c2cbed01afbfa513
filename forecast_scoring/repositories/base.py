"""
Generic Motor repository.

Every method takes an optional ``session`` keyword so the same repository
works standalone and inside ``MongoStore.run_in_transaction``. Repositories
return models, ``None`` or booleans; driver errors propagate to the services.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from bson import ObjectId
from motor.motor_asyncio import (
    AsyncIOMotorClientSession,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo import ReturnDocument
from pymongo.operations import UpdateOne
from pymongo.results import BulkWriteResult

from forecast_scoring.models.base import MongoBaseModel, utc_now

ModelType = TypeVar("ModelType", bound=MongoBaseModel)

Session = AsyncIOMotorClientSession | None


def _stamped(update: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``update`` that also sets ``updated_at``."""
    stamped = dict(update)
    stamped["$set"] = {**update.get("$set", {}), "updated_at": utc_now()}
    return stamped


class BaseRepository(Generic[ModelType], ABC):
    """
    Collection-bound CRUD helpers.

        class UserRepository(BaseRepository[User]):
            collection_name = "users"
            model_class = User
    """

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._collection: AsyncIOMotorCollection = database[self.collection_name]

    @property
    @abstractmethod
    def collection_name(self) -> str: ...

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]: ...

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    async def insert(self, model: ModelType, *, session: Session = None) -> ModelType:
        await self._collection.insert_one(model.to_mongo(), session=session)
        return model

    async def get_by_id(self, id: ObjectId, *, session: Session = None) -> ModelType | None:
        document = await self._collection.find_one({"_id": id}, session=session)
        return self.model_class.from_mongo(document)

    async def find_one(
        self, filter: dict[str, Any], *, session: Session = None
    ) -> ModelType | None:
        document = await self._collection.find_one(filter, session=session)
        return self.model_class.from_mongo(document)

    async def find_many(
        self,
        filter: dict[str, Any] | None = None,
        *,
        skip: int = 0,
        limit: int = 100,
        sort: list[tuple[str, int]] | None = None,
        session: Session = None,
    ) -> list[ModelType]:
        """One page of matching documents; ``sort`` is a list of (field, direction)."""
        cursor = self._collection.find(filter or {}, session=session)
        if sort:
            cursor = cursor.sort(sort)
        documents = await cursor.skip(skip).limit(limit).to_list(length=limit)
        return self.model_class.from_mongo_list(documents)

    async def count(self, filter: dict[str, Any] | None = None, *, session: Session = None) -> int:
        return await self._collection.count_documents(filter or {}, session=session)

    async def find_one_and_update(
        self,
        filter: dict[str, Any],
        update: dict[str, Any],
        *,
        session: Session = None,
    ) -> ModelType | None:
        """
        Atomically update the first match and return it as updated.

        None means nothing matched the filter. Conditional writes (for
        example ``is_resolved: False``) rely on this to detect a lost race.
        """
        document = await self._collection.find_one_and_update(
            filter,
            _stamped(update),
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        return self.model_class.from_mongo(document)

    async def update_one(
        self,
        filter: dict[str, Any],
        update: dict[str, Any],
        *,
        upsert: bool = False,
        session: Session = None,
    ) -> bool:
        """True when a document was modified or upserted."""
        result = await self._collection.update_one(
            filter, _stamped(update), upsert=upsert, session=session
        )
        return result.modified_count > 0 or result.upserted_id is not None

    async def delete_one(self, filter: dict[str, Any], *, session: Session = None) -> bool:
        result = await self._collection.delete_one(filter, session=session)
        return result.deleted_count > 0

    async def aggregate(
        self, pipeline: list[dict[str, Any]], *, session: Session = None
    ) -> list[dict[str, Any]]:
        cursor = self._collection.aggregate(pipeline, session=session)
        return await cursor.to_list(length=None)

    async def bulk_write(
        self, operations: list[UpdateOne], *, session: Session = None
    ) -> BulkWriteResult | None:
        """Unordered bulk write; None when there was nothing to send."""
        if not operations:
            return None
        return await self._collection.bulk_write(operations, ordered=False, session=session)
