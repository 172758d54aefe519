"""MongoDB adapter (pymongo async API)."""

from __future__ import annotations

from typing import Any

from pymongo import (
    AsyncMongoClient,
    DeleteMany,
    DeleteOne,
    InsertOne,
    ReplaceOne,
    UpdateMany,
    UpdateOne,
)
from pymongo.errors import ConnectionFailure, PyMongoError

from docspine.core.errors import DatabaseConnectionError, QueryError, WriteError
from docspine.core.logging import get_logger
from docspine.core.protocols import SortSpec

from .base import DocumentStore
from .types import Document, StoreConfig, StoreType, WriteKind, WriteOperation

logger = get_logger(__name__)


def _sort_pairs(sort: SortSpec | None) -> list[tuple[str, int]] | None:
    return list(sort.items()) if sort else None


def to_request(operation: WriteOperation) -> Any:
    """Translate a ``WriteOperation`` into a pymongo bulk request."""
    p = operation.params
    match operation.kind:
        case WriteKind.INSERT_ONE:
            return InsertOne(p["document"])
        case WriteKind.REPLACE_ONE:
            return ReplaceOne(p["filter"], p["replacement"], upsert=p.get("upsert", False))
        case WriteKind.UPDATE_ONE:
            return UpdateOne(p["filter"], p["update"], upsert=p.get("upsert", False))
        case WriteKind.UPDATE_MANY:
            return UpdateMany(p["filter"], p["update"], upsert=p.get("upsert", False))
        case WriteKind.DELETE_ONE:
            return DeleteOne(p["filter"])
        case WriteKind.DELETE_MANY:
            return DeleteMany(p["filter"])


class MongoCursor:
    """Wraps a pymongo ``AsyncCursor`` so driver errors surface as ``QueryError``."""

    def __init__(self, cursor: Any, collection: str):
        self._cursor = cursor
        self._collection = collection

    def __aiter__(self) -> MongoCursor:
        return self

    async def __anext__(self) -> Document:
        try:
            return await self._cursor.next()
        except StopAsyncIteration:
            raise
        except PyMongoError as e:
            raise QueryError(
                f"Cursor fetch failed on {self._collection}: {e}", cause=e
            ).with_context(collection=self._collection, operation="find") from e

    async def close(self) -> None:
        await self._cursor.close()


class MongoCollection:
    """``DocumentCollection`` backed by a pymongo ``AsyncCollection``."""

    def __init__(self, collection: Any):
        self._coll = collection

    @property
    def name(self) -> str:
        return self._coll.name

    def find(
        self,
        filter: Document,
        *,
        projection: dict[str, Any] | None = None,
        sort: SortSpec | None = None,
    ) -> MongoCursor:
        try:
            cursor = self._coll.find(filter, projection=projection)
            if sort:
                cursor = cursor.sort(_sort_pairs(sort))
        except PyMongoError as e:
            raise QueryError(f"Invalid query on {self.name}: {e}", cause=e).with_context(
                collection=self.name, operation="find"
            ) from e
        return MongoCursor(cursor, self.name)

    async def find_one(
        self,
        filter: Document,
        *,
        projection: dict[str, Any] | None = None,
        sort: SortSpec | None = None,
    ) -> Document | None:
        try:
            return await self._coll.find_one(filter, projection=projection, sort=_sort_pairs(sort))
        except PyMongoError as e:
            raise QueryError(f"find_one failed on {self.name}: {e}", cause=e).with_context(
                collection=self.name, operation="find_one"
            ) from e

    async def insert_many(self, documents: list[Document]) -> int:
        try:
            result = await self._coll.insert_many(documents)
        except PyMongoError as e:
            raise WriteError(
                f"insert_many failed on {self.name}: {e}", pending=len(documents), cause=e
            ).with_context(collection=self.name, operation="insert_many") from e
        return len(result.inserted_ids)

    async def bulk_write(self, operations: list[WriteOperation]) -> int:
        requests = [to_request(op) for op in operations]
        try:
            result = await self._coll.bulk_write(requests, ordered=True)
        except PyMongoError as e:
            raise WriteError(
                f"bulk_write failed on {self.name}: {e}", pending=len(operations), cause=e
            ).with_context(collection=self.name, operation="bulk_write") from e
        return (
            result.inserted_count
            + result.modified_count
            + result.deleted_count
            + result.upserted_count
        )

    async def delete_many(self, filter: Document) -> int:
        try:
            result = await self._coll.delete_many(filter)
        except PyMongoError as e:
            raise WriteError(f"delete_many failed on {self.name}: {e}", cause=e).with_context(
                collection=self.name, operation="delete_many"
            ) from e
        return result.deleted_count


class MongoDocumentStore(DocumentStore):
    """
    MongoDB document store adapter.

    The client is created on ``connect()`` and owned by this instance;
    two stores pointing at the same URL hold two independent clients.
    """

    def __init__(
        self,
        url: str = "mongodb://localhost",
        database: str = "test",
        *,
        connect_timeout_ms: int = 10_000,
        **kwargs: Any,
    ):
        config = StoreConfig(
            store_type=StoreType.MONGODB,
            url=url,
            database=database,
            connect_timeout_ms=connect_timeout_ms,
            options=kwargs,
        )
        super().__init__(config)
        self._client: Any = None

    async def connect(self) -> None:
        """Connect to MongoDB and verify the server answers."""
        if self._connected:
            return
        try:
            self._client = AsyncMongoClient(
                self._config.url,
                serverSelectionTimeoutMS=self._config.connect_timeout_ms,
                **self._config.options,
            )
            await self._client.admin.command("ping")
        except (ConnectionFailure, PyMongoError) as e:
            raise DatabaseConnectionError(
                f"Failed to connect to MongoDB: {e}",
                cause=e,
            ) from e
        self._connected = True
        logger.debug("store_connected", store="mongodb", database=self.database)

    async def disconnect(self) -> None:
        """Close the MongoDB client."""
        if self._client is not None:
            await self._client.close()
            self._client = None
            self._connected = False

    def _open_collection(self, name: str) -> MongoCollection:
        if self._client is None:
            raise DatabaseConnectionError("MongoDB store is not connected")
        return MongoCollection(self._client[self.database][name])


__all__ = [
    "MongoCursor",
    "MongoCollection",
    "MongoDocumentStore",
    "to_request",
]
