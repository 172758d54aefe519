"""
Buffered batch writes.

A ``BulkBuffer`` collects write operations of one kind for one collection
and sends them as a single batched write when ``threshold`` operations are
pending, or when the caller flushes/closes it at the end of input.

Manifesto:
    - **Bounded round trips:** one store call per ``threshold`` operations
    - **Explicit end of input:** ``close()`` sends the final partial batch
    - **Preserve on failure:** a failed flush keeps every pending operation,
      so calling ``flush()`` again re-sends the same batch
    - **No retries:** retrying is the caller's decision

Architecture:
    ::

        kind        pending item            flushed with
        ─────────   ─────────────────────   ───────────────────────────────
        insert      document                insert_many(documents)
        save        replace_one by _id      bulk_write(operations)
        update      update_one(filter, u)   bulk_write(operations)
        operation   any WriteOperation      bulk_write(operations)
        delete      _id of document         delete_many({_id: {$in: ids}})

Examples:
    >>> async with BulkBuffer(store.collection("events"), BulkKind.INSERT) as buffer:
    ...     for event in events:
    ...         await buffer.add(event)
    ... # remaining events flushed on exit

Tags:
    docspine, bulk-write, buffering, batching
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from docspine.core.adapters.types import Document, WriteKind, WriteOperation
from docspine.core.errors import ConfigError, DataShapeError
from docspine.core.logging import get_logger
from docspine.core.protocols import DocumentCollection

logger = get_logger(__name__)

DEFAULT_BULK_THRESHOLD = 1000


class BulkKind(str, Enum):
    """Kinds of buffered write."""

    INSERT = "insert"
    SAVE = "save"
    UPDATE = "update"
    DELETE = "delete"
    OPERATION = "operation"


def _require_id(document: Document, kind: BulkKind) -> Any:
    if not isinstance(document, dict) or "_id" not in document:
        raise DataShapeError(f"Cannot {kind.value} a document without _id", field="_id")
    return document["_id"]


class BulkBuffer:
    """
    Accumulates homogeneous write operations for one collection.

    Items accepted by :meth:`add` depend on ``kind``:

    - ``INSERT``: a document
    - ``SAVE``: a document with ``_id`` (replaces the stored one)
    - ``UPDATE``: a ``(filter, update)`` pair
    - ``DELETE``: a document with ``_id``
    - ``OPERATION``: a ``WriteOperation`` or a ``(kind, params)`` pair

    Not safe for concurrent use from several tasks.
    """

    def __init__(
        self,
        collection: DocumentCollection,
        kind: BulkKind | str,
        *,
        threshold: int = DEFAULT_BULK_THRESHOLD,
    ):
        if threshold < 1:
            raise ConfigError(f"Bulk threshold must be >= 1, got {threshold}")
        try:
            self.kind = BulkKind(kind)
        except ValueError as e:
            raise ConfigError(f"Unknown bulk kind: {kind!r}", cause=e) from e
        self.collection = collection
        self.threshold = threshold
        self._pending: list[Any] = []
        self.flush_count = 0
        self.written = 0

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def pending(self) -> list[Any]:
        """Copy of the operations waiting to be flushed."""
        return list(self._pending)

    def _describe(self, item: Any) -> Any:
        match self.kind:
            case BulkKind.INSERT:
                if not isinstance(item, dict):
                    raise DataShapeError(f"insert expects a document, got {type(item).__name__}")
                return item
            case BulkKind.SAVE:
                _require_id(item, self.kind)
                return WriteOperation.replace_one(item)
            case BulkKind.UPDATE:
                try:
                    filter, update = item
                except (TypeError, ValueError) as e:
                    raise DataShapeError("update expects a (filter, update) pair", cause=e) from e
                return WriteOperation.update_one(filter, update)
            case BulkKind.DELETE:
                return _require_id(item, self.kind)
            case BulkKind.OPERATION:
                if isinstance(item, WriteOperation):
                    return item
                try:
                    kind, params = item
                except (TypeError, ValueError) as e:
                    raise DataShapeError("operation expects a (kind, params) pair", cause=e) from e
                return WriteOperation(kind, dict(params))

    async def add(self, item: Any) -> int:
        """
        Buffer one item; flush when the threshold is reached.

        Returns:
            Number of operations flushed by this call (0 if none).

        Raises:
            DataShapeError: If the item lacks a required field.
            WriteError: If the triggered flush fails; nothing is dropped.
        """
        self._pending.append(self._describe(item))
        if len(self._pending) >= self.threshold:
            return await self.flush()
        return 0

    async def flush(self) -> int:
        """Send every pending operation in one batched write."""
        if not self._pending:
            return 0

        batch = list(self._pending)
        try:
            await self._write(batch)
        except Exception as e:
            logger.warning(
                "bulk_flush_failed",
                collection=self.collection.name,
                kind=self.kind.value,
                pending=len(batch),
                error=str(e),
            )
            raise

        del self._pending[: len(batch)]
        self.flush_count += 1
        self.written += len(batch)
        logger.debug("bulk_flush", collection=self.collection.name, kind=self.kind.value, size=len(batch))
        return len(batch)

    async def close(self) -> int:
        """Flush the final, possibly partial, batch."""
        return await self.flush()

    async def buffer(self, item: Any = None) -> int:
        """``add(item)``, or ``close()`` when called with ``None`` (end of input)."""
        if item is None:
            return await self.close()
        return await self.add(item)

    async def _write(self, batch: list[Any]) -> None:
        match self.kind:
            case BulkKind.INSERT:
                await self.collection.insert_many(batch)
            case BulkKind.DELETE:
                await self.collection.delete_many({"_id": {"$in": batch}})
            case BulkKind.OPERATION:
                logger.info("bulk_write_flushed", collection=self.collection.name, size=len(batch))
                await self.collection.bulk_write(batch)
            case _:
                await self.collection.bulk_write(batch)

    async def __aenter__(self) -> BulkBuffer:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            await self.close()


class BulkWriter:
    """
    Per-collection facade over one ``BulkBuffer`` per kind.

    Buffers are created on first use; ``close()`` flushes each of them in
    the order they were created and forgets them.

    Example:
        writer = BulkWriter(store.collection("orders"))
        for order in orders:
            await writer.update({"_id": order["_id"]}, {"$set": {"seen": True}})
        await writer.close()
    """

    def __init__(self, collection: DocumentCollection, *, threshold: int = DEFAULT_BULK_THRESHOLD):
        if threshold < 1:
            raise ConfigError(f"Bulk threshold must be >= 1, got {threshold}")
        self.collection = collection
        self.threshold = threshold
        self._buffers: dict[BulkKind, BulkBuffer] = {}

    def buffer_for(self, kind: BulkKind) -> BulkBuffer:
        if kind not in self._buffers:
            self._buffers[kind] = BulkBuffer(self.collection, kind, threshold=self.threshold)
        return self._buffers[kind]

    @property
    def pending(self) -> dict[str, int]:
        """Pending operation count per kind."""
        return {kind.value: len(buffer) for kind, buffer in self._buffers.items()}

    async def insert(self, document: Document) -> int:
        return await self.buffer_for(BulkKind.INSERT).add(document)

    async def save(self, document: Document) -> int:
        return await self.buffer_for(BulkKind.SAVE).add(document)

    async def update(self, filter: Document, update: Document) -> int:
        return await self.buffer_for(BulkKind.UPDATE).add((filter, update))

    async def delete(self, document: Document) -> int:
        return await self.buffer_for(BulkKind.DELETE).add(document)

    async def operation(self, kind: WriteKind | str, params: dict[str, Any]) -> int:
        return await self.buffer_for(BulkKind.OPERATION).add((kind, params))

    async def close(self) -> int:
        """Flush every buffer; a failing buffer stops the close and keeps its operations."""
        flushed = 0
        for kind in list(self._buffers):
            flushed += await self._buffers[kind].close()
            del self._buffers[kind]
        return flushed

    async def __aenter__(self) -> BulkWriter:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            await self.close()


__all__ = [
    "BulkKind",
    "BulkBuffer",
    "BulkWriter",
    "DEFAULT_BULK_THRESHOLD",
]
