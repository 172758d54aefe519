"""Batched iteration over one collection query."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable, Mapping
from typing import Any

from docspine.core.protocols import DocumentCollection

from .specs import DEFAULT_BATCH_SIZE, QuerySpec

Document = dict[str, Any]


class BatchCursor:
    """
    Turns a query against one collection into lists of at most ``size`` documents.

    Every call to :meth:`chunks` opens a fresh underlying cursor; the cursor
    is closed when iteration finishes, fails, or is abandoned (``aclose()``
    on the generator, or garbage collection of an un-finished one).

    Example:
        async for batch in BatchCursor(store.collection("orders")).chunks({"status": "new"}):
            ...
    """

    def __init__(self, collection: DocumentCollection):
        self.collection = collection

    def chunks(
        self,
        query: Mapping[str, Any] | None = None,
        sort: Mapping[str, int] | None = None,
        *,
        fields: Iterable[str] = (),
        size: int = DEFAULT_BATCH_SIZE,
    ) -> AsyncIterator[list[Document]]:
        """Yield batches for ``query`` ordered by ``sort`` (default ``_id`` ascending)."""
        spec = QuerySpec(filter=dict(query or {}), sort=sort, fields=tuple(fields), size=size)
        return self.iter_spec(spec)

    async def iter_spec(self, spec: QuerySpec) -> AsyncIterator[list[Document]]:
        """Yield batches for a prepared ``QuerySpec``."""
        cursor = self.collection.find(
            dict(spec.filter),
            projection=spec.projection,
            sort=dict(spec.effective_sort),
        )
        batch: list[Document] = []
        try:
            async for document in cursor:
                batch.append(document)
                if len(batch) >= spec.size:
                    yield batch
                    batch = []
            if batch:
                yield batch
        finally:
            await cursor.close()


__all__ = ["BatchCursor"]
