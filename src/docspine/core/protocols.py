"""
Canonical protocol definitions for docspine.

The pipeline (BatchCursor, Joiner, BulkBuffer, ChainRunner) depends only on
the two structural protocols below, never on a driver. Adapters in
``docspine.core.adapters`` provide implementations.

Architecture:
    ::

        protocols.py
        ├── DocumentCursor      — lazy async iterator over query results
        └── DocumentCollection  — find / find_one / insert_many /
                                  bulk_write / delete_many on one collection

        Implementations:
        ┌────────────────────────────────────────────────────────┐
        │ MongoCollection     → pymongo AsyncCollection          │
        │ InMemoryCollection  → dict-backed store for tests      │
        └────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Reach into a driver object from pipeline code
    ✅ DO: Add the operation to DocumentCollection and every adapter

Tags:
    protocol, cursor, collection, async, docspine, contracts
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from docspine.core.adapters.types import Document, WriteOperation

SortSpec = dict[str, int]


@runtime_checkable
class DocumentCursor(Protocol):
    """
    Lazy, single-pass sequence of documents from one query.

    ``close()`` releases server-side resources and may be called more than
    once, including after exhaustion.
    """

    def __aiter__(self) -> AsyncIterator[Document]: ...

    async def __anext__(self) -> Document: ...

    async def close(self) -> None: ...


@runtime_checkable
class DocumentCollection(Protocol):
    """Narrow per-collection interface consumed by the pipeline."""

    @property
    def name(self) -> str: ...

    def find(
        self,
        filter: Document,
        *,
        projection: dict[str, Any] | None = None,
        sort: SortSpec | None = None,
    ) -> DocumentCursor:
        """Start a query. Not awaited; documents are fetched on iteration."""
        ...

    async def find_one(
        self,
        filter: Document,
        *,
        projection: dict[str, Any] | None = None,
        sort: SortSpec | None = None,
    ) -> Document | None: ...

    async def insert_many(self, documents: list[Document]) -> int:
        """Insert documents, returning the number inserted."""
        ...

    async def bulk_write(self, operations: list[WriteOperation]) -> int:
        """Apply operations in order, returning the number of documents affected."""
        ...

    async def delete_many(self, filter: Document) -> int:
        """Delete matching documents, returning the number deleted."""
        ...


__all__ = ["SortSpec", "DocumentCursor", "DocumentCollection"]
