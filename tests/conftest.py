"""
Shared pytest fixtures for docspine tests.

This module provides:
- An in-memory document store per test
- ``RecordingStore`` / ``RecordingCollection`` wrappers that count the
  queries the pipeline sends, track cursor closes and inject failures
- A settings-cache reset so environment tweaks never leak between tests

Usage:
    @pytest.mark.asyncio
    async def test_something(recording_store):
        orders = recording_store.collection("orders")
        await orders.insert_many([{"_id": 1}])
        ...
        assert len(orders.finds) == 1
"""

from __future__ import annotations

from collections.abc import Generator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest
import structlog

from docspine.core.adapters import InMemoryDocumentStore
from docspine.core.adapters.base import DocumentStore
from docspine.core.adapters.types import StoreConfig, StoreType
from docspine.core.settings import reset_settings


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests without an explicit marker as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Recording wrappers
# =============================================================================


class RecordingCursor:
    """Cursor wrapper that counts fetched documents and can fail mid-stream."""

    def __init__(self, inner: Any, fail_after: int | None = None, error: Exception | None = None):
        self._inner = inner
        self._fail_after = fail_after
        self._error = error
        self.fetched = 0
        self.closed = False

    def __aiter__(self) -> RecordingCursor:
        return self

    async def __anext__(self) -> dict[str, Any]:
        if self._fail_after is not None and self.fetched >= self._fail_after:
            raise self._error
        document = await self._inner.__anext__()
        self.fetched += 1
        return document

    async def close(self) -> None:
        self.closed = True
        await self._inner.close()


class RecordingCollection:
    """
    ``DocumentCollection`` wrapper around an in-memory collection.

    Attributes:
        finds: ``(filter, projection, sort)`` of every ``find`` call
        cursors: every cursor handed out, in order
        writes: ``(method, payload)`` of every write call
    """

    def __init__(self, inner: Any):
        self._inner = inner
        self.finds: list[tuple[dict, dict | None, dict | None]] = []
        self.cursors: list[RecordingCursor] = []
        self.writes: list[tuple[str, Any]] = []
        self._failures: dict[str, Exception] = {}
        self._cursor_failure: tuple[int, Exception] | None = None

    @property
    def name(self) -> str:
        return self._inner.name

    @property
    def inner(self) -> Any:
        return self._inner

    def fail(self, method: str, error: Exception) -> None:
        """Make every later call to ``method`` raise ``error``."""
        self._failures[method] = error

    def fail_cursor_after(self, count: int, error: Exception) -> None:
        """Make cursors raise ``error`` after ``count`` documents."""
        self._cursor_failure = (count, error)

    def heal(self) -> None:
        self._failures.clear()
        self._cursor_failure = None

    def _check(self, method: str) -> None:
        if method in self._failures:
            raise self._failures[method]

    def find(self, filter, *, projection=None, sort=None) -> RecordingCursor:
        self._check("find")
        self.finds.append((dict(filter), projection, sort))
        fail_after, error = self._cursor_failure or (None, None)
        cursor = RecordingCursor(
            self._inner.find(filter, projection=projection, sort=sort),
            fail_after=fail_after,
            error=error,
        )
        self.cursors.append(cursor)
        return cursor

    async def find_one(self, filter, *, projection=None, sort=None):
        self._check("find_one")
        return await self._inner.find_one(filter, projection=projection, sort=sort)

    async def insert_many(self, documents):
        self._check("insert_many")
        self.writes.append(("insert_many", list(documents)))
        return await self._inner.insert_many(documents)

    async def bulk_write(self, operations):
        self._check("bulk_write")
        self.writes.append(("bulk_write", list(operations)))
        return await self._inner.bulk_write(operations)

    async def delete_many(self, filter):
        self._check("delete_many")
        self.writes.append(("delete_many", filter))
        return await self._inner.delete_many(filter)


class RecordingStore(DocumentStore):
    """Store handing out one ``RecordingCollection`` per name."""

    def __init__(self):
        super().__init__(StoreConfig(store_type=StoreType.MEMORY, url="", database="test"))
        self.backing = InMemoryDocumentStore()
        self._wrapped: dict[str, RecordingCollection] = {}

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    def _open_collection(self, name: str) -> RecordingCollection:
        if name not in self._wrapped:
            self._wrapped[name] = RecordingCollection(self.backing.collection(name))
        return self._wrapped[name]

    @property
    def total_finds(self) -> int:
        return sum(len(c.finds) for c in self._wrapped.values())


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    """Fresh in-memory store."""
    return InMemoryDocumentStore()


@pytest.fixture
def recording_store() -> RecordingStore:
    """Fresh recording store over an in-memory backing store."""
    return RecordingStore()


@pytest.fixture(autouse=True)
def clean_logging_fixture() -> Generator[None, None, None]:
    """Drop any structlog configuration a test installed (CLI runs configure it)."""
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def clean_settings_fixture() -> Generator[None, None, None]:
    """Re-read the environment for every test that touches settings."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def fixed_now() -> datetime:
    """Deterministic 'now' for cutoff tests."""
    return datetime(2024, 1, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def chain_yaml(tmp_path: Path):
    """Write a chain YAML file and return its path."""

    def _write(content: str, name: str = "chain.yaml") -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write

