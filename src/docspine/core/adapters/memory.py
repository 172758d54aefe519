"""In-memory document store adapter.

Manifesto:
    Test suites and dry runs need a store that behaves like MongoDB for the
    operations the pipeline uses, without a server. Documents are stored and
    returned as deep copies, so mutating a fetched document never changes
    the stored one (the same guarantee a real store gives).

Supported query language:
    - implicit equality (array fields match when they contain the value)
    - ``$eq $ne $gt $gte $lt $lte $in $nin $exists``
    - ``$and`` / ``$or`` at the top level
    - dot paths everywhere a field name is accepted
    - inclusion or exclusion projections, multi-key sorts
    - update operators ``$set $unset $inc`` and upserts

Anything else raises ``QueryError`` rather than silently matching.

Tags:
    docspine, document-store, in-memory, testing
"""

from __future__ import annotations

import copy
import itertools
from collections.abc import Iterator
from typing import Any

from docspine.core.errors import DataShapeError, QueryError, WriteError
from docspine.core.paths import get_path, has_path, hashable_key, split_path
from docspine.core.protocols import SortSpec

from .base import DocumentStore
from .types import Document, StoreConfig, StoreType, WriteKind, WriteOperation

_MISSING = object()


# ---------------------------------------------------------------------------
# Query evaluation
# ---------------------------------------------------------------------------


def _equals(value: Any, expected: Any) -> bool:
    if value == expected:
        return True
    return isinstance(value, list) and expected in value


def _compare(value: Any, expected: Any, op: str) -> bool:
    if value is _MISSING or value is None:
        return False
    try:
        match op:
            case "$gt":
                return value > expected
            case "$gte":
                return value >= expected
            case "$lt":
                return value < expected
            case _:
                return value <= expected
    except TypeError:
        return False


def _match_operator(value: Any, present: bool, op: str, operand: Any) -> bool:
    match op:
        case "$eq":
            return _equals(None if not present else value, operand)
        case "$ne":
            return not _equals(None if not present else value, operand)
        case "$gt" | "$gte" | "$lt" | "$lte":
            return _compare(value if present else _MISSING, operand, op)
        case "$in" | "$nin":
            if not isinstance(operand, (list, tuple, set)):
                raise QueryError(f"{op} needs an array, got {type(operand).__name__}")
            found = any(_equals(None if not present else value, c) for c in operand)
            return found if op == "$in" else not found
        case "$exists":
            return present == bool(operand)
        case _:
            raise QueryError(f"Unsupported query operator: {op}")


def matches(document: Document, filter: Document) -> bool:
    """Whether ``document`` satisfies ``filter``."""
    for key, condition in filter.items():
        if key == "$and":
            if not all(matches(document, f) for f in condition):
                return False
            continue
        if key == "$or":
            if not any(matches(document, f) for f in condition):
                return False
            continue
        if key.startswith("$"):
            raise QueryError(f"Unsupported top-level operator: {key}")

        present = has_path(document, key)
        value = get_path(document, key)
        if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
            for op, operand in condition.items():
                if not _match_operator(value, present, op, operand):
                    return False
        elif not _equals(value if present else None, condition):
            return False
    return True


def _set_path(document: Document, path: str, value: Any) -> None:
    *parents, leaf = split_path(path)
    target = document
    for segment in parents:
        target = target.setdefault(segment, {})
    target[leaf] = value


def _unset_path(document: Document, path: str) -> None:
    *parents, leaf = split_path(path)
    target: Any = document
    for segment in parents:
        target = target.get(segment) if isinstance(target, dict) else None
        if target is None:
            return
    if isinstance(target, dict):
        target.pop(leaf, None)


def project(document: Document, projection: dict[str, Any] | None) -> Document:
    """Apply an inclusion or exclusion projection to a copy of ``document``."""
    if not projection:
        return copy.deepcopy(document)

    include_id = bool(projection.get("_id", 1))
    fields = {k: v for k, v in projection.items() if k != "_id"}
    modes = {bool(v) for v in fields.values()}
    if len(modes) > 1:
        raise QueryError("Projection cannot mix inclusion and exclusion")

    if modes == {False}:
        result = copy.deepcopy(document)
        for path in fields:
            _unset_path(result, path)
        if not include_id:
            result.pop("_id", None)
        return result

    result: Document = {}
    if include_id and "_id" in document:
        result["_id"] = copy.deepcopy(document["_id"])
    for path in fields:
        if has_path(document, path):
            _set_path(result, path, copy.deepcopy(get_path(document, path)))
    return result


def _sort_key(value: Any) -> tuple[int, Any]:
    return (0, 0) if value is None else (1, value)


def sort_documents(documents: list[Document], sort: SortSpec | None) -> list[Document]:
    """Stable multi-key sort; missing and ``None`` values sort first."""
    if not sort:
        return documents
    result = list(documents)
    try:
        for field, direction in reversed(list(sort.items())):
            result.sort(key=lambda d, f=field: _sort_key(get_path(d, f)), reverse=direction < 0)
    except TypeError as e:
        raise QueryError(f"Cannot sort on mixed value types: {e}", cause=e) from e
    return result


def _apply_update(document: Document, update: Document) -> None:
    if not update or not all(k.startswith("$") for k in update):
        raise QueryError("Update document must only contain update operators")
    for op, fields in update.items():
        for path, value in fields.items():
            if path == "_id":
                raise QueryError("Cannot modify _id")
            match op:
                case "$set":
                    _set_path(document, path, copy.deepcopy(value))
                case "$unset":
                    _unset_path(document, path)
                case "$inc":
                    current = get_path(document, path, 0)
                    _set_path(document, path, current + value)
                case _:
                    raise QueryError(f"Unsupported update operator: {op}")


# ---------------------------------------------------------------------------
# Cursor / collection / store
# ---------------------------------------------------------------------------


class InMemoryCursor:
    """Cursor that evaluates its query on the first fetch."""

    def __init__(
        self,
        collection: InMemoryCollection,
        filter: Document,
        projection: dict[str, Any] | None,
        sort: SortSpec | None,
    ):
        self._collection = collection
        self._filter = filter
        self._projection = projection
        self._sort = sort
        self._results: Iterator[Document] | None = None
        self.closed = False

    def __aiter__(self) -> InMemoryCursor:
        return self

    async def __anext__(self) -> Document:
        if self.closed:
            raise StopAsyncIteration
        if self._results is None:
            found = self._collection._select(self._filter)
            ordered = sort_documents(found, self._sort)
            self._results = iter([project(d, self._projection) for d in ordered])
        try:
            return next(self._results)
        except StopIteration:
            raise StopAsyncIteration from None

    async def close(self) -> None:
        self.closed = True
        self._results = None


class InMemoryCollection:
    """Dict-backed collection keyed by ``_id`` in insertion order."""

    def __init__(self, name: str):
        self._name = name
        self._documents: dict[Any, Document] = {}
        self._ids = itertools.count(1)

    @property
    def name(self) -> str:
        return self._name

    def __len__(self) -> int:
        return len(self._documents)

    def _select(self, filter: Document) -> list[Document]:
        return [d for d in self._documents.values() if matches(d, filter)]

    def _insert(self, document: Document) -> None:
        if "_id" not in document:
            document["_id"] = next(self._ids)
        key = hashable_key(document["_id"])
        if key in self._documents:
            raise WriteError(f"Duplicate _id {document['_id']!r} in {self._name}")
        self._documents[key] = copy.deepcopy(document)

    def find(
        self,
        filter: Document,
        *,
        projection: dict[str, Any] | None = None,
        sort: SortSpec | None = None,
    ) -> InMemoryCursor:
        return InMemoryCursor(self, filter or {}, projection, sort)

    async def find_one(
        self,
        filter: Document,
        *,
        projection: dict[str, Any] | None = None,
        sort: SortSpec | None = None,
    ) -> Document | None:
        cursor = self.find(filter, projection=projection, sort=sort)
        try:
            return await anext(cursor, None)
        finally:
            await cursor.close()

    async def insert_many(self, documents: list[Document]) -> int:
        for document in documents:
            self._insert(document)
        return len(documents)

    async def bulk_write(self, operations: list[WriteOperation]) -> int:
        affected = 0
        for index, operation in enumerate(operations):
            try:
                affected += self._apply(operation)
            except (QueryError, WriteError, DataShapeError) as e:
                raise WriteError(
                    f"bulk_write failed at operation {index} on {self._name}: {e.message}",
                    pending=len(operations) - index,
                    cause=e,
                ).with_context(collection=self._name, operation="bulk_write") from e
        return affected

    def _apply(self, operation: WriteOperation) -> int:
        p = operation.params
        match operation.kind:
            case WriteKind.INSERT_ONE:
                self._insert(p["document"])
                return 1
            case WriteKind.REPLACE_ONE:
                replacement = copy.deepcopy(p["replacement"])
                if any(k.startswith("$") for k in replacement):
                    raise QueryError("Replacement document cannot contain update operators")
                for key, existing in self._documents.items():
                    if matches(existing, p["filter"]):
                        replacement["_id"] = existing["_id"]
                        self._documents[key] = replacement
                        return 1
                if p.get("upsert"):
                    self._insert(replacement)
                    return 1
                return 0
            case WriteKind.UPDATE_ONE | WriteKind.UPDATE_MANY:
                found = self._select(p["filter"])
                if operation.kind is WriteKind.UPDATE_ONE:
                    found = found[:1]
                for document in found:
                    _apply_update(document, p["update"])
                if not found and p.get("upsert"):
                    seed = {k: v for k, v in p["filter"].items() if not k.startswith("$")}
                    _apply_update(seed, p["update"])
                    self._insert(seed)
                    return 1
                return len(found)
            case WriteKind.DELETE_ONE | WriteKind.DELETE_MANY:
                found = self._select(p["filter"])
                if operation.kind is WriteKind.DELETE_ONE:
                    found = found[:1]
                for document in found:
                    del self._documents[hashable_key(document["_id"])]
                return len(found)
        return 0

    async def delete_many(self, filter: Document) -> int:
        return self._apply(WriteOperation(WriteKind.DELETE_MANY, {"filter": filter}))


class InMemoryDocumentStore(DocumentStore):
    """
    In-memory document store.

    Collections are created on first access and live as long as the store.
    Suitable for:
    - Unit and pipeline tests
    - Dry runs of chain definitions
    """

    def __init__(self, database: str = "test", **kwargs: Any):
        super().__init__(StoreConfig(store_type=StoreType.MEMORY, url="", database=database, options=kwargs))
        self._collections: dict[str, InMemoryCollection] = {}

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    def _open_collection(self, name: str) -> InMemoryCollection:
        if name not in self._collections:
            self._collections[name] = InMemoryCollection(name)
        return self._collections[name]

    def collection_names(self) -> list[str]:
        """Names of collections created so far."""
        return list(self._collections)


__all__ = [
    "InMemoryCursor",
    "InMemoryCollection",
    "InMemoryDocumentStore",
    "matches",
    "project",
    "sort_documents",
]
