"""Single-shot collection conveniences built on ``DocumentCollection``."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from docspine.core.errors import DataShapeError
from docspine.core.paths import get_path
from docspine.core.protocols import DocumentCollection

Document = dict[str, Any]


async def find_first(
    collection: DocumentCollection,
    query: Mapping[str, Any] | None = None,
    sort: Mapping[str, int] | None = None,
) -> Document | None:
    """First document of ``query`` in ``sort`` order (default ``_id`` ascending)."""
    return await collection.find_one(dict(query or {}), sort=dict(sort or {"_id": 1}))


async def find_last(
    collection: DocumentCollection,
    query: Mapping[str, Any] | None = None,
    sort: Mapping[str, int] | None = None,
) -> Document | None:
    """Last document of ``query`` (default ``_id`` descending)."""
    return await collection.find_one(dict(query or {}), sort=dict(sort or {"_id": -1}))


async def get_list(
    collection: DocumentCollection,
    key_field: str,
    value_field: str,
    query: Mapping[str, Any] | None = None,
) -> dict[Any, Any]:
    """
    Map ``key_field`` to ``value_field`` for every matching document.

    Documents without a key are skipped; a repeated key keeps the value of
    the last document read.
    """
    indexed: dict[Any, Any] = {}
    cursor = collection.find(dict(query or {}))
    try:
        async for document in cursor:
            key = get_path(document, key_field)
            if key is not None:
                indexed[key] = get_path(document, value_field)
    finally:
        await cursor.close()
    return indexed


async def delete_all(collection: DocumentCollection, documents: Iterable[Document]) -> int:
    """Delete the given documents by ``_id`` in one ``delete_many`` call."""
    ids = []
    for document in documents:
        if "_id" not in document:
            raise DataShapeError("Cannot delete a document without _id", field="_id")
        ids.append(document["_id"])
    if not ids:
        return 0
    return await collection.delete_many({"_id": {"$in": ids}})


__all__ = ["find_first", "find_last", "get_list", "delete_all"]
