"""
Batched foreign-key lookups.

One ``Joiner.lookup`` call issues exactly one query against the target
collection for a whole batch of input documents, then attaches the matches
to each input document in place (no per-document round trips).

Algorithm:
    ::

        1. gather   key value of every input document (missing/falsy skipped)
        2. query    {self_key: {"$in": values}} + extra filter, one round trip
        3. index    target value → document (single, last wins)
                                 → [documents]  (multi)
        4. attach   doc[<target collection>] = match | None | []
                    (only on documents that produced a value)

    When no document produced a value, step 2 is skipped and the input is
    returned untouched.

Tags:
    docspine, pipeline, join, lookup, n-plus-one
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from docspine.core.errors import ConfigError
from docspine.core.logging import get_logger
from docspine.core.paths import get_path, hashable_key
from docspine.core.protocols import DocumentCollection

from .specs import JoinMode, JoinSpec

logger = get_logger(__name__)

Document = dict[str, Any]


class Joiner:
    """Attaches documents from ``collection`` to batches of other documents."""

    def __init__(self, collection: DocumentCollection):
        if collection.name == "_id":
            raise ConfigError("A join cannot attach results over the _id field")
        self.collection = collection

    @property
    def attach_field(self) -> str:
        """Field the matches are attached under: the target collection's name."""
        return self.collection.name

    async def lookup(
        self,
        documents: list[Document],
        key: str,
        *,
        is_join: bool = False,
        self_key: str | None = None,
        fields: Iterable[str] = (),
        query: Mapping[str, Any] | None = None,
        sort: Mapping[str, int] | None = None,
    ) -> list[Document]:
        """
        Attach matching target documents to ``documents`` and return the same list.

        Args:
            documents: Batch to enrich; mutated in place
            key: Dot-path read from each input document
            is_join: Attach a list of all matches instead of a single match
            self_key: Field on the target collection to match (default ``key``)
            fields: Target fields to fetch; ``self_key`` is always included
            query: Extra filter merged into the lookup query; its fields win
                over the generated ``$in`` clause
            sort: Order of the fetched target documents

        Raises:
            QueryError: If the lookup query fails. Nothing is attached then.
        """
        target_key = self_key or key

        search_values: list[Any] = []
        seen: set[Any] = set()
        for document in documents:
            value = get_path(document, key)
            if not value:
                continue
            marker = hashable_key(value)
            if marker not in seen:
                seen.add(marker)
                search_values.append(value)

        if not search_values:
            logger.debug("join_short_circuit", collection=self.attach_field, key=key)
            return documents

        lookup_query: Document = {target_key: {"$in": search_values}}
        if query:
            lookup_query.update(query)

        projection = None
        fields = list(fields)
        if fields:
            projection = {name: 1 for name in fields}
            projection[target_key] = 1

        logger.debug(
            "join_query",
            collection=self.attach_field,
            key=key,
            self_key=target_key,
            values=len(search_values),
        )

        indexed: dict[Any, Any] = {}
        cursor = self.collection.find(
            lookup_query,
            projection=projection,
            sort=dict(sort) if sort else None,
        )
        try:
            async for match in cursor:
                marker = hashable_key(get_path(match, target_key))
                if is_join:
                    indexed.setdefault(marker, []).append(match)
                else:
                    indexed[marker] = match
        finally:
            await cursor.close()

        for document in documents:
            value = get_path(document, key)
            if not value:
                continue
            found = indexed.get(hashable_key(value))
            if is_join:
                document[self.attach_field] = list(found) if found else []
            else:
                document[self.attach_field] = found

        return documents

    async def apply(self, documents: list[Document], spec: JoinSpec) -> list[Document]:
        """Run the lookup described by a chain stage."""
        return await self.lookup(
            documents,
            spec.key,
            is_join=spec.mode is JoinMode.MULTI,
            self_key=spec.target_key,
            fields=spec.fields,
            query=spec.query,
            sort=spec.sort,
        )


__all__ = ["Joiner"]
