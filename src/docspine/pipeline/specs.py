"""
Chain configuration: QuerySpec, JoinSpec and ChainSpec.

Specs are immutable and validated when they are built, so a malformed chain
raises ``ConfigError`` before any collection is opened or queried.

Architecture:
    ::

        ChainSpec
        ├── collection       primary collection name
        ├── query: QuerySpec filter / sort / fields / size
        ├── filter           optional predicate on primary documents
        ├── stages: (JoinSpec, ...)
        │     collection, key → self_key, mode, fields, query, sort, filter
        ├── cutoff_field / cutoff_minutes
        └── chunk_size       output batch size

Examples:
    >>> chain = ChainSpec(
    ...     collection="orders",
    ...     stages=(JoinSpec(collection="customers", key="customer_id", self_key="_id"),),
    ... )
    >>> chain.labels
    ('in', 'orders', 'customers', 'out')

Tags:
    docspine, pipeline, configuration, chain, join
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from docspine.core.errors import ConfigError, InvalidConfigError, MissingConfigError

Document = dict[str, Any]
Predicate = Callable[[Document], bool]

DEFAULT_BATCH_SIZE = 1000
DEFAULT_SORT: Mapping[str, int] = {"_id": 1}
DEFAULT_CUTOFF_FIELD = "created"

# Counter labels that collections may not use
RESERVED_LABELS = frozenset({"in", "out"})


class JoinMode(str, Enum):
    """How matched target documents are attached."""

    SINGLE = "single"  # one document or None
    MULTI = "multi"  # list of all matches, [] when none


def _check_sort(sort: Mapping[str, int] | None, owner: str) -> None:
    if sort is None:
        return
    for name, direction in sort.items():
        if direction not in (1, -1):
            raise InvalidConfigError(f"{owner}.sort[{name}]", direction)


def _check_predicate(predicate: Any, owner: str) -> None:
    if predicate is not None and not callable(predicate):
        raise InvalidConfigError(f"{owner}.filter", predicate, "filter must be callable")


@dataclass(frozen=True)
class QuerySpec:
    """Filter, sort, projection and batch size for one collection query."""

    filter: Mapping[str, Any] = field(default_factory=dict)
    sort: Mapping[str, int] | None = None
    fields: tuple[str, ...] = ()
    size: int = DEFAULT_BATCH_SIZE

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))
        if isinstance(self.size, bool) or not isinstance(self.size, int) or self.size < 1:
            raise InvalidConfigError("size", self.size, f"Batch size must be >= 1, got {self.size!r}")
        _check_sort(self.sort, "query")

    @property
    def effective_sort(self) -> Mapping[str, int]:
        """Sort order; identifier ascending when none was given."""
        return self.sort or DEFAULT_SORT

    @property
    def projection(self) -> dict[str, int] | None:
        """Inclusion projection derived from ``fields``."""
        if not self.fields:
            return None
        return {name: 1 for name in self.fields}


@dataclass(frozen=True)
class JoinSpec:
    """
    One lookup stage of a chain.

    ``key`` is the dot-path read from each input document; ``self_key`` the
    field matched on the target collection (defaults to ``key``). Matches
    are attached under a field named after ``collection``.
    """

    collection: str
    key: str
    self_key: str | None = None
    mode: JoinMode = JoinMode.SINGLE
    fields: tuple[str, ...] = ()
    query: Mapping[str, Any] = field(default_factory=dict)
    sort: Mapping[str, int] | None = None
    filter: Predicate | None = None

    def __post_init__(self) -> None:
        if not self.collection:
            raise MissingConfigError("collection", "Join stage collection name is missing")
        if not self.key:
            raise MissingConfigError("key", f"Join stage {self.collection!r} has no key")
        if self.collection == "_id":
            raise InvalidConfigError(
                "collection", self.collection, "A join cannot attach results over the _id field"
            )
        if self.collection in RESERVED_LABELS:
            raise InvalidConfigError(
                "collection", self.collection, f"{self.collection!r} is a reserved counter label"
            )
        try:
            object.__setattr__(self, "mode", JoinMode(self.mode))
        except ValueError as e:
            raise InvalidConfigError("mode", self.mode, cause=e) from e
        object.__setattr__(self, "fields", tuple(self.fields))
        _check_sort(self.sort, self.collection)
        _check_predicate(self.filter, self.collection)

    @property
    def target_key(self) -> str:
        return self.self_key or self.key

    @property
    def is_join(self) -> bool:
        return self.mode is JoinMode.MULTI


@dataclass(frozen=True)
class ChainSpec:
    """A primary query followed by zero or more join stages."""

    collection: str
    query: QuerySpec = field(default_factory=QuerySpec)
    filter: Predicate | None = None
    stages: tuple[JoinSpec, ...] = ()
    cutoff_field: str = DEFAULT_CUTOFF_FIELD
    cutoff_minutes: float | None = None
    chunk_size: int = DEFAULT_BATCH_SIZE

    def __post_init__(self) -> None:
        if not self.collection:
            raise MissingConfigError("collection", "Primary collection name is missing")
        if self.collection in RESERVED_LABELS:
            raise InvalidConfigError(
                "collection", self.collection, f"{self.collection!r} is a reserved counter label"
            )
        if not isinstance(self.query, QuerySpec):
            raise ConfigError(f"query must be a QuerySpec, got {type(self.query).__name__}")
        object.__setattr__(self, "stages", tuple(self.stages))
        for stage in self.stages:
            if not isinstance(stage, JoinSpec):
                raise ConfigError(f"Chain stages must be JoinSpec, got {type(stage).__name__}")
        _check_predicate(self.filter, self.collection)
        if not self.cutoff_field:
            raise MissingConfigError("cutoff_field")
        if self.cutoff_minutes is not None and self.cutoff_minutes <= 0:
            raise InvalidConfigError("cutoff_minutes", self.cutoff_minutes)
        if isinstance(self.chunk_size, bool) or not isinstance(self.chunk_size, int) or self.chunk_size < 1:
            raise InvalidConfigError("chunk_size", self.chunk_size)

    @property
    def collections(self) -> tuple[str, ...]:
        """Distinct collection names in chain order."""
        return tuple(dict.fromkeys([self.collection, *(s.collection for s in self.stages)]))

    @property
    def labels(self) -> tuple[str, ...]:
        """Counter labels: ``in``, each distinct collection, ``out``."""
        return ("in", *self.collections, "out")

    @property
    def cutoff_enabled(self) -> bool:
        return bool(self.cutoff_minutes)


__all__ = [
    "Document",
    "Predicate",
    "JoinMode",
    "QuerySpec",
    "JoinSpec",
    "ChainSpec",
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_CUTOFF_FIELD",
]
