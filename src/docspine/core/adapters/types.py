"""Store types, configuration and write-operation descriptors."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from docspine.core.errors import ConfigError, DataShapeError

Document = dict[str, Any]


class StoreType(str, Enum):
    """Supported document store types."""

    MONGODB = "mongodb"
    MEMORY = "memory"


class WriteKind(str, Enum):
    """Kinds of single-document write accepted by ``bulk_write``."""

    INSERT_ONE = "insert_one"
    REPLACE_ONE = "replace_one"
    UPDATE_ONE = "update_one"
    UPDATE_MANY = "update_many"
    DELETE_ONE = "delete_one"
    DELETE_MANY = "delete_many"


# Parameters each kind must carry
_REQUIRED_PARAMS: dict[WriteKind, tuple[str, ...]] = {
    WriteKind.INSERT_ONE: ("document",),
    WriteKind.REPLACE_ONE: ("filter", "replacement"),
    WriteKind.UPDATE_ONE: ("filter", "update"),
    WriteKind.UPDATE_MANY: ("filter", "update"),
    WriteKind.DELETE_ONE: ("filter",),
    WriteKind.DELETE_MANY: ("filter",),
}


@dataclass(frozen=True)
class WriteOperation:
    """
    Store-neutral descriptor for one operation of a batched write.

    Adapters translate these into their driver's request objects.
    """

    kind: WriteKind
    params: dict[str, Any]

    def __post_init__(self) -> None:
        try:
            kind = WriteKind(self.kind)
        except ValueError as e:
            raise ConfigError(f"Unknown write operation kind: {self.kind!r}", cause=e) from e
        object.__setattr__(self, "kind", kind)
        missing = [p for p in _REQUIRED_PARAMS[kind] if p not in self.params]
        if missing:
            raise ConfigError(f"{kind.value} requires parameters: {', '.join(missing)}")

    @classmethod
    def insert_one(cls, document: Document) -> WriteOperation:
        return cls(WriteKind.INSERT_ONE, {"document": document})

    @classmethod
    def replace_one(cls, document: Document) -> WriteOperation:
        """Replace the stored document with the same ``_id``."""
        if "_id" not in document:
            raise DataShapeError("Cannot save a document without _id", field="_id")
        return cls(
            WriteKind.REPLACE_ONE,
            {"filter": {"_id": document["_id"]}, "replacement": document},
        )

    @classmethod
    def update_one(cls, filter: Document, update: Document) -> WriteOperation:
        return cls(WriteKind.UPDATE_ONE, {"filter": filter, "update": update})

    @classmethod
    def delete_one(cls, filter: Document) -> WriteOperation:
        return cls(WriteKind.DELETE_ONE, {"filter": filter})


@dataclass
class StoreConfig:
    """
    Configuration for a document store handle.

    ``url`` and ``options`` are only used by network-backed stores.
    """

    store_type: StoreType = StoreType.MONGODB
    url: str = "mongodb://localhost"
    database: str = "test"

    connect_timeout_ms: int = 10_000

    # Extra options (driver-specific)
    options: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.database:
            raise ConfigError("Store database name is missing")


__all__ = [
    "Document",
    "StoreType",
    "WriteKind",
    "WriteOperation",
    "StoreConfig",
]
