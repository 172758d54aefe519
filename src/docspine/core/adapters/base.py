"""Document store adapter base class.

Manifesto:
    All document store adapters share a common lifecycle (connect/disconnect)
    and hand out collection handles that satisfy ``DocumentCollection``.
    The abstract base class defines the contract so the pipeline never
    depends on a specific driver, and a store handle is always a value the
    caller owns and passes in; there is no global connection registry.

Features:
    - Abstract ``connect()``, ``disconnect()``, ``_open_collection()``
    - Collection-name validation shared by every adapter
    - Async context-manager protocol for connection lifecycle
    - Config-driven construction from ``StoreConfig``

Tags:
    docspine, document-store, abstract-base, adapter-pattern
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docspine.core.errors import ConfigError
from docspine.core.protocols import DocumentCollection

from .types import StoreConfig, StoreType


class DocumentStore(ABC):
    """
    Abstract base class for document store adapters.

    Usage:
        async with MongoDocumentStore(url="mongodb://localhost") as store:
            orders = store.collection("orders")
    """

    def __init__(self, config: StoreConfig):
        self._config = config
        self._connected = False

    @property
    def store_type(self) -> StoreType:
        """Store type."""
        return self._config.store_type

    @property
    def database(self) -> str:
        """Database name collections are resolved in."""
        return self._config.database

    @property
    def is_connected(self) -> bool:
        """Whether adapter is connected."""
        return self._connected

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to the store."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the store."""
        ...

    @abstractmethod
    def _open_collection(self, name: str) -> DocumentCollection:
        """Return a handle for a validated collection name."""
        ...

    def collection(self, name: str) -> DocumentCollection:
        """Resolve a collection name to a handle."""
        if not name:
            raise ConfigError("Collection name is missing")
        return self._open_collection(name)

    async def __aenter__(self) -> DocumentStore:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()


__all__ = [
    "DocumentStore",
]
