"""
Document store adapters.

Usage:
    from docspine.core.adapters import get_store, StoreType

    async with get_store(StoreType.MONGODB, url="mongodb://localhost", database="shop") as store:
        orders = store.collection("orders")
"""

from .base import DocumentStore
from .memory import InMemoryCollection, InMemoryCursor, InMemoryDocumentStore
from .mongodb import MongoCollection, MongoCursor, MongoDocumentStore
from .registry import AdapterRegistry, adapter_registry, get_store
from .types import Document, StoreConfig, StoreType, WriteKind, WriteOperation

__all__ = [
    # Types
    "Document",
    "StoreType",
    "StoreConfig",
    "WriteKind",
    "WriteOperation",
    # Base
    "DocumentStore",
    # Implementations
    "InMemoryCollection",
    "InMemoryCursor",
    "InMemoryDocumentStore",
    "MongoCollection",
    "MongoCursor",
    "MongoDocumentStore",
    # Registry
    "AdapterRegistry",
    "adapter_registry",
    "get_store",
]
