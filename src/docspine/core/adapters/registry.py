"""Document store adapter registry and factory.

Manifesto:
    Consumers should never hard-code adapter class names. The registry maps
    store type names to adapter classes and ``get_store()`` creates a new,
    caller-owned instance per call. The registry holds classes only, never
    connections.

Tags:
    docspine, document-store, registry, factory
"""

from __future__ import annotations

from typing import Any

from docspine.core.errors import ConfigError

from .base import DocumentStore
from .memory import InMemoryDocumentStore
from .mongodb import MongoDocumentStore
from .types import StoreType


class AdapterRegistry:
    """
    Registry for document store adapter classes.

    Pre-registered adapters:
    - ``mongodb`` / ``mongo`` — :class:`MongoDocumentStore`
    - ``memory`` — :class:`InMemoryDocumentStore`
    """

    def __init__(self):
        self._factories: dict[str, type[DocumentStore]] = {}
        self._register_defaults()

    def _register_defaults(self) -> None:
        self._factories["mongodb"] = MongoDocumentStore
        self._factories["mongo"] = MongoDocumentStore  # Alias
        self._factories["memory"] = InMemoryDocumentStore

    def register(self, name: str, adapter_class: type[DocumentStore]) -> None:
        """Register an adapter class."""
        self._factories[name.lower()] = adapter_class

    def create(self, name: str, **kwargs: Any) -> DocumentStore:
        """Create an adapter by name."""
        name = name.lower()
        if name not in self._factories:
            raise ConfigError(f"Unknown document store adapter: {name}")
        return self._factories[name](**kwargs)

    def list_adapters(self) -> list[str]:
        """List registered adapter names."""
        return sorted(self._factories.keys())


adapter_registry = AdapterRegistry()


def get_store(
    store_type: StoreType | str,
    **kwargs: Any,
) -> DocumentStore:
    """
    Create a (not yet connected) document store.

    Usage:
        store = get_store(StoreType.MEMORY)
        store = get_store("mongodb", url="mongodb://db:27017", database="shop")
    """
    name = store_type.value if isinstance(store_type, StoreType) else store_type
    return adapter_registry.create(name, **kwargs)


__all__ = [
    "AdapterRegistry",
    "adapter_registry",
    "get_store",
]
