"""Tests for ``docspine.core.adapters.registry`` and ``types``."""

from __future__ import annotations

import pytest

from docspine.core.adapters import (
    AdapterRegistry,
    InMemoryDocumentStore,
    MongoDocumentStore,
    StoreConfig,
    StoreType,
    WriteKind,
    WriteOperation,
    get_store,
)
from docspine.core.errors import ConfigError, DataShapeError


class TestAdapterRegistry:
    def test_defaults_registered(self):
        assert AdapterRegistry().list_adapters() == ["memory", "mongo", "mongodb"]

    def test_get_store_by_enum(self):
        store = get_store(StoreType.MEMORY, database="shop")
        assert isinstance(store, InMemoryDocumentStore)
        assert store.database == "shop"

    def test_get_store_alias_is_case_insensitive(self):
        assert isinstance(get_store("Mongo", url="mongodb://db"), MongoDocumentStore)

    def test_each_call_returns_new_store(self):
        assert get_store("memory") is not get_store("memory")

    def test_unknown_adapter(self):
        with pytest.raises(ConfigError):
            get_store("couchdb")

    def test_register_custom_adapter(self):
        class TestStore(InMemoryDocumentStore):
            pass

        registry = AdapterRegistry()
        registry.register("Custom", TestStore)
        assert isinstance(registry.create("custom"), TestStore)


class TestWriteOperation:
    def test_kind_coerced_from_string(self):
        op = WriteOperation("delete_one", {"filter": {"_id": 1}})
        assert op.kind is WriteKind.DELETE_ONE

    def test_unknown_kind(self):
        with pytest.raises(ConfigError):
            WriteOperation("upsert_everything", {})

    def test_missing_params(self):
        with pytest.raises(ConfigError):
            WriteOperation(WriteKind.UPDATE_ONE, {"filter": {}})

    def test_replace_one_requires_id(self):
        with pytest.raises(DataShapeError):
            WriteOperation.replace_one({"a": 1})

    def test_replace_one_filters_by_id(self):
        op = WriteOperation.replace_one({"_id": 5, "a": 1})
        assert op.params["filter"] == {"_id": 5}


class TestStoreConfig:
    def test_empty_database(self):
        with pytest.raises(ConfigError):
            StoreConfig(database="")
