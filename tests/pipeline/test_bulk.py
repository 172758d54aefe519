"""Tests for ``docspine.pipeline.bulk`` — buffered batch writes."""

from __future__ import annotations

import pytest

from docspine.core.adapters.types import WriteKind, WriteOperation
from docspine.core.errors import ConfigError, DataShapeError, WriteError
from docspine.pipeline.bulk import BulkBuffer, BulkKind, BulkWriter


class TestThreshold:
    @pytest.mark.asyncio
    async def test_exact_threshold_flushes_once(self, recording_store):
        events = recording_store.collection("events")
        buffer = BulkBuffer(events, BulkKind.INSERT)
        flushed = [await buffer.add({"n": i}) for i in range(1000)]
        assert flushed[-1] == 1000
        assert sum(flushed) == 1000
        assert [m for m, _ in events.writes] == ["insert_many"]
        assert len(buffer) == 0
        assert await buffer.close() == 0

    @pytest.mark.asyncio
    async def test_partial_batch_waits_for_close(self, recording_store):
        events = recording_store.collection("events")
        buffer = BulkBuffer(events, BulkKind.INSERT)
        for i in range(1500):
            await buffer.add({"n": i})
        assert len(events.writes) == 1
        assert len(buffer) == 500

        assert await buffer.close() == 500
        assert len(events.writes) == 2
        assert buffer.flush_count == 2
        assert buffer.written == 1500
        assert len(events.inner) == 1500

    @pytest.mark.asyncio
    async def test_close_on_empty_buffer_is_noop(self, recording_store):
        events = recording_store.collection("events")
        assert await BulkBuffer(events, "insert").close() == 0
        assert events.writes == []

    def test_invalid_threshold(self, memory_store):
        with pytest.raises(ConfigError):
            BulkBuffer(memory_store.collection("events"), BulkKind.INSERT, threshold=0)

    def test_invalid_kind(self, memory_store):
        with pytest.raises(ConfigError):
            BulkBuffer(memory_store.collection("events"), "upsert")


class TestFailure:
    @pytest.mark.asyncio
    async def test_failed_flush_keeps_pending_and_retry_resends(self, recording_store):
        events = recording_store.collection("events")
        buffer = BulkBuffer(events, BulkKind.INSERT, threshold=3)
        events.fail("insert_many", WriteError("primary stepped down", pending=3))

        await buffer.add({"_id": 1})
        await buffer.add({"_id": 2})
        with pytest.raises(WriteError):
            await buffer.add({"_id": 3})

        assert [d["_id"] for d in buffer.pending] == [1, 2, 3]
        assert buffer.flush_count == 0

        events.heal()
        assert await buffer.flush() == 3
        assert [m for m, _ in events.writes] == ["insert_many"]
        assert [d["_id"] for d in events.writes[0][1]] == [1, 2, 3]
        assert len(buffer) == 0

    @pytest.mark.asyncio
    async def test_context_manager_skips_flush_on_error(self, recording_store):
        events = recording_store.collection("events")
        with pytest.raises(RuntimeError):
            async with BulkBuffer(events, BulkKind.INSERT) as buffer:
                await buffer.add({"n": 1})
                raise RuntimeError("caller failed")
        assert events.writes == []
        assert len(buffer) == 1


class TestKinds:
    @pytest.mark.asyncio
    async def test_save_replaces_by_id(self, recording_store):
        orders = recording_store.collection("orders")
        await orders.inner.insert_many([{"_id": 1, "status": "new"}])
        async with BulkBuffer(orders, BulkKind.SAVE) as buffer:
            await buffer.add({"_id": 1, "status": "paid"})
        assert await orders.find_one({"_id": 1}) == {"_id": 1, "status": "paid"}
        method, operations = orders.writes[0]
        assert method == "bulk_write"
        assert operations[0].kind is WriteKind.REPLACE_ONE

    @pytest.mark.asyncio
    async def test_save_requires_id(self, memory_store):
        buffer = BulkBuffer(memory_store.collection("orders"), BulkKind.SAVE)
        with pytest.raises(DataShapeError):
            await buffer.add({"status": "paid"})
        assert len(buffer) == 0

    @pytest.mark.asyncio
    async def test_update_pairs(self, recording_store):
        orders = recording_store.collection("orders")
        await orders.inner.insert_many([{"_id": 1, "n": 0}, {"_id": 2, "n": 0}])
        buffer = BulkBuffer(orders, BulkKind.UPDATE, threshold=2)
        await buffer.add(({"_id": 1}, {"$inc": {"n": 1}}))
        assert await buffer.add(({"_id": 2}, {"$set": {"n": 5}})) == 2
        assert [d["n"] async for d in orders.find({})] == [1, 5]

    @pytest.mark.asyncio
    async def test_update_rejects_malformed_item(self, memory_store):
        buffer = BulkBuffer(memory_store.collection("orders"), BulkKind.UPDATE)
        with pytest.raises(DataShapeError):
            await buffer.add({"_id": 1})

    @pytest.mark.asyncio
    async def test_delete_by_ids(self, recording_store):
        orders = recording_store.collection("orders")
        await orders.inner.insert_many([{"_id": 1}, {"_id": 2}, {"_id": 3}])
        async with BulkBuffer(orders, BulkKind.DELETE) as buffer:
            await buffer.add({"_id": 1, "stale": True})
            await buffer.add({"_id": 3})
        assert orders.writes == [("delete_many", {"_id": {"$in": [1, 3]}})]
        assert len(orders.inner) == 1

    @pytest.mark.asyncio
    async def test_delete_requires_id(self, memory_store):
        buffer = BulkBuffer(memory_store.collection("orders"), BulkKind.DELETE)
        with pytest.raises(DataShapeError):
            await buffer.add({"status": "old"})

    @pytest.mark.asyncio
    async def test_operations(self, recording_store):
        orders = recording_store.collection("orders")
        buffer = BulkBuffer(orders, BulkKind.OPERATION)
        await buffer.add(WriteOperation.insert_one({"_id": 1, "n": 1}))
        await buffer.add(("update_one", {"filter": {"_id": 1}, "update": {"$inc": {"n": 1}}}))
        assert await buffer.close() == 2
        assert await orders.find_one({"_id": 1}) == {"_id": 1, "n": 2}

    @pytest.mark.asyncio
    async def test_operation_unknown_kind(self, memory_store):
        buffer = BulkBuffer(memory_store.collection("orders"), BulkKind.OPERATION)
        with pytest.raises(ConfigError):
            await buffer.add(("merge", {"filter": {}}))
        with pytest.raises(DataShapeError):
            await buffer.add("insert_one")

    @pytest.mark.asyncio
    async def test_buffer_none_means_end_of_input(self, recording_store):
        events = recording_store.collection("events")
        buffer = BulkBuffer(events, BulkKind.INSERT)
        await buffer.buffer({"n": 1})
        await buffer.buffer({"n": 2})
        assert events.writes == []
        assert await buffer.buffer(None) == 2
        assert len(events.inner) == 2


class TestBulkWriter:
    @pytest.mark.asyncio
    async def test_one_buffer_per_kind(self, recording_store):
        orders = recording_store.collection("orders")
        await orders.inner.insert_many([{"_id": 1, "n": 0}, {"_id": 2}])
        writer = BulkWriter(orders, threshold=10)

        await writer.insert({"_id": 3})
        await writer.update({"_id": 1}, {"$set": {"n": 1}})
        await writer.update({"_id": 3}, {"$set": {"n": 3}})
        await writer.delete({"_id": 2})
        await writer.operation("delete_one", {"filter": {"_id": 99}})
        assert writer.pending == {"insert": 1, "update": 2, "delete": 1, "operation": 1}

        assert await writer.close() == 5
        assert [m for m, _ in orders.writes] == ["insert_many", "bulk_write", "delete_many", "bulk_write"]
        assert writer.pending == {}
        assert [d async for d in orders.find({})] == [{"_id": 1, "n": 1}, {"_id": 3, "n": 3}]

    @pytest.mark.asyncio
    async def test_threshold_applies_per_kind(self, recording_store):
        orders = recording_store.collection("orders")
        async with BulkWriter(orders, threshold=2) as writer:
            await writer.insert({"_id": 1})
            assert await writer.insert({"_id": 2}) == 2
            await writer.save({"_id": 1, "v": "x"})
        assert [m for m, _ in orders.writes] == ["insert_many", "bulk_write"]

    @pytest.mark.asyncio
    async def test_failed_close_keeps_buffer(self, recording_store):
        orders = recording_store.collection("orders")
        orders.fail("delete_many", WriteError("down"))
        writer = BulkWriter(orders)
        await writer.insert({"_id": 1})
        await writer.delete({"_id": 1})
        with pytest.raises(WriteError):
            await writer.close()
        assert writer.pending == {"delete": 1}
        orders.heal()
        assert await writer.close() == 1
