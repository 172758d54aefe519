"""Tests for docspine.cli — command smoke tests via CliRunner.

Stores are in-memory; ``make_store`` is patched to hand the command a
pre-seeded store so output can be checked. Logging is configured for real
and writes to stderr.
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from docspine import __version__
from docspine.cli.app import app
from docspine.core.adapters import InMemoryDocumentStore
from docspine.core.errors import DatabaseConnectionError

runner = CliRunner()

CHAIN = """\
metadata: {name: shop}
spec:
  collection: orders
  query: {size: 2}
  stages:
    - collection: customers
      key: customer_id
      self_key: _id
      fields: [name]
"""


@pytest.fixture(autouse=True)
def _memory_store(monkeypatch):
    monkeypatch.setenv("DOCSPINE_STORE_TYPE", "memory")


@pytest.fixture
def shop_store() -> InMemoryDocumentStore:
    store = InMemoryDocumentStore(database="shop")

    async def _seed():
        await store.collection("customers").insert_many(
            [{"_id": "c1", "name": "Ada", "email": "ada@x.io"}]
        )
        await store.collection("orders").insert_many(
            [
                {"_id": 1, "customer_id": "c1", "status": "paid"},
                {"_id": 2, "customer_id": "c9", "status": "new"},
                {"_id": 3, "customer_id": "c1", "status": "paid"},
            ]
        )

    asyncio.run(_seed())
    return store


def _batches(stdout: str) -> list:
    return [json.loads(line) for line in stdout.splitlines() if line.startswith("[")]


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert f"docspine {__version__}" in result.output


class TestChunks:
    def test_prints_json_batches(self, shop_store):
        with patch("docspine.cli.app.make_store", return_value=shop_store):
            result = runner.invoke(app, ["chunks", "orders", "--size", "2"])
        assert result.exit_code == 0, result.output
        batches = _batches(result.stdout)
        assert [[d["_id"] for d in b] for b in batches] == [[1, 2], [3]]

    def test_query_sort_and_fields(self, shop_store):
        with patch("docspine.cli.app.make_store", return_value=shop_store):
            result = runner.invoke(
                app,
                [
                    "chunks",
                    "orders",
                    "--query",
                    '{"status": "paid"}',
                    "--sort",
                    '{"_id": -1}',
                    "-f",
                    "status",
                ],
            )
        assert result.exit_code == 0, result.output
        assert _batches(result.stdout) == [[{"_id": 3, "status": "paid"}, {"_id": 1, "status": "paid"}]]

    def test_empty_collection_prints_nothing(self):
        result = runner.invoke(app, ["chunks", "orders"])
        assert result.exit_code == 0
        assert _batches(result.stdout) == []

    def test_invalid_query_json(self):
        result = runner.invoke(app, ["chunks", "orders", "--query", "{not json"])
        assert result.exit_code == 2

    def test_query_must_be_object(self):
        result = runner.invoke(app, ["chunks", "orders", "--query", "[1, 2]"])
        assert result.exit_code == 2

    def test_size_must_be_positive(self):
        result = runner.invoke(app, ["chunks", "orders", "--size", "0"])
        assert result.exit_code == 2

    def test_store_error_exits_1(self):
        class DownStore(InMemoryDocumentStore):
            async def connect(self) -> None:
                raise DatabaseConnectionError("MongoDB unreachable")

        with patch("docspine.cli.app.make_store", return_value=DownStore()):
            result = runner.invoke(app, ["chunks", "orders"])
        assert result.exit_code == 1
        assert "MongoDB unreachable" in result.output


class TestRun:
    def test_runs_chain_and_prints_counts(self, shop_store, tmp_path):
        chain_file = tmp_path / "shop.yaml"
        chain_file.write_text(CHAIN, encoding="utf-8")

        with patch("docspine.cli.app.make_store", return_value=shop_store):
            result = runner.invoke(app, ["run", str(chain_file), "--json"])

        assert result.exit_code == 0, result.output
        (batch,) = _batches(result.stdout)
        assert [d["_id"] for d in batch] == [1, 2, 3]
        assert batch[0]["customers"] == {"_id": "c1", "name": "Ada"}
        assert batch[1]["customers"] is None
        assert '"customers": 3' in result.output
        assert '"out": 3' in result.output

    def test_json_logs_carry_run_events(self, shop_store, tmp_path, monkeypatch):
        monkeypatch.setenv("DOCSPINE_LOG_FORMAT", "json")
        chain_file = tmp_path / "shop.yaml"
        chain_file.write_text(CHAIN, encoding="utf-8")

        with patch("docspine.cli.app.make_store", return_value=shop_store):
            result = runner.invoke(app, ["run", str(chain_file), "--json"])

        assert result.exit_code == 0, result.output
        events = [
            json.loads(line)
            for line in result.output.splitlines()
            if line.startswith('{"') and '"event"' in line
        ]
        by_name = {e["event"]: e for e in events}
        assert "chain_run_started" in by_name
        assert by_name["chain_run_completed"]["run_id"] == by_name["chain_run_started"]["run_id"]
        assert len(_batches(result.stdout)) == 1

    def test_counts_table(self, shop_store, tmp_path):
        chain_file = tmp_path / "shop.yaml"
        chain_file.write_text(CHAIN, encoding="utf-8")
        with patch("docspine.cli.app.make_store", return_value=shop_store):
            result = runner.invoke(app, ["run", str(chain_file)])
        assert result.exit_code == 0, result.output
        assert "orders chain" in result.output

    def test_invalid_chain_exits_1(self, tmp_path):
        chain_file = tmp_path / "bad.yaml"
        chain_file.write_text("metadata: {name: x}\nspec: {collection: orders, chunk_size: 0}\n")
        result = runner.invoke(app, ["run", str(chain_file)])
        assert result.exit_code == 1
        assert "Invalid chain definition" in result.output

    def test_missing_chain_file(self, tmp_path):
        result = runner.invoke(app, ["run", str(tmp_path / "absent.yaml")])
        assert result.exit_code == 2
