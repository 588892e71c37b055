"""Shared fixtures: an in-memory RecordStore and the default engine pieces."""
import asyncio
import uuid
from typing import Any, Mapping
from unittest.mock import AsyncMock

import pytest

from crm_import.imports.executor import ImportExecutor
from crm_import.imports.registry import build_default_registry
from crm_import.imports.transformer import RowTransformer


class FakeRecordStore:
    """Dict-backed RecordStore.

    Yields to the event loop on every call so concurrent batches interleave
    the way they would against a real database.
    """

    def __init__(self, tables: Mapping[str, list[dict]] | None = None):
        self.tables: dict[str, list[dict]] = {k: [dict(r) for r in v] for k, v in (tables or {}).items()}
        self.commits = 0
        self.fail_commits: set[int] = set()  # 1-based commit numbers that raise
        self.fail_insert_when = None  # callable(table, fields) -> bool

    def rows(self, table: str) -> list[dict]:
        return self.tables.setdefault(table, [])

    async def find_one(self, table: str, match: Mapping[str, Any]) -> dict | None:
        await asyncio.sleep(0)
        for record in self.rows(table):
            if all(record.get(k) == v for k, v in match.items()):
                return dict(record)
        return None

    async def insert(self, table: str, fields: Mapping[str, Any]) -> uuid.UUID:
        await asyncio.sleep(0)
        if self.fail_insert_when and self.fail_insert_when(table, fields):
            raise RuntimeError(f"insert into {table} rejected")
        record = dict(fields)
        record["id"] = uuid.uuid4()
        self.rows(table).append(record)
        return record["id"]

    async def update(self, table: str, record_id: Any, fields: Mapping[str, Any]) -> None:
        await asyncio.sleep(0)
        for record in self.rows(table):
            if record["id"] == record_id:
                record.update(fields)
                return
        raise LookupError(f"{table} record {record_id} no longer exists")

    async def commit(self) -> None:
        self.commits += 1
        if self.commits in self.fail_commits:
            raise RuntimeError("connection reset during commit")


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def transformer():
    return RowTransformer()


@pytest.fixture
def store():
    return FakeRecordStore()


@pytest.fixture
def activity():
    return AsyncMock()


@pytest.fixture
def executor(store, activity, registry, transformer):
    return ImportExecutor(
        store=store,
        activity=activity,
        registry=registry,
        transformer=transformer,
        error_rate_threshold=0.5,
        max_concurrent_batches=1,
    )
