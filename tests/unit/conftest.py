"""Unit test fixtures.

MemoryStore stands in for PgStore: same method surface, dict-backed tables,
and transaction() blocks that restore a snapshot when the block raises
(nested blocks behave like savepoints).
"""

from __future__ import annotations

import itertools
from collections import Counter
from contextlib import contextmanager
from datetime import datetime
from typing import Callable

import psycopg
import pytest

from trx_import.controller import ChunkController
from trx_import.dimensions import DimensionCache, DimensionResolver
from trx_import.processor import FactRow, RowNormalizer
from trx_import.source import RawLine
from trx_import.writer import ChunkWriter

FIXED_NOW = datetime(2025, 12, 1, 12, 0, 0)


class MemoryStore:
    def __init__(self) -> None:
        self.user_profiles: dict[str, int] = {}
        self.accounts: dict[str, tuple[int, int]] = {}
        self.transactions: list[FactRow] = []
        self.calls: Counter[str] = Counter()
        self.fail_insert: Callable[[FactRow], bool] = lambda row: False
        self.broken_customers: set[str] = set()
        self._ids = itertools.count(1)

    @contextmanager
    def transaction(self):
        snapshot = (
            dict(self.user_profiles),
            dict(self.accounts),
            list(self.transactions),
        )
        self.calls["transaction"] += 1
        try:
            yield
        except BaseException:
            self.user_profiles, self.accounts, self.transactions = snapshot
            raise

    def upsert_user_profile(self, customer_id: str, full_name: str, email: str) -> bool:
        self.calls["upsert_user_profile"] += 1
        if customer_id in self.broken_customers:
            raise psycopg.OperationalError(f"simulated failure for {customer_id}")
        if customer_id in self.user_profiles:
            return False
        self.user_profiles[customer_id] = next(self._ids)
        return True

    def find_user_profile_id(self, customer_id: str) -> int | None:
        self.calls["find_user_profile_id"] += 1
        return self.user_profiles.get(customer_id)

    def upsert_account(self, account_number: str, user_profile_id: int) -> bool:
        self.calls["upsert_account"] += 1
        if account_number in self.accounts:
            return False
        self.accounts[account_number] = (next(self._ids), user_profile_id)
        return True

    def find_account_id(self, account_number: str) -> int | None:
        self.calls["find_account_id"] += 1
        entry = self.accounts.get(account_number)
        return entry[0] if entry else None

    def insert_transactions(self, rows) -> int:
        self.calls["insert_transactions"] += 1
        for row in rows:
            if self.fail_insert(row):
                raise psycopg.DataError(f"value rejected for line {row.line_number}")
        self.transactions.extend(rows)
        return len(rows)


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def make_controller(memory_store):
    """Build a ChunkController over record lines (header excluded).

    Plain strings get line numbers starting at 2, as if line 1 were the
    header; RawLine items are used as given.
    """

    def _make(lines, chunk_size=100, skip_limit=500, listeners=()):
        raw = [
            t if isinstance(t, RawLine) else RawLine(line_number=i, text=t)
            for i, t in enumerate(lines, start=2)
        ]
        cache = DimensionCache()
        processor = RowNormalizer(
            DimensionResolver(memory_store, cache), clock=lambda: FIXED_NOW
        )
        return ChunkController(
            raw,
            processor,
            ChunkWriter(memory_store),
            memory_store,
            cache,
            chunk_size=chunk_size,
            skip_limit=skip_limit,
            listeners=listeners,
        )

    return _make
