"""trx_import.writer

Append-only batch writer for the "transaction" fact table.
"""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

import psycopg

from trx_import.processor import FactRow
from trx_import.shared import WriteError

log = logging.getLogger(__name__)


class FactStore(Protocol):
    def insert_transactions(self, rows: Sequence[FactRow]) -> int:
        ...


class ChunkWriter:
    """One parameterized batch insert per call, inside the caller's
    transaction.  Data and constraint failures become WriteError; anything
    else (lost connection, missing table) propagates unchanged."""

    def __init__(self, store: FactStore) -> None:
        self._store = store

    def write(self, rows: Sequence[FactRow]) -> int:
        if not rows:
            return 0
        try:
            return self._store.insert_transactions(rows)
        except (psycopg.DataError, psycopg.IntegrityError) as exc:
            first = rows[0]
            if len(rows) == 1:
                message = (
                    f"insert failed for line={first.line_number} "
                    f"accountId={first.account_id}: {exc}"
                )
            else:
                message = f"batch insert of {len(rows)} rows failed: {exc}"
            raise WriteError(message) from exc
