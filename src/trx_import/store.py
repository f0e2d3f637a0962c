"""trx_import.store

PostgreSQL store boundary.  Every statement is parameterized; callers own
transaction scope via PgStore.transaction().
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Sequence

import psycopg

if TYPE_CHECKING:
    from trx_import.processor import FactRow

REQUIRED_TABLES = ("user_profile", "account", "transaction")

_INSERT_TRANSACTION_SQL = """
    INSERT INTO "transaction"
      (version, account_id, amount, description, trx_date, trx_time,
       customer_id, created_at, updated_at)
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
"""


class PgStore:
    """Natural-key upserts for user_profile/account, append-only inserts
    for "transaction"."""

    def __init__(self, conn: psycopg.Connection) -> None:
        self.conn = conn

    def transaction(self) -> AbstractContextManager[Any]:
        """Outer transaction, or a savepoint when one is already open."""
        return self.conn.transaction()

    # -- user_profile -------------------------------------------------------

    def upsert_user_profile(self, customer_id: str, full_name: str, email: str) -> bool:
        """Insert-if-absent keyed by customer_id.  Returns True if created."""
        cur = self.conn.execute(
            """
            INSERT INTO user_profile (customer_id, full_name, email)
            VALUES (%s, %s, %s)
            ON CONFLICT (customer_id) DO NOTHING
            """,
            (customer_id, full_name, email),
        )
        return cur.rowcount == 1

    def find_user_profile_id(self, customer_id: str) -> int | None:
        row = self.conn.execute(
            "SELECT id FROM user_profile WHERE customer_id = %s",
            (customer_id,),
        ).fetchone()
        return int(row[0]) if row else None

    # -- account ------------------------------------------------------------

    def upsert_account(self, account_number: str, user_profile_id: int) -> bool:
        """Insert-if-absent keyed by account_number; ownership is never
        changed for an existing account."""
        cur = self.conn.execute(
            """
            INSERT INTO account (account_number, user_profile_id)
            VALUES (%s, %s)
            ON CONFLICT (account_number) DO NOTHING
            """,
            (account_number, user_profile_id),
        )
        return cur.rowcount == 1

    def find_account_id(self, account_number: str) -> int | None:
        row = self.conn.execute(
            "SELECT id FROM account WHERE account_number = %s",
            (account_number,),
        ).fetchone()
        return int(row[0]) if row else None

    # -- transaction (fact) -------------------------------------------------

    def insert_transactions(self, rows: Sequence[FactRow]) -> int:
        params = [
            (
                r.version, r.account_id, r.amount, r.description,
                r.trx_date, r.trx_time, r.customer_id,
                r.created_at, r.updated_at,
            )
            for r in rows
        ]
        with self.conn.cursor() as cur:
            cur.executemany(_INSERT_TRANSACTION_SQL, params)
        return len(params)

    # -- preflight ----------------------------------------------------------

    def missing_tables(self) -> list[str]:
        rows = self.conn.execute(
            """
            SELECT table_name FROM information_schema.tables
            WHERE table_schema = current_schema()
              AND table_name = ANY(%s)
            """,
            (list(REQUIRED_TABLES),),
        ).fetchall()
        present = {r[0] for r in rows}
        return [t for t in REQUIRED_TABLES if t not in present]
