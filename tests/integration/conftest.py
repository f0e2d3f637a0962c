"""Integration test fixtures.

Applies the transaction import migration against an ephemeral PostgreSQL
database provided by pytest-postgresql.  Tests are skipped when no local
PostgreSQL server binaries are installed.
"""

from __future__ import annotations

from pathlib import Path

import psycopg
import pytest
from pytest_postgresql import factories

from pg_binaries import server_binaries_available

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).parent.parent.parent
MIGRATIONS = [
    PROJECT_ROOT / "migrations" / "0001_transaction_import.sql",
]

HEADER = "ACCOUNT_NUMBER|TRX_AMOUNT|DESCRIPTION|TRX_DATE|TRX_TIME|CUSTOMER_ID"

_PG_AVAILABLE = server_binaries_available()

# ---------------------------------------------------------------------------
# pytest-postgresql process fixture
# ---------------------------------------------------------------------------

postgresql_proc = factories.postgresql_proc()
postgresql = factories.postgresql("postgresql_proc")


# ---------------------------------------------------------------------------
# Schema fixture
# ---------------------------------------------------------------------------

@pytest.fixture(scope="function")
def db_conn(request):
    """Return (connection, dsn) with the schema applied.

    The connection is left idle with autocommit off, the state run_import
    expects.  Each test gets a fresh database.
    """
    if not _PG_AVAILABLE:
        pytest.skip("PostgreSQL server binaries not available")
    pg = request.getfixturevalue("postgresql")
    dsn = (
        f"host={pg.info.host} "
        f"port={pg.info.port} "
        f"dbname={pg.info.dbname} "
        f"user={pg.info.user} "
        f"password={pg.info.password or ''}"
    )
    conn = psycopg.connect(dsn, autocommit=True)
    try:
        for migration in MIGRATIONS:
            conn.execute(migration.read_text(encoding="utf-8"))
        conn.autocommit = False
        yield conn, dsn
    finally:
        conn.close()


@pytest.fixture
def write_input(tmp_path):
    """Write a header plus the given record lines; return the file path."""

    def _write(*lines: str, header: str = HEADER) -> Path:
        path = tmp_path / "transactions-source.txt"
        path.write_text("\n".join([header, *lines]) + "\n", encoding="utf-8")
        return path

    return _write
