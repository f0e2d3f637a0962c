"""trx_import.import_transactions

CLI entrypoint and run orchestrator for the pipe-delimited transaction import.

Usage:
    python -m trx_import.import_transactions \\
        --db-dsn "$DB_DSN" \\
        --input-resource "file:/data/transactions-source.txt" \\
        --chunk-size 100 \\
        --skip-limit 500 \\
        --rejects-path "artifacts/rejects/transaction_import_rejects.csv"

Every run is fresh: a new run_id is generated (or taken from --run-id) and the
whole file is reprocessed; committed chunks from an earlier failed run are not
resumed.
"""

from __future__ import annotations

import contextlib
import json
import logging
import sys
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Sequence

import click
import psycopg

from trx_import.config import ConfigValidationError, ImportConfig, load_config
from trx_import.controller import ChunkController, RunState
from trx_import.dimensions import DimensionCache, DimensionResolver
from trx_import.listeners import LoggingListener, RejectListener, RunListener
from trx_import.normalize import now_local
from trx_import.processor import RowNormalizer
from trx_import.shared import (
    RejectWriter,
    ResourceError,
    RunCounters,
    SkipBudgetExceeded,
    SkipRecord,
    write_run_report,
)
from trx_import.source import RecordSource
from trx_import.store import PgStore
from trx_import.tokenizer import FIELD_NAMES, header_matches
from trx_import.writer import ChunkWriter

log = logging.getLogger(__name__)

MODE = "transaction_import"
PREVIEW_LINES = 10


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------

@dataclass
class RunOutcome:
    run_id: str
    state: RunState
    counters: RunCounters
    skips: list[SkipRecord] = field(default_factory=list)
    error: str | None = None


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

def run_import(
    conn: psycopg.Connection,
    config: ImportConfig,
    run_id: str | None = None,
    listeners: Sequence[RunListener] = (),
    clock: Callable[[], datetime] = now_local,
) -> RunOutcome:
    """Execute one import run against an open, idle connection.

    Raises:
        ResourceError: input missing/unreadable or target tables absent.
        psycopg.Error: non record-level store failures (connection loss etc.).
    """
    run_id = run_id or str(uuid.uuid4())

    source = RecordSource(config.input_resource)
    source.open()
    preview = source.preview(PREVIEW_LINES)
    for idx, line in enumerate(preview, start=1):
        log.debug("[READER-PREVIEW] %d: [%s]", idx, line)
    if preview and not header_matches(preview[0]):
        log.warning(
            "[READER] header %r does not match expected %s",
            preview[0], "|".join(FIELD_NAMES),
        )

    store = PgStore(conn)
    with store.transaction():
        missing = store.missing_tables()
    if missing:
        raise ResourceError(f"target tables missing: {', '.join(missing)}")

    cache = DimensionCache()
    controller = ChunkController(
        source.lines(),
        RowNormalizer(DimensionResolver(store, cache), clock=clock),
        ChunkWriter(store),
        store,
        cache,
        chunk_size=config.chunk_size,
        skip_limit=config.skip_limit,
        listeners=[LoggingListener(), *listeners],
    )

    log.info(
        "[RUN] start run_id=%s resource=%s chunkSize=%d skipLimit=%d dryRun=%s",
        run_id, config.input_resource, config.chunk_size,
        config.skip_limit, config.dry_run,
    )
    error: str | None = None
    try:
        if config.dry_run:
            # Chunk transactions become savepoints of this outer transaction.
            with conn.transaction(force_rollback=True):
                controller.run()
        else:
            controller.run()
    except SkipBudgetExceeded as exc:
        error = str(exc)
        log.error("[RUN] aborted run_id=%s: %s", run_id, exc)

    c = controller.counters
    log.info(
        "[RUN] end run_id=%s status=%s read=%d filter=%d written=%d "
        "readSkips=%d processSkips=%d writeSkips=%d commits=%d rollbacks=%d",
        run_id, controller.state.value, c.read, c.filtered, c.written,
        c.read_skips, c.process_skips, c.write_skips, c.commits, c.rollbacks,
    )
    return RunOutcome(
        run_id=run_id,
        state=controller.state,
        counters=controller.counters,
        skips=list(controller.skips),
        error=error,
    )


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("psycopg").setLevel(logging.WARNING)


@click.command()
@click.option("--db-dsn", required=True, envvar="DB_DSN", help="PostgreSQL DSN")
@click.option(
    "--config", "config_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="YAML file with an 'import_transactions' section",
)
@click.option(
    "--input-resource",
    default=None,
    help="Input file path or file: resource (default file:/data/transactions-source.txt)",
)
@click.option("--chunk-size", default=None, type=click.IntRange(min=1), help="Records per commit (default 100)")
@click.option("--skip-limit", default=None, type=click.IntRange(min=0), help="Max skipped records before the run fails (default 500)")
@click.option("--rejects-path", default=None, type=click.Path(), help="CSV file receiving skipped records")
@click.option("--report-dir", default=None, type=click.Path(file_okay=False), help="Directory for the JSON run report")
@click.option("--dry-run", is_flag=True, default=False, help="Process everything, then roll back")
@click.option("--run-id", default=None, help="Override UUID for log correlation")
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    show_default=True,
)
def main(
    db_dsn: str,
    config_path: str | None,
    input_resource: str | None,
    chunk_size: int | None,
    skip_limit: int | None,
    rejects_path: str | None,
    report_dir: str | None,
    dry_run: bool,
    run_id: str | None,
    log_level: str,
) -> None:
    """Import a pipe-delimited transaction file in fault-tolerant chunks."""
    run_id = run_id or str(uuid.uuid4())
    started_at = datetime.utcnow().isoformat()
    _configure_logging(log_level)

    try:
        config = load_config(Path(config_path) if config_path else None).with_overrides(
            input_resource=input_resource,
            chunk_size=chunk_size,
            skip_limit=skip_limit,
            rejects_path=rejects_path,
            report_dir=report_dir,
            dry_run=True if dry_run else None,
        )
    except (ConfigValidationError, FileNotFoundError) as exc:
        click.echo(f"[{run_id}] FATAL: invalid configuration: {exc}", err=True)
        sys.exit(1)

    click.echo(
        f"[{run_id}] Starting {MODE} run (dry_run={config.dry_run}) "
        f"resource={config.input_resource}"
    )

    try:
        conn = psycopg.connect(db_dsn, autocommit=False)
    except psycopg.OperationalError as exc:
        click.echo(f"[{run_id}] FATAL: cannot connect to database: {exc}", err=True)
        sys.exit(1)

    rejects = RejectWriter(Path(config.rejects_path))
    try:
        outcome = run_import(
            conn, config, run_id=run_id, listeners=[RejectListener(rejects)],
        )
    except ResourceError as exc:
        click.echo(f"[{run_id}] FATAL: {exc}", err=True)
        sys.exit(1)
    except Exception as exc:
        with contextlib.suppress(psycopg.Error):
            conn.rollback()
        click.echo(
            f"[{run_id}] FATAL: run failed: {type(exc).__name__}: {exc}", err=True
        )
        sys.exit(1)
    finally:
        conn.close()
        rejects.close()

    if config.dry_run:
        click.echo(f"[{run_id}] [dry-run] All changes rolled back.")
    if rejects.rows_written:
        click.echo(f"[{run_id}] {rejects.rows_written} skipped record(s) written to {rejects.path}")

    report_path = write_run_report(
        run_id, started_at, MODE, config.dry_run,
        {"input_resource": config.input_resource, "rejects_path": config.rejects_path},
        outcome.state.value,
        outcome.counters,
        report_dir=Path(config.report_dir),
        error=outcome.error,
    )
    click.echo(f"[{run_id}] Run report: {report_path}")
    click.echo(json.dumps(outcome.counters.to_dict(), indent=2, default=str))

    if outcome.state is not RunState.COMPLETED:
        click.echo(f"[{run_id}] FATAL: run {outcome.state.value}: {outcome.error}", err=True)
        sys.exit(1)
    click.echo(f"[{run_id}] Done.")


if __name__ == "__main__":
    main()
