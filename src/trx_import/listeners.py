"""trx_import.listeners

Observers the chunk controller publishes to.  They never influence
control flow; an exception raised by a listener is fatal for the run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from trx_import.processor import FactRow
from trx_import.shared import RejectWriter, RunCounters, SkipRecord, Stage
from trx_import.tokenizer import CandidateRow

log = logging.getLogger(__name__)


class RunListener(Protocol):
    def after_read(self, item: CandidateRow) -> None:
        ...

    def on_filter(self, item: CandidateRow) -> None:
        ...

    def after_write(self, rows: Sequence[FactRow]) -> None:
        ...

    def after_commit(self, counters: RunCounters) -> None:
        ...

    def on_skip(self, record: SkipRecord) -> None:
        ...


@dataclass
class LoggingListener:
    """Per-stage log lines in the [READ]/[PROCESS]/[WRITE]/[SKIP-*] style."""

    def after_read(self, item: CandidateRow) -> None:
        log.debug(
            "[READ] line=%s account=%s customerId=%s trxDate=%s trxTime=%s",
            item.line_number, item.account_number, item.customer_id,
            item.trx_date, item.trx_time,
        )

    def on_filter(self, item: CandidateRow) -> None:
        log.warning(
            "[PROCESS] filtered/null line=%s account=%s customerId=%s",
            item.line_number, item.account_number or "", item.customer_id or "",
        )

    def after_write(self, rows: Sequence[FactRow]) -> None:
        log.info("[WRITE] ok batchSize=%d", len(rows))

    def after_commit(self, counters: RunCounters) -> None:
        log.debug("[CHUNK] committed commits=%d written=%d", counters.commits, counters.written)

    def on_skip(self, record: SkipRecord) -> None:
        ctx = record.context
        if record.stage is Stage.READ:
            log.warning(
                "[SKIP-READ] line=%s input=%r reason=%s",
                ctx.get("line_number"), ctx.get("input"), record.cause,
            )
        else:
            log.warning(
                "[SKIP-%s] line=%s account=%s customerId=%s reason=%s",
                record.stage.value, ctx.get("line_number"),
                ctx.get("account_number"), ctx.get("customer_id"), record.cause,
            )


class RejectListener:
    """Write every skipped record to the rejects CSV."""

    def __init__(self, rejects: RejectWriter) -> None:
        self._rejects = rejects

    def after_read(self, item: CandidateRow) -> None:
        pass

    def on_filter(self, item: CandidateRow) -> None:
        pass

    def after_write(self, rows: Sequence[FactRow]) -> None:
        pass

    def after_commit(self, counters: RunCounters) -> None:
        pass

    def on_skip(self, record: SkipRecord) -> None:
        self._rejects.write(record.to_reject_row(), record.reason)
