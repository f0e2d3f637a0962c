"""trx_import.controller

Fault-tolerant chunk controller.

State machine:
  IDLE → RUNNING → COMPLETED | FAILED

While RUNNING, per chunk:
  1.  Fill: read up to chunk_size CandidateRows; read errors become
      READ skips and do not count toward the chunk size
  2.  Process: RowNormalizer on every row, inside one transaction
  3.  Write: one batch insert for the chunk's FactRows
  4.  Commit: promote staged cache entries, advance counters
  5.  Scan-back: after a process or write fault, roll back and replay
      the chunk one row per transaction; the faulting
      row becomes a PROCESS or WRITE skip, the rest commit
  6.  Budget: after every skip, total skips > skip_limit aborts the run

Counters for written/filtered rows only advance once their transaction has
committed, so a rolled-back bulk attempt is never counted twice.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from enum import Enum
from typing import Any, Iterable, Iterator, Protocol, Sequence

from trx_import.dimensions import DimensionCache
from trx_import.listeners import RunListener
from trx_import.processor import FactRow, RowNormalizer
from trx_import.shared import (
    DependencyResolutionError,
    ParseError,
    RunCounters,
    SkipBudgetExceeded,
    SkipRecord,
    Stage,
    ValidationError,
    WriteError,
)
from trx_import.source import RawLine
from trx_import.tokenizer import CandidateRow, parse_line
from trx_import.writer import ChunkWriter

log = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 100
DEFAULT_SKIP_LIMIT = 500

_READ_ERRORS = (ParseError, ValidationError)
_CHUNK_ERRORS = (ValidationError, DependencyResolutionError, WriteError)


class RunState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TransactionScope(Protocol):
    def transaction(self) -> AbstractContextManager[Any]:
        ...


class ChunkController:
    def __init__(
        self,
        lines: Iterable[RawLine],
        processor: RowNormalizer,
        writer: ChunkWriter,
        store: TransactionScope,
        cache: DimensionCache,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        skip_limit: int = DEFAULT_SKIP_LIMIT,
        listeners: Sequence[RunListener] = (),
    ) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        if skip_limit < 0:
            raise ValueError(f"skip_limit must be >= 0, got {skip_limit}")
        self._lines: Iterator[RawLine] = iter(lines)
        self._processor = processor
        self._writer = writer
        self._store = store
        self._cache = cache
        self.chunk_size = chunk_size
        self.skip_limit = skip_limit
        self._listeners: list[RunListener] = list(listeners)
        self.state = RunState.IDLE
        self.counters = RunCounters()
        self.skips: list[SkipRecord] = []

    # -- lifecycle ------------------------------------------------------------

    def run(self) -> RunCounters:
        if self.state is not RunState.IDLE:
            raise RuntimeError(f"controller already used (state={self.state.value})")
        self.state = RunState.RUNNING
        try:
            while True:
                chunk = self._fill()
                if not chunk:
                    break
                self._execute_chunk(chunk)
        except BaseException:
            self.state = RunState.FAILED
            self._cache.discard()
            raise
        self.state = RunState.COMPLETED
        return self.counters

    # -- step 1: fill ---------------------------------------------------------

    def _fill(self) -> list[CandidateRow]:
        chunk: list[CandidateRow] = []
        while len(chunk) < self.chunk_size:
            raw = next(self._lines, None)
            if raw is None:
                break
            try:
                item = parse_line(raw)
            except _READ_ERRORS as exc:
                self._skip(
                    Stage.READ, exc,
                    {"line_number": raw.line_number, "input": raw.text},
                )
                continue
            self.counters.read += 1
            self._emit("after_read", item)
            chunk.append(item)
        return chunk

    # -- steps 2-4: bulk mode -------------------------------------------------

    def _execute_chunk(self, chunk: list[CandidateRow]) -> None:
        facts: list[FactRow] = []
        filtered: list[CandidateRow] = []
        try:
            with self._store.transaction():
                for item in chunk:
                    fact = self._processor.process(item)
                    if fact is None:
                        filtered.append(item)
                    else:
                        facts.append(fact)
                self._writer.write(facts)
        except _CHUNK_ERRORS as exc:
            self._cache.discard()
            self.counters.rollbacks += 1
            log.warning(
                "[CHUNK] fault in chunk of %d rows (%s); scanning back row by row",
                len(chunk), exc,
            )
            self._scan_back(chunk)
            return

        self._cache.commit()
        self.counters.commits += 1
        self.counters.written += len(facts)
        self.counters.filtered += len(filtered)
        for item in filtered:
            self._emit("on_filter", item)
        if facts:
            self._emit("after_write", facts)
        self._emit("after_commit", self.counters)

    # -- step 5: single-row replay --------------------------------------------

    def _scan_back(self, chunk: list[CandidateRow]) -> None:
        for item in chunk:
            stage = Stage.PROCESS
            fact: FactRow | None = None
            try:
                with self._store.transaction():
                    fact = self._processor.process(item)
                    if fact is not None:
                        stage = Stage.WRITE
                        self._writer.write([fact])
            except _CHUNK_ERRORS as exc:
                self._cache.discard()
                self.counters.rollbacks += 1
                self._skip(stage, exc, {
                    "line_number": item.line_number,
                    "account_number": item.account_number,
                    "customer_id": item.customer_id,
                })
                continue

            self._cache.commit()
            self.counters.commits += 1
            if fact is None:
                self.counters.filtered += 1
                self._emit("on_filter", item)
            else:
                self.counters.written += 1
                self._emit("after_write", [fact])
            self._emit("after_commit", self.counters)

    # -- step 6: skip bookkeeping + budget -------------------------------------

    def _skip(self, stage: Stage, exc: BaseException, context: dict[str, Any]) -> None:
        record = SkipRecord(stage=stage, cause=exc, context=context)
        self.skips.append(record)
        self.counters.count_skip(stage)
        self._emit("on_skip", record)
        total = self.counters.total_skips
        if total > self.skip_limit:
            raise SkipBudgetExceeded(total, self.skip_limit) from exc

    def _emit(self, hook: str, *args: Any) -> None:
        for listener in self._listeners:
            getattr(listener, hook)(*args)
