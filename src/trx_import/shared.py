"""trx_import.shared

Shared types used across the import pipeline.
Includes the error taxonomy, RunCounters, SkipRecord, RejectWriter and
report-writing support.
"""

from __future__ import annotations

import csv
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------

class Stage(str, Enum):
    READ = "READ"
    PROCESS = "PROCESS"
    WRITE = "WRITE"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class TransactionImportError(Exception):
    """Base class for every error raised by the import pipeline."""


class ResourceError(TransactionImportError):
    """Raised when the input resource or target store is unusable at start."""


class SkippableRecordError(TransactionImportError):
    """A record-level failure the controller may convert into a skip."""

    default_stage = Stage.PROCESS

    def __init__(self, message: str, stage: Stage | None = None) -> None:
        super().__init__(message)
        self.stage = stage or self.default_stage


class ParseError(SkippableRecordError):
    """Raised for a blank or malformed input line."""

    default_stage = Stage.READ

    def __init__(self, message: str, line_number: int, line: str) -> None:
        super().__init__(message, Stage.READ)
        self.line_number = line_number
        self.line = line


class ValidationError(SkippableRecordError):
    """Raised when required fields are missing or structurally absent."""

    def __init__(
        self,
        message: str,
        stage: Stage,
        missing_fields: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message, stage)
        self.missing_fields = missing_fields


class DependencyResolutionError(SkippableRecordError):
    """Raised when a dimension upsert or read-back fails for a record."""

    default_stage = Stage.PROCESS


class WriteError(SkippableRecordError):
    """Raised when inserting fact rows fails for data-attributable reasons."""

    default_stage = Stage.WRITE


class SkipBudgetExceeded(TransactionImportError):
    """Raised when cumulative skips cross the configured limit."""

    def __init__(self, skip_count: int, skip_limit: int) -> None:
        super().__init__(
            f"skip limit exceeded: {skip_count} skips > limit {skip_limit}"
        )
        self.skip_count = skip_count
        self.skip_limit = skip_limit


# ---------------------------------------------------------------------------
# SkipRecord
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SkipRecord:
    stage: Stage
    cause: BaseException
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def reason(self) -> str:
        return f"{type(self.cause).__name__}: {self.cause}"

    def to_reject_row(self) -> dict[str, str]:
        ctx = self.context
        return {
            "line_number": str(ctx.get("line_number", "")),
            "stage": self.stage.value,
            "account_number": ctx.get("account_number") or "",
            "customer_id": ctx.get("customer_id") or "",
            "input": ctx.get("input") or "",
        }


# ---------------------------------------------------------------------------
# RejectWriter
# ---------------------------------------------------------------------------

class RejectWriter:
    """Lazy-open CSV writer for skipped records."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._fh = None
        self._writer = None
        self.rows_written = 0

    @property
    def path(self) -> Path:
        return self._path

    def write(self, row: dict[str, str], reason: str) -> None:
        if self._fh is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(
                self._path, "w", newline="", encoding="utf-8", errors="surrogateescape"
            )
            fieldnames = list(row.keys()) + ["_reject_reason"]
            self._writer = csv.DictWriter(
                self._fh, fieldnames=fieldnames, extrasaction="ignore"
            )
            self._writer.writeheader()
        out = dict(row)
        out["_reject_reason"] = reason
        self._writer.writerow(out)
        self._fh.flush()
        self.rows_written += 1

    def close(self) -> None:
        if self._fh:
            self._fh.close()
            self._fh = None


# ---------------------------------------------------------------------------
# RunCounters
# ---------------------------------------------------------------------------

@dataclass
class RunCounters:
    read: int = 0
    written: int = 0
    filtered: int = 0
    read_skips: int = 0
    process_skips: int = 0
    write_skips: int = 0
    commits: int = 0
    rollbacks: int = 0

    @property
    def total_skips(self) -> int:
        return self.read_skips + self.process_skips + self.write_skips

    def count_skip(self, stage: Stage) -> None:
        if stage is Stage.READ:
            self.read_skips += 1
        elif stage is Stage.PROCESS:
            self.process_skips += 1
        else:
            self.write_skips += 1

    def to_dict(self) -> dict[str, Any]:
        d = {k: v for k, v in self.__dict__.items()}
        d["total_skips"] = self.total_skips
        return d


# ---------------------------------------------------------------------------
# Report writer
# ---------------------------------------------------------------------------

def write_run_report(
    run_id: str,
    started_at: str,
    mode: str,
    dry_run: bool,
    source_paths: dict[str, str],
    state: str,
    counters: RunCounters,
    report_dir: Path = Path("./artifacts/reports"),
    error: str | None = None,
) -> Path:
    report = {
        "run_id": run_id,
        "mode": mode,
        "started_at": started_at,
        "finished_at": datetime.utcnow().isoformat(),
        "dry_run": dry_run,
        **source_paths,
        "state": state,
        "error": error,
        "counters": counters.to_dict(),
    }
    report_path = report_dir / f"{run_id}.json"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(report, indent=2, default=str))
    return report_path
