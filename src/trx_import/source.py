"""trx_import.source

Line-oriented record source over a local flat file.

The resource location may be given as a plain path or as a
file: resource string ('file:/data/transactions-source.txt').  Lines are yielded
lazily; the header (first physical line by default) is captured, never
yielded.  Undecodable bytes are kept as lone surrogates; the tokenizer
rejects such lines.
"""

from __future__ import annotations

import itertools
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from trx_import.shared import ResourceError

log = logging.getLogger(__name__)

_FILE_PREFIX = "file:"

ENCODING = "utf-8-sig"


@dataclass(frozen=True)
class RawLine:
    line_number: int
    text: str


def resolve_location(location: str) -> Path:
    """Strip an optional 'file:' scheme and return a Path."""
    loc = location.strip()
    if loc.startswith(_FILE_PREFIX):
        loc = loc[len(_FILE_PREFIX):]
        # file:///data/x.txt and file:/data/x.txt both mean /data/x.txt
        if loc.startswith("//"):
            loc = loc[2:]
    return Path(loc)


class RecordSource:
    """Restartable lazy sequence of RawLines from one named resource."""

    def __init__(self, location: str, lines_to_skip: int = 1) -> None:
        self.location = location
        self.path = resolve_location(location)
        self.lines_to_skip = lines_to_skip
        self.header: str | None = None

    def open(self) -> None:
        """Fail fast if the resource is missing or unreadable."""
        if not self.path.is_file():
            raise ResourceError(f"input resource not found: {self.location}")
        if not os.access(self.path, os.R_OK):
            raise ResourceError(f"input resource not readable: {self.location}")
        log.info(
            "[READER] resource=%s path=%s sizeBytes=%d",
            self.location, self.path, self.path.stat().st_size,
        )

    def preview(self, max_lines: int = 10) -> list[str]:
        """Return up to max_lines physical lines, header included."""
        try:
            with self.path.open(encoding=ENCODING, errors="surrogateescape") as fh:
                return [
                    line.rstrip("\r\n")
                    for line in itertools.islice(fh, max_lines)
                ]
        except OSError as exc:
            raise ResourceError(f"cannot read {self.location}: {exc}") from exc

    def lines(self, start: int = 0) -> Iterator[RawLine]:
        """Yield RawLines after the header.

        start: number of records (post-header lines) already consumed by an
        earlier pass; those are skipped without being yielded.
        """
        try:
            fh = self.path.open(encoding=ENCODING, errors="surrogateescape")
        except OSError as exc:
            raise ResourceError(f"cannot open {self.location}: {exc}") from exc
        with fh:
            for idx, line in enumerate(fh, start=1):
                text = line.rstrip("\r\n")
                if idx <= self.lines_to_skip:
                    if idx == 1:
                        self.header = text
                    log.info("[READER] skippedHeader=%r", text)
                    continue
                if idx - self.lines_to_skip <= start:
                    continue
                yield RawLine(line_number=idx, text=text)
