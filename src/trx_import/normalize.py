"""Normalization functions for pipe-delimited transaction records.

All functions accept str | None and return the appropriate type or None.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation

_DECIMAL_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^\d{2}:\d{2}(:\d{2}(\.(\d{3}|\d{6}))?)?$")


# ---------------------------------------------------------------------------
# Rule 1: trim
# ---------------------------------------------------------------------------

def trim(value: str | None) -> str | None:
    """Strip leading/trailing whitespace; treat empty string as None."""
    if value is None:
        return None
    v = value.strip()
    return v if v else None


def is_blank(value: str | None) -> bool:
    return trim(value) is None


# ---------------------------------------------------------------------------
# Rule 2: parse_decimal
# ---------------------------------------------------------------------------

def parse_decimal(value: str | None) -> Decimal | None:
    """Parse an exact decimal, returning None on failure.

    Only plain and scientific notation are accepted; 'NaN', 'Infinity' and
    digit-group underscores are rejected even though Decimal() takes them.
    """
    v = trim(value)
    if v is None or not _DECIMAL_RE.match(v):
        return None
    try:
        return Decimal(v)
    except InvalidOperation:
        return None


# ---------------------------------------------------------------------------
# Rule 3: parse_iso_date / parse_iso_time
# ---------------------------------------------------------------------------

def parse_iso_date(value: str | None) -> date | None:
    """Parse 'YYYY-MM-DD'.  e.g. '2025-12-01' → date(2025, 12, 1)."""
    v = trim(value)
    if v is None or not _DATE_RE.match(v):
        return None
    try:
        return date.fromisoformat(v)
    except ValueError:
        return None


def parse_iso_time(value: str | None) -> time | None:
    """Parse 'HH:MM', 'HH:MM:SS', 'HH:MM:SS.fff' or 'HH:MM:SS.ffffff'."""
    v = trim(value)
    if v is None or not _TIME_RE.match(v):
        return None
    try:
        return time.fromisoformat(v)
    except ValueError:
        return None


def now_local() -> datetime:
    """Wall-clock timestamp used for created_at / updated_at stamps."""
    return datetime.now()
