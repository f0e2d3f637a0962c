"""trx_import.tokenizer

Turns one RawLine into a CandidateRow, or raises a skip-eligible error
tagged with stage READ.

Line layout (pipe-delimited, non-strict):
  ACCOUNT_NUMBER|TRX_AMOUNT|DESCRIPTION|TRX_DATE|TRX_TIME|CUSTOMER_ID

Short lines are padded with blanks; extra trailing fields are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal

from trx_import.normalize import (
    is_blank,
    parse_decimal,
    parse_iso_date,
    parse_iso_time,
    trim,
)
from trx_import.shared import ParseError, Stage, ValidationError
from trx_import.source import RawLine

DELIMITER = "|"

FIELD_NAMES = (
    "ACCOUNT_NUMBER",
    "TRX_AMOUNT",
    "DESCRIPTION",
    "TRX_DATE",
    "TRX_TIME",
    "CUSTOMER_ID",
)

REQUIRED_FIELDS = ("ACCOUNT_NUMBER", "CUSTOMER_ID", "TRX_DATE", "TRX_TIME")

_ZERO = Decimal("0")


@dataclass(frozen=True)
class CandidateRow:
    line_number: int
    account_number: str | None = None
    amount: Decimal | None = None
    description: str | None = None
    trx_date: date | None = None
    trx_time: time | None = None
    customer_id: str | None = None


def tokenize(text: str) -> dict[str, str]:
    """Split on DELIMITER into the six named fields."""
    tokens = text.split(DELIMITER)
    tokens += [""] * (len(FIELD_NAMES) - len(tokens))
    return dict(zip(FIELD_NAMES, tokens))


def header_matches(header: str | None) -> bool:
    if header is None:
        return False
    names = [t.strip().upper() for t in header.split(DELIMITER)]
    return tuple(names[: len(FIELD_NAMES)]) == FIELD_NAMES


def parse_line(raw: RawLine) -> CandidateRow:
    """Map one RawLine to a CandidateRow.

    Raises:
        ParseError: blank or undecodable line, unparsable amount/date/time.
        ValidationError: required field blank after trimming (stage READ).
    """
    if is_blank(raw.text):
        raise ParseError("Blank line", raw.line_number, raw.text)
    try:
        raw.text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise ParseError(
            f"Undecodable bytes at line {raw.line_number}",
            raw.line_number, raw.text,
        ) from exc

    fields = tokenize(raw.text)

    missing = tuple(name for name in REQUIRED_FIELDS if trim(fields[name]) is None)
    if missing:
        raise ValidationError(
            f"Missing required fields {', '.join(missing)} at line {raw.line_number}",
            Stage.READ,
            missing_fields=missing,
        )

    amount_raw = trim(fields["TRX_AMOUNT"])
    if amount_raw is None:
        amount = _ZERO
    else:
        amount = parse_decimal(amount_raw)
        if amount is None:
            raise ParseError(
                f"Unparsable TRX_AMOUNT {amount_raw!r}", raw.line_number, raw.text
            )

    trx_date = parse_iso_date(fields["TRX_DATE"])
    if trx_date is None:
        raise ParseError(
            f"Unparsable TRX_DATE {fields['TRX_DATE'].strip()!r}",
            raw.line_number, raw.text,
        )
    trx_time = parse_iso_time(fields["TRX_TIME"])
    if trx_time is None:
        raise ParseError(
            f"Unparsable TRX_TIME {fields['TRX_TIME'].strip()!r}",
            raw.line_number, raw.text,
        )

    return CandidateRow(
        line_number=raw.line_number,
        account_number=trim(fields["ACCOUNT_NUMBER"]),
        amount=amount,
        description=trim(fields["DESCRIPTION"]),
        trx_date=trx_date,
        trx_time=trx_time,
        customer_id=trim(fields["CUSTOMER_ID"]),
    )
