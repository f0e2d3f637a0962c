"""Unit tests for trx_import.tokenizer."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal

import pytest

from trx_import.shared import ParseError, Stage, ValidationError
from trx_import.source import RawLine
from trx_import.tokenizer import header_matches, parse_line, tokenize


def _raw(text: str, line_number: int = 2) -> RawLine:
    return RawLine(line_number=line_number, text=text)


# ---------------------------------------------------------------------------
# tokenize / header
# ---------------------------------------------------------------------------

class TestTokenize:
    def test_six_fields(self):
        fields = tokenize("ACC1|12.34|Coffee|2025-12-01|10:15:30|C001")
        assert fields["ACCOUNT_NUMBER"] == "ACC1"
        assert fields["CUSTOMER_ID"] == "C001"

    def test_short_line_padded(self):
        fields = tokenize("ACC1|5")
        assert fields["DESCRIPTION"] == ""
        assert fields["CUSTOMER_ID"] == ""

    def test_extra_fields_ignored(self):
        fields = tokenize("A|1|d|2025-12-01|10:00:00|C|extra|more")
        assert len(fields) == 6
        assert fields["CUSTOMER_ID"] == "C"


class TestHeaderMatches:
    def test_expected_header(self):
        assert header_matches("ACCOUNT_NUMBER|TRX_AMOUNT|DESCRIPTION|TRX_DATE|TRX_TIME|CUSTOMER_ID")

    def test_case_and_spacing_tolerated(self):
        assert header_matches("account_number | trx_amount|description|trx_date|trx_time|customer_id")

    def test_wrong_header(self):
        assert not header_matches("ACC|AMT")

    def test_none(self):
        assert not header_matches(None)


# ---------------------------------------------------------------------------
# parse_line
# ---------------------------------------------------------------------------

class TestParseLine:
    def test_well_formed(self):
        row = parse_line(_raw("ACC1|12.34|Coffee|2025-12-01|10:15:30|C001"))
        assert row.line_number == 2
        assert row.account_number == "ACC1"
        assert row.amount == Decimal("12.34")
        assert row.description == "Coffee"
        assert row.trx_date == date(2025, 12, 1)
        assert row.trx_time == time(10, 15, 30)
        assert row.customer_id == "C001"

    def test_fields_trimmed(self):
        row = parse_line(_raw("  ACC1 | 1.00 |  Tea  | 2025-12-01 | 10:15:30 | C001 "))
        assert row.account_number == "ACC1"
        assert row.description == "Tea"
        assert row.customer_id == "C001"

    def test_blank_description_is_none(self):
        row = parse_line(_raw("ACC1|1.00|   |2025-12-01|10:15:30|C001"))
        assert row.description is None

    def test_blank_amount_defaults_to_zero(self):
        row = parse_line(_raw("ACC1||Refund|2025-12-01|10:15:30|C001"))
        assert row.amount == Decimal("0")

    def test_blank_line(self):
        with pytest.raises(ParseError) as exc_info:
            parse_line(_raw("", line_number=3))
        assert exc_info.value.line_number == 3
        assert exc_info.value.stage is Stage.READ
        assert "Blank line" in str(exc_info.value)

    def test_whitespace_line(self):
        with pytest.raises(ParseError):
            parse_line(_raw("   \t"))

    def test_missing_customer_id(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_line(_raw("ACC1|5|x|2025-12-01|10:15:30"))
        assert exc_info.value.stage is Stage.READ
        assert exc_info.value.missing_fields == ("CUSTOMER_ID",)

    def test_missing_several_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_line(_raw("|5|x|||C001"))
        assert exc_info.value.missing_fields == ("ACCOUNT_NUMBER", "TRX_DATE", "TRX_TIME")

    def test_bad_amount(self):
        with pytest.raises(ParseError, match="TRX_AMOUNT"):
            parse_line(_raw("ACC1|12,34|x|2025-12-01|10:15:30|C001"))

    def test_bad_date(self):
        with pytest.raises(ParseError, match="TRX_DATE"):
            parse_line(_raw("ACC1|1|x|2025-13-01|10:15:30|C001"))

    def test_bad_time(self):
        with pytest.raises(ParseError, match="TRX_TIME"):
            parse_line(_raw("ACC1|1|x|2025-12-01|25:00:00|C001"))

    def test_undecodable_bytes(self):
        text = b"ACC1|1|caf\xe9|2025-12-01|10:15:30|C001".decode("utf-8", "surrogateescape")
        with pytest.raises(ParseError, match="Undecodable") as exc_info:
            parse_line(_raw(text, line_number=4))
        assert exc_info.value.line_number == 4
        assert exc_info.value.stage is Stage.READ
