"""Tests for the bulk parser."""

import json

import pytest

from statement_recon.models.transaction import Direction
from statement_recon.parsing import (
    REQUIRED_COLUMNS,
    ParseError,
    parse_bulk,
    split_delimited_line,
    strip_code_fences,
)

HEADER = ",".join(REQUIRED_COLUMNS)


class TestSplitDelimitedLine:
    """Tests for delimited line splitting."""

    def test_quoted_delimiter(self):
        """Test a quoted comma stays inside its field."""
        assert split_delimited_line('"a,b",c') == ["a,b", "c"]

    def test_escaped_quote(self):
        """Test a doubled quote inside a quoted field is a literal quote."""
        assert split_delimited_line('"a""b",c') == ['a"b', "c"]

    def test_empty_fields_kept(self):
        """Test empty fields are not dropped."""
        assert split_delimited_line("a,,c") == ["a", "", "c"]

    def test_tab_delimiter(self):
        """Test a tab delimiter."""
        assert split_delimited_line("a\tb,c", delimiter="\t") == ["a", "b,c"]


class TestStripCodeFences:
    """Tests for code fence removal."""

    def test_json_fence(self):
        assert strip_code_fences('```json\n[{"txid": "a"}]\n```') == '[{"txid": "a"}]'

    def test_plain_fence(self):
        assert strip_code_fences("```\nabc\n```") == "abc"

    def test_no_fence(self):
        assert strip_code_fences("  abc  ") == "abc"


class TestParseBulk:
    """Tests for parse_bulk()."""

    def test_structured_round_trip_recovers_txids(self):
        """Test serialized records come back with the same txids in order."""
        records = [
            {"txid": f"CHK-{i}", "date": "2024-03-01", "direction": "Debit", "amount_or_qty": i}
            for i in range(1, 6)
        ]
        rows = parse_bulk(json.dumps(records))
        assert [row.txid for row in rows] == [r["txid"] for r in records]

    def test_structured_object_with_transactions(self):
        """Test an extraction response body is accepted."""
        text = json.dumps({"transactions": [{"txid": "A"}, {"txid": "B"}], "quality": "ok"})
        assert [row.txid for row in parse_bulk(text)] == ["A", "B"]

    def test_structured_inside_code_fence(self):
        """Test a fenced JSON paste."""
        text = '```json\n[{"txid": "A", "direction": "credit"}]\n```'
        rows = parse_bulk(text)
        assert rows[0].direction == Direction.CREDIT

    def test_structured_records_without_txid_skipped(self):
        """Test entries without a string txid are ignored."""
        text = json.dumps([{"txid": "A"}, {"note": "summary"}, "junk", {"txid": 5}])
        assert [row.txid for row in parse_bulk(text)] == ["A"]

    def test_default_account_applied(self):
        """Test rows without an account get the statement account."""
        rows = parse_bulk(json.dumps([{"txid": "A"}]), default_account_id="acct.main")
        assert rows[0].account_id == "acct.main"

    def test_csv_with_quoted_fields(self):
        """Test CSV rows with quoted commas and quotes."""
        text = "\n".join([
            HEADER + ",payee",
            'CHK-1,2024-03-01,acct.main,Debit,Fiat,USD,12.50,"Smith, ""J"""',
            "CHK-2,2024-03-02,acct.main,Credit,Fiat,USD,100,Payroll",
        ])
        rows = parse_bulk(text)
        assert [row.txid for row in rows] == ["CHK-1", "CHK-2"]
        assert rows[0].payee == 'Smith, "J"'
        assert rows[0].amount_or_qty == 12.5
        assert rows[1].direction == Direction.CREDIT

    def test_csv_header_case_and_bom(self):
        """Test header names are matched case-insensitively, ignoring a BOM."""
        text = "\ufeff" + HEADER.upper() + "\nCHK-1,2024-03-01,acct.main,Debit,Fiat,USD,5"
        assert parse_bulk(text)[0].txid == "CHK-1"

    def test_tab_delimited(self):
        """Test tab-separated input when the header has no commas."""
        text = "\t".join(REQUIRED_COLUMNS) + "\n" + "\t".join(
            ["CHK-1", "2024-03-01", "acct.main", "Debit", "Fiat", "USD", "7"]
        )
        rows = parse_bulk(text)
        assert rows[0].amount_or_qty == 7.0

    def test_short_rows_skipped(self):
        """Test rows with fewer fields than the header are skipped."""
        text = "\n".join([
            HEADER,
            "CHK-1,2024-03-01,acct.main,Debit,Fiat,USD,5",
            "CHK-2,2024-03-02",
        ])
        assert [row.txid for row in parse_bulk(text)] == ["CHK-1"]

    def test_missing_columns(self):
        """Test a header without required columns is rejected with the names."""
        with pytest.raises(ParseError) as exc_info:
            parse_bulk("txid,date,amount_or_qty\nA,2024-03-01,5")
        assert exc_info.value.missing_columns == [
            "account_id", "direction", "kind", "ccy_or_asset",
        ]
        assert "account_id" in str(exc_info.value)

    def test_empty_input(self):
        """Test empty and blank input parse to nothing without an error."""
        assert parse_bulk("") == []
        assert parse_bulk("   \n  ") == []

    def test_header_only_is_an_error(self):
        """Test a header with no data rows is an error."""
        with pytest.raises(ParseError, match="No rows could be parsed"):
            parse_bulk(HEADER)

    def test_structured_with_no_records_is_an_error(self):
        """Test a JSON list with no transaction records is an error."""
        with pytest.raises(ParseError, match="No rows could be parsed"):
            parse_bulk(json.dumps([{"note": "nothing"}]))
