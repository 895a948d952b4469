"""
Bulk Parser

Turns pasted text into sanitized transactions for appending to a draft.

Two input shapes are accepted, tried in order:
1. A JSON list of records (or an object with a "transactions" list,
   which is what the extraction endpoint returns).
2. Delimited text with a header line (comma, or tab when the header has
   tabs and no commas).

IMPORTANT: A parse failure never touches the draft. The caller appends
only what parse_bulk returned.
"""

import csv
import io
import json
from collections.abc import Mapping
from typing import Any, Optional

import structlog

from statement_recon.models.transaction import FlatTransaction
from statement_recon.normalization.sanitizer import sanitize

logger = structlog.get_logger(__name__)

REQUIRED_COLUMNS = (
    "txid",
    "date",
    "account_id",
    "direction",
    "kind",
    "ccy_or_asset",
    "amount_or_qty",
)


class ParseError(ValueError):
    """Pasted text could not produce any rows."""

    def __init__(self, message: str, missing_columns: Optional[list[str]] = None):
        self.missing_columns = missing_columns or []
        super().__init__(message)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ``` or ```json fence, if present."""
    text = text.strip()
    if not text.startswith("```"):
        return text
    text = text[3:]
    if text[:4].lower() == "json":
        text = text[4:]
    if text.rstrip().endswith("```"):
        text = text.rstrip()[:-3]
    return text.strip()


def split_delimited_line(line: str, delimiter: str = ",") -> list[str]:
    """
    Split one delimited line into fields.

    Double-quoted fields may contain the delimiter, and "" inside a quoted
    field is a literal quote:
        '"a,b",c'  -> ['a,b', 'c']
        '"a""b",c' -> ['a"b', 'c']
    """
    for fields in csv.reader([line], delimiter=delimiter):
        return fields
    return []


def _records_from_structured(data: Any) -> Optional[list]:
    """The list of candidate records in parsed JSON, or None if not a list shape."""
    if isinstance(data, list):
        return data
    if isinstance(data, Mapping) and isinstance(data.get("transactions"), list):
        return data["transactions"]
    return None


def _parse_structured(
    records: list,
    default_account_id: Optional[str],
) -> list[FlatTransaction]:
    rows = []
    for record in records:
        # Entries without a string txid are not transaction records
        if not isinstance(record, Mapping) or not isinstance(record.get("txid"), str):
            continue
        rows.append(sanitize(record, default_account_id=default_account_id))
    return rows


def _detect_delimiter(header_line: str) -> str:
    if "\t" in header_line and "," not in header_line:
        return "\t"
    return ","


def _parse_delimited(
    text: str,
    default_account_id: Optional[str],
) -> list[FlatTransaction]:
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return []

    delimiter = _detect_delimiter(lines[0])
    reader = csv.reader(io.StringIO("\n".join(lines)), delimiter=delimiter)

    header = [name.strip().lstrip("\ufeff").lower() for name in next(reader)]
    missing = [column for column in REQUIRED_COLUMNS if column not in header]
    if missing:
        raise ParseError(
            f"Missing required columns: {', '.join(missing)}",
            missing_columns=missing,
        )

    rows = []
    skipped = 0
    for fields in reader:
        if len(fields) < len(header):
            skipped += 1
            continue
        record = dict(zip(header, fields))
        rows.append(sanitize(record, default_account_id=default_account_id))

    if skipped:
        logger.info("bulk_parse_short_rows_skipped", skipped=skipped)

    return rows


def parse_bulk(
    text: str,
    default_account_id: Optional[str] = None,
) -> list[FlatTransaction]:
    """
    Parse pasted JSON or delimited text into transactions.

    Args:
        text: The pasted text.
        default_account_id: Account used for rows that carry none.

    Returns:
        Sanitized transactions in input order. Empty input gives [].

    Raises:
        ParseError: If the header is missing required columns, or no rows
                    could be produced.
    """
    text = strip_code_fences(text or "")
    if not text:
        return []

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None

    records = _records_from_structured(data)
    if records is not None:
        rows = _parse_structured(records, default_account_id)
    else:
        rows = _parse_delimited(text, default_account_id)

    if not rows:
        raise ParseError("No rows could be parsed")

    return rows
