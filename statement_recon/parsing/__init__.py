"""Bulk parsing package."""

from statement_recon.parsing.bulk_parser import (
    REQUIRED_COLUMNS,
    ParseError,
    parse_bulk,
    split_delimited_line,
    strip_code_fences,
)

__all__ = [
    "REQUIRED_COLUMNS",
    "ParseError",
    "parse_bulk",
    "split_delimited_line",
    "strip_code_fences",
]
