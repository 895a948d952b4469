"""Extraction run history."""

from statement_recon.runs.selector import ExtractionError, RunHistorySelector

__all__ = ["ExtractionError", "RunHistorySelector"]
