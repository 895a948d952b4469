"""
Abstract Ledger Gateway Interface

DESIGN DECISION: The extraction service and the ledger sit behind one
abstract interface. This allows us to:
1. Use an in-memory gateway for testing
2. Keep the review logic decoupled from HTTP details
3. Swap transports without touching the session

The interface is intentionally thin: bodies go in and come out as plain
JSON-compatible dicts, and the models layer does the interpretation.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from statement_recon.models.extraction import ExtractionRequest


class LedgerGateway(ABC):
    """
    Abstract interface for the extraction and ledger backend.

    Any implementation (HTTP, in-memory, etc.) must implement these methods.
    """

    @abstractmethod
    async def extract_bank_statement(self, request: ExtractionRequest) -> dict[str, Any]:
        """
        Run AI extraction on a stored statement.

        Args:
            request: Blob/document ids, prompt and model to use

        Returns:
            The extraction response body (transactions, audit,
            inferred_meta, quality, confidence, import_summary)

        Raises:
            LedgerError: If the extraction call fails
        """
        pass

    @abstractmethod
    async def list_extraction_runs(self, doc_id: str) -> list[dict[str, Any]]:
        """
        List previous extraction runs for a document.

        Returns:
            Run summaries in the order the backend returns them
        """
        pass

    @abstractmethod
    async def get_extraction_run(self, run_id: str) -> dict[str, Any]:
        """
        Fetch one extraction run including its raw ``response_text``.

        Raises:
            LedgerError: If the run cannot be fetched
        """
        pass

    @abstractmethod
    async def batch_import(self, transactions: list[dict[str, Any]]) -> dict[str, Any]:
        """
        Submit transactions to the ledger.

        Args:
            transactions: Transaction payloads in wire shape

        Returns:
            Import counts: imported, skipped, errors

        Raises:
            LedgerError: If the ledger rejects the request
        """
        pass

    @abstractmethod
    async def refresh_transactions(self) -> None:
        """Ask the ledger to reload its transaction list."""
        pass


# =============================================================================
# EXCEPTIONS
# =============================================================================

class LedgerError(Exception):
    """Base exception for gateway errors."""
    pass


class LedgerHTTPError(LedgerError):
    """The backend answered with a non-success status."""

    def __init__(self, status_code: int, message: str, action: Optional[str] = None):
        self.status_code = status_code
        self.action = action
        super().__init__(message)


class LedgerTransportError(LedgerError):
    """The request never got an answer (connection, timeout)."""
    pass
