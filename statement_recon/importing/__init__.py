"""Batch import to the ledger."""

from statement_recon.importing.coordinator import BatchImportCoordinator, BatchImportError

__all__ = ["BatchImportCoordinator", "BatchImportError"]
