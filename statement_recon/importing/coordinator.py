"""
Batch Import Coordinator

Submits a batch of transactions to the ledger and reports the counts.

Two entry points share one path:
- import_extraction: the rows exactly as extracted
- import_draft: the reviewed draft rows (the draft is never modified)

After a successful import the ledger is asked to refresh its transaction
list. That refresh is best-effort: its failure is logged and audited but
never turns a successful import into an error.

IMPORTANT: Nothing here prevents a double submission; the session guards
that with its in-flight set.
"""

import asyncio
from collections.abc import Iterable
from typing import Optional

import structlog
from pydantic import ValidationError

from statement_recon.audit import AuditLogger
from statement_recon.config import get_settings
from statement_recon.drafts.draft import Draft
from statement_recon.models.extraction import ExtractionPreview, ImportOutcome
from statement_recon.models.transaction import FlatTransaction
from statement_recon.services.ledger.interface import LedgerError, LedgerGateway

logger = structlog.get_logger(__name__)


class BatchImportError(Exception):
    """The ledger did not accept the batch. The message is shown verbatim."""
    pass


class BatchImportCoordinator:
    """Sends batches to the ledger through a LedgerGateway."""

    def __init__(
        self,
        gateway: LedgerGateway,
        audit_logger: Optional[AuditLogger] = None,
        refresh_in_background: Optional[bool] = None,
    ):
        self._gateway = gateway
        self._audit = audit_logger
        if refresh_in_background is None:
            refresh_in_background = get_settings().app.refresh_in_background
        self._refresh_in_background = refresh_in_background
        self._refresh_tasks: set[asyncio.Task] = set()

    async def import_extraction(self, preview: ExtractionPreview) -> ImportOutcome:
        """Import the rows of an extraction result as-is."""
        return await self.import_batch(preview.transactions, origin="extraction")

    async def import_draft(self, draft: Draft) -> ImportOutcome:
        """Import the current rows of a draft."""
        rows, _ = draft.snapshot()
        return await self.import_batch(rows, origin="draft")

    async def import_batch(
        self,
        rows: Iterable[FlatTransaction],
        origin: str = "batch",
    ) -> ImportOutcome:
        """
        Submit rows and return the ledger's counts.

        A response with ``imported == 0`` is still a success.

        Raises:
            BatchImportError: If the ledger call fails or its answer
                              cannot be read.
        """
        payload = [row.to_payload() for row in rows]

        try:
            response = await self._gateway.batch_import(payload)
            outcome = ImportOutcome.model_validate(response)
        except (LedgerError, ValidationError) as e:
            logger.error(
                "batch_import_failed",
                origin=origin,
                row_count=len(payload),
                error=str(e),
            )
            if self._audit:
                await self._audit.log_import_failed(origin, len(payload), str(e))
            raise BatchImportError(str(e)) from e

        logger.info(
            "batch_import_completed",
            origin=origin,
            row_count=len(payload),
            imported=outcome.imported,
            skipped=outcome.skipped,
            errors=len(outcome.errors),
        )
        if self._audit:
            await self._audit.log_import_completed(
                origin,
                len(payload),
                outcome.imported,
                outcome.skipped,
                outcome.errors,
            )

        if self._refresh_in_background:
            task = asyncio.create_task(self.refresh_ledger())
            self._refresh_tasks.add(task)
            task.add_done_callback(self._refresh_tasks.discard)
        else:
            await self.refresh_ledger()

        return outcome

    async def refresh_ledger(self) -> bool:
        """
        Ask the ledger to reload its transactions.

        Returns:
            True if the refresh succeeded. Failures are logged, never raised.
        """
        try:
            await self._gateway.refresh_transactions()
        except Exception as e:
            logger.warning("ledger_refresh_failed", error=str(e), error_type=type(e).__name__)
            if self._audit:
                await self._audit.log_ledger_refresh_failed(str(e))
            return False
        return True

    async def wait_for_refresh(self) -> None:
        """Wait for any background refreshes still running."""
        if self._refresh_tasks:
            await asyncio.gather(*list(self._refresh_tasks))
