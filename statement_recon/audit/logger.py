"""
Audit Logger

DESIGN DECISION: Every step that changes what will be imported is logged.
This provides:
1. Traceability from extraction run to imported batch
2. Debugging capability
3. A per-session history the reviewer can inspect

The audit logger:
- Logs locally through structlog, never to a store of its own
- Keeps the session's most recent events in memory
- Supports correlation IDs to tie one review session together
"""

from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from statement_recon.config import get_settings
from statement_recon.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditSeverity,
)


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service for one review session.

    Every event is written to the structured log at the level matching its
    severity and appended to ``events``.
    """

    def __init__(
        self,
        correlation_id: Optional[UUID] = None,
        max_events: Optional[int] = None,
    ):
        """
        Initialize audit logger.

        Args:
            correlation_id: ID stamped on events built by the log_* helpers.
                            A new one is created if omitted.
            max_events: How many recent events to keep. Older ones remain
                        in the structured log only.
        """
        if max_events is None:
            max_events = get_settings().app.audit_history_size
        self.correlation_id = correlation_id or create_correlation_id()
        self._events: deque[AuditEvent] = deque(maxlen=max_events)
        self._logger = structlog.get_logger("statement_recon.audit")

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def log(self, event: AuditEvent) -> None:
        """Log an audit event locally and remember it."""
        self._events.append(event)
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    async def log_extraction_completed(
        self,
        doc_id: str,
        transaction_count: int,
        confidence: float,
    ) -> None:
        """Log a successful extraction."""
        event = AuditEventBuilder.extraction_completed(
            doc_id=doc_id,
            transaction_count=transaction_count,
            confidence=confidence,
            correlation_id=self.correlation_id,
        )
        await self.log(event)

    async def log_extraction_failed(self, doc_id: str, error_message: str) -> None:
        """Log a failed extraction."""
        event = AuditEventBuilder.extraction_failed(
            doc_id=doc_id,
            error_message=error_message,
            correlation_id=self.correlation_id,
        )
        await self.log(event)

    async def log_run_loaded(self, run_id: str, transaction_count: int) -> None:
        event = AuditEventBuilder.run_loaded(
            run_id=run_id,
            transaction_count=transaction_count,
            correlation_id=self.correlation_id,
        )
        await self.log(event)

    async def log_stale_response(
        self,
        operation: str,
        generation: int,
        current_generation: int,
    ) -> None:
        """Log a response dropped because a newer request superseded it."""
        event = AuditEventBuilder.stale_response_discarded(
            operation=operation,
            generation=generation,
            current_generation=current_generation,
            correlation_id=self.correlation_id,
        )
        await self.log(event)

    async def log_rows_appended(self, count: int) -> None:
        event = AuditEventBuilder.rows_appended(
            count=count,
            correlation_id=self.correlation_id,
        )
        await self.log(event)

    async def log_row_confirmation(self, index: int, confirmed: bool, txid: str) -> None:
        event = AuditEventBuilder.row_confirmation_changed(
            index=index,
            confirmed=confirmed,
            txid=txid,
            correlation_id=self.correlation_id,
        )
        await self.log(event)

    async def log_row_edit_refused(self, index: int, operation: str) -> None:
        """Log an edit or delete refused because the row is confirmed."""
        event = AuditEventBuilder.row_edit_refused(
            index=index,
            operation=operation,
            correlation_id=self.correlation_id,
        )
        await self.log(event)

    async def log_draft_reset(self, row_count: int) -> None:
        event = AuditEventBuilder.draft_reset(
            row_count=row_count,
            correlation_id=self.correlation_id,
        )
        await self.log(event)

    async def log_import_completed(
        self,
        origin: str,
        row_count: int,
        imported: int,
        skipped: int,
        errors: list[str],
    ) -> None:
        """Log a batch import the ledger accepted."""
        event = AuditEventBuilder.import_completed(
            origin=origin,
            row_count=row_count,
            imported=imported,
            skipped=skipped,
            errors=errors,
            correlation_id=self.correlation_id,
        )
        await self.log(event)

    async def log_import_failed(
        self,
        origin: str,
        row_count: int,
        error_message: str,
    ) -> None:
        """Log a batch import the ledger rejected or never received."""
        event = AuditEventBuilder.import_failed(
            origin=origin,
            row_count=row_count,
            error_message=error_message,
            correlation_id=self.correlation_id,
        )
        await self.log(event)

    async def log_ledger_refresh_failed(self, error_message: str) -> None:
        event = AuditEventBuilder.ledger_refresh_failed(
            error_message=error_message,
            correlation_id=self.correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use one per review session and pass it to every audit call.
    """
    return uuid4()
