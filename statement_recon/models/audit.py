"""
Audit Models for Statement Reconciliation

Every significant step of a review session is recorded as an AuditEvent:
extraction, run selection, edits that change what will be imported, and
the import itself.

DESIGN DECISION: Audit events are append-only and live only for the
session. Nothing here is persisted locally.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Extraction
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"
    RUN_LOADED = "run_loaded"
    STALE_RESPONSE_DISCARDED = "stale_response_discarded"

    # Draft editing
    ROWS_APPENDED = "rows_appended"
    ROW_CONFIRMED = "row_confirmed"
    ROW_UNCONFIRMED = "row_unconfirmed"
    ROW_EDIT_REFUSED = "row_edit_refused"
    DRAFT_RESET = "draft_reset"

    # Import
    IMPORT_COMPLETED = "import_completed"
    IMPORT_FAILED = "import_failed"
    LEDGER_REFRESH_FAILED = "ledger_refresh_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'document', 'run', 'draft', 'batch')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - one review session
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by all events of one review session"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.extraction_completed(doc_id, 12, 0.9, correlation_id)
        event = AuditEventBuilder.draft_reset(row_count, correlation_id)
    """

    @staticmethod
    def extraction_completed(
        doc_id: str,
        transaction_count: int,
        confidence: float,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            entity_type="document",
            entity_id=doc_id,
            correlation_id=correlation_id,
            description=(
                f"Extraction returned {transaction_count} transactions "
                f"with {confidence:.0%} confidence"
            ),
            details={
                "transaction_count": transaction_count,
                "confidence": confidence,
            },
        )

    @staticmethod
    def extraction_failed(
        doc_id: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="document",
            entity_id=doc_id,
            correlation_id=correlation_id,
            description="Extraction failed",
            error_message=error_message,
        )

    @staticmethod
    def run_loaded(
        run_id: str,
        transaction_count: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RUN_LOADED,
            entity_type="run",
            entity_id=run_id,
            correlation_id=correlation_id,
            description=f"Historical run loaded with {transaction_count} transactions",
            details={"transaction_count": transaction_count},
            is_user_action=True,
        )

    @staticmethod
    def stale_response_discarded(
        operation: str,
        generation: int,
        current_generation: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_RESPONSE_DISCARDED,
            severity=AuditSeverity.DEBUG,
            description=f"Discarded stale {operation} response",
            details={
                "operation": operation,
                "generation": generation,
                "current_generation": current_generation,
            },
            correlation_id=correlation_id,
        )

    @staticmethod
    def rows_appended(
        count: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROWS_APPENDED,
            entity_type="draft",
            correlation_id=correlation_id,
            description=f"{count} rows appended to draft",
            details={"count": count},
            is_user_action=True,
        )

    @staticmethod
    def row_confirmation_changed(
        index: int,
        confirmed: bool,
        txid: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        event_type = (
            AuditEventType.ROW_CONFIRMED
            if confirmed
            else AuditEventType.ROW_UNCONFIRMED
        )
        return AuditEvent(
            event_type=event_type,
            entity_type="draft_row",
            entity_id=txid or None,
            correlation_id=correlation_id,
            description=f"Row {index} {'confirmed' if confirmed else 'unconfirmed'}",
            details={"index": index},
            is_user_action=True,
        )

    @staticmethod
    def row_edit_refused(
        index: int,
        operation: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROW_EDIT_REFUSED,
            severity=AuditSeverity.WARNING,
            entity_type="draft_row",
            correlation_id=correlation_id,
            description=f"Refused {operation} on confirmed row {index}",
            details={"index": index, "operation": operation},
            is_user_action=True,
        )

    @staticmethod
    def draft_reset(
        row_count: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRAFT_RESET,
            entity_type="draft",
            correlation_id=correlation_id,
            description=f"Draft reset to extracted values ({row_count} rows)",
            details={"row_count": row_count},
            is_user_action=True,
        )

    @staticmethod
    def import_completed(
        origin: str,
        row_count: int,
        imported: int,
        skipped: int,
        errors: list[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            severity=AuditSeverity.WARNING if errors else AuditSeverity.INFO,
            entity_type="batch",
            entity_id=origin,
            correlation_id=correlation_id,
            description=(
                f"Batch import from {origin}: {imported} imported, "
                f"{skipped} skipped, {len(errors)} errors"
            ),
            details={
                "row_count": row_count,
                "imported": imported,
                "skipped": skipped,
                "errors": errors,
            },
            is_user_action=True,
        )

    @staticmethod
    def import_failed(
        origin: str,
        row_count: int,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="batch",
            entity_id=origin,
            correlation_id=correlation_id,
            description=f"Batch import from {origin} failed",
            details={"row_count": row_count},
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def ledger_refresh_failed(
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_REFRESH_FAILED,
            severity=AuditSeverity.WARNING,
            description="Ledger transaction refresh failed after import",
            error_message=error_message,
            details={"service": "ledger"},
            correlation_id=correlation_id,
        )
