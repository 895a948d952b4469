"""
Data Models Package

This package contains all Pydantic models used in Statement Reconciliation.
All data flowing through the system must conform to these schemas.
"""

from statement_recon.models.transaction import (
    AI_SOURCE,
    DEFAULT_CURRENCY,
    Amount,
    AssetKind,
    CryptoAmount,
    Direction,
    FiatAmount,
    FlatTransaction,
)
from statement_recon.models.extraction import (
    ExtractionAudit,
    ExtractionPrompt,
    ExtractionPreview,
    ExtractionRequest,
    ExtractionRunDetail,
    ImportOptions,
    ImportOutcome,
    InferredMeta,
    ReconciliationResult,
    RunSummary,
    StatementDocument,
)
from statement_recon.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "AI_SOURCE",
    "DEFAULT_CURRENCY",
    "Amount",
    "AssetKind",
    "CryptoAmount",
    "Direction",
    "FiatAmount",
    "FlatTransaction",
    # Extraction models
    "ExtractionAudit",
    "ExtractionPrompt",
    "ExtractionPreview",
    "ExtractionRequest",
    "ExtractionRunDetail",
    "ImportOptions",
    "ImportOutcome",
    "InferredMeta",
    "ReconciliationResult",
    "RunSummary",
    "StatementDocument",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
