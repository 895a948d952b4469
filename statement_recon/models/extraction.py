"""
Extraction, Import and Reconciliation Models

These models describe what crosses the boundary with the extraction and
ledger backends, plus the derived results shown next to a draft.

CRITICAL: ExtractionPreview is the immutable record of one extraction run.
It is NEVER edited. Edits happen on a Draft derived from it.
"""

import json
import math
from typing import Any, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from statement_recon.models.transaction import FlatTransaction


def _coerce_balance(value: Any) -> Optional[float]:
    """Numeric or numeric-looking string to float; anything else to None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _unwrap_object_id(v: Any) -> Any:
    # Mongo-style {"$oid": "..."} ids
    if isinstance(v, dict) and "$oid" in v:
        return str(v["$oid"])
    return v


# =============================================================================
# IMPORT OUTCOME
# =============================================================================

class ImportOutcome(BaseModel):
    """
    Per-batch result reported by the ledger.

    Duplicates detected by the ledger are counted in ``skipped``,
    not reported in ``errors``.
    """

    imported: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    errors: list[str] = Field(default_factory=list)

    @field_validator('errors', mode='before')
    @classmethod
    def stringify_errors(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, (str, dict)):
            v = [v]
        return [e if isinstance(e, str) else json.dumps(e, default=str) for e in v]

    def summary_line(self) -> str:
        """One-line summary for display next to the draft."""
        line = f"Imported {self.imported}, skipped {self.skipped}"
        if self.errors:
            line += f", {len(self.errors)} errors"
        return line


# =============================================================================
# EXTRACTION PREVIEW
# =============================================================================

class ExtractionAudit(BaseModel):
    """What the extractor reported about its own work."""
    model_config = ConfigDict(frozen=True)

    issues: tuple[Any, ...] = ()
    assumptions: tuple[Any, ...] = ()
    skipped_lines: tuple[Any, ...] = ()

    @field_validator('issues', 'assumptions', 'skipped_lines', mode='before')
    @classmethod
    def tuplify(cls, v: Any) -> tuple:
        if v is None:
            return ()
        if isinstance(v, (list, tuple)):
            return tuple(v)
        return (v,)

    @staticmethod
    def render_item(value: Any) -> str:
        """Render an audit entry as text; structured entries become JSON."""
        if isinstance(value, str):
            return value
        return json.dumps(value, default=str, sort_keys=True)


class InferredMeta(BaseModel):
    """
    Statement-level facts the extractor inferred.

    Unknown keys are kept so nothing the extractor reported is lost.
    """
    model_config = ConfigDict(extra="allow", frozen=True)

    opening_balance: Optional[float] = None
    closing_balance: Optional[float] = None
    account_id: Optional[str] = None
    txid_prefix: Optional[str] = None

    @field_validator('opening_balance', 'closing_balance', mode='before')
    @classmethod
    def coerce_balance(cls, v: Any) -> Optional[float]:
        return _coerce_balance(v)

    @field_validator('account_id', 'txid_prefix', mode='before')
    @classmethod
    def blank_to_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        return text or None


class ExtractionPreview(BaseModel):
    """The immutable result of one extraction run."""
    model_config = ConfigDict(frozen=True)

    transactions: tuple[FlatTransaction, ...] = ()
    audit: ExtractionAudit = Field(default_factory=ExtractionAudit)
    inferred_meta: InferredMeta = Field(default_factory=InferredMeta)
    quality: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    import_summary: Optional[ImportOutcome] = None

    @field_validator('confidence', mode='before')
    @classmethod
    def clamp_confidence(cls, v: Any) -> float:
        number = _coerce_balance(v)
        if number is None:
            return 0.0
        return min(1.0, max(0.0, number))

    @field_validator('quality', mode='before')
    @classmethod
    def quality_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @classmethod
    def from_response(
        cls,
        payload: dict,
        default_account_id: Optional[str] = None,
    ) -> "ExtractionPreview":
        """
        Build a preview from the extraction endpoint's JSON body.

        Every transaction goes through the normalizer. The statement's
        inferred account is used as the fallback account for rows that
        have none, unless a default is given explicitly.
        """
        from statement_recon.normalization.sanitizer import sanitize

        if not isinstance(payload, dict):
            raise TypeError(
                f"Extraction response must be a JSON object, got {type(payload).__name__}"
            )

        meta = InferredMeta.model_validate(payload.get("inferred_meta") or {})
        fallback_account = default_account_id or meta.account_id

        raw_rows = payload.get("transactions") or []
        if not isinstance(raw_rows, list):
            raw_rows = []

        audit = payload.get("audit")
        if audit is None:
            audit = payload.get("audit_json")
        if not isinstance(audit, dict):
            audit = {"issues": audit} if audit else {}

        return cls(
            transactions=tuple(
                sanitize(row, default_account_id=fallback_account) for row in raw_rows
            ),
            audit=ExtractionAudit.model_validate(audit),
            inferred_meta=meta,
            quality=payload.get("quality"),
            confidence=payload.get("confidence"),
            import_summary=payload.get("import_summary"),
        )


# =============================================================================
# RECONCILIATION
# =============================================================================

class ReconciliationResult(BaseModel):
    """
    Live balance check of a batch against the statement balances.

    All fields are derived. ``units`` lists the currencies/assets seen so a
    multi-currency batch is visible; no conversion is ever applied.
    """
    model_config = ConfigDict(frozen=True)

    sum_credits: float = 0.0
    sum_debits: float = 0.0
    net: float = 0.0
    expected: float = 0.0
    diff: float = 0.0
    units: tuple[str, ...] = ()

    @property
    def is_multi_currency(self) -> bool:
        return len(self.units) > 1

    def is_balanced(self, tolerance: float = 0.01) -> bool:
        return self.diff <= tolerance


# =============================================================================
# RUN HISTORY
# =============================================================================

class RunSummary(BaseModel):
    """One entry of a document's extraction run history."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    run_id: str = Field(validation_alias=AliasChoices("run_id", "_id", "id"))
    created_at: Union[int, float, str, None] = None
    status: str = ""
    quality: Optional[str] = None
    confidence: Optional[float] = None

    @field_validator('run_id', mode='before')
    @classmethod
    def unwrap_object_id(cls, v: Any) -> str:
        return str(_unwrap_object_id(v))


class ExtractionRunDetail(RunSummary):
    """A stored run including the raw response text it produced."""

    response_text: str = ""


# =============================================================================
# EXTRACTION REQUEST
# =============================================================================

class ImportOptions(BaseModel):
    """Options for submitting the extraction result to the ledger immediately."""

    submit: Optional[bool] = None
    source: Optional[str] = None
    status: Optional[str] = None
    debit_tx_type: Optional[str] = None
    credit_tx_type: Optional[str] = None
    fallback_account_id: Optional[str] = None


class ExtractionRequest(BaseModel):
    """Body of the extraction invocation."""
    model_config = ConfigDict(populate_by_name=True)

    blob_id: str
    doc_id: str
    prompt: str
    prompt_id: str
    prompt_version: str
    model: str
    assistant_name: str
    import_options: Optional[ImportOptions] = Field(
        default=None,
        serialization_alias="import",
        validation_alias=AliasChoices("import", "import_options"),
    )

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# DOCUMENTS AND PROMPTS
# =============================================================================

class StatementDocument(BaseModel):
    """A stored statement document, as listed by the document service."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    doc_id: str = Field(validation_alias=AliasChoices("doc_id", "_id", "id"))
    blob_id: str
    namespace: str = "capital"
    kind: str = "bank_statement"
    title: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator('doc_id', 'blob_id', mode='before')
    @classmethod
    def unwrap_ids(cls, v: Any) -> Any:
        return _unwrap_object_id(v)

    @field_validator('metadata', mode='before')
    @classmethod
    def metadata_dict(cls, v: Any) -> dict:
        return v if isinstance(v, dict) else {}

    def _metadata_text(self, key: str) -> Optional[str]:
        value = self.metadata.get(key)
        if value is None:
            return None
        return str(value).strip() or None

    @property
    def account_id(self) -> Optional[str]:
        return self._metadata_text("account_id")

    @property
    def txid_prefix(self) -> Optional[str]:
        return self._metadata_text("txid_prefix")

    @property
    def prompt_id(self) -> str:
        """Id of the extraction prompt for this kind of document."""
        return f"{self.namespace}.extract_{self.kind}"

    def assistant_name(self, suffix: str) -> str:
        return f"{self.namespace}_{self.kind}_{suffix}"


class ExtractionPrompt(BaseModel):
    """A stored extraction prompt record."""
    model_config = ConfigDict(extra="ignore")

    id: str
    version: Union[int, str, None] = None
    model: Optional[str] = None
    task: str = ""
    prompt_template: str
    prompt_variables: list[str] = Field(default_factory=list)

    @field_validator('prompt_variables', mode='before')
    @classmethod
    def variables_list(cls, v: Any) -> list:
        return v if isinstance(v, list) else []
