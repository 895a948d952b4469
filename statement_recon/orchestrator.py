"""
Main Orchestrator for Statement Reconciliation

This module ties the components together for the review of one
statement document:
1. Extract (prompt -> extraction service -> preview -> draft)
2. Or load a historical run (run id -> stored response -> preview -> draft)
3. Review (edit, confirm, append pasted rows; warnings and balance check
   recompute on every change)
4. Import (draft or raw extraction -> ledger -> counts)

DESIGN DECISION: The session enforces the boundaries:
- The extraction result is never edited; only the draft is
- Each operation reports errors in its own slot and nowhere else
- A response that arrives after a newer request of the same kind is dropped
- Only one import runs at a time
- Every step that changes what will be imported is audited
"""

from collections.abc import Mapping
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ValidationError

from statement_recon.audit import AuditLogger
from statement_recon.config import ExtractionSettings, Settings, get_settings
from statement_recon.drafts import Draft, InFlightIds
from statement_recon.importing import BatchImportCoordinator, BatchImportError
from statement_recon.models.extraction import (
    ExtractionPreview,
    ExtractionPrompt,
    ExtractionRequest,
    ImportOptions,
    ImportOutcome,
    ReconciliationResult,
    RunSummary,
    StatementDocument,
)
from statement_recon.parsing import ParseError
from statement_recon.prompting import (
    PromptTemplateError,
    fill_prompt_template,
    leftover_placeholders,
    prompt_hash,
)
from statement_recon.reconciliation import reconcile
from statement_recon.runs import ExtractionError, RunHistorySelector
from statement_recon.services.ledger import HttpLedgerGateway, LedgerError, LedgerGateway
from statement_recon.validation import compute_warnings

logger = structlog.get_logger(__name__)

OPERATIONS = ("extract", "runs", "load_run", "import", "append")


class OperationState(BaseModel):
    """Loading flag and last error of one kind of operation."""

    loading: bool = False
    error: Optional[str] = None


class StatementReviewSession:
    """
    Review state for one statement document.

    Holds the current extraction result, the draft derived from it, the
    run history and the last import outcome.
    """

    def __init__(
        self,
        document: StatementDocument,
        gateway: LedgerGateway,
        selector: Optional[RunHistorySelector] = None,
        coordinator: Optional[BatchImportCoordinator] = None,
        audit_logger: Optional[AuditLogger] = None,
        extraction_settings: Optional[ExtractionSettings] = None,
    ):
        self.document = document
        self._gateway = gateway
        self._audit = audit_logger or AuditLogger()
        self._selector = selector or RunHistorySelector(gateway)
        self._coordinator = coordinator or BatchImportCoordinator(gateway, self._audit)
        self._extraction_settings = extraction_settings or get_settings().extraction

        self.preview: Optional[ExtractionPreview] = None
        self.draft: Optional[Draft] = None
        self.runs: list[RunSummary] = []
        self.last_import: Optional[ImportOutcome] = None
        self.last_prompt_hash: Optional[str] = None

        self.state: dict[str, OperationState] = {op: OperationState() for op in OPERATIONS}
        self.in_flight = InFlightIds()
        self._generations = {op: 0 for op in OPERATIONS}
        self._draft_generation = 0

        self._opening_override: Optional[float] = None
        self._closing_override: Optional[float] = None

        self._derived_key: Optional[tuple] = None
        self._warnings: list[str] = []
        self._reconciliation: Optional[ReconciliationResult] = None

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    # -------------------------------------------------------------------------
    # Operation bookkeeping
    # -------------------------------------------------------------------------

    def _begin(self, operation: str) -> int:
        self._generations[operation] += 1
        state = self.state[operation]
        state.loading = True
        state.error = None
        return self._generations[operation]

    async def _finish(
        self,
        operation: str,
        generation: int,
        error: Optional[str] = None,
    ) -> bool:
        """
        Close an operation.

        Returns:
            False if a newer request of the same kind was started meanwhile.
            The response must then be dropped and the state left alone.
        """
        current = self._generations[operation]
        if generation != current:
            logger.info(
                "stale_response_discarded",
                operation=operation,
                generation=generation,
                current_generation=current,
            )
            await self._audit.log_stale_response(operation, generation, current)
            return False

        state = self.state[operation]
        state.loading = False
        state.error = error
        return True

    def _claim_draft(self) -> int:
        self._draft_generation += 1
        return self._draft_generation

    async def _draft_superseded(self, operation: str, token: int) -> bool:
        """
        Check whether another draft source started after ``token`` was claimed.

        An extraction and a run load both replace the draft, so the older of
        the two must not overwrite the newer one or the edits made to it.
        """
        current = self._draft_generation
        if token == current:
            return False
        logger.info(
            "stale_response_discarded",
            operation=operation,
            generation=token,
            current_generation=current,
        )
        await self._audit.log_stale_response(operation, token, current)
        return True

    # -------------------------------------------------------------------------
    # Statement expectations
    # -------------------------------------------------------------------------

    @property
    def expected_account_id(self) -> Optional[str]:
        if self.document.account_id:
            return self.document.account_id
        if self.preview is not None:
            return self.preview.inferred_meta.account_id
        return None

    @property
    def expected_txid_prefix(self) -> Optional[str]:
        if self.document.txid_prefix:
            return self.document.txid_prefix
        if self.preview is not None:
            return self.preview.inferred_meta.txid_prefix
        return None

    @property
    def opening_balance(self) -> Optional[float]:
        if self._opening_override is not None:
            return self._opening_override
        if self.preview is not None:
            return self.preview.inferred_meta.opening_balance
        return None

    @opening_balance.setter
    def opening_balance(self, value: Optional[float]) -> None:
        self._opening_override = value

    @property
    def closing_balance(self) -> Optional[float]:
        if self._closing_override is not None:
            return self._closing_override
        if self.preview is not None:
            return self.preview.inferred_meta.closing_balance
        return None

    @closing_balance.setter
    def closing_balance(self, value: Optional[float]) -> None:
        self._closing_override = value

    def clear_balance_overrides(self) -> None:
        self._opening_override = None
        self._closing_override = None

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    def _refresh_derived(self) -> None:
        key = (
            id(self.draft),
            self.draft.version if self.draft is not None else -1,
            id(self.preview),
            self._opening_override,
            self._closing_override,
            self.expected_account_id,
            self.expected_txid_prefix,
        )
        if key == self._derived_key:
            return

        rows = self.draft.rows if self.draft is not None else ()
        self._warnings = compute_warnings(
            rows,
            self.expected_account_id,
            self.expected_txid_prefix,
        )
        self._reconciliation = (
            reconcile(rows, self.opening_balance, self.closing_balance)
            if self.draft is not None
            else None
        )
        self._derived_key = key

    @property
    def warnings(self) -> list[str]:
        """Aggregated warnings for the current draft rows."""
        self._refresh_derived()
        return list(self._warnings)

    @property
    def reconciliation(self) -> Optional[ReconciliationResult]:
        """Balance check of the current draft rows, or None without a draft."""
        self._refresh_derived()
        return self._reconciliation

    # -------------------------------------------------------------------------
    # Extraction and run history
    # -------------------------------------------------------------------------

    def prepare_prompt(self, prompt: ExtractionPrompt) -> str:
        """
        Fill the statement's values into a prompt template.

        If the template cannot be filled cleanly the raw template is
        returned and the problems are logged; the reviewer can still edit
        and send it.
        """
        variables = {
            "account_id": self.document.account_id or "",
            "txid_prefix": self.document.txid_prefix or "",
        }
        try:
            return fill_prompt_template(
                prompt.prompt_template,
                variables,
                prompt.prompt_variables,
            )
        except PromptTemplateError as e:
            logger.warning("prompt_interpolation_skipped", prompt_id=prompt.id, problems=e.problems)
            return prompt.prompt_template

    def build_request(
        self,
        prompt: ExtractionPrompt,
        prompt_text: str,
        import_options: Optional[ImportOptions] = None,
    ) -> ExtractionRequest:
        settings = self._extraction_settings
        return ExtractionRequest(
            blob_id=self.document.blob_id,
            doc_id=self.document.doc_id,
            prompt=prompt_text,
            prompt_id=prompt.id,
            prompt_version=str(prompt.version or settings.default_prompt_version),
            model=prompt.model or settings.default_model,
            assistant_name=self.document.assistant_name(settings.assistant_suffix),
            import_options=import_options,
        )

    async def run_extraction(
        self,
        prompt: ExtractionPrompt,
        prompt_text: Optional[str] = None,
        import_options: Optional[ImportOptions] = None,
    ) -> Optional[ExtractionPreview]:
        """
        Run AI extraction and replace the draft with its result.

        Args:
            prompt: The stored prompt record.
            prompt_text: The (possibly edited) prompt to send. Defaults to
                         the record's template with the statement's values.
            import_options: Ask the backend to import immediately.

        Returns:
            The new preview, or None if a newer extraction or run load
            superseded this one.

        Raises:
            ExtractionError: If the extraction fails. The message is the
                             service's own.
        """
        if prompt_text is None:
            prompt_text = self.prepare_prompt(prompt)
        leftover = leftover_placeholders(prompt_text)
        if leftover:
            logger.warning("prompt_has_placeholders", placeholders=leftover)

        generation = self._begin("extract")
        draft_token = self._claim_draft()
        try:
            request = self.build_request(prompt, prompt_text, import_options)
            response = await self._gateway.extract_bank_statement(request)
            preview = ExtractionPreview.from_response(
                response,
                default_account_id=self.document.account_id,
            )
        except (LedgerError, TypeError, ValidationError) as e:
            if not await self._finish("extract", generation, error=str(e)):
                return None
            await self._audit.log_extraction_failed(self.document.doc_id, str(e))
            raise ExtractionError(str(e)) from e

        if not await self._finish("extract", generation):
            return None
        if await self._draft_superseded("extract", draft_token):
            return None

        self.last_prompt_hash = prompt_hash(prompt_text)
        self._apply_preview(preview)
        if preview.import_summary is not None:
            self.last_import = preview.import_summary
        await self._audit.log_extraction_completed(
            self.document.doc_id,
            len(preview.transactions),
            preview.confidence,
        )
        return preview

    async def refresh_runs(self) -> Optional[list[RunSummary]]:
        """
        Reload the document's run history.

        Raises:
            LedgerError: If the backend call fails.
        """
        generation = self._begin("runs")
        try:
            runs = await self._selector.list_runs(self.document.doc_id)
        except LedgerError as e:
            if await self._finish("runs", generation, error=str(e)):
                raise
            return None

        if not await self._finish("runs", generation):
            return None
        self.runs = runs
        return list(runs)

    async def select_run(self, run_id: str) -> Optional[ExtractionPreview]:
        """
        Load a historical run and replace the draft with its rows.

        Returns:
            The run's preview, or None if a newer extraction or run load
            superseded this one.

        Raises:
            ExtractionError: If the run cannot be loaded or read.
        """
        generation = self._begin("load_run")
        draft_token = self._claim_draft()
        try:
            preview = await self._selector.load_run(
                run_id,
                default_account_id=self.document.account_id,
            )
        except (ExtractionError, LedgerError) as e:
            if not await self._finish("load_run", generation, error=str(e)):
                return None
            if isinstance(e, ExtractionError):
                raise
            raise ExtractionError(str(e)) from e

        if not await self._finish("load_run", generation):
            return None
        if await self._draft_superseded("load_run", draft_token):
            return None

        self._apply_preview(preview)
        await self._audit.log_run_loaded(run_id, len(preview.transactions))
        return preview

    def _apply_preview(self, preview: ExtractionPreview) -> None:
        self.preview = preview
        # Overrides corrected the previous statement, not this one.
        self.clear_balance_overrides()
        if self.draft is None:
            self.draft = Draft(preview, default_account_id=self.document.account_id)
        else:
            self.draft.reset_to_extracted(preview)

    def _ensure_draft(self) -> Draft:
        if self.draft is None:
            self.draft = Draft(ExtractionPreview(), default_account_id=self.document.account_id)
        return self.draft

    # -------------------------------------------------------------------------
    # Draft editing
    # -------------------------------------------------------------------------

    async def patch_row(self, index: int, fields: Mapping[str, Any]) -> bool:
        """Edit a row. Confirmed rows are refused and audited."""
        applied = self._ensure_draft().patch_row(index, fields)
        if not applied:
            await self._audit.log_row_edit_refused(index, "patch")
        return applied

    async def delete_row(self, index: int) -> bool:
        """Delete a row. Confirmed rows are refused and audited."""
        removed = self._ensure_draft().delete_row(index)
        if not removed:
            await self._audit.log_row_edit_refused(index, "delete")
        return removed

    def add_row(self, defaults: Optional[Mapping[str, Any]] = None) -> int:
        return self._ensure_draft().add_row(defaults)

    async def set_confirmed(self, index: int, value: bool) -> None:
        draft = self._ensure_draft()
        draft.set_confirmed(index, value)
        await self._audit.log_row_confirmation(index, bool(value), draft.rows[index].txid)

    async def reset_draft(self) -> None:
        """Throw away all edits and go back to the extracted rows."""
        draft = self._ensure_draft()
        draft.reset_to_extracted()
        await self._audit.log_draft_reset(len(draft))

    async def append_bulk(self, text: str) -> int:
        """
        Append pasted JSON or delimited rows to the draft.

        Raises:
            ParseError: If nothing could be parsed. Only the append slot
                        records the error.
        """
        generation = self._begin("append")
        try:
            count = self._ensure_draft().append_text(text)
        except ParseError as e:
            await self._finish("append", generation, error=str(e))
            raise

        await self._finish("append", generation)
        if count:
            await self._audit.log_rows_appended(count)
        return count

    # -------------------------------------------------------------------------
    # Import
    # -------------------------------------------------------------------------

    async def import_draft(self) -> Optional[ImportOutcome]:
        """
        Import the reviewed draft rows.

        Raises:
            BatchImportError: If there is no draft, an import is already
                              running, or the ledger rejects the batch.
        """
        if self.draft is None:
            raise BatchImportError("There is no draft to import")
        draft = self.draft
        return await self._run_import(lambda: self._coordinator.import_draft(draft))

    async def import_extraction(self) -> Optional[ImportOutcome]:
        """
        Import the extraction result exactly as extracted.

        Raises:
            BatchImportError: If there is no extraction result, an import is
                              already running, or the ledger rejects the batch.
        """
        if self.preview is None:
            raise BatchImportError("There is no extraction result to import")
        preview = self.preview
        return await self._run_import(lambda: self._coordinator.import_extraction(preview))

    async def _run_import(self, submit) -> Optional[ImportOutcome]:
        if "import" in self.in_flight:
            raise BatchImportError("An import is already in progress")

        generation = self._begin("import")
        with self.in_flight.track("import"):
            try:
                outcome = await submit()
            except Exception as e:
                await self._finish("import", generation, error=str(e))
                raise

        if not await self._finish("import", generation):
            return None
        self.last_import = outcome
        return outcome

    def import_summary_text(self) -> str:
        """E.g. "Imported 2, skipped 0"; empty before the first import."""
        if self.last_import is None:
            return ""
        return self.last_import.summary_line()


def create_app_components(
    settings: Optional[Settings] = None,
) -> tuple[LedgerGateway, AuditLogger, RunHistorySelector, BatchImportCoordinator]:
    """
    Factory function to create the shared application components.

    Args:
        settings: Settings to use. Loaded from the environment if not provided.

    Returns:
        (gateway, audit_logger, selector, coordinator)
    """
    settings = settings or get_settings()

    gateway = HttpLedgerGateway(settings.ledger_api)
    audit_logger = AuditLogger(max_events=settings.app.audit_history_size)
    selector = RunHistorySelector(
        gateway,
        retry_attempts=settings.ledger_api.read_retry_attempts,
    )
    coordinator = BatchImportCoordinator(
        gateway,
        audit_logger,
        refresh_in_background=settings.app.refresh_in_background,
    )

    return gateway, audit_logger, selector, coordinator
