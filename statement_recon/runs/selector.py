"""
Run History Selector

Lists a document's previous extraction runs and rebuilds a preview from
any one of them.

A stored run keeps the raw model output in ``response_text``, sometimes
still wrapped in a ```json fence. Loading a run strips the fence, parses
the JSON and builds the preview the same way a live extraction does.

Reads are idempotent, so transport failures are retried. Extraction and
import calls are never retried here.
"""

import json
from typing import Optional

import structlog
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from statement_recon.config import get_settings
from statement_recon.models.extraction import (
    ExtractionPreview,
    ExtractionRunDetail,
    RunSummary,
)
from statement_recon.parsing.bulk_parser import strip_code_fences
from statement_recon.services.ledger.interface import LedgerGateway, LedgerTransportError

logger = structlog.get_logger(__name__)


class ExtractionError(Exception):
    """An extraction result could not be produced or read back."""
    pass


class RunHistorySelector:
    """Reads extraction run history through a LedgerGateway."""

    def __init__(
        self,
        gateway: LedgerGateway,
        retry_attempts: Optional[int] = None,
        retry_wait: Optional[wait_base] = None,
    ):
        """
        Initialize the selector.

        Args:
            gateway: Backend access.
            retry_attempts: Attempts per read. Defaults to
                            LEDGER_API_READ_RETRY_ATTEMPTS.
            retry_wait: tenacity wait strategy between attempts.
        """
        self._gateway = gateway
        self._attempts = retry_attempts or get_settings().ledger_api.read_retry_attempts
        self._wait = retry_wait or wait_exponential(multiplier=1, min=2, max=10)

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._attempts),
            wait=self._wait,
            retry=retry_if_exception_type(LedgerTransportError),
            reraise=True,
        )

    async def list_runs(self, document_id: str) -> list[RunSummary]:
        """
        List runs for a document in the order the backend returns them.

        Entries without a usable id are skipped.

        Raises:
            LedgerError: If the backend call fails.
        """
        raw_runs = await self._retrying()(self._gateway.list_extraction_runs, document_id)

        runs = []
        for raw in raw_runs:
            try:
                runs.append(RunSummary.model_validate(raw))
            except ValidationError as e:
                logger.warning(
                    "run_summary_skipped",
                    document_id=document_id,
                    error=str(e),
                )
        return runs

    async def load_run(
        self,
        run_id: str,
        default_account_id: Optional[str] = None,
    ) -> ExtractionPreview:
        """
        Rebuild the preview stored with a run.

        Args:
            run_id: The run to load.
            default_account_id: Fallback account for rows that carry none.

        Raises:
            ExtractionError: If the stored response is empty or not a JSON object.
            LedgerError: If the backend call fails.
        """
        raw = await self._retrying()(self._gateway.get_extraction_run, run_id)

        try:
            detail = ExtractionRunDetail.model_validate(raw)
        except ValidationError as e:
            raise ExtractionError(f"Run {run_id} has an unexpected shape: {e}") from e

        text = strip_code_fences(detail.response_text)
        if not text:
            raise ExtractionError(f"Run {run_id} has no stored response")

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise ExtractionError(f"Run {run_id} response is not valid JSON: {e}") from e

        try:
            preview = ExtractionPreview.from_response(
                payload,
                default_account_id=default_account_id,
            )
        except (TypeError, ValidationError) as e:
            raise ExtractionError(f"Run {run_id} response could not be read: {e}") from e

        logger.info(
            "run_loaded",
            run_id=run_id,
            transaction_count=len(preview.transactions),
        )
        return preview
