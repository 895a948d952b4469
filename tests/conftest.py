"""
Shared fixtures for Statement Reconciliation tests.

No real API calls in tests: the ledger is an in-memory gateway.
"""

import asyncio
from typing import Any, Optional

import pytest

from statement_recon.audit import AuditLogger
from statement_recon.importing import BatchImportCoordinator
from statement_recon.models.extraction import (
    ExtractionPrompt,
    ExtractionRequest,
    StatementDocument,
)
from statement_recon.orchestrator import StatementReviewSession
from statement_recon.runs import RunHistorySelector
from statement_recon.services.ledger import LedgerError, LedgerGateway


class FakeLedgerGateway(LedgerGateway):
    """
    In-memory gateway that records every call.

    Set ``*_error`` attributes to make the matching call fail, and put an
    asyncio.Event in ``extract_gates``, ``detail_gates`` or ``import_gates``
    to hold a call open until the event is set.
    """

    def __init__(
        self,
        extraction_response: Optional[dict] = None,
        runs: Optional[list[dict]] = None,
        run_details: Optional[dict[str, dict]] = None,
        import_response: Optional[dict] = None,
    ):
        self.extraction_responses: list[dict] = [extraction_response or {"transactions": []}]
        self.runs = runs or []
        self.run_details = run_details or {}
        self.import_response = import_response or {"imported": 0, "skipped": 0, "errors": []}

        self.extract_error: Optional[LedgerError] = None
        self.list_errors: list[LedgerError] = []
        self.detail_errors: list[LedgerError] = []
        self.import_error: Optional[Exception] = None
        self.refresh_error: Optional[Exception] = None

        self.extract_gates: list[Optional[asyncio.Event]] = []
        self.detail_gates: list[Optional[asyncio.Event]] = []
        self.import_gates: list[Optional[asyncio.Event]] = []

        self.extraction_requests: list[ExtractionRequest] = []
        self.imported_batches: list[list[dict[str, Any]]] = []
        self.list_calls = 0
        self.detail_calls = 0
        self.refresh_calls = 0

    async def extract_bank_statement(self, request: ExtractionRequest) -> dict[str, Any]:
        self.extraction_requests.append(request)
        gate = self.extract_gates.pop(0) if self.extract_gates else None
        response = (
            self.extraction_responses.pop(0)
            if len(self.extraction_responses) > 1
            else self.extraction_responses[0]
        )
        if gate is not None:
            await gate.wait()
        if self.extract_error:
            raise self.extract_error
        return response

    async def list_extraction_runs(self, doc_id: str) -> list[dict[str, Any]]:
        self.list_calls += 1
        if self.list_errors:
            raise self.list_errors.pop(0)
        return list(self.runs)

    async def get_extraction_run(self, run_id: str) -> dict[str, Any]:
        self.detail_calls += 1
        gate = self.detail_gates.pop(0) if self.detail_gates else None
        if gate is not None:
            await gate.wait()
        if self.detail_errors:
            raise self.detail_errors.pop(0)
        return self.run_details[run_id]

    async def batch_import(self, transactions: list[dict[str, Any]]) -> dict[str, Any]:
        self.imported_batches.append(transactions)
        gate = self.import_gates.pop(0) if self.import_gates else None
        if gate is not None:
            await gate.wait()
        if self.import_error:
            raise self.import_error
        return self.import_response

    async def refresh_transactions(self) -> None:
        self.refresh_calls += 1
        if self.refresh_error:
            raise self.refresh_error


def statement_response(
    opening: Any = 500,
    closing: Any = 450,
    rows: Optional[list[dict]] = None,
    account_id: str = "acct.chase_checking",
    txid_prefix: str = "CHK-",
) -> dict:
    """An extraction response body in the backend's shape."""
    if rows is None:
        rows = [
            {
                "txid": "CHK-001",
                "date": "2024-03-02",
                "payee": "Coffee Shop",
                "direction": "Debit",
                "kind": "Fiat",
                "ccy_or_asset": "USD",
                "amount_or_qty": 30,
            },
            {
                "txid": "CHK-002",
                "date": "2024-03-05",
                "payee": "Grocer",
                "direction": "Debit",
                "kind": "Fiat",
                "ccy_or_asset": "USD",
                "amount_or_qty": 20,
            },
        ]
    return {
        "transactions": rows,
        "audit": {"issues": [], "assumptions": ["Dates are statement dates"]},
        "inferred_meta": {
            "opening_balance": opening,
            "closing_balance": closing,
            "account_id": account_id,
            "txid_prefix": txid_prefix,
        },
        "quality": "good",
        "confidence": 0.92,
    }


@pytest.fixture
def make_response():
    """Factory for extraction response bodies."""
    return statement_response


@pytest.fixture
def gateway_factory():
    return FakeLedgerGateway


@pytest.fixture
def gateway():
    return FakeLedgerGateway(
        extraction_response=statement_response(),
        import_response={"imported": 2, "skipped": 0, "errors": []},
    )


@pytest.fixture
def document():
    return StatementDocument.model_validate({
        "_id": {"$oid": "65f0c0ffee"},
        "blob_id": {"$oid": "65f0b10b"},
        "namespace": "capital",
        "kind": "bank_statement",
        "title": "March statement",
        "metadata": {"account_id": "acct.chase_checking", "txid_prefix": "CHK-"},
    })


@pytest.fixture
def prompt():
    return ExtractionPrompt(
        id="capital.extract_bank_statement",
        version=3,
        model="gpt-4o",
        prompt_template="Extract lines for {{ account_id }} using prefix {{txid_prefix}}.",
        prompt_variables=["account_id", "{{txid_prefix}}"],
    )


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def session(document, gateway, audit_logger):
    return StatementReviewSession(
        document,
        gateway,
        selector=RunHistorySelector(gateway, retry_attempts=1),
        coordinator=BatchImportCoordinator(
            gateway,
            audit_logger,
            refresh_in_background=False,
        ),
        audit_logger=audit_logger,
    )
