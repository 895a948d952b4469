"""
HTTP Ledger Gateway

Talks to the backend's /ai and /capital routes with httpx.

Error mapping:
- Non-2xx response -> LedgerHTTPError carrying the status and the
  response text (or "<action> failed (<status>)" when the body is empty)
- Connection errors and timeouts -> LedgerTransportError
"""

from typing import Any, Optional

import httpx
import structlog

from statement_recon.config import LedgerApiSettings, get_settings
from statement_recon.models.extraction import ExtractionRequest
from statement_recon.services.ledger.interface import (
    LedgerError,
    LedgerGateway,
    LedgerHTTPError,
    LedgerTransportError,
)

logger = structlog.get_logger(__name__)


class HttpLedgerGateway(LedgerGateway):
    """
    LedgerGateway over HTTP.

    One AsyncClient is created lazily and reused; call ``aclose()`` (or use
    ``async with``) when done.
    """

    def __init__(
        self,
        settings: Optional[LedgerApiSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the gateway.

        Args:
            settings: API settings. Loaded from the environment if not provided.
            transport: Custom httpx transport (tests pass a MockTransport).
        """
        self._settings = settings or get_settings().ledger_api
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self._settings.api_token:
                headers["Authorization"] = f"Bearer {self._settings.api_token}"

            self._client = httpx.AsyncClient(
                base_url=self._settings.base_url,
                headers=headers,
                timeout=httpx.Timeout(
                    self._settings.timeout_seconds,
                    connect=self._settings.connect_timeout_seconds,
                ),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpLedgerGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._get_client().request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error("ledger_request_error", action=action, path=path, error=str(e))
            raise LedgerTransportError(f"{action} failed: {e}") from e

        if response.is_error:
            message = response.text.strip() or f"{action} failed ({response.status_code})"
            logger.warning(
                "ledger_http_error",
                action=action,
                path=path,
                status_code=response.status_code,
            )
            raise LedgerHTTPError(response.status_code, message, action=action)

        return response

    @staticmethod
    def _json(response: httpx.Response, action: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise LedgerError(f"{action} returned invalid JSON") from e

    async def extract_bank_statement(self, request: ExtractionRequest) -> dict[str, Any]:
        action = "Extraction"
        response = await self._request(
            "POST",
            "/ai/extract/bank-statement",
            action,
            json=request.to_payload(),
        )
        body = self._json(response, action)
        if not isinstance(body, dict):
            raise LedgerError(f"{action} returned {type(body).__name__}, expected an object")
        return body

    async def list_extraction_runs(self, doc_id: str) -> list[dict[str, Any]]:
        action = "Listing extraction runs"
        response = await self._request(
            "GET",
            "/ai/extraction-runs",
            action,
            params={"doc_id": doc_id},
        )
        body = self._json(response, action)
        if not isinstance(body, list):
            raise LedgerError(f"{action} returned {type(body).__name__}, expected a list")
        return body

    async def get_extraction_run(self, run_id: str) -> dict[str, Any]:
        action = "Fetching extraction run"
        response = await self._request("GET", f"/ai/extraction-runs/{run_id}", action)
        body = self._json(response, action)
        if not isinstance(body, dict):
            raise LedgerError(f"{action} returned {type(body).__name__}, expected an object")
        return body

    async def batch_import(self, transactions: list[dict[str, Any]]) -> dict[str, Any]:
        action = "Batch import"
        response = await self._request(
            "POST",
            "/capital/transactions/batch-import",
            action,
            json={"transactions": transactions},
        )
        body = self._json(response, action)
        if not isinstance(body, dict):
            raise LedgerError(f"{action} returned {type(body).__name__}, expected an object")
        return body

    async def refresh_transactions(self) -> None:
        await self._request("GET", "/capital/transactions", "Transaction refresh")
