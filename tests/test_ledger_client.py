"""Tests for the HTTP ledger gateway, using httpx.MockTransport."""

import json

import httpx
import pytest

from statement_recon.config import LedgerApiSettings
from statement_recon.models.extraction import ExtractionRequest
from statement_recon.services.ledger import (
    HttpLedgerGateway,
    LedgerError,
    LedgerHTTPError,
    LedgerTransportError,
)


def _gateway(handler, token=None):
    settings = LedgerApiSettings(base_url="http://ledger.test/", api_token=token)
    return HttpLedgerGateway(settings, transport=httpx.MockTransport(handler))


class TestHttpLedgerGateway:
    """Tests for HttpLedgerGateway."""

    @pytest.mark.asyncio
    async def test_extract_posts_payload(self):
        """Test the extraction request body and endpoint."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"transactions": [], "confidence": 0.5})

        gateway = _gateway(handler, token="secret")
        request = ExtractionRequest(
            blob_id="b1",
            doc_id="d1",
            prompt="Extract",
            prompt_id="capital.extract_bank_statement",
            prompt_version="1",
            model="gpt-4o-mini",
            assistant_name="capital_bank_statement_extractor",
        )
        body = await gateway.extract_bank_statement(request)
        await gateway.aclose()

        assert body == {"transactions": [], "confidence": 0.5}
        assert seen["method"] == "POST"
        assert seen["path"] == "/ai/extract/bank-statement"
        assert seen["body"]["doc_id"] == "d1"
        assert "import" not in seen["body"]
        assert seen["auth"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_batch_import_wraps_transactions(self):
        """Test the batch import body is {"transactions": [...]}."""
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/capital/transactions/batch-import"
            body = json.loads(request.content)
            return httpx.Response(
                200,
                json={"imported": len(body["transactions"]), "skipped": 0, "errors": []},
            )

        async with _gateway(handler) as gateway:
            result = await gateway.batch_import([{"txid": "A"}, {"txid": "B"}])
        assert result["imported"] == 2

    @pytest.mark.asyncio
    async def test_list_runs_sends_doc_id(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/ai/extraction-runs"
            assert request.url.params["doc_id"] == "doc 1"
            return httpx.Response(200, json=[{"_id": "r1"}])

        async with _gateway(handler) as gateway:
            assert await gateway.list_extraction_runs("doc 1") == [{"_id": "r1"}]

    @pytest.mark.asyncio
    async def test_get_run_and_refresh_paths(self):
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append((request.method, request.url.path))
            if request.url.path.startswith("/ai/"):
                return httpx.Response(200, json={"_id": "r1", "response_text": "{}"})
            return httpx.Response(200, json=[])

        async with _gateway(handler) as gateway:
            await gateway.get_extraction_run("r1")
            await gateway.refresh_transactions()
        assert paths == [("GET", "/ai/extraction-runs/r1"), ("GET", "/capital/transactions")]

    @pytest.mark.asyncio
    async def test_error_body_is_the_message(self):
        """Test a non-2xx response surfaces the server's text."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, text="row 3: invalid date")

        async with _gateway(handler) as gateway:
            with pytest.raises(LedgerHTTPError) as exc_info:
                await gateway.batch_import([])
        assert exc_info.value.status_code == 422
        assert str(exc_info.value) == "row 3: invalid date"

    @pytest.mark.asyncio
    async def test_empty_error_body_gets_fallback_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        async with _gateway(handler) as gateway:
            with pytest.raises(LedgerHTTPError, match=r"Batch import failed \(500\)"):
                await gateway.batch_import([])

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        """Test connection errors become LedgerTransportError."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _gateway(handler) as gateway:
            with pytest.raises(LedgerTransportError):
                await gateway.list_extraction_runs("d1")

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>oops</html>")

        async with _gateway(handler) as gateway:
            with pytest.raises(LedgerError, match="invalid JSON"):
                await gateway.get_extraction_run("r1")
