"""Tests for the ledger adapters (in-memory fallback and HTTP gateway)."""

import asyncio

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from core.infrastructure.adapters.ledger import (
    HttpLedgerAdapter,
    InMemoryLedgerAdapter,
    LedgerGatewayError,
    create_ledger_adapter,
)
from core.settings import LedgerSettings


SUBJECT = "0x" + "c" * 40


# =============================================================================
# IN-MEMORY FALLBACK
# =============================================================================

@pytest.mark.asyncio
async def test_fallback_transaction_ids_are_deterministic():
    ledger = InMemoryLedgerAdapter()

    receipt = await ledger.submit("createVoucher", ["v-1", "s1"])
    event_receipt = await ledger.log_event("e-1", {"eventType": "voucher_created"})

    assert receipt.success is True
    assert receipt.transaction_id == "tx-createVoucher-v-1"
    assert event_receipt.transaction_id == "tx-event-e-1"
    assert ledger.storage["createVoucher:v-1"] == ["v-1", "s1"]


@pytest.mark.asyncio
async def test_forced_failure_can_target_methods():
    ledger = InMemoryLedgerAdapter()
    ledger.force_failure("rpc down", methods={"createVoucher"})

    failed = await ledger.submit("createVoucher", ["v-1"])
    ok = await ledger.submit("registerPost", ["p-1"])
    ledger.clear_failure()
    recovered = await ledger.submit("createVoucher", ["v-2"])

    assert failed.success is False
    assert failed.error == "rpc down"
    assert ok.success is True
    assert recovered.success is True


@pytest.mark.asyncio
async def test_identity_and_reputation_hooks():
    ledger = InMemoryLedgerAdapter(default_reputation=100)
    ledger.set_reputation(SUBJECT, 3)
    ledger.revoke_identity(SUBJECT, "sbt-revoked")

    assert await ledger.verify_identity(SUBJECT, "sbt-ok") is True
    assert await ledger.verify_identity(SUBJECT, "sbt-revoked") is False
    assert await ledger.get_reputation_score(SUBJECT) == 3
    assert await ledger.get_reputation_score("0x" + "d" * 40) == 100


def test_factory_falls_back_without_rpc_url():
    adapter = create_ledger_adapter(LedgerSettings(rpc_url=None, default_reputation=42))

    assert isinstance(adapter, InMemoryLedgerAdapter)
    assert adapter.default_reputation == 42


def test_factory_uses_gateway_with_rpc_url():
    adapter = create_ledger_adapter(LedgerSettings(rpc_url="http://ledger.local/rpc"))

    assert isinstance(adapter, HttpLedgerAdapter)


# =============================================================================
# HTTP GATEWAY
# =============================================================================

class FakeGateway:
    """JSON-RPC gateway answering from a method -> response table."""

    def __init__(self) -> None:
        self.requests: list[dict] = []
        self.headers: list[dict] = []
        self.responses: dict[str, object] = {}
        self.delay = 0.0

    async def handle(self, request: web.Request) -> web.Response:
        body = await request.json()
        self.requests.append(body)
        self.headers.append(dict(request.headers))
        if self.delay:
            await asyncio.sleep(self.delay)

        response = self.responses.get(body["method"])
        if isinstance(response, web.Response):
            return response
        if isinstance(response, Exception):
            return web.json_response({"id": body["id"], "error": {"message": str(response)}})
        return web.json_response({"id": body["id"], "result": response})


@pytest_asyncio.fixture
async def gateway():
    fake = FakeGateway()
    app = web.Application()
    app.router.add_post("/rpc", fake.handle)
    server = TestServer(app)
    await server.start_server()
    fake.url = str(server.make_url("/rpc"))
    yield fake
    await server.close()


@pytest.mark.asyncio
async def test_http_submit_success(gateway):
    gateway.responses["createVoucher"] = {"transactionHash": "0xfeed"}
    adapter = HttpLedgerAdapter(LedgerSettings(rpc_url=gateway.url, api_key="secret"))

    receipt = await adapter.submit("createVoucher", ["v-1", "s1"])

    assert receipt.success is True
    assert receipt.transaction_id == "0xfeed"
    assert gateway.requests[0]["method"] == "createVoucher"
    assert gateway.requests[0]["params"] == ["v-1", "s1"]
    assert gateway.headers[0]["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_http_gateway_error_becomes_failed_receipt(gateway):
    gateway.responses["registerPost"] = RuntimeError("revert: not allowed")
    adapter = HttpLedgerAdapter(LedgerSettings(rpc_url=gateway.url))

    receipt = await adapter.submit("registerPost", ["p-1"])

    assert receipt.success is False
    assert "not allowed" in receipt.error


@pytest.mark.asyncio
async def test_http_status_error_becomes_failed_receipt(gateway):
    gateway.responses["registerMarket"] = web.Response(status=502, text="bad gateway")
    adapter = HttpLedgerAdapter(LedgerSettings(rpc_url=gateway.url))

    receipt = await adapter.submit("registerMarket", ["m-1"])

    assert receipt.success is False
    assert "502" in receipt.error


@pytest.mark.asyncio
async def test_http_timeout_becomes_failed_receipt(gateway):
    gateway.delay = 0.5
    gateway.responses["logEvent"] = {"transactionHash": "0x1"}
    adapter = HttpLedgerAdapter(LedgerSettings(rpc_url=gateway.url, timeout_seconds=0.05))

    receipt = await adapter.log_event("e-1", {"eventType": "bet_placed", "userId": SUBJECT})

    assert receipt.success is False
    assert "timed out" in receipt.error


@pytest.mark.asyncio
async def test_http_reads(gateway):
    gateway.responses["verifySoulboundId"] = True
    gateway.responses["getReputation"] = 17
    adapter = HttpLedgerAdapter(LedgerSettings(rpc_url=gateway.url))

    assert await adapter.verify_identity(SUBJECT, "sbt-1") is True
    assert await adapter.get_reputation_score(SUBJECT) == 17.0
    assert gateway.requests[0]["params"] == [SUBJECT, "sbt-1"]


@pytest.mark.asyncio
async def test_http_read_errors_raise(gateway):
    gateway.responses["getReputation"] = RuntimeError("unknown subject")
    adapter = HttpLedgerAdapter(LedgerSettings(rpc_url=gateway.url))

    with pytest.raises(LedgerGatewayError):
        await adapter.get_reputation_score(SUBJECT)


@pytest.mark.asyncio
async def test_http_unreachable_gateway_becomes_failed_receipt():
    adapter = HttpLedgerAdapter(LedgerSettings(rpc_url="http://127.0.0.1:9/rpc", timeout_seconds=1))

    receipt = await adapter.submit("createVoucher", ["v-1"])

    assert receipt.success is False
