"""
Ledger RPC Client Tests.

============================================================
PURPOSE
============================================================
LedgerRpcClient against a local aiohttp node stub.

TEST CATEGORIES:
- Response parsing (JSON, bare strings, typed literals)
- Retry rules (5xx/429/timeout retried, 4xx not, broadcast once)
- Error mapping (404, timeouts, malformed bodies)

============================================================
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Tuple

import pytest
from aiohttp import web
from aiohttp import test_utils

from core.retry import RetryPolicy
from ledger_client import (
    LedgerNotFoundError,
    LedgerResponseError,
    LedgerRpcClient,
    LedgerRpcError,
    LedgerTimeoutError,
    TransactionStatus,
)
from tests.factories import ADDRESS


class NodeStub:
    """
    Scripted ledger node.

    Each path has a queue of (status, body) replies; the last one
    repeats. A body of ("sleep", seconds) delays before replying 200.
    """

    def __init__(self) -> None:
        self.replies: Dict[str, List[Tuple[int, Any]]] = {}
        self.calls: Dict[str, int] = {}
        self.bodies: List[Any] = []

    def reply(self, path: str, *replies: Tuple[int, Any]) -> None:
        self.replies[path] = list(replies)

    async def handle(self, request: web.Request) -> web.StreamResponse:
        path = request.path
        self.calls[path] = self.calls.get(path, 0) + 1
        if request.can_read_body:
            self.bodies.append(await request.json())

        queue = self.replies.get(path)
        if not queue:
            return web.Response(status=404)
        status, body = queue.pop(0) if len(queue) > 1 else queue[0]

        if isinstance(body, tuple) and body[0] == "sleep":
            await asyncio.sleep(body[1])
            return web.json_response({})
        if isinstance(body, (dict, list)):
            return web.json_response(body, status=status)
        return web.Response(text="" if body is None else str(body), status=status)


@asynccontextmanager
async def running_node(node: NodeStub, timeout: float = 2.0, attempts: int = 3):
    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", node.handle)
    server = test_utils.TestServer(app)
    await server.start_server()
    client = LedgerRpcClient(
        str(server.make_url("/")),
        timeout=timeout,
        retry_policy=RetryPolicy.exponential(attempts, 0.0),
        health_timeout=timeout,
    )
    try:
        yield client
    finally:
        await client.close()
        await server.close()


# ============================================================
# PARSING
# ============================================================

class TestResponseParsing:

    @pytest.mark.asyncio
    async def test_get_transaction_confirmed(self):
        node = NodeStub()
        node.reply("/transaction/at1abc", (200, {
            "id": "at1abc",
            "status": "finalized",
            "block_height": 1200,
            "timestamp": 1767225600000,
            "outputs": [{"owner": ADDRESS, "score": "650u32"}],
        }))

        async with running_node(node) as client:
            tx = await client.get_transaction("at1abc")

        assert tx.status is TransactionStatus.CONFIRMED
        assert tx.block_height == 1200
        assert tx.confirmed_at == 1767225600000
        assert tx.outputs[0]["score"] == "650u32"
        assert tx.is_terminal

    @pytest.mark.asyncio
    async def test_get_transaction_unknown_status_not_retried(self):
        node = NodeStub()
        node.reply("/transaction/at1abc", (200, {"id": "at1abc", "status": "mystery"}))

        async with running_node(node) as client:
            with pytest.raises(LedgerResponseError):
                await client.get_transaction("at1abc")

        assert node.calls["/transaction/at1abc"] == 1

    @pytest.mark.asyncio
    async def test_mapping_value_typed_literal(self):
        node = NodeStub()
        node.reply(f"/program/credit_score.aleo/mapping/scores/{ADDRESS}", (200, '"720u32"'))

        async with running_node(node) as client:
            value = await client.get_mapping_value("credit_score.aleo", "scores", ADDRESS)

        assert value == "720u32"

    @pytest.mark.asyncio
    async def test_mapping_value_bare_text(self):
        node = NodeStub()
        node.reply(f"/program/credit_score.aleo/mapping/scores/{ADDRESS}", (200, "720u32"))

        async with running_node(node) as client:
            value = await client.get_mapping_value("credit_score.aleo", "scores", ADDRESS)

        assert value == "720u32"

    @pytest.mark.asyncio
    async def test_mapping_value_missing(self):
        node = NodeStub()
        node.reply(f"/program/credit_score.aleo/mapping/scores/{ADDRESS}", (200, "null"))

        async with running_node(node) as client:
            assert await client.get_mapping_value("credit_score.aleo", "scores", ADDRESS) is None
            assert await client.get_mapping_value("credit_score.aleo", "scores", "other") is None

    @pytest.mark.asyncio
    async def test_account_resource_must_be_object(self):
        node = NodeStub()
        node.reply(f"/account/{ADDRESS}/transactions", (200, [1, 2, 3]))

        async with running_node(node) as client:
            with pytest.raises(LedgerResponseError):
                await client.get_account_resource(ADDRESS, "transactions")


# ============================================================
# BROADCAST
# ============================================================

class TestBroadcast:

    @pytest.mark.asyncio
    async def test_broadcast_returns_id_from_json(self):
        node = NodeStub()
        node.reply("/transaction/broadcast", (200, {"transaction_id": "at1xyz"}))

        async with running_node(node) as client:
            tx_id = await client.broadcast_transaction({"program": "credit_score.aleo"})

        assert tx_id == "at1xyz"
        assert node.bodies == [{"program": "credit_score.aleo"}]

    @pytest.mark.asyncio
    async def test_broadcast_returns_bare_id(self):
        node = NodeStub()
        node.reply("/transaction/broadcast", (200, "at1bare"))

        async with running_node(node) as client:
            assert await client.broadcast_transaction({}) == "at1bare"

    @pytest.mark.asyncio
    async def test_broadcast_without_id_rejected(self):
        node = NodeStub()
        node.reply("/transaction/broadcast", (200, {"ok": True}))

        async with running_node(node) as client:
            with pytest.raises(LedgerResponseError):
                await client.broadcast_transaction({})

    @pytest.mark.asyncio
    async def test_broadcast_never_retried(self):
        node = NodeStub()
        node.reply("/transaction/broadcast", (503, "unavailable"), (200, {"id": "at1late"}))

        async with running_node(node) as client:
            with pytest.raises(LedgerRpcError) as exc_info:
                await client.broadcast_transaction({})

        assert exc_info.value.status_code == 503
        assert node.calls["/transaction/broadcast"] == 1


# ============================================================
# RETRY RULES
# ============================================================

class TestRetryRules:

    @pytest.mark.asyncio
    async def test_server_errors_retried_until_success(self):
        node = NodeStub()
        node.reply(
            f"/account/{ADDRESS}/transactions",
            (503, "busy"),
            (500, "oops"),
            (200, {"count": 7}),
        )

        async with running_node(node) as client:
            body = await client.get_account_resource(ADDRESS, "transactions")

        assert body == {"count": 7}
        assert node.calls[f"/account/{ADDRESS}/transactions"] == 3

    @pytest.mark.asyncio
    async def test_rate_limit_retried(self):
        node = NodeStub()
        node.reply(f"/account/{ADDRESS}/info", (429, "slow down"), (200, {"firstSeen": 1}))

        async with running_node(node) as client:
            assert await client.get_account_resource(ADDRESS, "info") == {"firstSeen": 1}

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        node = NodeStub()
        node.reply(f"/account/{ADDRESS}/defi", (400, "bad request"))

        async with running_node(node) as client:
            with pytest.raises(LedgerRpcError) as exc_info:
                await client.get_account_resource(ADDRESS, "defi")

        assert exc_info.value.is_client_error
        assert node.calls[f"/account/{ADDRESS}/defi"] == 1

    @pytest.mark.asyncio
    async def test_not_found_raises_specific_error(self):
        node = NodeStub()

        async with running_node(node) as client:
            with pytest.raises(LedgerNotFoundError):
                await client.get_transaction("at1missing")

    @pytest.mark.asyncio
    async def test_retries_exhausted_raise_last_error(self):
        node = NodeStub()
        node.reply(f"/account/{ADDRESS}/balance", (502, "gateway"))

        async with running_node(node) as client:
            with pytest.raises(LedgerRpcError) as exc_info:
                await client.get_account_resource(ADDRESS, "balance")

        assert exc_info.value.status_code == 502
        assert node.calls[f"/account/{ADDRESS}/balance"] == 3

    @pytest.mark.asyncio
    async def test_timeout_mapped_and_retried(self):
        node = NodeStub()
        node.reply(f"/account/{ADDRESS}/lending", (200, ("sleep", 1.0)))

        async with running_node(node, timeout=0.1) as client:
            with pytest.raises(LedgerTimeoutError):
                await client.get_account_resource(ADDRESS, "lending")

        assert node.calls[f"/account/{ADDRESS}/lending"] == 3

    @pytest.mark.asyncio
    async def test_single_attempt_policy_raises_first_error(self):
        node = NodeStub()
        node.reply(f"/account/{ADDRESS}/balance", (503, "busy"), (200, {"balance": 1}))

        async with running_node(node, attempts=1) as client:
            with pytest.raises(LedgerRpcError) as exc_info:
                await client.get_account_resource(ADDRESS, "balance")

        assert exc_info.value.status_code == 503
        assert node.calls[f"/account/{ADDRESS}/balance"] == 1


# ============================================================
# HEALTH
# ============================================================

class TestHealth:

    @pytest.mark.asyncio
    async def test_healthy(self):
        node = NodeStub()
        node.reply("/health", (200, {"status": "ok"}))

        async with running_node(node) as client:
            assert await client.health() is True
            assert client.last_latency_ms is not None

    @pytest.mark.asyncio
    async def test_unhealthy_raises_once(self):
        node = NodeStub()
        node.reply("/health", (500, "down"))

        async with running_node(node) as client:
            with pytest.raises(LedgerRpcError):
                await client.health()

        assert node.calls["/health"] == 1
