"""Tests for the FastAPI endpoints."""

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from conftest import PAYER, RECIPIENT, FakeChainReader, no_network
from payroute.api.app import create_app
from payroute.errors import ChainReadError
from payroute.routing.resolution import StaticNameResolver
from payroute.routing.selector import RouteSelector

USDC_BASE = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


def failing_lifi(request: httpx.Request) -> httpx.Response:
    return httpx.Response(500, json={"message": "LI.FI unavailable"})


@pytest.fixture
def make_client(make_lifi, make_hook, settings):
    """Client factory over an app with an injected selector."""

    def factory(handler=no_network, reader=None) -> AsyncClient:
        selector = RouteSelector(
            lifi=make_lifi(handler),
            hook=make_hook(reader),
            resolver=StaticNameResolver(),
            settings=settings,
        )
        app = create_app(selector=selector)
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return factory


@pytest_asyncio.fixture
async def client(make_client):
    """Async test client that fails on any outbound HTTP call."""
    async with make_client() as ac:
        yield ac


def quote_body(**intent) -> dict:
    values = {
        "from_token": "USDC",
        "amount": "10",
        "from_chain": "base",
        "to_token": "USDC",
        "to_chain": "base",
        "to_address": RECIPIENT,
    }
    values.update(intent)
    return {"intent": values, "payer_address": PAYER}


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        """Test basic health check."""
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "payroute"}

    @pytest.mark.asyncio
    async def test_detailed_health_check(self, client):
        """Test detailed health check reports config without secrets."""
        response = await client.get("/health/detailed")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data
        assert data["config"]["aggregator"]["api_key"] == "(not set)"
        assert data["quote_cache"] == {"hits": 0, "misses": 0}


class TestQuoteEndpoints:
    """Tests for POST /api/v1/quotes."""

    @pytest.mark.asyncio
    async def test_direct_transfer(self, client):
        response = await client.post("/api/v1/quotes", json=quote_body())
        assert response.status_code == 200

        data = response.json()
        assert [r["id"] for r in data["routes"]] == ["direct-transfer"]
        assert data["routes"][0]["fee"] == "$0.00"
        assert data["resolved_address"] == RECIPIENT
        assert data["to_chain"] == "base"
        assert data["economics"]["fee"]["fee_amount"] == "0.02"
        assert data["degraded"] is False

    @pytest.mark.asyncio
    async def test_invalid_payer(self, client):
        body = quote_body()
        body["payer_address"] = "0x123"
        response = await client.post("/api/v1/quotes", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidAddress"

    @pytest.mark.asyncio
    async def test_invalid_intent(self, client):
        response = await client.post("/api/v1/quotes", json=quote_body(amount="-5"))
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidIntent"

    @pytest.mark.asyncio
    async def test_slippage_out_of_range(self, client):
        body = quote_body()
        body["slippage"] = 0.9
        response = await client.post("/api/v1/quotes", json=body)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_no_route(self, make_client):
        async with make_client(failing_lifi) as ac:
            response = await ac.post("/api/v1/quotes", json=quote_body(to_chain="arbitrum"))

        assert response.status_code == 404
        assert response.json()["error"] == "NoRouteFound"


class TestTransactionEndpoints:
    @pytest.mark.asyncio
    async def test_build_direct_transfer(self, client):
        body = quote_body()
        body["route_id"] = "direct-transfer"
        response = await client.post("/api/v1/transactions/build", json=body)
        assert response.status_code == 200

        data = response.json()
        assert data["to"] == USDC_BASE
        assert data["chain_id"] == 8453
        assert data["value"] == "0"
        assert data["data"].startswith("0xa9059cbb")
        assert data["is_approval"] is False

    @pytest.mark.asyncio
    async def test_build_hook_route_returns_approval_first(self, client):
        pool = await client.get("/api/v1/pools/id", params={"chain": "base", "token_a": "USDC", "token_b": "USDT"})
        body = quote_body(to_token="USDT")
        body["route_id"] = "v4-" + pool.json()["pool_id"][:18]

        response = await client.post("/api/v1/transactions/build", json=body)
        assert response.status_code == 200
        assert response.json()["is_approval"] is True
        assert response.json()["provider"] == "Token Approval"


class TestApprovalEndpoints:
    @pytest.mark.asyncio
    async def test_hook_chain_needs_token_approval(self, client):
        response = await client.post(
            "/api/v1/approvals/check",
            json={"chain": "base", "token": "USDC", "owner": PAYER, "amount": "25"},
        )
        assert response.status_code == 200

        data = response.json()
        assert data["state"] == "needs-token-approval"
        assert data["required"] == "25000000"
        assert data["approval_transaction"]["to"] == USDC_BASE
        assert data["approval_transaction"]["is_approval"] is True

    @pytest.mark.asyncio
    async def test_spender_allowance_is_enough(self, make_client):
        async with make_client(reader=FakeChainReader(erc20_allowance=10**12)) as ac:
            response = await ac.post(
                "/api/v1/approvals/check",
                json={"chain": "base", "token": "USDC", "owner": PAYER, "amount": "25", "spender": RECIPIENT},
            )

        data = response.json()
        assert data["state"] == "ready"
        assert data["spender"] == RECIPIENT
        assert data["allowance"] == str(10**12)
        assert data["approval_transaction"] is None

    @pytest.mark.asyncio
    async def test_native_token_never_needs_approval(self, client):
        response = await client.post(
            "/api/v1/approvals/check",
            json={"chain": "ethereum", "token": "ETH", "owner": PAYER, "amount": "1"},
        )
        assert response.json()["state"] == "ready"
        assert response.json()["required"] == str(10**18)

    @pytest.mark.asyncio
    async def test_rpc_failure(self, make_client):
        async with make_client(reader=FakeChainReader(error=ChainReadError("rpc down"))) as ac:
            response = await ac.post(
                "/api/v1/approvals/check",
                json={"chain": "base", "token": "USDC", "owner": PAYER, "amount": "25"},
            )

        assert response.status_code == 502
        assert response.json()["error"] == "ChainReadError"

    @pytest.mark.parametrize("amount", ["abc", "", "-1", "0", "NaN", "Infinity"])
    @pytest.mark.parametrize("token,chain", [("USDC", "base"), ("ETH", "ethereum")])
    @pytest.mark.asyncio
    async def test_bad_amount(self, client, amount, token, chain):
        response = await client.post(
            "/api/v1/approvals/check",
            json={"chain": chain, "token": token, "owner": PAYER, "amount": amount},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    @pytest.mark.asyncio
    async def test_bad_owner(self, client):
        response = await client.post(
            "/api/v1/approvals/check",
            json={"chain": "base", "token": "USDC", "owner": "nope", "amount": "25"},
        )
        assert response.status_code == 400


class TestPoolEndpoints:
    @pytest.mark.asyncio
    async def test_pool_id_ignores_token_order(self, client):
        first = await client.get("/api/v1/pools/id", params={"chain": "base", "token_a": "USDC", "token_b": "USDT"})
        second = await client.get("/api/v1/pools/id", params={"chain": "base", "token_a": "USDT", "token_b": "USDC"})

        assert first.status_code == 200
        assert first.json()["pool_id"] == second.json()["pool_id"]
        assert first.json()["tier"] == "stable"
        assert first.json()["pool_key"]["currency0"] == USDC_BASE

    @pytest.mark.asyncio
    async def test_unknown_chain(self, client):
        response = await client.get("/api/v1/pools/id", params={"chain": "solana", "token_a": "USDC", "token_b": "USDT"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_chain_without_hook(self, client):
        response = await client.get(
            "/api/v1/pools/id", params={"chain": "ethereum", "token_a": "USDC", "token_b": "USDT"}
        )
        assert response.status_code == 404
