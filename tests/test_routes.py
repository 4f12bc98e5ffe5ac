from dataclasses import replace

import httpx
import pytest
from fastapi.testclient import TestClient

import solscope.main as main
from helpers import SIGNATURE, TOKEN_MINT, WALLET, FakeRedis, FakeRpc
from solscope.main import app, get_cache, get_http_client, get_rpc_client, get_settings
from solscope.solana_rpc import TOKEN_PROGRAM_ID, RpcRateLimitError

BUBBLEMAP_OK = {"status": "OK", "decentralisation_score": 80}


@pytest.fixture
def api(cfg, mock_client):
    """TestClient plus a hook to swap upstream routes, RPC fake, cache and settings."""

    state = {"routes": {}, "rpc": FakeRpc(), "cache": None, "cfg": cfg}

    async def http_override():
        async with mock_client(state["routes"]) as client:
            yield client

    app.dependency_overrides[get_settings] = lambda: state["cfg"]
    app.dependency_overrides[get_http_client] = http_override
    app.dependency_overrides[get_rpc_client] = lambda: state["rpc"]
    app.dependency_overrides[get_cache] = lambda: state["cache"]
    try:
        yield TestClient(app), state
    finally:
        app.dependency_overrides.clear()


def test_ping_and_health(api):
    client, _ = api
    assert client.get("/").status_code == 200
    assert client.get("/health").json() == {"status": "ok"}


# -----------------------------------------------------------------------------
# Classification
# -----------------------------------------------------------------------------
def test_classify_token(api):
    client, state = api
    state["rpc"] = FakeRpc(account_info={TOKEN_MINT: {"owner": TOKEN_PROGRAM_ID}})

    r = client.get("/api/address/classify", params={"address": TOKEN_MINT})
    assert r.status_code == 200
    assert r.json() == {"isValid": True, "kind": "token", "error": None}


def test_classify_invalid_input_is_still_200(api):
    client, _ = api
    r = client.get("/api/address/classify", params={"address": "0x1234567890123456789012345678901234567890"})
    assert r.status_code == 200
    assert r.json()["kind"] == "invalid"
    assert r.json()["isValid"] is False


def test_classify_requires_address(api):
    client, _ = api
    r = client.get("/api/address/classify")
    assert r.status_code == 400


def test_rpc_endpoint_must_be_configured(api):
    client, state = api
    state["cfg"] = replace(state["cfg"], SOLANA_RPC_URL=None)
    del app.dependency_overrides[get_rpc_client]

    r = client.get("/api/address/classify", params={"address": WALLET})
    assert r.status_code == 500
    assert r.json()["detail"] == "Solana RPC endpoint not configured"


# -----------------------------------------------------------------------------
# Token
# -----------------------------------------------------------------------------
def test_token_analysis(api, make_pair):
    client, state = api
    state["routes"] = {
        "checkdex.test": lambda r: httpx.Response(
            200, json={"pairs": [make_pair("Raydium", 60000, 1000), make_pair("Orca", 50000, 500)]}
        ),
        "bubblemaps.test": lambda r: httpx.Response(200, json=BUBBLEMAP_OK),
    }

    r = client.get("/api/token/analysis", params={"address": TOKEN_MINT})
    assert r.status_code == 200
    body = r.json()
    assert body["analytics"]["riskScore"] == 4
    assert body["analytics"]["liquidityByExchange"] == {"Raydium": 60000, "Orca": 50000}
    assert body["tokenInfo"]["symbol"] == "BONK"
    assert body["decentralization"] == BUBBLEMAP_OK
    assert body["dexVerification"]["isPaid"] is False
    assert body["pairs"][0]["exchangeName"] == "Raydium"


def test_token_analysis_propagates_pairs_status(api):
    client, state = api
    state["routes"] = {"checkdex.test": lambda r: httpx.Response(503)}

    r = client.get("/api/token/analysis", params={"address": TOKEN_MINT})
    assert r.status_code == 503
    assert r.json()["detail"] == "Failed to fetch token data: Service Unavailable"


def test_token_routes_require_address(api):
    client, _ = api
    for path in ("/api/token/analysis", "/api/token/decentralization", "/api/token/dexscreener", "/api/token/rugcheck"):
        r = client.get(path)
        assert r.status_code == 400
        assert r.json()["detail"] == "Token address is required"


def test_soft_token_routes_answer_200(api):
    client, state = api
    state["routes"] = {"bubblemaps.test": lambda r: httpx.Response(502), "rugcheck.test": lambda r: httpx.Response(500)}

    r = client.get("/api/token/decentralization", params={"address": TOKEN_MINT})
    assert r.status_code == 200
    assert r.json() == {"error": "Failed to fetch Bubblemap data: Bad Gateway", "status": 502}

    r = client.get("/api/token/dexscreener", params={"address": TOKEN_MINT})
    assert r.status_code == 200
    assert r.json() == {"isPaid": False, "message": "Token has not paid for DEX features"}

    r = client.get("/api/token/rugcheck", params={"address": TOKEN_MINT})
    assert r.status_code == 200
    assert r.json()["status"] == 500


# -----------------------------------------------------------------------------
# Wallet
# -----------------------------------------------------------------------------
def test_wallet_analysis(api):
    client, state = api
    state["routes"] = {"webacy.test": lambda r: httpx.Response(200, json={"overallRisk": 5.0, "is_sanctioned": False})}
    state["rpc"] = FakeRpc(balance=2_000_000_000, signatures=[{"signature": "a", "blockTime": 1700000000}])

    r = client.get("/api/wallet/analysis", params={"address": WALLET})
    assert r.status_code == 200
    body = r.json()
    assert body["overallRisk"] == 5.0
    assert body["balance"] == {"lamports": 2_000_000_000, "sol": 2.0}
    assert body["activity"]["recentTransactionCount"] == 1


def test_wallet_routes_validate_address(api):
    client, _ = api
    r = client.get("/api/wallet/tokens", params={"address": "nope!"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid Solana address format"

    r = client.get("/api/wallet/transactions")
    assert r.status_code == 400
    assert r.json()["detail"] == "Wallet address is required"


def test_wallet_risk_needs_api_key(api):
    client, state = api
    state["cfg"] = replace(state["cfg"], WEBACY_API_KEY=None)
    r = client.get("/api/wallet/risk", params={"address": WALLET})
    assert r.status_code == 500
    assert r.json()["detail"] == "WEBACY_API_KEY is not configured"


def test_wallet_sanctioned(api):
    client, state = api
    state["routes"] = {"webacy.test": lambda r: httpx.Response(200, json={"is_sanctioned": True})}
    r = client.get("/api/wallet/sanctioned", params={"address": WALLET})
    assert r.json() == {"is_sanctioned": True}


def test_wallet_pnl_is_cached(api):
    client, state = api
    hits = []

    def vybe(request):
        hits.append(request.url.params["resolution"])
        return httpx.Response(200, json={"summary": {"realizedPnlUsd": 42}})

    state["routes"] = {"vybe.test": vybe}
    state["cache"] = FakeRedis()

    for _ in range(2):
        r = client.get("/api/wallet/pnl", params={"address": WALLET, "resolution": "30d"})
        assert r.status_code == 200
        assert r.json() == {"summary": {"realizedPnlUsd": 42}}
    assert hits == ["30d"]
    assert state["cache"].ttls == {f"upstream:pnl:{WALLET}:30d": 3600}


def test_wallet_pnl_not_found(api):
    client, _ = api
    r = client.get("/api/wallet/pnl", params={"address": WALLET})
    assert r.status_code == 404
    assert r.json()["detail"] == "No PNL data found for this wallet"


def test_wallet_transactions_limit_is_bounded(api):
    client, _ = api
    assert client.get("/api/wallet/transactions", params={"address": WALLET, "limit": 0}).status_code == 422
    assert client.get("/api/wallet/transactions", params={"address": WALLET, "limit": 101}).status_code == 422
    r = client.get("/api/wallet/transactions", params={"address": WALLET})
    assert r.json() == {"address": WALLET, "transactions": []}


def test_wallet_tokens_rpc_failure_is_500(api):
    client, state = api
    state["rpc"] = FakeRpc(fail={"get_parsed_token_accounts_by_owner": RpcRateLimitError("429", code=429)})
    r = client.get("/api/wallet/tokens", params={"address": WALLET})
    assert r.status_code == 500
    assert "busy" in r.json()["detail"]


def test_transaction_flow_accepts_camel_case_params(api):
    client, _ = api
    r = client.get(
        "/api/wallet/transaction-flow",
        params={"address": WALLET, "startDate": "2024-01-01T00:00:00Z", "endDate": "2024-02-01T00:00:00Z", "minAmount": 1},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["nodes"][0]["id"] == WALLET
    assert body["dateRange"]["start"].startswith("2024-01-01")


# -----------------------------------------------------------------------------
# Transaction and network
# -----------------------------------------------------------------------------
def test_transaction_details_not_found(api):
    client, _ = api
    r = client.get("/api/transaction/details", params={"signature": SIGNATURE})
    assert r.status_code == 404
    assert r.json()["detail"] == "Transaction not found"


def test_chain_info_placeholder_without_token(api):
    client, state = api
    state["cfg"] = replace(state["cfg"], SOLSCAN_API_TOKEN=None)
    r = client.get("/api/solana/chaininfo")
    assert r.status_code == 200
    assert r.json()["data"] == {"blockHeight": 0, "currentEpoch": 0, "absoluteSlot": 0, "transactionCount": 0}


def test_dex_metrics_needs_key_then_caches(api):
    client, state = api
    state["cfg"] = replace(state["cfg"], MESSARI_API_KEY="")
    assert client.get("/api/dex/metrics").status_code == 500

    hits = []

    def messari(request):
        hits.append(request.url.path)
        return httpx.Response(200, json={"data": [{"name": "Raydium"}]})

    state["cfg"] = replace(state["cfg"], MESSARI_API_KEY="messari-key")
    state["routes"] = {"messari.test": messari}
    state["cache"] = FakeRedis()
    assert client.get("/api/dex/metrics").json() == {"data": [{"name": "Raydium"}]}
    assert client.get("/api/dex/metrics").json() == {"data": [{"name": "Raydium"}]}
    assert hits == ["/metrics/v1/exchanges"]


def test_network_routes_absorb_unexpected_failures(api, monkeypatch):
    async def explode(*args, **kwargs):
        raise RuntimeError("boom")

    client, _ = api
    monkeypatch.setattr(main, "fetch_chain_info", explode)
    monkeypatch.setattr(main, "fetch_solana_mindshare", explode)
    monkeypatch.setattr(main, "fetch_dex_metrics", explode)

    r = client.get("/api/solana/chaininfo")
    assert r.status_code == 200
    assert r.json()["success"] is False
    assert r.json()["data"]["blockHeight"] == 0

    r = client.get("/api/solana/mindshare")
    assert r.status_code == 200
    assert r.json() == {"error": "Failed to fetch Solana mindshare data"}

    r = client.get("/api/dex/metrics")
    assert r.status_code == 200
    assert r.json() == {"error": "Failed to fetch DEX metrics"}
