import logging
from datetime import datetime
from typing import AsyncIterator, Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from solscope.address_classifier import classify_address, is_valid_solana_address
from solscope.cache import cache_key, cached_result, get_redis
from solscope.config import ConfigurationError, Settings, settings, validate_settings
from solscope.schemas import (
    ClassificationResult,
    TokenAnalysisResponse,
    TransactionDetails,
    TransactionFlowResponse,
    WalletAnalysisResponse,
    WalletTokensResponse,
    WalletTransactionsResponse,
)
from solscope.solana_rpc import RpcError, SolanaRpcClient, describe_rpc_error
from solscope.token_analysis import analyze_token
from solscope.upstreams import (
    EMPTY_CHAIN_INFO,
    UpstreamError,
    fetch_chain_info,
    fetch_decentralization,
    fetch_dex_metrics,
    fetch_dex_paid_status,
    fetch_rugcheck_report,
    fetch_sanctions,
    fetch_solana_mindshare,
    fetch_wallet_pnl,
    fetch_wallet_risk,
    render_result,
)
from solscope.wallet_analysis import (
    analyze_wallet,
    build_transaction_flow,
    get_transaction_details,
    list_wallet_tokens,
    list_wallet_transactions,
)

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

validate_settings(settings)

# -----------------------------------------------------------------------------
# App
# -----------------------------------------------------------------------------
app = FastAPI(title="Solscope API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------
def get_settings() -> Settings:
    return settings


async def get_http_client(cfg: Settings = Depends(get_settings)) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(timeout=cfg.HTTP_TIMEOUT_SECONDS) as client:
        yield client


async def get_rpc_client(cfg: Settings = Depends(get_settings)) -> AsyncIterator[SolanaRpcClient]:
    try:
        endpoint = cfg.require("SOLANA_RPC_URL")
    except ConfigurationError:
        raise HTTPException(status_code=500, detail="Solana RPC endpoint not configured")
    async with SolanaRpcClient(endpoint, timeout=cfg.HTTP_TIMEOUT_SECONDS) as rpc:
        yield rpc


def get_cache(cfg: Settings = Depends(get_settings)):
    return get_redis(cfg)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def require_param(value: Optional[str], message: str) -> str:
    target = (value or "").strip()
    if not target:
        raise HTTPException(status_code=400, detail=message)
    return target


def require_wallet(value: Optional[str]) -> str:
    target = require_param(value, "Wallet address is required")
    if not is_valid_solana_address(target):
        raise HTTPException(status_code=400, detail="Invalid Solana address format")
    return target


def require_key(cfg: Settings, name: str) -> str:
    try:
        return cfg.require(name)
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------
@app.get("/")
def ping():
    return {"message": "Solscope backend online."}


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/api/address/classify", response_model=ClassificationResult)
async def classify(
    address: Optional[str] = Query(None, description="Token mint, wallet address or transaction signature"),
    rpc: SolanaRpcClient = Depends(get_rpc_client),
) -> ClassificationResult:
    if address is None:
        raise HTTPException(status_code=400, detail="Query param 'address' is required")
    return await classify_address(address, rpc)


# --- token -------------------------------------------------------------------

@app.get("/api/token/analysis", response_model=TokenAnalysisResponse)
async def token_analysis(
    address: Optional[str] = Query(None, description="Token mint address"),
    client: httpx.AsyncClient = Depends(get_http_client),
    cfg: Settings = Depends(get_settings),
) -> TokenAnalysisResponse:
    target = require_param(address, "Token address is required")
    try:
        return await analyze_token(client, target, cfg)
    except UpstreamError as e:
        raise HTTPException(status_code=e.status, detail=e.message)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error fetching token data for %s", target)
        raise HTTPException(status_code=500, detail="Failed to fetch token data")


@app.get("/api/token/decentralization")
async def token_decentralization(
    address: Optional[str] = Query(None, description="Token mint address"),
    client: httpx.AsyncClient = Depends(get_http_client),
    cfg: Settings = Depends(get_settings),
):
    target = require_param(address, "Token address is required")
    try:
        return render_result(await fetch_decentralization(client, target, cfg.BUBBLEMAPS_API_URL))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error in decentralization handler")
        return {"error": "Failed to process decentralization data"}


@app.get("/api/token/dexscreener")
async def token_dex_paid(
    address: Optional[str] = Query(None, description="Token mint address"),
    client: httpx.AsyncClient = Depends(get_http_client),
    cfg: Settings = Depends(get_settings),
):
    target = require_param(address, "Token address is required")
    try:
        return render_result(await fetch_dex_paid_status(client, target, cfg.DEXSCREENER_ORDERS_URL))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error in DexScreener handler")
        return {"error": "Failed to process DexScreener data", "isPaid": False, "message": "Information not available"}


@app.get("/api/token/rugcheck")
async def token_rugcheck(
    address: Optional[str] = Query(None, description="Token mint address"),
    client: httpx.AsyncClient = Depends(get_http_client),
    cfg: Settings = Depends(get_settings),
):
    target = require_param(address, "Token address is required")
    try:
        return render_result(await fetch_rugcheck_report(client, target, cfg.RUGCHECK_API_URL))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error in RugCheck handler")
        return {"error": "Failed to process RugCheck data"}


# --- wallet ------------------------------------------------------------------

@app.get("/api/wallet/analysis", response_model=WalletAnalysisResponse)
async def wallet_analysis(
    address: Optional[str] = Query(None, description="Wallet address"),
    client: httpx.AsyncClient = Depends(get_http_client),
    rpc: SolanaRpcClient = Depends(get_rpc_client),
    cfg: Settings = Depends(get_settings),
) -> WalletAnalysisResponse:
    target = require_wallet(address)
    try:
        return await analyze_wallet(client, rpc, target, cfg)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error analyzing wallet %s", target)
        raise HTTPException(status_code=500, detail="Failed to fetch wallet data")


@app.get("/api/wallet/risk")
async def wallet_risk(
    address: Optional[str] = Query(None, description="Wallet address"),
    client: httpx.AsyncClient = Depends(get_http_client),
    cfg: Settings = Depends(get_settings),
):
    target = require_param(address, "Wallet address is required")
    api_key = require_key(cfg, "WEBACY_API_KEY")
    try:
        return render_result(await fetch_wallet_risk(client, target, cfg.WEBACY_API_URL, api_key))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error fetching wallet data")
        return {"error": "Failed to fetch wallet data"}


@app.get("/api/wallet/sanctioned")
async def wallet_sanctioned(
    address: Optional[str] = Query(None, description="Wallet address"),
    client: httpx.AsyncClient = Depends(get_http_client),
    cfg: Settings = Depends(get_settings),
):
    target = require_param(address, "Wallet address is required")
    api_key = require_key(cfg, "WEBACY_API_KEY")
    try:
        return render_result(await fetch_sanctions(client, target, cfg.WEBACY_API_URL, api_key))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error checking sanctioned status")
        return {"error": "Failed to check sanctioned status"}


@app.get("/api/wallet/pnl")
async def wallet_pnl(
    address: Optional[str] = Query(None, description="Wallet address"),
    resolution: str = Query("7d", description="PNL window, e.g. 1d, 7d, 30d"),
    client: httpx.AsyncClient = Depends(get_http_client),
    cfg: Settings = Depends(get_settings),
    cache=Depends(get_cache),
):
    target = require_param(address, "Wallet address is required")
    api_key = require_key(cfg, "VYBE_API_KEY")
    try:
        result = await cached_result(
            cache,
            cache_key("pnl", target, resolution),
            cfg.UPSTREAM_CACHE_TTL_SECONDS,
            lambda: fetch_wallet_pnl(client, target, cfg.VYBE_API_URL, api_key, resolution=resolution),
        )
        return render_result(result)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error fetching wallet PNL data")
        raise HTTPException(status_code=500, detail="Failed to fetch wallet PNL data")


@app.get("/api/wallet/tokens", response_model=WalletTokensResponse)
async def wallet_tokens(
    address: Optional[str] = Query(None, description="Wallet address"),
    rpc: SolanaRpcClient = Depends(get_rpc_client),
) -> WalletTokensResponse:
    target = require_wallet(address)
    try:
        tokens = await list_wallet_tokens(rpc, target)
        return WalletTokensResponse(address=target, tokens=tokens)
    except RpcError as e:
        logger.error("Error fetching wallet tokens for %s: %s", target, e)
        raise HTTPException(status_code=500, detail=describe_rpc_error(e))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error fetching wallet tokens")
        raise HTTPException(status_code=500, detail="Failed to fetch wallet tokens")


@app.get("/api/wallet/transactions", response_model=WalletTransactionsResponse)
async def wallet_transactions(
    address: Optional[str] = Query(None, description="Wallet address"),
    limit: int = Query(5, ge=1, le=100),
    rpc: SolanaRpcClient = Depends(get_rpc_client),
) -> WalletTransactionsResponse:
    target = require_wallet(address)
    try:
        txs = await list_wallet_transactions(rpc, target, limit=limit)
        return WalletTransactionsResponse(address=target, transactions=txs)
    except RpcError as e:
        logger.error("Error fetching wallet transactions for %s: %s", target, e)
        raise HTTPException(status_code=500, detail=describe_rpc_error(e))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error fetching wallet transactions")
        raise HTTPException(status_code=500, detail="Failed to fetch wallet transactions")


@app.get("/api/wallet/transaction-flow", response_model=TransactionFlowResponse)
async def wallet_transaction_flow(
    address: Optional[str] = Query(None, description="Wallet address"),
    limit: int = Query(10, ge=1, le=1000),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    min_amount: float = Query(0.0, alias="minAmount", ge=0),
    rpc: SolanaRpcClient = Depends(get_rpc_client),
) -> TransactionFlowResponse:
    target = require_wallet(address)
    try:
        return await build_transaction_flow(
            rpc, target, limit=limit, start=start_date, end=end_date, min_amount=min_amount
        )
    except RpcError as e:
        logger.error("Error fetching wallet transaction flow for %s: %s", target, e)
        raise HTTPException(status_code=500, detail=describe_rpc_error(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error fetching wallet transaction flow")
        raise HTTPException(status_code=500, detail=describe_rpc_error(e))


# --- transaction ------------------------------------------------------------

@app.get("/api/transaction/details", response_model=TransactionDetails)
async def transaction_details(
    signature: Optional[str] = Query(None, description="Transaction signature"),
    rpc: SolanaRpcClient = Depends(get_rpc_client),
) -> TransactionDetails:
    target = require_param(signature, "Transaction signature is required")
    try:
        details = await get_transaction_details(rpc, target)
    except Exception as e:
        logger.error("Error fetching transaction details for %s: %s", target, e)
        raise HTTPException(status_code=500, detail=describe_rpc_error(e))
    if details is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return details


# --- network -------------------------------------------------------------------

@app.get("/api/solana/chaininfo")
async def solana_chain_info(
    client: httpx.AsyncClient = Depends(get_http_client),
    cfg: Settings = Depends(get_settings),
):
    try:
        result = await fetch_chain_info(
            client, cfg.SOLSCAN_API_URL, cfg.SOLSCAN_API_TOKEN, timeout=cfg.CHAININFO_TIMEOUT_SECONDS
        )
        return render_result(result)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error fetching Solana chain info")
        return {"success": False, "error": "Failed to fetch chain info", "details": str(e), "data": dict(EMPTY_CHAIN_INFO)}


@app.get("/api/solana/mindshare")
async def solana_mindshare(
    client: httpx.AsyncClient = Depends(get_http_client),
    cfg: Settings = Depends(get_settings),
    cache=Depends(get_cache),
):
    api_key = require_key(cfg, "MESSARI_API_KEY")
    try:
        result = await cached_result(
            cache,
            cache_key("mindshare"),
            cfg.UPSTREAM_CACHE_TTL_SECONDS,
            lambda: fetch_solana_mindshare(client, cfg.MESSARI_API_URL, api_key),
        )
        return render_result(result)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error fetching Solana mindshare data")
        return {"error": "Failed to fetch Solana mindshare data"}


@app.get("/api/dex/metrics")
async def dex_metrics(
    client: httpx.AsyncClient = Depends(get_http_client),
    cfg: Settings = Depends(get_settings),
    cache=Depends(get_cache),
):
    api_key = require_key(cfg, "MESSARI_API_KEY")
    try:
        result = await cached_result(
            cache,
            cache_key("dex-metrics"),
            cfg.UPSTREAM_CACHE_TTL_SECONDS,
            lambda: fetch_dex_metrics(client, cfg.MESSARI_API_URL, api_key),
        )
        return render_result(result)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error fetching DEX metrics")
        return {"error": "Failed to fetch DEX metrics"}


# -----------------------------------------------------------------------------
# Optional: run with uvicorn if executed directly
# -----------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("solscope.main:app", host="0.0.0.0", port=settings.PORT, reload=False)
