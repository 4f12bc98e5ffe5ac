import asyncio
import logging
from typing import Any, Awaitable, Dict, List, Optional

import httpx

from solscope.config import Settings
from solscope.schemas import TokenAnalysisResponse, TokenAnalytics, TokenInfo, TokenPair
from solscope.upstreams import (
    HardError,
    Ok,
    SoftError,
    UpstreamError,
    UpstreamResult,
    fetch_decentralization,
    fetch_dex_paid_status,
    fetch_token_pairs,
)

logger = logging.getLogger(__name__)

# Risk score thresholds (lower score is better)
BASE_RISK_SCORE = 5
MIN_RISK_SCORE = 1
LIQUIDITY_TIER_1 = 100_000
LIQUIDITY_TIER_2 = 1_000_000
MIN_ACTIVE_POOLS = 3
MIN_EXCHANGES = 3


# -----------------------------------------------------------------------------
# Analytics
# -----------------------------------------------------------------------------
def total_liquidity(pairs: List[TokenPair]) -> float:
    return sum(p.liquidity_usd for p in pairs)


def total_volume(pairs: List[TokenPair]) -> float:
    return sum(p.volume_24hr_usd for p in pairs)


def unique_exchanges(pairs: List[TokenPair]) -> List[str]:
    return list(dict.fromkeys(p.exchange_name for p in pairs))


def count_active_pairs(pairs: List[TokenPair]) -> int:
    return sum(1 for p in pairs if not p.inactive_pair)


def compute_risk_score(liquidity: float, active_pools: int, exchange_count: int) -> int:
    score = BASE_RISK_SCORE
    if liquidity > LIQUIDITY_TIER_1:
        score -= 1
    if liquidity > LIQUIDITY_TIER_2:
        score -= 1
    if active_pools >= MIN_ACTIVE_POOLS:
        score -= 1
    if exchange_count >= MIN_EXCHANGES:
        score -= 1
    return max(MIN_RISK_SCORE, min(BASE_RISK_SCORE, score))


def calculate_analytics(pairs: List[TokenPair]) -> TokenAnalytics:
    liquidity = total_liquidity(pairs)
    active = count_active_pairs(pairs)

    liquidity_by_exchange: Dict[str, float] = {}
    for p in pairs:
        liquidity_by_exchange[p.exchange_name] = liquidity_by_exchange.get(p.exchange_name, 0.0) + p.liquidity_usd

    return TokenAnalytics(
        total_liquidity=liquidity,
        total_volume=total_volume(pairs),
        active_pools=active,
        inactive_pools=len(pairs) - active,
        exchanges=unique_exchanges(pairs),
        liquidity_by_exchange=liquidity_by_exchange,
        risk_score=compute_risk_score(liquidity, active, len(liquidity_by_exchange)),
    )


def extract_token_info(pairs: List[TokenPair], token_address: str) -> Optional[TokenInfo]:
    """Identity and price from the deepest pool that has the token as a leg."""
    # sorted() is stable, so equal liquidity keeps upstream order
    for p in sorted(pairs, key=lambda x: x.liquidity_usd, reverse=True):
        token = next((t for t in p.pair if t.token_address == token_address), None)
        if token is None:
            continue
        return TokenInfo(
            address=token.token_address,
            name=token.token_name,
            symbol=token.token_symbol,
            logo=token.token_logo,
            decimals=token.token_decimals,
            price=p.usd_price,
            price_change_24h=p.usd_price_24hr_percent_change,
            volume_24h=total_volume(pairs),
            liquidity_usd=total_liquidity(pairs),
            exchanges=unique_exchanges(pairs),
            active_pairs=count_active_pairs(pairs),
        )
    return None


def parse_pairs(raw_pairs: List[Any]) -> List[TokenPair]:
    pairs: List[TokenPair] = []
    for item in raw_pairs:
        if not isinstance(item, dict):
            logger.debug("Skipping non-object pair entry: %r", item)
            continue
        pairs.append(TokenPair.model_validate(item))
    return pairs


# -----------------------------------------------------------------------------
# Best-effort merges
# -----------------------------------------------------------------------------
async def _best_effort(call: Awaitable[UpstreamResult], label: str) -> UpstreamResult:
    try:
        return await call
    except Exception as e:
        logger.warning("Error fetching %s data: %s", label, e)
        return SoftError(f"Failed to fetch {label} data")


def merge_decentralization(result: UpstreamResult) -> Dict[str, Any]:
    if isinstance(result, Ok):
        data = result.payload
        if isinstance(data, dict) and data.get("status") == "OK" and data.get("decentralisation_score") is not None:
            return data
        logger.warning("Unexpected decentralization data format: %r", data)
        return {"error": "Unexpected data format from decentralization API", "receivedData": data}
    if isinstance(result, SoftError):
        return result.to_payload()
    return {"error": result.message, "status": result.status}


def merge_dex_verification(result: UpstreamResult) -> Dict[str, Any]:
    if isinstance(result, Ok) and isinstance(result.payload, dict):
        return result.payload
    if isinstance(result, SoftError):
        return {"isPaid": False, "message": "Information not available", **result.to_payload()}
    message = result.message if isinstance(result, HardError) else "Invalid DEX verification data format"
    return {"isPaid": False, "error": message, "message": "Information not available"}


# -----------------------------------------------------------------------------
# Aggregator
# -----------------------------------------------------------------------------
async def analyze_token(client: httpx.AsyncClient, address: str, cfg: Settings) -> TokenAnalysisResponse:
    """
    Fetch pairs, decentralization and DEX-paid status concurrently and merge
    them. Raises UpstreamError only when the pairs source fails.
    """
    pairs_result, decentralization_result, dex_result = await asyncio.gather(
        fetch_token_pairs(client, address, cfg.CHECKDEX_API_URL),
        _best_effort(fetch_decentralization(client, address, cfg.BUBBLEMAPS_API_URL), "decentralization"),
        _best_effort(fetch_dex_paid_status(client, address, cfg.DEXSCREENER_ORDERS_URL), "DEX verification"),
    )

    if isinstance(pairs_result, HardError):
        raise UpstreamError(pairs_result.status, pairs_result.message)
    if not isinstance(pairs_result, Ok):
        raise UpstreamError(500, "Failed to fetch token data")

    data = pairs_result.payload
    pairs = parse_pairs(data.get("pairs") or [])

    return TokenAnalysisResponse(
        token_info=extract_token_info(pairs, address),
        pairs=pairs,
        analytics=calculate_analytics(pairs),
        decentralization=merge_decentralization(decentralization_result),
        dex_verification=merge_dex_verification(dex_result),
        page_size=data.get("pageSize"),
        page=data.get("page"),
        cursor=data.get("cursor"),
    )
