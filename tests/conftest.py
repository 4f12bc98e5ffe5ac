from typing import Any, Dict

import httpx
import pytest

from helpers import TOKEN_MINT, WSOL_MINT
from solscope.config import Settings


@pytest.fixture
def cfg() -> Settings:
    return Settings(
        SOLANA_RPC_URL="https://rpc.test",
        SOLSCAN_API_URL="https://solscan.test",
        SOLSCAN_API_TOKEN="solscan-token",
        CHECKDEX_API_URL="https://checkdex.test/api/getPairs",
        BUBBLEMAPS_API_URL="https://bubblemaps.test/map-metadata",
        DEXSCREENER_ORDERS_URL="https://dexscreener.test/orders/v1/solana",
        RUGCHECK_API_URL="https://rugcheck.test/v1/tokens",
        WEBACY_API_URL="https://webacy.test/addresses",
        WEBACY_API_KEY="webacy-key",
        VYBE_API_URL="https://vybe.test",
        VYBE_API_KEY="vybe-key",
        MESSARI_API_URL="https://messari.test",
        MESSARI_API_KEY="messari-key",
        REDIS_URL=None,
        UPSTREAM_CACHE_TTL_SECONDS=3600,
    )


@pytest.fixture
def mock_client():
    """Build an AsyncClient whose requests are routed by host to handlers."""

    def _build(routes: Dict[str, Any]) -> httpx.AsyncClient:
        def handler(request: httpx.Request) -> httpx.Response:
            route = routes.get(request.url.host)
            if route is None:
                return httpx.Response(404, json={"error": "no route"})
            return route(request) if callable(route) else route

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _build


@pytest.fixture
def make_pair():
    def _make(
        exchange: str,
        liquidity: float,
        volume: float = 0.0,
        inactive: bool = False,
        legs=(TOKEN_MINT, WSOL_MINT),
        price: float = 0.00002,
    ) -> dict:
        return {
            "exchangeAddress": f"{exchange}-program",
            "exchangeName": exchange,
            "exchangeLogo": None,
            "pairAddress": f"{exchange}-{liquidity}",
            "pairLabel": "BONK/SOL",
            "usdPrice": price,
            "usdPrice24hrPercentChange": 3.2,
            "usdPrice24hrUsdChange": 0.000001,
            "volume24hrNative": volume / 150,
            "volume24hrUsd": volume,
            "liquidityUsd": liquidity,
            "baseToken": legs[0],
            "quoteToken": legs[1],
            "inactivePair": inactive,
            "pair": [
                {
                    "tokenAddress": leg,
                    "tokenName": "Bonk" if leg == TOKEN_MINT else "Wrapped SOL",
                    "tokenSymbol": "BONK" if leg == TOKEN_MINT else "SOL",
                    "tokenLogo": None,
                    "tokenDecimals": "5" if leg == TOKEN_MINT else "9",
                    "pairTokenType": "token0" if i == 0 else "token1",
                    "liquidityUsd": liquidity / 2,
                }
                for i, leg in enumerate(legs)
            ],
        }

    return _make
