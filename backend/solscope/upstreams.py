import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union

import httpx
from fastapi import HTTPException

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Result types
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Ok:
    payload: Any


@dataclass(frozen=True)
class SoftError:
    """Embeddable failure: the caller still answers 200."""

    message: str
    status: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.status is not None:
            body["status"] = self.status
        body.update(self.details)
        return body


@dataclass(frozen=True)
class HardError:
    status: int
    message: str


UpstreamResult = Union[Ok, SoftError, HardError]


class UpstreamError(Exception):
    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


def render_result(result: UpstreamResult) -> Any:
    """Route-level view of a handler result."""
    if isinstance(result, Ok):
        return result.payload
    if isinstance(result, SoftError):
        return result.to_payload()
    raise HTTPException(status_code=result.status, detail=result.message)


# -----------------------------------------------------------------------------
# HTTP helper
# -----------------------------------------------------------------------------
def _is_json(r: httpx.Response) -> bool:
    return "application/json" in (r.headers.get("content-type") or "").lower()


async def _soft_get_json(
    client: httpx.AsyncClient,
    url: str,
    label: str,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    timeout: Optional[float] = None,
    on_status: Optional[Callable[[httpx.Response], Optional[UpstreamResult]]] = None,
) -> Union[Ok, SoftError, HardError]:
    """
    GET a JSON document, folding every failure mode into a result value.
    ``on_status`` may claim a non-200 response before the generic soft error.
    """
    try:
        kwargs: Dict[str, Any] = {"headers": headers, "params": params}
        if timeout is not None:
            kwargs["timeout"] = timeout
        r = await client.get(url, **kwargs)
    except httpx.HTTPError as e:
        logger.warning("Error fetching from %s API: %s", label, e)
        return SoftError(
            f"Failed to fetch or parse {label} API data", details={"details": str(e) or e.__class__.__name__}
        )

    if r.status_code != 200:
        claimed = on_status(r) if on_status else None
        if claimed is not None:
            return claimed
        logger.warning("%s API error: %s %s", label, r.status_code, r.reason_phrase)
        return SoftError(f"Failed to fetch {label} data: {r.reason_phrase}", status=r.status_code)

    if not _is_json(r):
        logger.warning("%s API returned non-JSON response: %s", label, r.headers.get("content-type"))
        return SoftError("External API returned non-JSON response", status=r.status_code)

    try:
        return Ok(r.json())
    except ValueError as e:
        logger.warning("Error parsing %s response: %s", label, e)
        return SoftError(f"Failed to fetch or parse {label} API data", details={"details": str(e)})


def _require_object(result: UpstreamResult, label: str) -> UpstreamResult:
    if isinstance(result, Ok) and not isinstance(result.payload, dict):
        logger.warning("Unexpected %s API response format: %r", label, result.payload)
        return SoftError("External API returned unexpected data format", details={"receivedData": result.payload})
    return result


# -----------------------------------------------------------------------------
# Token handlers
# -----------------------------------------------------------------------------
async def fetch_token_pairs(client: httpx.AsyncClient, address: str, base_url: str) -> UpstreamResult:
    """DEX pair listing. The one load-bearing source: failures are hard."""
    try:
        r = await client.get(base_url, params={"address": address})
    except httpx.HTTPError as e:
        logger.error("Error fetching token pairs for %s: %s", address, e)
        return HardError(500, "Failed to fetch token data")

    if r.status_code != 200:
        logger.error("Pairs API error for %s: %s %s", address, r.status_code, r.reason_phrase)
        return HardError(r.status_code, f"Failed to fetch token data: {r.reason_phrase}")

    try:
        data = r.json()
    except ValueError:
        logger.error("Pairs API returned an unparsable body for %s", address)
        return HardError(500, "Failed to fetch token data")

    if not isinstance(data, dict):
        return HardError(500, "Failed to fetch token data")
    if not isinstance(data.get("pairs"), list):
        data["pairs"] = []
    return Ok(data)


async def fetch_decentralization(client: httpx.AsyncClient, address: str, base_url: str) -> UpstreamResult:
    logger.info("Fetching Bubblemap data for Solana token: %s", address)
    result = await _soft_get_json(
        client, base_url, "Bubblemap", params={"chain": "sol", "token": address}
    )
    if isinstance(result, Ok):
        data = result.payload
        if isinstance(data, dict) and data.get("status") == "OK":
            return result
        logger.warning("Unexpected Bubblemap API response format: %r", data)
        return SoftError("External API returned unexpected data format", details={"receivedData": data})
    return result


def _dex_unpaid_on_404(r: httpx.Response) -> Optional[UpstreamResult]:
    if r.status_code == 404:
        return Ok({"isPaid": False, "message": "Token has not paid for DEX features"})
    return None


async def fetch_dex_paid_status(client: httpx.AsyncClient, address: str, base_url: str) -> UpstreamResult:
    logger.info("Fetching DexScreener data for Solana token: %s", address)
    result = await _soft_get_json(
        client, f"{base_url.rstrip('/')}/{address}", "DexScreener", on_status=_dex_unpaid_on_404
    )
    if isinstance(result, SoftError):
        details = {"isPaid": False, "message": "Information not available", **result.details}
        return SoftError(result.message, status=result.status, details=details)
    if isinstance(result, Ok) and "isPaid" not in (result.payload if isinstance(result.payload, dict) else {}):
        data = result.payload
        if isinstance(data, list) and data:
            is_paid = any(isinstance(e, dict) and e.get("paymentTimestamp") for e in data)
            return Ok({"isPaid": is_paid, "message": "DEX paid" if is_paid else "DEX not paid", "details": data})
        return Ok({"isPaid": False, "message": "Information not available", "details": data})
    return result


async def fetch_rugcheck_report(client: httpx.AsyncClient, address: str, base_url: str) -> UpstreamResult:
    logger.info("Fetching RugCheck data for Solana token: %s", address)
    result = await _soft_get_json(client, f"{base_url.rstrip('/')}/{address}/report", "RugCheck")
    return _require_object(result, "RugCheck")


# -----------------------------------------------------------------------------
# Wallet handlers
# -----------------------------------------------------------------------------
def _webacy_headers(api_key: str) -> Dict[str, str]:
    return {"accept": "application/json", "x-api-key": api_key}


async def fetch_wallet_risk(client: httpx.AsyncClient, address: str, base_url: str, api_key: str) -> UpstreamResult:
    result = await _soft_get_json(
        client,
        f"{base_url.rstrip('/')}/{address}",
        "Webacy",
        headers=_webacy_headers(api_key),
        params={"chain": "sol", "show_low_risk": "true"},
    )
    return _require_object(result, "Webacy")


async def fetch_sanctions(client: httpx.AsyncClient, address: str, base_url: str, api_key: str) -> UpstreamResult:
    result = await _soft_get_json(
        client,
        f"{base_url.rstrip('/')}/sanctioned/{address}",
        "Webacy sanctions",
        headers=_webacy_headers(api_key),
        params={"chain": "sol"},
    )
    return _require_object(result, "Webacy sanctions")


def _pnl_not_found(r: httpx.Response) -> Optional[UpstreamResult]:
    if r.status_code == 404:
        return HardError(404, "No PNL data found for this wallet")
    return None


async def fetch_wallet_pnl(
    client: httpx.AsyncClient, address: str, base_url: str, api_key: str, resolution: str = "7d"
) -> UpstreamResult:
    result = await _soft_get_json(
        client,
        f"{base_url.rstrip('/')}/account/pnl/{address}",
        "Vybe",
        headers={"accept": "application/json", "X-API-KEY": api_key},
        params={"resolution": resolution},
        on_status=_pnl_not_found,
    )
    return _require_object(result, "Vybe")


# -----------------------------------------------------------------------------
# Network-wide handlers
# -----------------------------------------------------------------------------
EMPTY_CHAIN_INFO = {"blockHeight": 0, "currentEpoch": 0, "absoluteSlot": 0, "transactionCount": 0}


async def fetch_chain_info(
    client: httpx.AsyncClient, base_url: str, api_token: Optional[str], timeout: float = 5.0
) -> UpstreamResult:
    if not api_token:
        logger.warning("Missing SOLSCAN_API_TOKEN; serving placeholder chain info")
        return Ok({
            "success": True,
            "data": dict(EMPTY_CHAIN_INFO),
            "warning": "Using placeholder data. Solscan API token not configured.",
        })

    result = await _soft_get_json(
        client, f"{base_url.rstrip('/')}/chaininfo", "Solscan", headers={"token": api_token}, timeout=timeout
    )
    if isinstance(result, Ok):
        raw = result.payload.get("data") if isinstance(result.payload, dict) else None
        if isinstance(raw, dict):
            return Ok({"success": True, "data": {k: raw.get(k) or 0 for k in EMPTY_CHAIN_INFO}})
        result = SoftError("Invalid response format from Solscan API")
    details = {**result.details, "success": False, "data": dict(EMPTY_CHAIN_INFO)}
    return SoftError(result.message, status=result.status, details=details)


MINDSHARE_ASSET_ID = "b3d5d66c-26a2-404c-9325-91dc714a722b"


async def fetch_solana_mindshare(client: httpx.AsyncClient, base_url: str, api_key: str) -> UpstreamResult:
    result = await _soft_get_json(
        client,
        f"{base_url.rstrip('/')}/signal/v0/assets/{MINDSHARE_ASSET_ID}",
        "Messari",
        headers={"accept": "application/json", "X-MESSARI-API-KEY": api_key},
    )
    return _require_object(result, "Messari")


async def fetch_dex_metrics(client: httpx.AsyncClient, base_url: str, api_key: str) -> UpstreamResult:
    result = await _soft_get_json(
        client,
        f"{base_url.rstrip('/')}/metrics/v1/exchanges",
        "Messari",
        headers={"accept": "application/json", "x-messari-api-key": api_key},
        params={"type": "decentralized", "typeRankCutoff": 10},
    )
    return _require_object(result, "Messari")
