import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from solscope.config import ConfigurationError, Settings
from solscope.schemas import (
    DateRange,
    FlowEdge,
    FlowNode,
    TransactionAccount,
    TransactionDetails,
    TransactionFlowResponse,
    WalletAnalysisResponse,
    WalletTokenHolding,
    WalletTransaction,
)
from solscope.solana_rpc import LAMPORTS_PER_SOL, describe_rpc_error
from solscope.upstreams import Ok, SoftError, UpstreamResult, fetch_sanctions, fetch_wallet_risk

logger = logging.getLogger(__name__)

DEFAULT_FLOW_WINDOW = timedelta(days=30)

# Checked in order; first match wins
LOG_TYPE_MARKERS = [
    ("Transfer", "Transfer"),
    ("Swap", "Swap"),
    ("Stake", "Stake"),
    ("CreateAccount", "Account Creation"),
    ("CloseAccount", "Account Close"),
]


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def short_label(address: str) -> str:
    return f"{address[:4]}...{address[-4:]}"


def _iso_from_block_time(block_time: Optional[int]) -> Optional[str]:
    if not block_time:
        return None
    return datetime.fromtimestamp(block_time, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _tx_status(tx: Dict[str, Any]) -> str:
    return "Failed" if (tx.get("meta") or {}).get("err") else "Success"


def _tx_fee_sol(tx: Dict[str, Any]) -> float:
    return ((tx.get("meta") or {}).get("fee") or 0) / LAMPORTS_PER_SOL


def _tx_message(tx: Dict[str, Any]) -> Dict[str, Any]:
    return (tx.get("transaction") or {}).get("message") or {}


def _tx_signature(tx: Dict[str, Any]) -> Optional[str]:
    sigs = (tx.get("transaction") or {}).get("signatures") or []
    return sigs[0] if sigs else None


def classify_transaction_type(log_messages: List[str]) -> str:
    joined = " ".join(log_messages or [])
    for marker, label in LOG_TYPE_MARKERS:
        if marker in joined:
            return label
    return "Unknown"


# -----------------------------------------------------------------------------
# Token holdings
# -----------------------------------------------------------------------------
async def list_wallet_tokens(rpc, owner: str) -> List[WalletTokenHolding]:
    accounts = await rpc.get_parsed_token_accounts_by_owner(owner)
    holdings: List[WalletTokenHolding] = []
    for item in accounts:
        try:
            info = item["account"]["data"]["parsed"]["info"]
            ta = info["tokenAmount"]
            amount = float(ta.get("uiAmount") or 0)
            if amount > 0:
                holdings.append(
                    WalletTokenHolding(
                        token_account=item["pubkey"],
                        mint=info["mint"],
                        amount=amount,
                        decimals=int(ta.get("decimals") or 0),
                    )
                )
        except (KeyError, TypeError, ValueError) as e:
            logger.debug("Skipping unparsable token account for %s: %s", owner, e)
            continue
    holdings.sort(key=lambda h: h.amount, reverse=True)
    return holdings


# -----------------------------------------------------------------------------
# Transactions
# -----------------------------------------------------------------------------
async def _fetch_parsed_transactions(rpc, signatures: List[str]) -> List[Dict[str, Any]]:
    txs = await asyncio.gather(*(rpc.get_parsed_transaction(sig) for sig in signatures))
    return [tx for tx in txs if tx]


async def list_wallet_transactions(rpc, address: str, limit: int = 5) -> List[WalletTransaction]:
    signatures = await rpc.get_signatures_for_address(address, limit=limit)
    txs = await _fetch_parsed_transactions(rpc, [s["signature"] for s in signatures if s.get("signature")])

    out: List[WalletTransaction] = []
    for tx in txs:
        meta = tx.get("meta") or {}
        out.append(
            WalletTransaction(
                signature=_tx_signature(tx),
                timestamp=_iso_from_block_time(tx.get("blockTime")),
                status=_tx_status(tx),
                type=classify_transaction_type(meta.get("logMessages") or []),
                fee=_tx_fee_sol(tx),
            )
        )
    return out


async def build_transaction_flow(
    rpc,
    address: str,
    limit: int = 10,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    min_amount: float = 0.0,
) -> TransactionFlowResponse:
    """SOL transfer graph around ``address`` for signatures inside [start, end]."""
    end = end or datetime.now(timezone.utc)
    start = start or (end - DEFAULT_FLOW_WINDOW)
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    if end.tzinfo is None:
        end = end.replace(tzinfo=timezone.utc)

    signatures = await rpc.get_signatures_for_address(address, limit=limit)
    in_window = []
    for sig in signatures:
        block_time = sig.get("blockTime")
        if not block_time:
            continue
        ts = datetime.fromtimestamp(block_time, tz=timezone.utc)
        if start <= ts <= end:
            in_window.append(sig["signature"])

    txs = await _fetch_parsed_transactions(rpc, in_window)

    nodes: Dict[str, FlowNode] = {address: FlowNode(id=address, label=short_label(address))}
    edges: List[FlowEdge] = []

    for tx in txs:
        if not tx.get("meta") or _tx_status(tx) == "Failed":
            continue
        signature = _tx_signature(tx)
        block_time = tx.get("blockTime")
        timestamp = datetime.fromtimestamp(block_time, tz=timezone.utc) if block_time else None

        for ix in _tx_message(tx).get("instructions") or []:
            parsed = ix.get("parsed")
            if not isinstance(parsed, dict) or parsed.get("type") != "transfer":
                continue
            info = parsed.get("info") or {}
            source, destination, lamports = info.get("source"), info.get("destination"), info.get("lamports")
            if not source or not destination or not lamports:
                continue
            amount = lamports / LAMPORTS_PER_SOL
            if amount < min_amount:
                continue

            for party in (source, destination):
                node = nodes.setdefault(party, FlowNode(id=party, label=short_label(party)))
                node.transactions += 1
                node.volume += amount

            edges.append(
                FlowEdge(source=source, target=destination, amount=amount, signature=signature, timestamp=timestamp)
            )

    return TransactionFlowResponse(
        address=address,
        nodes=list(nodes.values()),
        edges=edges,
        date_range=DateRange(start=start, end=end),
    )


def _format_instruction(ix: Dict[str, Any]) -> Dict[str, Any]:
    parsed = ix.get("parsed")
    if parsed is not None:
        parsed = parsed if isinstance(parsed, dict) else {"type": str(parsed)}
        return {
            "programId": ix.get("programId"),
            "type": parsed.get("type") or "Unknown",
            "info": parsed.get("info") or {},
        }
    return {"programId": ix.get("programId"), "type": "Binary", "data": ix.get("data") or ""}


async def get_transaction_details(rpc, signature: str) -> Optional[TransactionDetails]:
    tx = await rpc.get_parsed_transaction(signature)
    if not tx:
        return None

    meta = tx.get("meta") or {}
    message = _tx_message(tx)
    accounts = []
    for key in message.get("accountKeys") or []:
        if isinstance(key, dict):
            accounts.append(
                TransactionAccount(
                    pubkey=str(key.get("pubkey") or ""), signer=bool(key.get("signer")), writable=bool(key.get("writable"))
                )
            )
        else:
            accounts.append(TransactionAccount(pubkey=str(key)))

    return TransactionDetails(
        signature=signature,
        block_time=_iso_from_block_time(tx.get("blockTime")),
        status=_tx_status(tx),
        fee=meta["fee"] / LAMPORTS_PER_SOL if meta.get("fee") else None,
        slot=tx.get("slot"),
        accounts=accounts,
        instructions=[_format_instruction(ix) for ix in message.get("instructions") or []],
        error=json.dumps(meta["err"]) if meta.get("err") else None,
        logs=meta.get("logMessages") or [],
    )


# -----------------------------------------------------------------------------
# Wallet aggregate
# -----------------------------------------------------------------------------
def _embed(result: UpstreamResult) -> Dict[str, Any]:
    if isinstance(result, Ok):
        return result.payload
    if isinstance(result, SoftError):
        return result.to_payload()
    return {"error": result.message, "status": result.status}


async def _risk_part(client: httpx.AsyncClient, address: str, cfg: Settings) -> Dict[str, Any]:
    try:
        api_key = cfg.require("WEBACY_API_KEY")
        return _embed(await fetch_wallet_risk(client, address, cfg.WEBACY_API_URL, api_key))
    except ConfigurationError as e:
        return {"error": str(e)}
    except Exception as e:
        logger.warning("Error fetching wallet risk for %s: %s", address, e)
        return {"error": "Failed to fetch wallet data"}


async def _sanctions_part(client: httpx.AsyncClient, address: str, cfg: Settings) -> Dict[str, Any]:
    try:
        api_key = cfg.require("WEBACY_API_KEY")
        return _embed(await fetch_sanctions(client, address, cfg.WEBACY_API_URL, api_key))
    except ConfigurationError as e:
        return {"error": str(e)}
    except Exception as e:
        logger.warning("Error checking sanctioned status for %s: %s", address, e)
        return {"error": "Failed to check sanctioned status"}


async def _balance_part(rpc, address: str) -> Dict[str, Any]:
    try:
        lamports = await rpc.get_balance(address)
    except Exception as e:
        logger.warning("Error fetching balance for %s: %s", address, e)
        return {"error": describe_rpc_error(e)}
    return {"lamports": lamports, "sol": lamports / LAMPORTS_PER_SOL}


async def _activity_part(rpc, address: str, limit: int) -> Dict[str, Any]:
    try:
        signatures = await rpc.get_signatures_for_address(address, limit=limit)
    except Exception as e:
        logger.warning("Error fetching signatures for %s: %s", address, e)
        return {"error": describe_rpc_error(e)}
    times = [s["blockTime"] for s in signatures if s.get("blockTime")]
    return {
        "recentTransactionCount": len(signatures),
        "failedTransactionCount": sum(1 for s in signatures if s.get("err")),
        "lastActive": _iso_from_block_time(max(times)) if times else None,
        "oldestInSample": _iso_from_block_time(min(times)) if times else None,
    }


def _overall_risk(risk: Dict[str, Any]) -> Optional[float]:
    value = risk.get("overallRisk")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return None


async def analyze_wallet(
    client: httpx.AsyncClient, rpc, address: str, cfg: Settings, activity_limit: int = 100
) -> WalletAnalysisResponse:
    """Risk score, sanction flag and on-chain facts; every part is best-effort."""
    risk, sanctioned, balance, activity = await asyncio.gather(
        _risk_part(client, address, cfg),
        _sanctions_part(client, address, cfg),
        _balance_part(rpc, address),
        _activity_part(rpc, address, activity_limit),
    )
    return WalletAnalysisResponse(
        address=address,
        overall_risk=_overall_risk(risk),
        risk=risk,
        sanctioned=sanctioned,
        balance=balance,
        activity=activity,
    )
