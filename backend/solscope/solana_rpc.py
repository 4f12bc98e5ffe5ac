import asyncio
import functools
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Constants
# -----------------------------------------------------------------------------
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
LAMPORTS_PER_SOL = 1_000_000_000

MAX_RETRIES = 3
INITIAL_DELAY_MS = 1000
RATE_LIMIT_STATUS = 429
_RATE_LIMIT_RE = re.compile(r"\b429\b")

_sleep = asyncio.sleep

# -----------------------------------------------------------------------------
# Errors
# -----------------------------------------------------------------------------
class RpcError(Exception):
    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.message = message


class RpcRateLimitError(RpcError):
    """The endpoint answered 429, either at the HTTP or the JSON-RPC level."""


class RpcTransportError(RpcError):
    """The request never produced a usable response (network error, timeout)."""


def is_rate_limit_error(exc: BaseException) -> bool:
    if isinstance(exc, RpcRateLimitError):
        return True
    if getattr(exc, "code", None) == RATE_LIMIT_STATUS:
        return True
    if getattr(exc, "status_code", None) == RATE_LIMIT_STATUS:
        return True
    if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == RATE_LIMIT_STATUS:
        return True
    return bool(_RATE_LIMIT_RE.search(str(exc)))


def describe_rpc_error(exc: BaseException) -> str:
    """Turn an RPC failure into a message suitable for the dashboard."""
    message = str(exc) or exc.__class__.__name__
    lowered = message.lower()
    if is_rate_limit_error(exc) or "too many requests" in lowered:
        return "The Solana network is currently busy. Please try again in a moment."
    if isinstance(exc, httpx.TimeoutException) or "timeout" in lowered or "timed out" in lowered:
        return "Connection to Solana network timed out. Please check your internet connection and try again."
    if isinstance(exc, RpcTransportError) or "failed to fetch" in lowered:
        return "Unable to connect to Solana network. Please check your internet connection."
    if "invalid public key" in lowered or "invalid param" in lowered:
        return "Invalid Solana address format."
    return f"Solana error: {message}"


# -----------------------------------------------------------------------------
# Retry policy
# -----------------------------------------------------------------------------
def retry_on_rate_limit(func):
    """
    Retry an RPC coroutine on rate-limit errors with exponential backoff.
    Waits INITIAL_DELAY_MS * 2**n between attempts, at most MAX_RETRIES times,
    then re-raises the last error. Anything that is not a rate limit propagates
    on the first failure.
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        retries = 0
        while True:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                if not is_rate_limit_error(e) or retries >= MAX_RETRIES:
                    raise
                delay_ms = INITIAL_DELAY_MS * (2 ** retries)
                logger.warning(
                    "Server responded with 429 on %s. Retrying after %dms delay...",
                    func.__name__,
                    delay_ms,
                )
                await _sleep(delay_ms / 1000.0)
                retries += 1

    return wrapper


# -----------------------------------------------------------------------------
# Client
# -----------------------------------------------------------------------------
class SolanaRpcClient:
    """
    Read-only Solana JSON-RPC client. One instance per request; use it as an
    async context manager so the underlying HTTP connection pool is released.

    Only the lookups decorated with ``retry_on_rate_limit`` are retried.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._next_id = 0

    async def __aenter__(self) -> "SolanaRpcClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, params: List[Any]) -> Any:
        self._next_id += 1
        payload = {"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": params}
        try:
            r = await self._client.post(
                self.endpoint, json=payload, headers={"Content-Type": "application/json"}
            )
        except httpx.RequestError as e:
            raise RpcTransportError(f"{method} failed: {e}") from e

        if r.status_code == RATE_LIMIT_STATUS:
            raise RpcRateLimitError(f"429 Too Many Requests from {method}", code=RATE_LIMIT_STATUS)
        if r.status_code != 200:
            raise RpcError(f"{method} failed with HTTP {r.status_code}", code=r.status_code)

        try:
            data = r.json()
        except ValueError as e:
            raise RpcError(f"{method} returned a non-JSON body") from e

        if isinstance(data, dict) and data.get("error"):
            err = data["error"] if isinstance(data["error"], dict) else {"message": str(data["error"])}
            code = err.get("code")
            message = str(err.get("message") or "Unknown RPC error")
            if code == RATE_LIMIT_STATUS or _RATE_LIMIT_RE.search(message):
                raise RpcRateLimitError(message, code=code)
            raise RpcError(message, code=code)

        return (data or {}).get("result") if isinstance(data, dict) else None

    # --- retried lookups ---------------------------------------------------

    @retry_on_rate_limit
    async def get_account_info(self, pubkey: str, encoding: str = "base64") -> Optional[Dict[str, Any]]:
        result = await self._call("getAccountInfo", [pubkey, {"encoding": encoding}])
        return (result or {}).get("value")

    @retry_on_rate_limit
    async def get_token_accounts_by_owner(
        self, owner: str, program_id: str = TOKEN_PROGRAM_ID
    ) -> List[Dict[str, Any]]:
        result = await self._call(
            "getTokenAccountsByOwner", [owner, {"programId": program_id}, {"encoding": "base64"}]
        )
        return (result or {}).get("value") or []

    @retry_on_rate_limit
    async def get_token_largest_accounts(self, mint: str) -> List[Dict[str, Any]]:
        result = await self._call("getTokenLargestAccounts", [mint])
        return (result or {}).get("value") or []

    @retry_on_rate_limit
    async def get_parsed_token_accounts_by_owner(
        self, owner: str, program_id: str = TOKEN_PROGRAM_ID
    ) -> List[Dict[str, Any]]:
        result = await self._call(
            "getTokenAccountsByOwner", [owner, {"programId": program_id}, {"encoding": "jsonParsed"}]
        )
        return (result or {}).get("value") or []

    @retry_on_rate_limit
    async def get_signatures_for_address(self, address: str, limit: int = 10) -> List[Dict[str, Any]]:
        result = await self._call("getSignaturesForAddress", [address, {"limit": limit}])
        return result or []

    # --- single-shot lookups -----------------------------------------------

    async def get_parsed_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        return await self._call(
            "getTransaction",
            [signature, {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0}],
        )

    async def get_balance(self, pubkey: str) -> int:
        result = await self._call("getBalance", [pubkey])
        return int((result or {}).get("value") or 0)
