from typing import Dict, List, Optional

import redis.asyncio as redis

TOKEN_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
WSOL_MINT = "So11111111111111111111111111111111111111112"
WALLET = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
SIGNATURE = "5" * 88


class FakeRpc:
    """In-memory stand-in for SolanaRpcClient."""

    def __init__(
        self,
        account_info: Optional[Dict[str, dict]] = None,
        largest: Optional[Dict[str, list]] = None,
        transactions: Optional[Dict[str, dict]] = None,
        signatures: Optional[List[dict]] = None,
        token_accounts: Optional[List[dict]] = None,
        balance: int = 0,
        fail: Optional[Dict[str, Exception]] = None,
    ):
        self.account_info = account_info or {}
        self.largest = largest or {}
        self.transactions = transactions or {}
        self.signatures = signatures or []
        self.token_accounts = token_accounts or []
        self.balance = balance
        self.fail = fail or {}
        self.calls: List[str] = []

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise self.fail[name]

    async def get_account_info(self, pubkey: str, encoding: str = "base64"):
        self._enter("get_account_info")
        return self.account_info.get(pubkey)

    async def get_token_largest_accounts(self, mint: str):
        self._enter("get_token_largest_accounts")
        return self.largest.get(mint, [])

    async def get_parsed_transaction(self, signature: str):
        self._enter("get_parsed_transaction")
        return self.transactions.get(signature)

    async def get_signatures_for_address(self, address: str, limit: int = 10):
        self._enter("get_signatures_for_address")
        return self.signatures[:limit]

    async def get_parsed_token_accounts_by_owner(self, owner: str, program_id: str = ""):
        self._enter("get_parsed_token_accounts_by_owner")
        return self.token_accounts

    async def get_balance(self, pubkey: str) -> int:
        self._enter("get_balance")
        return self.balance


class FakeRedis:
    """Dict-backed stand-in for the redis.asyncio client."""

    def __init__(self, broken: bool = False):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.broken = broken

    async def get(self, key: str):
        if self.broken:
            raise redis.ConnectionError("redis down")
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None):
        if self.broken:
            raise redis.ConnectionError("redis down")
        self.store[key] = value
        self.ttls[key] = ex
