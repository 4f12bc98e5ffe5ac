"""
Classify a user-supplied string as a token mint, a wallet, a transaction
signature, or invalid input.

Format checks run first; the remaining decisions need the chain, so the
classifier takes a ``SolanaRpcClient`` (or anything exposing the same
lookups).
"""
import logging
import re

import base58

from solscope.schemas import AddressKind, ClassificationResult
from solscope.solana_rpc import TOKEN_PROGRAM_ID, describe_rpc_error

logger = logging.getLogger(__name__)

ETH_ADDRESS_RE = re.compile(r"0x[a-fA-F0-9]{40}")
# Base58 (no 0, O, I, l); signatures are 64 bytes, typically 87-88 chars
SIGNATURE_RE = re.compile(r"[1-9A-HJ-NP-Za-km-z]{85,}")
PUBKEY_LENGTH = 32


def is_ethereum_address(addr: str) -> bool:
    return bool(ETH_ADDRESS_RE.fullmatch(addr))


def is_transaction_signature(value: str) -> bool:
    return bool(SIGNATURE_RE.fullmatch(value))


def is_valid_solana_address(addr: str) -> bool:
    if not addr:
        return False
    try:
        return len(base58.b58decode(addr)) == PUBKEY_LENGTH
    except ValueError:
        return False


async def is_token_mint(address: str, account_info: dict, rpc) -> bool:
    """
    Token-vs-wallet decision for an account known to exist.

    The owner program check is authoritative for SPL mints. The largest-accounts
    probe covers the rest and is expected to fail for ordinary wallets, so its
    errors are not reported.
    """
    if account_info.get("owner") == TOKEN_PROGRAM_ID:
        logger.debug("Address %s is a token based on owner program", address)
        return True
    try:
        largest = await rpc.get_token_largest_accounts(address)
    except Exception as e:
        logger.debug("Largest-accounts probe failed for %s: %s", address, e)
        return False
    return bool(largest)


async def classify_address(raw: str, rpc) -> ClassificationResult:
    address = (raw or "").strip()
    if not address:
        return ClassificationResult.invalid("Address cannot be empty")

    if is_ethereum_address(address):
        return ClassificationResult.invalid(
            "Ethereum addresses are not supported. Please enter a Solana address."
        )

    try:
        if is_transaction_signature(address):
            tx = await rpc.get_parsed_transaction(address)
            if tx is None:
                return ClassificationResult.invalid("Transaction signature not found on-chain")
            return ClassificationResult.valid(AddressKind.TRANSACTION)

        if not is_valid_solana_address(address):
            return ClassificationResult.invalid("Invalid Solana address format")

        account_info = await rpc.get_account_info(address)
        if not account_info:
            # valid format but never funded
            logger.info("Address %s is valid but has no account info", address)
            return ClassificationResult.valid(AddressKind.WALLET)

        if await is_token_mint(address, account_info, rpc):
            return ClassificationResult.valid(AddressKind.TOKEN)
        return ClassificationResult.valid(AddressKind.WALLET)
    except Exception as e:
        logger.error("Error analyzing address %s: %s", address, e)
        return ClassificationResult.invalid(describe_rpc_error(e))
