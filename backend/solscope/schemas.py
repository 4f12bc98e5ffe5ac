from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CamelModel(BaseModel):
    """Accepts both the snake_case field name and the camelCase wire name."""

    model_config = ConfigDict(populate_by_name=True)


# -----------------------------------------------------------------------------
# Address classification
# -----------------------------------------------------------------------------
class AddressKind(str, Enum):
    TOKEN = "token"
    WALLET = "wallet"
    TRANSACTION = "transaction"
    INVALID = "invalid"


class ClassificationResult(CamelModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    is_valid: bool = Field(alias="isValid")
    kind: AddressKind
    error: Optional[str] = None

    @model_validator(mode="after")
    def _check_consistency(self) -> "ClassificationResult":
        if self.is_valid and self.kind == AddressKind.INVALID:
            raise ValueError("a valid result cannot have kind 'invalid'")
        if self.is_valid and self.error is not None:
            raise ValueError("error is only set on invalid results")
        return self

    @classmethod
    def valid(cls, kind: AddressKind) -> "ClassificationResult":
        return cls(is_valid=True, kind=kind)

    @classmethod
    def invalid(cls, error: str) -> "ClassificationResult":
        return cls(is_valid=False, kind=AddressKind.INVALID, error=error)


# -----------------------------------------------------------------------------
# Token pairs
# -----------------------------------------------------------------------------
class TokenPairToken(CamelModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    token_address: Optional[str] = Field(default=None, alias="tokenAddress")
    token_name: Optional[str] = Field(default=None, alias="tokenName")
    token_symbol: Optional[str] = Field(default=None, alias="tokenSymbol")
    token_logo: Optional[str] = Field(default=None, alias="tokenLogo")
    token_decimals: Union[str, int, None] = Field(default=None, alias="tokenDecimals")
    pair_token_type: Optional[str] = Field(default=None, alias="pairTokenType")
    liquidity_usd: float = Field(default=0.0, alias="liquidityUsd")

    @field_validator("liquidity_usd", mode="before")
    @classmethod
    def _non_negative(cls, v: Any) -> float:
        return _non_negative_float(v)

    @field_validator("token_address", "token_name", "token_symbol", "token_logo", "pair_token_type", mode="before")
    @classmethod
    def _text(cls, v: Any) -> Optional[str]:
        return _optional_str(v)

    @field_validator("token_decimals", mode="before")
    @classmethod
    def _decimals(cls, v: Any) -> Union[str, int, None]:
        if isinstance(v, bool):
            return None
        if isinstance(v, (str, int)):
            return v
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return None


class TokenPair(CamelModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    exchange_address: Optional[str] = Field(default=None, alias="exchangeAddress")
    exchange_name: str = Field(default="Unknown", alias="exchangeName")
    exchange_logo: Optional[str] = Field(default=None, alias="exchangeLogo")
    pair_address: Optional[str] = Field(default=None, alias="pairAddress")
    pair_label: Optional[str] = Field(default=None, alias="pairLabel")
    usd_price: Optional[float] = Field(default=None, alias="usdPrice")
    usd_price_24hr_percent_change: Optional[float] = Field(default=None, alias="usdPrice24hrPercentChange")
    usd_price_24hr_usd_change: Optional[float] = Field(default=None, alias="usdPrice24hrUsdChange")
    volume_24hr_native: Optional[float] = Field(default=None, alias="volume24hrNative")
    volume_24hr_usd: float = Field(default=0.0, alias="volume24hrUsd")
    liquidity_usd: float = Field(default=0.0, alias="liquidityUsd")
    base_token: Optional[str] = Field(default=None, alias="baseToken")
    quote_token: Optional[str] = Field(default=None, alias="quoteToken")
    inactive_pair: bool = Field(default=False, alias="inactivePair")
    pair: List[TokenPairToken] = Field(default_factory=list)

    @field_validator("liquidity_usd", mode="before")
    @classmethod
    def _non_negative(cls, v: Any) -> float:
        return _non_negative_float(v)

    @field_validator("volume_24hr_usd", mode="before")
    @classmethod
    def _volume_default(cls, v: Any) -> float:
        return _non_negative_float(v)

    @field_validator(
        "usd_price",
        "usd_price_24hr_percent_change",
        "usd_price_24hr_usd_change",
        "volume_24hr_native",
        mode="before",
    )
    @classmethod
    def _optional_number(cls, v: Any) -> Optional[float]:
        return _optional_float(v)

    @field_validator(
        "exchange_address", "exchange_logo", "pair_address", "pair_label", "base_token", "quote_token", mode="before"
    )
    @classmethod
    def _text(cls, v: Any) -> Optional[str]:
        return _optional_str(v)

    @field_validator("exchange_name", mode="before")
    @classmethod
    def _exchange_default(cls, v: Any) -> str:
        return str(v) if v else "Unknown"

    @field_validator("inactive_pair", mode="before")
    @classmethod
    def _inactive_default(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("pair", mode="before")
    @classmethod
    def _pair_default(cls, v: Any) -> List[Any]:
        # legs that are not objects carry nothing usable
        return [leg for leg in v if isinstance(leg, dict)] if isinstance(v, list) else []


def _non_negative_float(v: Any) -> float:
    try:
        value = float(v)
    except (TypeError, ValueError):
        return 0.0
    return value if value > 0 else 0.0


def _optional_float(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def _optional_str(v: Any) -> Optional[str]:
    if v is None or isinstance(v, (dict, list)):
        return None
    return str(v)


# -----------------------------------------------------------------------------
# Token analysis
# -----------------------------------------------------------------------------
class TokenInfo(CamelModel):
    address: str
    name: Optional[str] = None
    symbol: Optional[str] = None
    logo: Optional[str] = None
    decimals: Union[str, int, None] = None
    price: Optional[float] = None
    price_change_24h: Optional[float] = Field(default=None, alias="priceChange24h")
    volume_24h: float = Field(alias="volume24h")
    liquidity_usd: float = Field(alias="liquidityUsd")
    exchanges: List[str]
    active_pairs: int = Field(alias="activePairs")


class TokenAnalytics(CamelModel):
    total_liquidity: float = Field(alias="totalLiquidity")
    total_volume: float = Field(alias="totalVolume")
    active_pools: int = Field(alias="activePools")
    inactive_pools: int = Field(alias="inactivePools")
    exchanges: List[str]
    liquidity_by_exchange: Dict[str, float] = Field(alias="liquidityByExchange")
    risk_score: int = Field(alias="riskScore", ge=1, le=5)


class TokenAnalysisResponse(CamelModel):
    token_info: Optional[TokenInfo] = Field(default=None, alias="tokenInfo")
    pairs: List[TokenPair]
    analytics: TokenAnalytics
    decentralization: Optional[Dict[str, Any]] = None
    dex_verification: Dict[str, Any] = Field(alias="dexVerification")
    # pagination fields are passed through as the pairs source sends them
    page_size: Optional[Any] = Field(default=None, alias="pageSize")
    page: Optional[Any] = None
    cursor: Optional[Any] = None


# -----------------------------------------------------------------------------
# Wallet views
# -----------------------------------------------------------------------------
class WalletTokenHolding(CamelModel):
    token_account: str = Field(alias="tokenAccount")
    mint: str
    amount: float
    decimals: int


class WalletTokensResponse(CamelModel):
    address: str
    tokens: List[WalletTokenHolding]


class WalletTransaction(CamelModel):
    signature: Optional[str] = None
    timestamp: Optional[str] = None
    status: str
    type: str
    fee: float
    amount: Optional[float] = None
    symbol: str = "SOL"


class WalletTransactionsResponse(CamelModel):
    address: str
    transactions: List[WalletTransaction]


class FlowNode(CamelModel):
    id: str
    transactions: int = 0
    volume: float = 0.0
    label: str


class FlowEdge(CamelModel):
    source: str
    target: str
    amount: float
    signature: Optional[str] = None
    timestamp: Optional[datetime] = None
    type: str = "Transfer"


class DateRange(CamelModel):
    start: datetime
    end: datetime


class TransactionFlowResponse(CamelModel):
    address: str
    nodes: List[FlowNode]
    edges: List[FlowEdge]
    date_range: DateRange = Field(alias="dateRange")


class TransactionAccount(CamelModel):
    pubkey: str
    signer: bool = False
    writable: bool = False


class TransactionDetails(CamelModel):
    signature: str
    block_time: Optional[str] = Field(default=None, alias="blockTime")
    status: str
    fee: Optional[float] = None
    slot: Optional[int] = None
    accounts: List[TransactionAccount]
    instructions: List[Dict[str, Any]]
    error: Optional[str] = None
    logs: List[str]


class WalletAnalysisResponse(CamelModel):
    address: str
    overall_risk: Optional[float] = Field(default=None, alias="overallRisk")
    risk: Dict[str, Any]
    sanctioned: Dict[str, Any]
    balance: Dict[str, Any]
    activity: Dict[str, Any]
