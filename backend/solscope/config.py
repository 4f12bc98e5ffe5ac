import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables early
load_dotenv()


class ConfigurationError(RuntimeError):
    """A required setting is missing."""


@dataclass(frozen=True)
class Settings:
    # --- Solana ---
    SOLANA_RPC_URL: Optional[str] = os.getenv("SOLANA_RPC_URL")
    SOLSCAN_API_URL: str = os.getenv("SOLSCAN_API_URL", "https://public-api.solscan.io")
    SOLSCAN_API_TOKEN: Optional[str] = os.getenv("SOLSCAN_API_TOKEN")

    # --- Token data sources ---
    CHECKDEX_API_URL: str = os.getenv("CHECKDEX_API_URL", "https://www.checkdex.xyz/api/getPairs")
    BUBBLEMAPS_API_URL: str = os.getenv("BUBBLEMAPS_API_URL", "https://api-legacy.bubblemaps.io/map-metadata")
    DEXSCREENER_ORDERS_URL: str = os.getenv("DEXSCREENER_ORDERS_URL", "https://api.dexscreener.com/orders/v1/solana")
    RUGCHECK_API_URL: str = os.getenv("RUGCHECK_API_URL", "https://api.rugcheck.xyz/v1/tokens")

    # --- Wallet data sources ---
    WEBACY_API_URL: str = os.getenv("WEBACY_API_URL", "https://api.webacy.com/addresses")
    WEBACY_API_KEY: Optional[str] = os.getenv("WEBACY_API_KEY")
    VYBE_API_URL: str = os.getenv("VYBE_API_URL", "https://api.vybenetwork.xyz")
    VYBE_API_KEY: Optional[str] = os.getenv("VYBE_API_KEY")

    # --- Market data ---
    MESSARI_API_URL: str = os.getenv("MESSARI_API_URL", "https://api.messari.io")
    MESSARI_API_KEY: Optional[str] = os.getenv("MESSARI_API_KEY")

    # --- API / CORS ---
    CORS_ALLOW_ORIGINS: str = os.getenv("CORS_ALLOW_ORIGINS", "*")
    PORT: int = int(os.getenv("PORT", "8000"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # --- Cache ---
    REDIS_URL: Optional[str] = os.getenv("REDIS_URL")
    UPSTREAM_CACHE_TTL_SECONDS: int = int(os.getenv("UPSTREAM_CACHE_TTL_SECONDS", "3600"))

    # --- Tuning ---
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "20"))
    CHAININFO_TIMEOUT_SECONDS: float = float(os.getenv("CHAININFO_TIMEOUT_SECONDS", "5"))

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ALLOW_ORIGINS.split(",") if o.strip()] or ["*"]

    def require(self, name: str) -> str:
        """Return a secret or endpoint setting, failing fast when it is unset."""
        value = (getattr(self, name, None) or "").strip()
        if not value:
            raise ConfigurationError(f"{name} is not configured")
        return value


settings = Settings()


def validate_settings(cfg: Settings = settings, require_rpc: bool = False) -> None:
    """
    Validate environment settings.
    If require_rpc=True, ensure the Solana RPC endpoint is present.
    """
    if require_rpc:
        cfg.require("SOLANA_RPC_URL")
    if cfg.UPSTREAM_CACHE_TTL_SECONDS < 0:
        raise ConfigurationError("UPSTREAM_CACHE_TTL_SECONDS must be >= 0")
