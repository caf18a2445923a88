from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env at project root: app/core/config.py -> app/core -> app -> project
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"

DEFAULT_SELLABLE_ASSETS = "BTC,ETH,USDT,XRP,BNB,SOL,USDC,TRX,DOGE,ADA"
CARD_MODES = frozenset({"simulation", "live"})


class Settings(BaseSettings):
    app_name: str = "CRYPBUY"
    environment: str = "development"
    # Public address of this service; redirect-wallet return/cancel URLs are built from it
    base_url: str = "http://localhost:8000"
    database_url: str = "sqlite:///./crypbuy.db"
    # CORS: comma separated origin list
    cors_origins: str = "*"
    # Max requests per IP per minute on quote/order/payment endpoints
    rate_limit_per_minute: int = 60
    # Admin endpoints require X-Admin-Secret when set
    admin_secret: str = ""
    sellable_assets: str = DEFAULT_SELLABLE_ASSETS

    # Price oracle (CoinGecko simple price)
    price_api_url: str = "https://api.coingecko.com/api/v3/simple/price"
    price_timeout_seconds: float = 5.0
    price_cache_ttl_seconds: float = 15.0

    # Direct card: simulation | live
    card_mode: str = "simulation"
    card_gateway_url: str = "https://secure.nmi.com/api/transact.php"
    card_gateway_api_key: str = ""
    card_gateway_timeout_seconds: float = 20.0
    card_auth_delay_seconds: float = 2.5  # simulated bank authorization latency

    # Redirect wallet (PayPal REST): sandbox | live
    paypal_mode: str = "sandbox"
    paypal_client_id: str = ""
    paypal_client_secret: str = ""
    paypal_brand_name: str = "CRYPBUY"
    paypal_timeout_seconds: float = 20.0

    # USDT on TRC20 payout: real | mock
    usdt_trc20_mode: str = "real"
    tron_private_key: str = ""
    tron_full_host: str = "https://api.trongrid.io"
    trc20_usdt_contract: str = "TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t"
    tron_fee_limit: int = 10_000_000  # sun

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
        "frozen": True,
    }

    @field_validator("card_mode", "paypal_mode", "usdt_trc20_mode", mode="before")
    @classmethod
    def lower_mode(cls, v: str | None) -> str:
        """Modes are compared lower-case; stray whitespace from .env is dropped."""
        return (v or "").strip().lower()

    @field_validator("card_mode")
    @classmethod
    def known_card_mode(cls, v: str) -> str:
        v = v or "simulation"
        if v not in CARD_MODES:
            raise ValueError(f"card_mode must be one of {sorted(CARD_MODES)}, got {v!r}")
        return v

    @field_validator("card_gateway_api_key", "paypal_client_id", "paypal_client_secret", "tron_private_key", mode="before")
    @classmethod
    def strip_secret(cls, v: str | None) -> str:
        return (v or "").strip()

    @property
    def sellable_asset_set(self) -> frozenset[str]:
        return frozenset(a.strip().upper() for a in self.sellable_assets.split(",") if a.strip())

    @property
    def paypal_configured(self) -> bool:
        return bool(self.paypal_client_id and self.paypal_client_secret)


settings = Settings()
