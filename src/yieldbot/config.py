"""Configuration system using pydantic-settings with environment variable loading."""

from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from yieldbot.models import RiskTier


class FeedSettings(BaseSettings):
    """Yield and price feed endpoints.

    ``require_active_status`` only applies to feeds whose pool objects carry
    a ``status`` field; pools without one are never filtered on it.
    """

    model_config = SettingsConfigDict(env_prefix="FEED_")

    yield_base_url: str = "https://yields.llama.fi"
    pools_path: str = "/pools"
    yield_field: str = "apyBase"  # pool field read as the yield value
    price_base_url: str = "https://api.coingecko.com/api/v3"
    request_timeout: float = 10.0
    require_active_status: bool = True
    max_attempts: int = 3
    retry_base_delay: float = 1.0
    retry_jitter: float = 0.5


class StrategySettings(BaseSettings):
    """Selection cycle parameters."""

    model_config = SettingsConfigDict(env_prefix="STRATEGY_")

    target_asset: str = "usdc"
    reference_asset_id: str = "usd-coin"  # CoinGecko id used for the trend signal
    lookback_days: int = 25
    cycle_interval: int = 900  # seconds between decision cycles
    tiers: list[RiskTier] = [RiskTier.LOW, RiskTier.HIGH]


class LedgerSettings(BaseSettings):
    """On-chain vault and strategy manager connection settings."""

    model_config = SettingsConfigDict(env_prefix="LEDGER_")

    rpc_url: str = ""
    vault_address: str = ""
    strategy_manager_address: str = ""
    private_key: SecretStr = SecretStr("")
    low_risk_venue: str = ""
    high_risk_venue: str = ""
    confirmation_timeout: float = 120.0

    @property
    def is_configured(self) -> bool:
        """True when every field needed to sign and send transactions is set."""
        return all(
            (
                self.rpc_url,
                self.vault_address,
                self.strategy_manager_address,
                self.private_key.get_secret_value(),
                self.low_risk_venue,
                self.high_risk_venue,
            )
        )

    def venues(self) -> dict[RiskTier, str]:
        """Return the venue address configured for each risk tier."""
        return {
            RiskTier.LOW: self.low_risk_venue,
            RiskTier.HIGH: self.high_risk_venue,
        }


class StoreSettings(BaseSettings):
    """Strategy store backend selection (fixed at startup)."""

    model_config = SettingsConfigDict(env_prefix="STORE_")

    backend: Literal["database", "file"] = "database"
    db_path: str = "data/strategy.db"
    file_dir: str = "data/kv"


class ApiSettings(BaseSettings):
    """HTTP action surface configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8080
    enabled: bool = True


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    feed: FeedSettings = FeedSettings()
    strategy: StrategySettings = StrategySettings()
    ledger: LedgerSettings = LedgerSettings()
    store: StoreSettings = StoreSettings()
    api: ApiSettings = ApiSettings()
