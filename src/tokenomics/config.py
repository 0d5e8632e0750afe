"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from tokenomics.models import TokenConfig


class TokenSettings(BaseSettings):
    """The single token this service indexes."""

    model_config = SettingsConfigDict(env_prefix="TOKEN_")

    symbol: str = "MARS"
    denom: str = "factory/neutron1ndu2wvkrxtane8se2tr48gv7nsm46y5gcqjhux/MARS"
    decimals: int = 6


class SourceSettings(BaseSettings):
    """External data source endpoints and the wallets whose balances are tracked."""

    model_config = SettingsConfigDict(env_prefix="SOURCE_")

    neutron_rest: str = "https://rest-lb.neutron.org"
    coingecko_base: str = "https://api.coingecko.com/api/v3"
    coingecko_id: str = "mars-protocol-a7fcbcfb-fd61-4017-92f0-7ee9f9cc6da3"
    astroport_pools: str = "https://app.astroport.fi/api/pools"
    chain_id: str = "neutron-1"
    burn_address: str = "neutron1qqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqhufaa6"
    treasury_address: str = (
        "neutron1yv9veqnaxt3xwafnfdtr9r995m50ad6039lduux5huay6nhnef8sapq3zp"
    )
    user_agent: str = "tokenomics-indexer/1.0.0"


class RetrySettings(BaseSettings):
    """Per-request retry policy for source fetches."""

    model_config = SettingsConfigDict(env_prefix="RETRY_")

    max_retries: int = 3
    retry_delay: float = 1.0  # seconds before the second attempt
    backoff_multiplier: float = 2.0
    request_timeout: float = 10.0  # seconds, per attempt


class ValidationSettings(BaseSettings):
    """Sanity thresholds applied to every freshly fetched record."""

    model_config = SettingsConfigDict(env_prefix="VALIDATION_")

    max_daily_change_percent: float = 50.0
    min_price_usd: float = 0.0001
    max_price_usd: float = 1000.0
    usd_tolerance_percent: float = 1.0  # rounding allowance on derived USD values


class StorageSettings(BaseSettings):
    """Blob storage location and key layout."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    db_path: str = "data/blobs.db"
    file_prefix: str = "daily-data"
    public_base_url: str = "http://localhost:8080/blobs"


class ApiSettings(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8080


class ScheduleSettings(BaseSettings):
    """In-process daily trigger.

    Disable when an external scheduler calls the indexing endpoint instead.
    """

    model_config = SettingsConfigDict(env_prefix="SCHEDULE_")

    enabled: bool = True
    run_hour_utc: int = 0
    run_minute_utc: int = 5


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str = "console"  # "json" for shipped logs
    token: TokenSettings = TokenSettings()
    sources: SourceSettings = SourceSettings()
    retry: RetrySettings = RetrySettings()
    validation: ValidationSettings = ValidationSettings()
    storage: StorageSettings = StorageSettings()
    api: ApiSettings = ApiSettings()
    schedule: ScheduleSettings = ScheduleSettings()

    def token_config(self) -> TokenConfig:
        return TokenConfig(
            symbol=self.token.symbol,
            denom=self.token.denom,
            decimals=self.token.decimals,
        )
