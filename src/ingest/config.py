"""Configuration system using pydantic-settings with environment variable loading."""

from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class MarketDataSettings(BaseSettings):
    """CoinGecko market-data API settings.

    Controls pagination, retry/backoff and the history window.
    All fields configurable via MARKET_DATA_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="MARKET_DATA_")

    base_url: str = "https://api.coingecko.com/api/v3"
    api_key: SecretStr = SecretStr("")
    vs_currency: str = "usd"
    order: str = "market_cap_desc"
    pages: int = 4
    per_page: int = 250  # CoinGecko max page size
    page_delay: float = 1.2  # seconds before each market page request
    history_days: int = 365
    max_retries: int = 5
    retry_base_delay: float = 2.0  # wait = base * attempt on HTTP 429
    request_timeout: float = 15.0
    # Stop requesting history for the rest of the batch after one empty series
    skip_remaining_on_empty_history: bool = True


class PipelineSettings(BaseSettings):
    """Ingestion pipeline parameters."""

    model_config = SettingsConfigDict(env_prefix="PIPELINE_")

    source_tag: str = "coingecko"


class StorageSettings(BaseSettings):
    """Persistent store location."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    db_path: str = "data/market.db"


class ApiSettings(BaseSettings):
    """HTTP API server and read-surface configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8080
    default_page_size: int = 10
    max_page_size: int = 100
    search_fields: list[str] = ["name"]
    # Timeframe the read endpoints serve by default; ingestion always writes daily
    timeframe: Literal["daily", "weekly", "monthly"] = "daily"


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    market_data: MarketDataSettings = MarketDataSettings()
    pipeline: PipelineSettings = PipelineSettings()
    storage: StorageSettings = StorageSettings()
    api: ApiSettings = ApiSettings()
