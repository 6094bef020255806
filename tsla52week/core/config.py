"""
Configuration module for the TSLA 52-week meme service.

Manages environment variables for the quote provider, the KV store
(Upstash / Vercel KV REST API) and the blob store. All credentials
must come from environment variables; none of them has a default.
"""

import os
from dataclasses import dataclass

from .errors import ConfigError


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class KVConfig:
    """
    Immutable configuration for the KV store REST connection.

    Attributes:
        rest_url: The Upstash / Vercel KV REST API endpoint
        rest_token: Authentication token for the REST API
        price_key: Key under which the latest price data is stored
    """
    rest_url: str
    rest_token: str
    price_key: str = "priceData"

    @property
    def headers(self) -> dict[str, str]:
        """Returns the authorization headers for the KV REST API."""
        return {
            "Authorization": f"Bearer {self.rest_token}",
            "Content-Type": "application/json"
        }


@dataclass(frozen=True)
class BlobConfig:
    """
    Configuration for the blob store holding rendered images.

    Attributes:
        api_url: Base URL of the blob REST API
        token: Read/write token for the blob store
        image_prefix: Pathname prefix shared by all rendered images
        max_upload_bytes: Largest decoded image accepted for upload
    """
    api_url: str
    token: str
    image_prefix: str = "tesla-"
    max_upload_bytes: int = 10 * 1024 * 1024

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "x-api-version": "7",
        }


@dataclass(frozen=True)
class QuoteConfig:
    """
    Configuration for the Alpha Vantage quote provider.

    Attributes:
        api_key: Alpha Vantage API key
        base_url: Query endpoint
        symbol: Ticker whose 52-week range is served
        months: Number of monthly bars making up the 52-week window
        timeout: Request timeout (seconds)
    """
    api_key: str
    base_url: str = "https://www.alphavantage.co/query"
    symbol: str = "TSLA"
    months: int = 12
    timeout: float = 10.0


@dataclass(frozen=True)
class CacheConfig:
    """
    Freshness cache and refresh behavior.

    Attributes:
        staleness_seconds: Age after which cached prices are refetched
        fetch_attempts: Total quote fetch attempts per refresh
        retry_delay: Pause between fetch attempts (seconds)
        refresh_poll_interval: Background refresher period (seconds)
    """
    staleness_seconds: int = 4 * 60 * 60
    fetch_attempts: int = 2
    retry_delay: float = 1.0
    refresh_poll_interval: float = 1800.0

    @property
    def staleness_ms(self) -> int:
        return self.staleness_seconds * 1000


REQUIRED_ENV_VARS = ("ALPHA_VANTAGE_API_KEY", "BLOB_READ_WRITE_TOKEN")


class Settings:
    """
    Central settings manager that aggregates all configuration.

    Loads configuration from environment variables with fallbacks
    to default values for everything that is not a credential.
    """

    def __init__(self):
        self.kv = KVConfig(
            rest_url=os.getenv("KV_REST_API_URL", "").rstrip("/"),
            rest_token=os.getenv("KV_REST_API_TOKEN", ""),
            price_key=os.getenv("KV_PRICE_KEY", "priceData")
        )

        self.blob = BlobConfig(
            api_url=os.getenv("BLOB_API_URL", "https://blob.vercel-storage.com").rstrip("/"),
            token=os.getenv("BLOB_READ_WRITE_TOKEN", ""),
            max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
        )

        self.quote = QuoteConfig(
            api_key=os.getenv("ALPHA_VANTAGE_API_KEY", ""),
            symbol=os.getenv("QUOTE_SYMBOL", "TSLA"),
            timeout=float(os.getenv("QUOTE_TIMEOUT", "10.0"))
        )

        self.cache = CacheConfig(
            staleness_seconds=int(os.getenv("PRICE_STALENESS_SECONDS", "14400")),
            retry_delay=float(os.getenv("FETCH_RETRY_DELAY", "1.0")),
            refresh_poll_interval=float(os.getenv("REFRESH_POLL_INTERVAL", "1800"))
        )

        self.debug = _env_flag("DEBUG")

    @property
    def server_port(self) -> int:
        """Server port from environment variable."""
        return int(os.getenv("PORT", "8000"))

    @property
    def api_title(self) -> str:
        return "TSLA 52 Week MEME"

    @property
    def api_version(self) -> str:
        return "1.0.0"

    @property
    def api_description(self) -> str:
        return (
            "Tesla's 52-week high and low, cached in a KV store and "
            "refreshed every few hours, with the rendered meme memoized "
            "in blob storage."
        )


def validate_environment() -> None:
    """
    Check that every required environment variable is set.

    Raises:
        ConfigError: naming all missing variables at once
    """
    missing = [name for name in REQUIRED_ENV_VARS if not os.getenv(name)]
    if missing:
        raise ConfigError(
            f"Missing required environment variables: {', '.join(missing)}"
        )


# Global settings instance - imported throughout the application
settings = Settings()
