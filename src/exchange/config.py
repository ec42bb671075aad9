"""
Gateway configuration using Pydantic Settings.

This module provides configuration management for the gateway, allowing
environment-based configuration with type validation and defaults.
Credentials are read per venue from ``EXCHANGE_<VENUE>_*`` variables.
"""

import logging

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.exchange.enums import Venue


class HttpConfig(BaseSettings):
    """Default HTTP transport configuration."""

    model_config = SettingsConfigDict(env_prefix="EXCHANGE_HTTP_")

    timeout: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Per-request timeout in seconds",
    )
    user_agent: str = Field(
        default="exchange-gateway/0.1",
        description="User-Agent header sent with every request",
    )
    proxy: str | None = Field(default=None, description="Optional proxy URL")


class AdapterConfig(BaseSettings):
    """Behaviour shared by all venue adapters."""

    model_config = SettingsConfigDict(env_prefix="EXCHANGE_ADAPTER_")

    sync_clock: bool = Field(
        default=True,
        description="Fetch venue server time at construction to correct nonces",
    )
    recv_window: int = Field(
        default=60000,
        ge=1000,
        le=60000,
        description="Binance-style receive window in milliseconds",
    )
    default_history_limit: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Page size used when a history call gives no limit",
    )


class Credentials(BaseModel):
    """
    API credential set injected into an adapter.

    ``passphrase`` is used by OKEx and KuCoin, ``client_id`` by Bitstamp.
    """

    api_key: str = Field(default="", description="Public API key")
    secret_key: str = Field(default="", description="API secret")
    passphrase: str = Field(default="", description="API passphrase")
    client_id: str = Field(default="", description="Customer id")

    model_config = ConfigDict(frozen=True)

    def __repr__(self) -> str:
        return f"Credentials(api_key={self.api_key[:4]}...)"

    @property
    def is_set(self) -> bool:
        """Whether a key and secret are present."""
        return bool(self.api_key and self.secret_key)


class CredentialsSettings(BaseSettings):
    """Credentials loaded from the environment; prefix chosen per venue."""

    model_config = SettingsConfigDict(env_prefix="EXCHANGE_")

    api_key: str = ""
    secret_key: str = ""
    passphrase: str = ""
    client_id: str = ""

    @classmethod
    def for_venue(cls, venue: Venue | str) -> Credentials:
        """
        Load credentials for one venue.

        Args:
            venue: Venue whose ``EXCHANGE_<VENUE>_`` variables are read

        Returns:
            Immutable credential set (empty strings when unset)

        """
        name = venue.value if isinstance(venue, Venue) else venue
        settings = cls(_env_prefix=f"EXCHANGE_{name.upper()}_")
        return Credentials(
            api_key=settings.api_key,
            secret_key=settings.secret_key,
            passphrase=settings.passphrase,
            client_id=settings.client_id,
        )


class ExchangeConfig(BaseSettings):
    """Root configuration combining all sub-configs."""

    model_config = SettingsConfigDict(env_prefix="EXCHANGE_")

    # Sub-configurations
    http: HttpConfig = Field(default_factory=HttpConfig)
    adapter: AdapterConfig = Field(default_factory=AdapterConfig)

    # Global settings
    debug: bool = False
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )

    @classmethod
    def from_env(cls) -> "ExchangeConfig":
        """
        Load configuration from environment variables.

        Returns:
            Configured ExchangeConfig instance

        """
        return cls(http=HttpConfig(), adapter=AdapterConfig())


def configure_logging(config: ExchangeConfig | None = None) -> None:
    """Apply the configured log level to the package logger."""
    config = config or ExchangeConfig.from_env()
    level = "DEBUG" if config.debug else config.log_level
    logging.getLogger("src.exchange").setLevel(level)
