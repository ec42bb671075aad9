"""Tests for adapter registration and construction."""

import logging

import pytest

from src.exchange import create_adapter
from src.exchange.adapters.binance import BinanceAdapter
from src.exchange.config import (
    AdapterConfig,
    Credentials,
    CredentialsSettings,
    ExchangeConfig,
    configure_logging,
)
from src.exchange.enums import Venue
from src.exchange.registry import AdapterRegistry, RegistryConfig
from src.exchange.signing.clock import SystemClock
from src.exchange.transport import HttpxClient
from tests.unit.exchange.helpers import (
    NO_SYNC,
    TEST_CREDENTIALS,
    FakeHTTPClient,
    FixedClock,
)


class RecordingAdapter:
    """Adapter stand-in that keeps its constructor arguments."""

    def __init__(  # type: ignore[no-untyped-def]
        self, credentials, http, clock, config=None, **kwargs
    ) -> None:
        self.credentials = credentials
        self.http = http
        self.clock = clock
        self.config = config
        self.kwargs = kwargs


class TestAdapterRegistry:
    """Registration, lookup and dependency injection."""

    def test_register_and_get(self) -> None:
        """Test decorator registration."""
        registry = AdapterRegistry.testing()

        registry.register(Venue.ATOP)(RecordingAdapter)

        assert registry.get(Venue.ATOP) is RecordingAdapter
        assert registry.get("ATOP") is RecordingAdapter
        assert registry.has("atop")
        assert registry.list_venues() == [Venue.ATOP]

    def test_duplicate_registration(self) -> None:
        """Test that a venue cannot be registered twice."""
        registry = AdapterRegistry.testing()
        registry.register(Venue.OKEX)(RecordingAdapter)

        with pytest.raises(ValueError, match="already registered"):
            registry.register(Venue.OKEX)(RecordingAdapter)

    def test_unknown_venue(self) -> None:
        """Test lookups of unknown and unregistered venues."""
        registry = AdapterRegistry.testing()

        with pytest.raises(KeyError, match="Unknown venue"):
            registry.get("mtgox")
        with pytest.raises(KeyError, match="No adapter registered"):
            registry.get(Venue.KRAKEN)
        assert not registry.has("mtgox")

    def test_disabled_venue_skipped(self) -> None:
        """Test that venues outside the enabled list are not registered."""
        config = RegistryConfig(enabled_venues=[Venue.KUCOIN])
        registry = AdapterRegistry(config=config)

        registry.register(Venue.BITSTAMP)(RecordingAdapter)

        assert not registry.has(Venue.BITSTAMP)

    def test_clear(self) -> None:
        """Test clearing registrations."""
        registry = AdapterRegistry.testing()
        registry.register(Venue.POLONIEX)(RecordingAdapter)

        registry.clear()

        assert registry.list_venues() == []

    def test_create_injects_collaborators(self) -> None:
        """Test that supplied collaborators reach the adapter."""
        registry = AdapterRegistry.testing()
        registry.register(Venue.KUCOIN)(RecordingAdapter)
        http = FakeHTTPClient()
        clock = FixedClock()

        adapter = registry.create(
            "kucoin",
            credentials=TEST_CREDENTIALS,
            http=http,
            clock=clock,
            config=NO_SYNC,
            base_url="https://sandbox.example.com",
        )

        assert isinstance(adapter, RecordingAdapter)
        assert adapter.credentials is TEST_CREDENTIALS
        assert adapter.http is http
        assert adapter.clock is clock
        assert adapter.config is NO_SYNC
        assert adapter.kwargs == {"base_url": "https://sandbox.example.com"}

    def test_create_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test environment credentials, httpx transport and system clock."""
        # Given: Credentials in the environment for one venue
        monkeypatch.setenv("EXCHANGE_BITFINEX_API_KEY", "env-key")
        monkeypatch.setenv("EXCHANGE_BITFINEX_SECRET_KEY", "env-secret")
        registry = AdapterRegistry.testing()
        registry.register(Venue.BITFINEX)(RecordingAdapter)

        # When: Creating without collaborators
        adapter = registry.create(Venue.BITFINEX)

        # Then: Defaults are filled in
        assert adapter.credentials == Credentials(
            api_key="env-key", secret_key="env-secret"
        )
        assert isinstance(adapter.http, HttpxClient)
        assert isinstance(adapter.clock, SystemClock)
        assert isinstance(adapter.config, AdapterConfig)


class TestConfig:
    """Environment-driven settings."""

    def test_credentials_for_venue(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test per-venue prefixes."""
        monkeypatch.setenv("EXCHANGE_OKEX_API_KEY", "ok")
        monkeypatch.setenv("EXCHANGE_OKEX_PASSPHRASE", "phrase")

        creds = CredentialsSettings.for_venue(Venue.OKEX)

        assert creds.api_key == "ok"
        assert creds.passphrase == "phrase"
        assert not creds.is_set

    def test_credentials_repr_hides_secret(self) -> None:
        """Test that repr never shows the secret."""
        assert "secret" not in repr(TEST_CREDENTIALS)
        assert TEST_CREDENTIALS.is_set

    def test_adapter_config_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test adapter settings from the environment."""
        monkeypatch.setenv("EXCHANGE_ADAPTER_SYNC_CLOCK", "false")
        monkeypatch.setenv("EXCHANGE_ADAPTER_DEFAULT_HISTORY_LIMIT", "50")

        config = AdapterConfig()

        assert config.sync_clock is False
        assert config.default_history_limit == 50

    def test_configure_logging_level(self) -> None:
        """Test that the package logger takes the configured level."""
        configure_logging(ExchangeConfig(log_level="WARNING"))

        assert logging.getLogger("src.exchange").level == logging.WARNING

    def test_configure_logging_debug_flag(self) -> None:
        """Test that the debug flag forces DEBUG."""
        configure_logging(ExchangeConfig(debug=True, log_level="ERROR"))

        assert logging.getLogger("src.exchange").level == logging.DEBUG


class TestCreateAdapter:
    """Package-level factory."""

    def test_builds_registered_adapter(self) -> None:
        """Test building a real adapter through the default registry."""
        adapter = create_adapter(
            "binance",
            credentials=TEST_CREDENTIALS,
            http=FakeHTTPClient(),
            clock=FixedClock(),
            config=NO_SYNC,
        )

        assert isinstance(adapter, BinanceAdapter)
        assert adapter.name == Venue.BINANCE

    def test_unknown_venue(self) -> None:
        """Test that unknown names raise KeyError."""
        with pytest.raises(KeyError):
            create_adapter("mtgox", credentials=TEST_CREDENTIALS)
