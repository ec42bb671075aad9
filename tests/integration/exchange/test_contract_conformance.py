"""
Integration tests for the adapter contract across every venue.

Builds each registered adapter through the default registry with a
scripted transport and checks the behaviour the contract promises
regardless of venue.
"""

import pytest

import src.exchange.adapters  # noqa: F401
from src.exchange import ExchangeAdapterProtocol, create_adapter
from src.exchange.adapters.okex import OKExFacade
from src.exchange.config import Credentials
from src.exchange.enums import Venue
from src.exchange.model import CurrencyPair
from src.exchange.registry import get_default_registry
from tests.unit.exchange.helpers import NO_SYNC, FakeHTTPClient, FixedClock

# Kraken decodes its secret as base64, so the shared secret must be valid base64.
CREDENTIALS = Credentials(
    api_key="key",
    secret_key="c2VjcmV0LXNlY3JldA==",
    passphrase="pass",
    client_id="cid",
)

BTC_USDT = CurrencyPair.of("BTC", "USDT")

CONTRACT = (
    "get_ticker",
    "get_depth",
    "get_klines",
    "get_trades",
    "limit_buy",
    "limit_sell",
    "market_buy",
    "market_sell",
    "cancel_order",
    "get_order",
    "get_open_orders",
    "get_order_history",
    "get_account",
)


def build(venue: Venue, http: FakeHTTPClient | None = None) -> object:
    return create_adapter(
        venue,
        credentials=CREDENTIALS,
        http=http or FakeHTTPClient(),
        clock=FixedClock(),
        config=NO_SYNC,
    )


class TestRegistration:
    """Every venue registers itself on import."""

    def test_all_venues_registered(self) -> None:
        """Test that the default registry lists every venue."""
        registry = get_default_registry()

        assert set(registry.list_venues()) == set(Venue)

    def test_okex_is_facade(self) -> None:
        """Test that OKEx registers its product facade."""
        assert get_default_registry().get(Venue.OKEX) is OKExFacade


@pytest.mark.parametrize("venue", list(Venue), ids=lambda v: v.value)
class TestContract:
    """Behaviour shared by every adapter."""

    def test_satisfies_protocol(self, venue: Venue) -> None:
        """Test the structural protocol and the venue name."""
        adapter = build(venue)

        assert isinstance(adapter, ExchangeAdapterProtocol)
        assert adapter.name == venue

    def test_every_operation_callable(self, venue: Venue) -> None:
        """Test that the full operation set is present."""
        adapter = build(venue)

        for operation in CONTRACT:
            assert callable(getattr(adapter, operation)), operation

    def test_depth_size_checked_before_request(self, venue: Venue) -> None:
        """Test that a non-positive depth never reaches the venue."""
        http = FakeHTTPClient()
        adapter = build(venue, http)

        with pytest.raises(ValueError):
            adapter.get_depth(BTC_USDT, 0)
        assert http.calls == []

