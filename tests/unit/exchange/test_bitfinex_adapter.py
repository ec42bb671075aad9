"""Tests for the Bitfinex adapter."""

from decimal import Decimal
from typing import Any

import pytest

from src.exchange.adapters.bitfinex import BitfinexAdapter
from src.exchange.adapters.bitfinex.data import normalize_order
from src.exchange.enums import KlinePeriod, TradeSide, TradeStatus
from src.exchange.errors import (
    InsufficientBalanceError,
    NormalizationError,
    NotSupportedError,
    OrderNotFoundError,
    RateLimitedError,
    TransportError,
    VenueError,
)
from src.exchange.model import CurrencyPair
from tests.unit.exchange.helpers import (
    FIXED_MS,
    NO_SYNC,
    TEST_CREDENTIALS,
    FakeHTTPClient,
    FixedClock,
)

BTC_USD = CurrencyPair.of("BTC", "USD")
BTC_USDT = CurrencyPair.of("BTC", "USDT")


def make_adapter(http: FakeHTTPClient) -> BitfinexAdapter:
    return BitfinexAdapter(TEST_CREDENTIALS, http, FixedClock(), config=NO_SYNC)


def order_row(**overrides: Any) -> dict[str, Any]:
    row = {
        "id": 448411153,
        "symbol": "btcusd",
        "exchange": None,
        "price": "100.0",
        "avg_execution_price": "99.5",
        "side": "buy",
        "type": "exchange limit",
        "timestamp": "1625097600.0",
        "is_live": True,
        "is_cancelled": False,
        "original_amount": "2.0",
        "remaining_amount": "1.0",
        "executed_amount": "1.0",
    }
    row.update(overrides)
    return row


class TestMarketData:
    """Public v1 and v2 endpoints."""

    def test_ticker(self) -> None:
        """Test the v1 ticker and its decimal-second timestamp."""
        http = FakeHTTPClient().on(
            "GET",
            "/v1/pubticker/btcusd",
            {
                "mid": "34000.5",
                "bid": "34000.0",
                "ask": "34001.0",
                "last_price": "34000.2",
                "low": "33000.0",
                "high": "35000.0",
                "volume": "4567.8",
                "timestamp": "1625097600.25",
            },
        )

        ticker = make_adapter(http).get_ticker(BTC_USD)

        assert ticker.last == Decimal("34000.2")
        assert ticker.volume == Decimal("4567.8")
        assert int(ticker.timestamp.timestamp() * 1000) == FIXED_MS + 250

    def test_usdt_symbol_alias(self) -> None:
        """Test that USDT is requested as UST."""
        http = FakeHTTPClient().on("GET", "/v1/pubticker/btcust", {"last_price": "1"})

        make_adapter(http).get_ticker(BTC_USDT)

        assert http.last().path == "/v1/pubticker/btcust"

    def test_depth(self) -> None:
        """Test object-shaped levels and the per-side limits."""
        http = FakeHTTPClient().on(
            "GET",
            "/v1/book/btcusd",
            {
                "bids": [
                    {"price": "99", "amount": "1", "timestamp": "1625097600.0"},
                    {"price": "100", "amount": "2", "timestamp": "1625097600.0"},
                ],
                "asks": [{"price": "101", "amount": "3", "timestamp": "1625097600.0"}],
            },
        )

        depth = make_adapter(http).get_depth(BTC_USD, 5)

        assert http.last().query == {"limit_bids": "5", "limit_asks": "5"}
        assert depth.bids[0].price == Decimal("100")
        assert depth.asks[0].amount == Decimal("3")

    def test_depth_rejects_non_positive_size(self) -> None:
        """Test that no request is sent for an empty book."""
        http = FakeHTTPClient()

        with pytest.raises(ValueError):
            make_adapter(http).get_depth(BTC_USD, -1)
        assert http.calls == []

    def test_klines_latest(self) -> None:
        """Test v2 candles, newest first on the wire, trimmed to ``size``."""
        http = FakeHTTPClient().on(
            "GET",
            "/v2/candles/trade:1m:tBTCUSD/hist",
            [
                [FIXED_MS + 120000, 3, 3.5, 4, 2, 10],
                [FIXED_MS + 60000, 2, 3, 3, 1, 11],
                [FIXED_MS, 1, 2, 2, 1, 12],
            ],
        )

        klines = make_adapter(http).get_klines(BTC_USD, KlinePeriod.MIN_1, 2)

        assert http.last().query == {"limit": "2"}
        assert [k.timestamp for k in klines] == [1625097660, 1625097720]
        assert klines[-1].close == 3.5
        assert klines[-1].high == 4.0

    def test_klines_since(self) -> None:
        """Test ascending history from a start time."""
        http = FakeHTTPClient().on(
            "GET",
            "/v2/candles/trade:1D:tBTCUST/hist",
            [[FIXED_MS, 1, 2, 2, 1, 12], [FIXED_MS + 86400000, 2, 3, 3, 1, 11]],
        )

        klines = make_adapter(http).get_klines(
            BTC_USDT, KlinePeriod.DAY_1, 1, since=1625097600
        )

        query = http.last().query
        assert query["start"] == str(FIXED_MS)
        assert query["sort"] == "1"
        assert [k.timestamp for k in klines] == [1625097600]

    def test_unsupported_period(self) -> None:
        """Test periods Bitfinex lacks."""
        with pytest.raises(NotSupportedError):
            make_adapter(FakeHTTPClient()).get_klines(BTC_USD, KlinePeriod.HOUR_4, 5)

    def test_v2_error_payload(self) -> None:
        """Test the ``["error", code, message]`` failure shape."""
        http = FakeHTTPClient().on(
            "GET",
            "/v2/candles/trade:1m:tBTCUSD/hist",
            ["error", 10020, "limit: invalid"],
            status=500,
        )

        with pytest.raises(VenueError) as info:
            make_adapter(http).get_klines(BTC_USD, KlinePeriod.MIN_1, 20000)

        assert info.value.code == "10020"

    def test_trades_since(self) -> None:
        """Test the taker side and the ``timestamp`` filter."""
        http = FakeHTTPClient().on(
            "GET",
            "/v1/trades/btcusd",
            [
                {
                    "timestamp": 1625097601,
                    "tid": 11988919,
                    "price": "34000.0",
                    "amount": "0.05",
                    "exchange": "bitfinex",
                    "type": "sell",
                }
            ],
        )

        trades = make_adapter(http).get_trades(BTC_USD, since=1625097600)

        assert http.last().query == {
            "timestamp": "1625097600",
            "limit_trades": "500",
        }
        assert trades[0].trade_id == "11988919"
        assert trades[0].side == TradeSide.SELL


class TestErrors:
    """v1 failure messages."""

    def test_insufficient_balance(self) -> None:
        """Test the balance message."""
        http = FakeHTTPClient().on(
            "POST",
            "/v1/order/new",
            {"message": "Invalid order: not enough exchange balance for 1 BTCUSD"},
            status=400,
        )

        with pytest.raises(InsufficientBalanceError):
            make_adapter(http).limit_sell("1", "100", BTC_USD)

    def test_rate_limited(self) -> None:
        """Test the rate-limit error text."""
        http = FakeHTTPClient().on(
            "POST", "/v1/balances", {"error": "ERR_RATE_LIMIT"}, status=429
        )

        with pytest.raises(RateLimitedError):
            make_adapter(http).get_account()

    def test_no_such_order(self) -> None:
        """Test the order-missing message."""
        http = FakeHTTPClient().on(
            "POST", "/v1/order/status", {"message": "No such order found."}
        )

        with pytest.raises(OrderNotFoundError):
            make_adapter(http).get_order("1", BTC_USD)


class TestTrading:
    """Signed v1 payload endpoints."""

    def test_limit_buy(self) -> None:
        """Test the signed payload body and headers."""
        http = FakeHTTPClient().on(
            "POST",
            "/v1/order/new",
            {"id": 448364249, "order_id": 448364249, "symbol": "btcusd"},
        )

        order = make_adapter(http).limit_buy("0.5", "34000", BTC_USD)

        call = http.last()
        assert call.json == {
            "request": "/v1/order/new",
            "nonce": str(FIXED_MS * 1_000_000),
            "symbol": "btcusd",
            "amount": "0.5",
            "price": "34000",
            "side": "buy",
            "type": "exchange limit",
            "exchange": "bitfinex",
        }
        assert call.headers["X-BFX-APIKEY"] == "key"
        assert len(call.headers["X-BFX-SIGNATURE"]) == 96
        assert order.order_id == "448364249"
        assert order.status == TradeStatus.UNFINISHED

    def test_market_sell_placeholder_price(self) -> None:
        """Test the positive placeholder price on market orders."""
        http = FakeHTTPClient().on("POST", "/v1/order/new", {"id": 1, "order_id": 1})

        order = make_adapter(http).market_sell("0.5", "34000", BTC_USD)

        body = http.last().json
        assert body["type"] == "exchange market"
        assert body["price"] == "1"
        assert order.side == TradeSide.SELL_MARKET

    def test_nonces_increase(self) -> None:
        """Test that calls in the same instant get rising nonces."""
        http = FakeHTTPClient().on("POST", "/v1/order/new", {"id": 1, "order_id": 1})
        adapter = make_adapter(http)

        adapter.limit_buy("1", "1", BTC_USD)
        adapter.limit_buy("1", "1", BTC_USD)

        first, second = (int(c.json["nonce"]) for c in http.calls)
        assert second > first

    def test_placement_transport_failure(self) -> None:
        """Test that a dropped placement leaves the order state unknown."""
        http = FakeHTTPClient().fail(
            "POST", "/v1/order/new", TransportError("read timeout")
        )

        with pytest.raises(TransportError) as info:
            make_adapter(http).limit_buy("1", "100", BTC_USD)

        assert info.value.order_state_unknown

    def test_cancel(self) -> None:
        """Test that an echoed order means the cancel was accepted."""
        http = FakeHTTPClient().on(
            "POST", "/v1/order/cancel", order_row(id=42, is_live=False)
        )

        assert make_adapter(http).cancel_order("42", BTC_USD)
        assert http.last().json["order_id"] == 42

    def test_get_order(self) -> None:
        """Test a partial fill."""
        http = FakeHTTPClient().on("POST", "/v1/order/status", order_row())

        order = make_adapter(http).get_order("448411153", BTC_USD)

        assert order.deal_amount == Decimal("1.0")
        assert order.avg_price == Decimal("99.5")
        assert order.status == TradeStatus.PARTIALLY_FILLED
        assert order.created_at is not None

    @pytest.mark.parametrize(
        ("overrides", "status"),
        [
            ({"executed_amount": "2.0", "is_live": False}, TradeStatus.FILLED),
            ({"is_cancelled": True, "is_live": False}, TradeStatus.CANCELED),
            (
                {"executed_amount": "0.0", "avg_execution_price": "0.0"},
                TradeStatus.UNFINISHED,
            ),
        ],
    )
    def test_status(self, overrides: dict[str, Any], status: TradeStatus) -> None:
        """Test status from the fill and the cancelled flag."""
        assert normalize_order(order_row(**overrides), BTC_USD).status == status

    def test_market_type(self) -> None:
        """Test that market order types map to market sides."""
        order = normalize_order(order_row(type="exchange market"), BTC_USD)

        assert order.side == TradeSide.BUY_MARKET

    def test_malformed_amount(self) -> None:
        """Test that a missing amount fails loudly."""
        with pytest.raises(NormalizationError):
            normalize_order(order_row(original_amount=None), BTC_USD)

    def test_unknown_side(self) -> None:
        """Test that an unrecognized side fails instead of defaulting."""
        with pytest.raises(NormalizationError, match="side"):
            normalize_order(order_row(side="both"), BTC_USD)

    def test_open_orders_filtered_by_symbol(self) -> None:
        """Test that other symbols of the all-orders list are dropped."""
        http = FakeHTTPClient().on(
            "POST",
            "/v1/orders",
            [order_row(), order_row(id=2, symbol="ethusd"), order_row(id=3)],
        )

        orders = make_adapter(http).get_open_orders(BTC_USD)

        assert [o.order_id for o in orders] == ["448411153", "3"]

    def test_history_single_page(self) -> None:
        """Test that history is one page whatever the cursor."""
        http = FakeHTTPClient().on(
            "POST",
            "/v1/orders/hist",
            [order_row(executed_amount="2.0", is_live=False)],
        )

        page = make_adapter(http).get_order_history(BTC_USD, cursor="x", limit=10)

        assert http.last().json["limit"] == 10
        assert len(page.items) == 1
        assert not page.has_more
        assert page.next_cursor is None


class TestAccount:
    """Wallet balances."""

    BALANCES = [
        {"type": "exchange", "currency": "btc", "amount": "1.5", "available": "1"},
        {"type": "exchange", "currency": "ust", "amount": "100", "available": "100"},
        {"type": "trading", "currency": "btc", "amount": "2", "available": "2"},
    ]

    def test_exchange_wallet(self) -> None:
        """Test the exchange wallet with aliases resolved."""
        http = FakeHTTPClient().on("POST", "/v1/balances", self.BALANCES)

        account = make_adapter(http).get_account()

        btc = account.get("BTC")
        assert btc is not None
        assert btc.available == Decimal("1")
        assert btc.frozen == Decimal("0.5")
        assert account.get("USDT") is not None

    def test_all_wallets(self) -> None:
        """Test balances grouped per wallet."""
        http = FakeHTTPClient().on("POST", "/v1/balances", self.BALANCES)

        wallets = make_adapter(http).get_wallet_balances()

        assert set(wallets) == {"exchange", "trading"}
        trading_btc = wallets["trading"].get("BTC")
        assert trading_btc is not None
        assert trading_btc.available == Decimal("2")

    def test_no_exchange_wallet(self) -> None:
        """Test an empty account when the exchange wallet is unfunded."""
        http = FakeHTTPClient().on("POST", "/v1/balances", [])

        account = make_adapter(http).get_account()

        assert account.sub_accounts == {}
