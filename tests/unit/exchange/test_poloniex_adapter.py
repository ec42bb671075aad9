"""Tests for the Poloniex adapter."""

from decimal import Decimal
from typing import Any

import pytest

from src.exchange.adapters.poloniex import PoloniexAdapter
from src.exchange.adapters.poloniex.data import normalize_order_trades
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

BTC_USDT = CurrencyPair.of("BTC", "USDT")

TRADING = "/tradingApi"


def make_adapter(http: FakeHTTPClient) -> PoloniexAdapter:
    return PoloniexAdapter(TEST_CREDENTIALS, http, FixedClock(), config=NO_SYNC)


def order_trade(**overrides: Any) -> dict[str, Any]:
    row = {
        "globalTradeID": 1,
        "tradeID": 1,
        "currencyPair": "USDT_BTC",
        "type": "buy",
        "rate": "30000",
        "amount": "0.5",
        "total": "15000",
        "fee": "0.001",
        "date": "2021-07-01 00:00:00",
    }
    row.update(overrides)
    return row


class TestMarketData:
    """Public ``command`` endpoints."""

    def test_ticker_picks_pair(self) -> None:
        """Test that the quote-first symbol is read from the all-pairs map."""
        http = FakeHTTPClient().on(
            "GET",
            "/public",
            {
                "USDT_BTC": {
                    "last": "34000.5",
                    "lowestAsk": "34001",
                    "highestBid": "34000",
                    "high24hr": "35000",
                    "low24hr": "33000",
                    "baseVolume": "71400000",
                    "quoteVolume": "2100",
                },
                "USDT_ETH": {"last": "2000"},
            },
        )

        ticker = make_adapter(http).get_ticker(BTC_USDT)

        assert http.last().query == {"command": "returnTicker"}
        assert ticker.last == Decimal("34000.5")
        assert ticker.bid == Decimal("34000")
        assert ticker.ask == Decimal("34001")
        assert ticker.volume == Decimal("2100")
        assert int(ticker.timestamp.timestamp() * 1000) == FIXED_MS

    def test_ticker_unknown_pair(self) -> None:
        """Test that a pair missing from the map is a venue error."""
        http = FakeHTTPClient().on("GET", "/public", {"USDT_ETH": {"last": "1"}})

        with pytest.raises(VenueError) as info:
            make_adapter(http).get_ticker(BTC_USDT)

        assert "USDT_BTC" in info.value.message

    def test_depth(self) -> None:
        """Test string prices with numeric amounts."""
        http = FakeHTTPClient().on(
            "GET",
            "/public",
            {
                "asks": [["34001", 1.5], ["34002", 2]],
                "bids": [["34000", 0.5], ["33999", 3]],
                "isFrozen": "0",
                "seq": 1,
            },
        )

        depth = make_adapter(http).get_depth(BTC_USDT, 2)

        query = http.last().query
        assert query["command"] == "returnOrderBook"
        assert query["currencyPair"] == "USDT_BTC"
        assert query["depth"] == "2"
        assert depth.bids[0].price == Decimal("34000")
        assert depth.bids[0].amount == Decimal("0.5")
        assert depth.asks[1].amount == Decimal("2")

    def test_depth_rejects_non_positive_size(self) -> None:
        """Test that no request is sent for an empty book."""
        http = FakeHTTPClient()

        with pytest.raises(ValueError):
            make_adapter(http).get_depth(BTC_USDT, 0)
        assert http.calls == []

    def test_klines_window_from_clock(self) -> None:
        """Test that the chart window ends now and spans ``size`` periods."""
        candles = [
            {
                "date": 1625097000 + 300 * i,
                "open": 1,
                "high": 3,
                "low": 0.5,
                "close": 2,
                "volume": 14,
                "quoteVolume": 7,
            }
            for i in (1, 0)
        ]
        http = FakeHTTPClient().on("GET", "/public", candles)

        klines = make_adapter(http).get_klines(BTC_USDT, KlinePeriod.MIN_5, 2)

        query = http.last().query
        assert query["command"] == "returnChartData"
        assert query["period"] == "300"
        assert query["start"] == "1625097000"
        assert query["end"] == "1625097600"
        assert [k.timestamp for k in klines] == [1625097000, 1625097300]
        assert klines[0].volume == 7.0

    def test_klines_since(self) -> None:
        """Test that ``since`` opens the window and the earliest are kept."""
        candles = [{"date": 1625011200 + 86400 * i, "close": 1} for i in range(3)]
        http = FakeHTTPClient().on("GET", "/public", candles)

        klines = make_adapter(http).get_klines(
            BTC_USDT, KlinePeriod.DAY_1, 2, since=1625011200
        )

        query = http.last().query
        assert query["start"] == "1625011200"
        assert query["end"] == str(1625011200 + 2 * 86400)
        assert [k.timestamp for k in klines] == [1625011200, 1625097600]

    def test_unsupported_period(self) -> None:
        """Test periods Poloniex lacks."""
        http = FakeHTTPClient()

        with pytest.raises(NotSupportedError):
            make_adapter(http).get_klines(BTC_USDT, KlinePeriod.MIN_1, 1)
        assert http.calls == []

    def test_trades(self) -> None:
        """Test the taker side and the UTC datetime."""
        http = FakeHTTPClient().on(
            "GET",
            "/public",
            [
                {
                    "globalTradeID": 9,
                    "tradeID": 42,
                    "date": "2021-07-01 00:00:00",
                    "type": "sell",
                    "rate": "34000",
                    "amount": "0.01",
                    "total": "340",
                }
            ],
        )

        trades = make_adapter(http).get_trades(BTC_USDT)

        assert "start" not in http.last().query
        assert trades[0].trade_id == "42"
        assert trades[0].side == TradeSide.SELL
        assert int(trades[0].timestamp.timestamp() * 1000) == FIXED_MS

    def test_trades_since(self) -> None:
        """Test the start and end window up to now."""
        http = FakeHTTPClient().on("GET", "/public", [])

        assert make_adapter(http).get_trades(BTC_USDT, since=1625090000) == []

        query = http.last().query
        assert query["start"] == "1625090000"
        assert query["end"] == "1625097600"


class TestErrors:
    """Failure payloads."""

    def test_insufficient_balance(self) -> None:
        """Test the plain error object."""
        http = FakeHTTPClient().on(
            "POST", TRADING, {"error": "Not enough USDT."}
        )

        with pytest.raises(InsufficientBalanceError) as info:
            make_adapter(http).limit_buy("1", "30000", BTC_USDT)

        assert info.value.message == "Not enough USDT."

    def test_rate_limited(self) -> None:
        """Test the call-rate message."""
        http = FakeHTTPClient().on(
            "POST",
            TRADING,
            {"error": "Please do not make more than 6 API calls per second."},
        )

        with pytest.raises(RateLimitedError):
            make_adapter(http).get_account()

    def test_error_on_http_status(self) -> None:
        """Test that the body explains a failing status."""
        http = FakeHTTPClient().on(
            "POST", TRADING, {"error": "Invalid order number."}, status=422
        )

        with pytest.raises(OrderNotFoundError):
            make_adapter(http).cancel_order("1", BTC_USDT)

    def test_unexplained_http_status(self) -> None:
        """Test a failing status with a success-shaped body."""
        http = FakeHTTPClient().on("GET", "/public", {}, status=503)

        with pytest.raises(TransportError) as info:
            make_adapter(http).get_trades(BTC_USDT)

        assert info.value.status_code == 503


class TestTrading:
    """Signed ``/tradingApi`` commands."""

    def test_limit_buy(self) -> None:
        """Test the signed form and headers."""
        http = FakeHTTPClient().on(
            "POST", TRADING, {"orderNumber": 31226040, "resultingTrades": []}
        )

        order = make_adapter(http).limit_buy("1.5", "30000", BTC_USDT)

        call = http.last()
        assert call.params == [
            ("command", "buy"),
            ("currencyPair", "USDT_BTC"),
            ("rate", "30000"),
            ("amount", "1.5"),
            ("nonce", str(FIXED_MS)),
        ]
        assert call.headers["Key"] == "key"
        assert len(call.headers["Sign"]) == 128
        assert order.order_id == "31226040"
        assert order.side == TradeSide.BUY
        assert order.price == Decimal("30000")
        assert order.status == TradeStatus.UNFINISHED

    def test_limit_sell_command(self) -> None:
        """Test the sell command."""
        http = FakeHTTPClient().on("POST", TRADING, {"orderNumber": "7"})

        order = make_adapter(http).limit_sell("0.1", "35000", BTC_USDT)

        assert http.last().form["command"] == "sell"
        assert order.side == TradeSide.SELL

    @pytest.mark.parametrize("operation", ["market_buy", "market_sell"])
    def test_market_orders_not_supported(self, operation: str) -> None:
        """Test that market orders are refused without a request."""
        http = FakeHTTPClient()

        with pytest.raises(NotSupportedError):
            getattr(make_adapter(http), operation)("1", "30000", BTC_USDT)
        assert http.calls == []

    def test_placement_transport_failure(self) -> None:
        """Test that a dropped placement leaves the order state unknown."""
        http = FakeHTTPClient().fail("POST", TRADING, TransportError("timeout"))

        with pytest.raises(TransportError) as info:
            make_adapter(http).limit_sell("1", "35000", BTC_USDT)

        assert info.value.order_state_unknown

    def test_cancel(self) -> None:
        """Test the success flag."""
        http = FakeHTTPClient().on(
            "POST", TRADING, {"success": 1, "amount": "1.5", "message": "ok"}
        )

        assert make_adapter(http).cancel_order("31226040", BTC_USDT)
        assert http.last().form["orderNumber"] == "31226040"

    def test_get_order_on_book(self) -> None:
        """Test a working order read from its status."""
        http = FakeHTTPClient().on(
            "POST",
            TRADING,
            {
                "success": 1,
                "result": {
                    "31226040": {
                        "status": "Partially filled",
                        "rate": "30000",
                        "amount": "1.0",
                        "currencyPair": "USDT_BTC",
                        "date": "2021-07-01 00:00:00",
                        "total": "30000",
                        "type": "buy",
                        "startingAmount": "1.5",
                    }
                },
            },
        )

        order = make_adapter(http).get_order("31226040", BTC_USDT)

        assert http.last().form["command"] == "returnOrderStatus"
        assert order.order_id == "31226040"
        assert order.amount == Decimal("1.5")
        assert order.deal_amount == Decimal("0.5")
        assert order.status == TradeStatus.PARTIALLY_FILLED
        assert int(order.created_at.timestamp() * 1000) == FIXED_MS

    def test_get_order_rebuilt_from_trades(self) -> None:
        """Test the fallback to fills once the order left the book."""
        http = (
            FakeHTTPClient()
            .on(
                "POST",
                TRADING,
                {
                    "success": 0,
                    "result": {
                        "error": "Order not found, or you are not the person"
                        " who placed it."
                    },
                },
            )
            .on(
                "POST",
                TRADING,
                [
                    order_trade(),
                    order_trade(tradeID=2, rate="31000", fee="0.002"),
                ],
            )
        )

        order = make_adapter(http).get_order("31226040", BTC_USDT)

        commands = [call.form["command"] for call in http.calls]
        assert commands == ["returnOrderStatus", "returnOrderTrades"]
        assert order.status == TradeStatus.FILLED
        assert order.amount == Decimal("1.0")
        assert order.deal_amount == Decimal("1.0")
        assert order.avg_price == Decimal("30500")
        assert order.fee == Decimal("0.003")
        assert order.side == TradeSide.BUY

    def test_get_order_without_trades(self) -> None:
        """Test an order unknown to both sources."""
        http = (
            FakeHTTPClient()
            .on("POST", TRADING, {"error": "Order not found."})
            .on("POST", TRADING, [])
        )

        with pytest.raises(OrderNotFoundError):
            make_adapter(http).get_order("1", BTC_USDT)

    def test_malformed_fill(self) -> None:
        """Test that a fill without an amount fails loudly."""
        row = order_trade()
        del row["amount"]

        with pytest.raises(NormalizationError):
            normalize_order_trades([row], "1", BTC_USDT)

    def test_unknown_side(self) -> None:
        """Test that an unrecognized side fails instead of defaulting."""
        with pytest.raises(NormalizationError, match="side"):
            normalize_order_trades([order_trade(type="both")], "1", BTC_USDT)

    def test_open_orders(self) -> None:
        """Test remaining amounts against the starting size."""
        http = FakeHTTPClient().on(
            "POST",
            TRADING,
            [
                {
                    "orderNumber": "1",
                    "type": "sell",
                    "rate": "35000",
                    "startingAmount": "1.0",
                    "amount": "0.25",
                    "total": "8750",
                    "date": "2021-07-01 00:00:00",
                },
                {
                    "orderNumber": "2",
                    "type": "buy",
                    "rate": "29000",
                    "startingAmount": "2",
                    "amount": "2",
                },
            ],
        )

        orders = make_adapter(http).get_open_orders(BTC_USDT)

        assert http.last().form["currencyPair"] == "USDT_BTC"
        assert orders[0].order_id == "1"
        assert orders[0].deal_amount == Decimal("0.75")
        assert orders[0].status == TradeStatus.PARTIALLY_FILLED
        assert orders[1].deal_amount == Decimal("0")
        assert orders[1].status == TradeStatus.UNFINISHED

    def test_order_history_not_supported(self) -> None:
        """Test that history is refused without a request."""
        http = FakeHTTPClient()

        with pytest.raises(NotSupportedError):
            make_adapter(http).get_order_history(BTC_USDT)
        assert http.calls == []


class TestAccount:
    """Complete balances."""

    def test_balances(self) -> None:
        """Test available and on-order amounts per currency."""
        http = FakeHTTPClient().on(
            "POST",
            TRADING,
            {
                "BTC": {"available": "1.0", "onOrders": "0.5", "btcValue": "1.5"},
                "USDT": {"available": "100", "onOrders": "0", "btcValue": "0"},
            },
        )

        account = make_adapter(http).get_account()

        assert http.last().form["command"] == "returnCompleteBalances"
        btc = account.get("BTC")
        assert btc is not None
        assert btc.available == Decimal("1.0")
        assert btc.frozen == Decimal("0.5")
        assert account.get("USDT") is not None
