"""Tests for the Kraken adapter."""

from decimal import Decimal
from typing import Any

import pytest

from src.exchange.adapters.kraken import KrakenAdapter
from src.exchange.adapters.kraken.data import canonical_currency, normalize_order
from src.exchange.config import AdapterConfig, Credentials
from src.exchange.enums import KlinePeriod, TradeSide, TradeStatus
from src.exchange.errors import (
    InsufficientBalanceError,
    NormalizationError,
    NotSupportedError,
    OrderNotFoundError,
    RateLimitedError,
    TransportError,
)
from src.exchange.model import CurrencyPair
from tests.unit.exchange.helpers import (
    FIXED_MS,
    NO_SYNC,
    FakeHTTPClient,
    FixedClock,
)

BTC_USD = CurrencyPair.of("BTC", "USD")

# Kraken keys its HMAC with the base64-decoded secret.
KRAKEN_CREDENTIALS = Credentials(api_key="key", secret_key="a3Jha2VuLXNlY3JldA==")


def make_adapter(http: FakeHTTPClient) -> KrakenAdapter:
    return KrakenAdapter(KRAKEN_CREDENTIALS, http, FixedClock(), config=NO_SYNC)


def ok(result: Any) -> dict[str, Any]:
    return {"error": [], "result": result}


def order_body(**overrides: Any) -> dict[str, Any]:
    body = {
        "refid": None,
        "userref": 0,
        "status": "open",
        "opentm": 1625097600.1234,
        "descr": {
            "pair": "XBTUSD",
            "type": "buy",
            "ordertype": "limit",
            "price": "30000.0",
        },
        "vol": "2.00000000",
        "vol_exec": "0.50000000",
        "cost": "15000.00000",
        "fee": "24.00000",
    }
    body.update(overrides)
    return body


class TestMarketData:
    """Public endpoints."""

    def test_ticker_uses_24h_values(self) -> None:
        """Test the rolling 24h high, low and volume."""
        http = FakeHTTPClient().on(
            "GET",
            "/0/public/Ticker",
            ok(
                {
                    "XXBTZUSD": {
                        "a": ["34001.0", "1", "1.000"],
                        "b": ["34000.0", "2", "2.000"],
                        "c": ["34000.5", "0.01"],
                        "v": ["100.5", "2500.25"],
                        "h": ["34500.0", "35000.0"],
                        "l": ["33500.0", "33000.0"],
                    }
                }
            ),
        )

        ticker = make_adapter(http).get_ticker(BTC_USD)

        assert http.last().query == {"pair": "XBTUSD"}
        assert ticker.last == Decimal("34000.5")
        assert ticker.high == Decimal("35000.0")
        assert ticker.low == Decimal("33000.0")
        assert ticker.volume == Decimal("2500.25")
        assert int(ticker.timestamp.timestamp() * 1000) == FIXED_MS

    def test_depth(self) -> None:
        """Test the pair-keyed book and count cap."""
        http = FakeHTTPClient().on(
            "GET",
            "/0/public/Depth",
            ok(
                {
                    "XXBTZUSD": {
                        "bids": [["99", "1", 1625097600], ["100", "2", 1625097600]],
                        "asks": [["101", "1", 1625097600]],
                    }
                }
            ),
        )

        depth = make_adapter(http).get_depth(BTC_USD, 1000)

        assert http.last().query == {"pair": "XBTUSD", "count": "500"}
        assert depth.bids[0].price == Decimal("100")
        assert len(depth.asks) == 1

    def test_klines_latest(self) -> None:
        """Test the OHLC columns and the ``last`` cursor beside the rows."""
        rows = [
            [1625097600 + 60 * i, "1", "3", "0.5", "2", "1.8", "10", 5]
            for i in range(4)
        ]
        http = FakeHTTPClient().on(
            "GET", "/0/public/OHLC", ok({"XXBTZUSD": rows, "last": 1625097780})
        )

        klines = make_adapter(http).get_klines(BTC_USD, KlinePeriod.MIN_1, 2)

        assert http.last().query == {"pair": "XBTUSD", "interval": "1"}
        assert [k.timestamp for k in klines] == [1625097720, 1625097780]
        assert klines[0].close == 2.0
        assert klines[0].volume == 10.0

    def test_klines_since(self) -> None:
        """Test that history from ``since`` keeps the earliest candles."""
        rows = [
            [1625097600 + 3600 * i, "1", "1", "1", "1", "1", "1", 1] for i in range(3)
        ]
        http = FakeHTTPClient().on(
            "GET", "/0/public/OHLC", ok({"XXBTZUSD": rows, "last": 0})
        )

        klines = make_adapter(http).get_klines(
            BTC_USD, KlinePeriod.HOUR_1, 2, since=1625097600
        )

        assert http.last().query["since"] == "1625097600"
        assert [k.timestamp for k in klines] == [1625097600, 1625101200]

    def test_unsupported_period(self) -> None:
        """Test periods Kraken lacks."""
        with pytest.raises(NotSupportedError):
            make_adapter(FakeHTTPClient()).get_klines(BTC_USD, KlinePeriod.HOUR_2, 1)

    def test_trades_since_in_nanoseconds(self) -> None:
        """Test the nanosecond cursor and taker side letters."""
        http = FakeHTTPClient().on(
            "GET",
            "/0/public/Trades",
            ok(
                {
                    "XXBTZUSD": [
                        ["34000.1", "0.01", 1625097601.5, "s", "l", "", 9001],
                        ["34000.2", "0.02", 1625097602.5, "b", "m", ""],
                    ],
                    "last": "1625097602500000000",
                }
            ),
        )

        trades = make_adapter(http).get_trades(BTC_USD, since=1625097600)

        assert http.last().query["since"] == "1625097600000000000"
        assert trades[0].trade_id == "9001"
        assert trades[0].side == TradeSide.SELL
        assert trades[1].trade_id == "1625097602.5"
        assert trades[1].side == TradeSide.BUY

    def test_trades_unknown_side_letter(self) -> None:
        """Test that a side letter other than b or s fails instead of defaulting."""
        http = FakeHTTPClient().on(
            "GET",
            "/0/public/Trades",
            ok(
                {
                    "XXBTZUSD": [["34000.1", "0.01", 1625097601.5, "x", "l", ""]],
                    "last": "1625097601500000000",
                }
            ),
        )

        with pytest.raises(NormalizationError, match="side"):
            make_adapter(http).get_trades(BTC_USD)


class TestErrors:
    """The ``error`` list envelope."""

    def test_insufficient_funds(self) -> None:
        """Test an exact error code."""
        http = FakeHTTPClient().on(
            "POST", "/0/private/AddOrder", {"error": ["EOrder:Insufficient funds"]}
        )

        with pytest.raises(InsufficientBalanceError) as info:
            make_adapter(http).limit_buy("1", "100", BTC_USD)

        assert info.value.code == "EOrder:Insufficient funds"

    def test_rate_limited(self) -> None:
        """Test the API rate-limit code."""
        http = FakeHTTPClient().on(
            "GET", "/0/public/Ticker", {"error": ["EAPI:Rate limit exceeded"]}
        )

        with pytest.raises(RateLimitedError):
            make_adapter(http).get_ticker(BTC_USD)

    def test_unknown_order(self) -> None:
        """Test cancelling an order Kraken does not know."""
        http = FakeHTTPClient().on(
            "POST", "/0/private/CancelOrder", {"error": ["EOrder:Unknown order"]}
        )

        with pytest.raises(OrderNotFoundError):
            make_adapter(http).cancel_order("OABC-DEF", BTC_USD)


class TestTrading:
    """Signed form endpoints."""

    def test_limit_buy(self) -> None:
        """Test the nonce-first form, API-Sign header and order id."""
        http = FakeHTTPClient().on(
            "POST",
            "/0/private/AddOrder",
            ok({"descr": {"order": "buy 1.5 XBTUSD @ limit 30000"}, "txid": ["OQCL"]}),
        )

        order = make_adapter(http).limit_buy("1.5", "30000", BTC_USD)

        call = http.last()
        assert call.params[0] == ("nonce", str(FIXED_MS * 1_000_000))
        assert call.form["pair"] == "XBTUSD"
        assert call.form["type"] == "buy"
        assert call.form["ordertype"] == "limit"
        assert call.form["volume"] == "1.5"
        assert call.form["price"] == "30000"
        assert call.headers["API-Key"] == "key"
        assert call.headers["API-Sign"]
        assert order.order_id == "OQCL"

    def test_market_sell(self) -> None:
        """Test that market orders send no price."""
        http = FakeHTTPClient().on(
            "POST", "/0/private/AddOrder", ok({"txid": ["OMKT"]})
        )

        order = make_adapter(http).market_sell("1", "30000", BTC_USD)

        form = http.last().form
        assert form["ordertype"] == "market"
        assert "price" not in form
        assert order.side == TradeSide.SELL_MARKET

    def test_placement_transport_failure(self) -> None:
        """Test that a dropped placement leaves the order state unknown."""
        http = FakeHTTPClient().fail(
            "POST", "/0/private/AddOrder", TransportError("read timeout")
        )

        with pytest.raises(TransportError) as info:
            make_adapter(http).market_buy("1", "30000", BTC_USD)

        assert info.value.order_state_unknown

    def test_cancel(self) -> None:
        """Test the cancelled count."""
        http = FakeHTTPClient().on(
            "POST", "/0/private/CancelOrder", ok({"count": 1})
        )

        assert make_adapter(http).cancel_order("OQCL", BTC_USD)
        assert http.last().form["txid"] == "OQCL"

    def test_get_order(self) -> None:
        """Test the txid-keyed body and average from cost."""
        http = FakeHTTPClient().on(
            "POST", "/0/private/QueryOrders", ok({"OQCL": order_body()})
        )

        order = make_adapter(http).get_order("OQCL", BTC_USD)

        assert order.order_id == "OQCL"
        assert order.status == TradeStatus.PARTIALLY_FILLED
        assert order.avg_price == Decimal("30000")
        assert order.fee == Decimal("24")
        assert order.created_at is not None

    def test_get_order_missing(self) -> None:
        """Test an empty result for the requested id."""
        http = FakeHTTPClient().on("POST", "/0/private/QueryOrders", ok({}))

        with pytest.raises(OrderNotFoundError):
            make_adapter(http).get_order("OQCL", BTC_USD)

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            ("pending", TradeStatus.UNFINISHED),
            ("closed", TradeStatus.FILLED),
            ("canceled", TradeStatus.CANCELED),
            ("expired", TradeStatus.CANCELED),
        ],
    )
    def test_status_table(self, status: str, expected: TradeStatus) -> None:
        """Test native status mapping."""
        body = order_body(status=status, vol_exec="0", cost="0")
        if status == "closed":
            body.update(vol_exec="2", cost="60000", closetm=1625097700.0)

        assert normalize_order("O1", body, BTC_USD).status == expected

    def test_malformed_volume(self) -> None:
        """Test that an unparsable volume fails loudly."""
        with pytest.raises(NormalizationError):
            normalize_order("O1", order_body(vol="?"), BTC_USD)

    def test_unknown_side(self) -> None:
        """Test that an unrecognized order side fails instead of defaulting."""
        body = order_body()
        body["descr"] = dict(body["descr"], type="both")

        with pytest.raises(NormalizationError, match="side"):
            normalize_order("O1", body, BTC_USD)

    def test_open_orders_filtered_by_pair(self) -> None:
        """Test that orders of other pairs are dropped."""
        other = order_body()
        other["descr"] = dict(other["descr"], pair="ETHUSD")
        http = FakeHTTPClient().on(
            "POST",
            "/0/private/OpenOrders",
            ok({"open": {"O1": order_body(), "O2": other}}),
        )

        orders = make_adapter(http).get_open_orders(BTC_USD)

        assert [o.order_id for o in orders] == ["O1"]

    def test_history_offset_cursor(self) -> None:
        """Test result offsets as cursors."""
        closed = {f"O{i}": order_body(status="closed", vol_exec="2") for i in range(3)}
        http = FakeHTTPClient().on(
            "POST", "/0/private/ClosedOrders", ok({"closed": closed, "count": 10})
        )

        page = make_adapter(http).get_order_history(BTC_USD, cursor="5")

        assert http.last().form["ofs"] == "5"
        assert page.has_more
        assert page.next_cursor == "8"
        assert len(page.items) == 3

    def test_history_last_page(self) -> None:
        """Test the end of the closed list."""
        http = FakeHTTPClient().on(
            "POST", "/0/private/ClosedOrders", ok({"closed": {}, "count": 10})
        )

        page = make_adapter(http).get_order_history(BTC_USD, cursor="10")

        assert not page.has_more
        assert page.next_cursor is None


class TestAccount:
    """BalanceEx."""

    def test_balances(self) -> None:
        """Test asset prefixes, holds and skipped staking ledgers."""
        http = FakeHTTPClient().on(
            "POST",
            "/0/private/BalanceEx",
            ok(
                {
                    "XXBT": {"balance": "1.5", "hold_trade": "0.5"},
                    "ZUSD": {"balance": "100.0", "hold_trade": "0"},
                    "ETH2.S": {"balance": "32", "hold_trade": "0"},
                }
            ),
        )

        account = make_adapter(http).get_account()

        btc = account.get("BTC")
        assert btc is not None
        assert btc.available == Decimal("1.0")
        assert btc.frozen == Decimal("0.5")
        assert account.get("USD") is not None
        assert account.get("ETH2") is None

    @pytest.mark.parametrize(
        ("asset", "symbol"),
        [("XXBT", "BTC"), ("XBT", "BTC"), ("ZUSD", "USD"), ("XXDG", "DOGE")],
    )
    def test_asset_codes(self, asset: str, symbol: str) -> None:
        """Test prefix stripping and aliasing."""
        assert canonical_currency(asset).symbol == symbol

    @pytest.mark.parametrize("asset", ["ZEUS", "XION", "ZRX", "XTZ"])
    def test_unprefixed_codes_kept(self, asset: str) -> None:
        """Test that newer listings starting with X or Z are not truncated."""
        assert canonical_currency(asset).symbol == asset


class TestClockSync:
    """Server-time offset."""

    def test_sync_on_construction(self) -> None:
        """Test that nonces follow the venue clock."""
        http = (
            FakeHTTPClient()
            .on("GET", "/0/public/Time", ok({"unixtime": 1625097598}))
            .on("POST", "/0/private/BalanceEx", ok({}))
        )
        adapter = KrakenAdapter(
            KRAKEN_CREDENTIALS,
            http,
            FixedClock(),
            config=AdapterConfig(sync_clock=True),
        )

        adapter.get_account()

        assert http.last().form["nonce"] == str((FIXED_MS - 2000) * 1_000_000)
