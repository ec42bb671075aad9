"""Tests for the Atop adapter."""

from decimal import Decimal
from typing import Any

import pytest

from src.exchange.adapters.atop import AtopAdapter
from src.exchange.adapters.atop.data import normalize_account, normalize_order
from src.exchange.config import AdapterConfig
from src.exchange.enums import KlinePeriod, TradeSide, TradeStatus
from src.exchange.errors import (
    InsufficientBalanceError,
    NormalizationError,
    NotSupportedError,
    OrderNotFoundError,
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


def make_adapter(http: FakeHTTPClient) -> AtopAdapter:
    return AtopAdapter(TEST_CREDENTIALS, http, FixedClock(), config=NO_SYNC)


def ok(data: Any) -> dict[str, Any]:
    return {"code": 200, "info": "success", "data": data}


def order_row(**overrides: Any) -> dict[str, Any]:
    row = {
        "id": 1001,
        "type": 1,
        "entrustType": 0,
        "status": 1,
        "price": "100",
        "number": "3",
        "completeNumber": "1",
        "avgPrice": "99.5",
        "fee": "0.001",
        "time": FIXED_MS,
    }
    row.update(overrides)
    return row


class TestMarketData:
    """Public endpoints return bare payloads."""

    def test_ticker(self) -> None:
        """Test the ticker and its capture-time stamp."""
        http = FakeHTTPClient().on(
            "GET",
            "/data/api/v1/getTicker",
            {
                "price": 100.5,
                "bid": 100.4,
                "ask": 100.6,
                "high": 110,
                "low": 90,
                "coinVol": 321.5,
            },
        )

        ticker = make_adapter(http).get_ticker(BTC_USDT)

        assert http.last().query == {"market": "btc_usdt"}
        assert ticker.last == Decimal("100.5")
        assert ticker.volume == Decimal("321.5")
        assert int(ticker.timestamp.timestamp() * 1000) == FIXED_MS

    def test_depth_sorted_and_cut(self) -> None:
        """Test that the full unsorted book is ordered and truncated."""
        http = FakeHTTPClient().on(
            "GET",
            "/data/api/v1/getDepth",
            {
                "bids": [[98, 1], [100, 2], [99, 3]],
                "asks": [[103, 1], [101, 2], [102, 3]],
            },
        )

        depth = make_adapter(http).get_depth(BTC_USDT, 2)

        assert [r.price for r in depth.bids] == [Decimal("100"), Decimal("99")]
        assert [r.price for r in depth.asks] == [Decimal("101"), Decimal("102")]

    def test_klines_keep_latest(self) -> None:
        """Test second timestamps and trimming to ``size``."""
        rows = [[1625097600 + 60 * i, 1, 2, 0.5, 1.5, 10] for i in range(3)]
        http = FakeHTTPClient().on("GET", "/data/api/v1/getKLine", {"datas": rows})

        klines = make_adapter(http).get_klines(BTC_USDT, KlinePeriod.MIN_1, 2)

        assert http.last().query["type"] == "1min"
        assert [k.timestamp for k in klines] == [1625097660, 1625097720]

    def test_trades(self) -> None:
        """Test the public tape."""
        http = FakeHTTPClient().on(
            "GET",
            "/data/api/v1/getTrades",
            [
                {
                    "id": 7,
                    "price": "10",
                    "qty": "2",
                    "time": FIXED_MS,
                    "isBuyerMaker": False,
                }
            ],
        )

        trades = make_adapter(http).get_trades(BTC_USDT)

        assert trades[0].side == TradeSide.BUY
        assert trades[0].amount == Decimal("2")

    def test_trades_since_not_supported(self) -> None:
        """Test that paging the tape is refused without a request."""
        http = FakeHTTPClient()

        with pytest.raises(NotSupportedError):
            make_adapter(http).get_trades(BTC_USDT, since=1)
        assert http.calls == []


class TestEnvelope:
    """Private ``{code, info, data}`` envelopes."""

    def test_failure_code_raises_classified_error(self) -> None:
        """Test that a non-200 code is a venue error, not data."""
        http = FakeHTTPClient().on(
            "POST",
            "/trade/api/v1/getBalance",
            {"code": 1001, "info": "insufficient balance"},
        )

        with pytest.raises(InsufficientBalanceError) as info:
            make_adapter(http).get_account()

        assert info.value.code == "1001"
        assert info.value.message == "insufficient balance"

    def test_success_normalizes(self) -> None:
        """Test that code 200 hands ``data`` to the normalizer."""
        http = FakeHTTPClient().on(
            "POST",
            "/trade/api/v1/getBalance",
            ok(
                {
                    "btc": {"available": "0.5", "freeze": "0.25"},
                    "usdt": {"available": "100", "freeze": "0"},
                }
            ),
        )

        account = make_adapter(http).get_account()

        btc = account.get("BTC")
        assert btc is not None
        assert btc.available == Decimal("0.5")
        assert btc.frozen == Decimal("0.25")

    def test_unknown_order(self) -> None:
        """Test order lookups that the venue rejects."""
        http = FakeHTTPClient().on(
            "POST", "/trade/api/v1/getOrder", {"code": 3001, "info": "order not found"}
        )

        with pytest.raises(OrderNotFoundError):
            make_adapter(http).get_order("9", BTC_USDT)

    def test_unclassified_code(self) -> None:
        """Test that other failures are plain venue errors."""
        http = FakeHTTPClient().on(
            "POST", "/trade/api/v1/getOrder", {"code": 500, "info": "system busy"}
        )

        with pytest.raises(VenueError) as info:
            make_adapter(http).get_order("9", BTC_USDT)

        assert type(info.value) is VenueError

    def test_account_is_idempotent(self) -> None:
        """Test that normalizing the same data twice gives equal accounts."""
        data = {"eth": {"available": "1", "freeze": "0"}}

        assert normalize_account(data) == normalize_account(data)


class TestTrading:
    """Signed form endpoints."""

    def test_limit_buy(self) -> None:
        """Test the signed placement form and the accepted order."""
        http = FakeHTTPClient().on("POST", "/trade/api/v1/order", ok({"id": 555}))

        order = make_adapter(http).limit_buy("1.5", "100", BTC_USDT)

        form = http.last().form
        assert form["market"] == "btc_usdt"
        assert form["type"] == "1"
        assert form["entrustType"] == "0"
        assert form["number"] == "1.5"
        assert form["price"] == "100"
        assert form["accesskey"] == "key"
        assert form["nonce"] == str(FIXED_MS)
        assert len(form["signature"]) == 64
        assert order.order_id == "555"
        assert order.amount == Decimal("1.5")
        assert order.status == TradeStatus.UNFINISHED

    def test_market_sell(self) -> None:
        """Test the market flag and sell type."""
        http = FakeHTTPClient().on("POST", "/trade/api/v1/order", ok({"id": 556}))

        order = make_adapter(http).market_sell("2", "95", BTC_USDT)

        form = http.last().form
        assert form["type"] == "0"
        assert form["entrustType"] == "1"
        assert order.side == TradeSide.SELL_MARKET

    def test_cancel_transport_failure(self) -> None:
        """Test that a dropped cancel leaves the order state unknown."""
        http = FakeHTTPClient().fail(
            "POST", "/trade/api/v1/cancel", TransportError("connection reset")
        )

        with pytest.raises(TransportError) as info:
            make_adapter(http).cancel_order("555", BTC_USDT)

        assert info.value.order_state_unknown

    def test_cancel(self) -> None:
        """Test a confirmed cancel."""
        http = FakeHTTPClient().on("POST", "/trade/api/v1/cancel", ok(None))

        assert make_adapter(http).cancel_order("555", BTC_USDT)
        assert http.last().form["id"] == "555"

    def test_get_order(self) -> None:
        """Test completeNumber as the deal amount."""
        http = FakeHTTPClient().on("POST", "/trade/api/v1/getOrder", ok(order_row()))

        order = make_adapter(http).get_order("1001", BTC_USDT)

        assert order.deal_amount == Decimal("1")
        assert order.avg_price == Decimal("99.5")
        assert order.fee == Decimal("0.001")
        assert order.status == TradeStatus.PARTIALLY_FILLED
        assert order.side == TradeSide.BUY
        assert order.created_at is not None
        assert int(order.created_at.timestamp()) == FIXED_MS // 1000

    def test_flag_and_second_timestamps(self) -> None:
        """Test the ``flag`` side spelling and second-resolution times."""
        order = normalize_order(
            order_row(flag="sale", type=None, time=1625097600), BTC_USDT
        )

        assert order.side == TradeSide.SELL
        assert order.created_at is not None
        assert int(order.created_at.timestamp()) == 1625097600

    @pytest.mark.parametrize(
        "overrides",
        [{"type": 7}, {"type": None}, {"flag": "both", "type": None}],
    )
    def test_unknown_side(self, overrides: dict[str, Any]) -> None:
        """Test that an unmapped side code or flag is not read as a direction."""
        with pytest.raises(NormalizationError, match="side"):
            normalize_order(order_row(**overrides), BTC_USDT)

    def test_open_orders(self) -> None:
        """Test the first page of working orders."""
        http = FakeHTTPClient().on(
            "POST",
            "/trade/api/v1/getOpenOrders",
            ok([order_row(), order_row(id=1002, completeNumber="0", avgPrice="0")]),
        )

        orders = make_adapter(http).get_open_orders(BTC_USDT)

        assert [o.order_id for o in orders] == ["1001", "1002"]
        assert orders[1].avg_price is None
        assert http.last().form["pageSize"] == "100"

    def test_history_pages(self) -> None:
        """Test page-number cursors from pageIndex and totalPage."""
        http = FakeHTTPClient().on(
            "POST",
            "/trade/api/v1/getHistorys",
            ok(
                {
                    "record": [order_row(status=2, completeNumber="3")],
                    "pageIndex": 1,
                    "totalPage": 2,
                }
            ),
        )

        page = make_adapter(http).get_order_history(BTC_USDT, limit=1)

        assert page.has_more
        assert page.next_cursor == "2"
        assert page.items[0].status == TradeStatus.FILLED

    def test_history_last_page(self) -> None:
        """Test the final page."""
        http = FakeHTTPClient().on(
            "POST",
            "/trade/api/v1/getHistorys",
            ok({"record": [], "pageIndex": 2, "totalPage": 2}),
        )

        page = make_adapter(http).get_order_history(BTC_USDT, cursor="2")

        assert http.last().form["page"] == "2"
        assert not page.has_more
        assert page.next_cursor is None


class TestClockSync:
    """Server-time offset."""

    def test_sync_on_construction(self) -> None:
        """Test that nonces follow the venue clock."""
        server = ok({"serverTime": FIXED_MS - 2000})
        http = (
            FakeHTTPClient()
            .on("GET", "/trade/api/v1/getServerTime", server)
            .on("POST", "/trade/api/v1/getBalance", ok({}))
        )
        adapter = AtopAdapter(
            TEST_CREDENTIALS,
            http,
            FixedClock(),
            config=AdapterConfig(sync_clock=True),
        )

        adapter.get_account()

        assert http.last().form["nonce"] == str(FIXED_MS - 2000)
