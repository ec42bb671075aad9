"""
Atop REST API Pydantic Models.

Venue conventions:
- Markets are lower case with an underscore (``btc_usdt``)
- Private responses use ``{"code": 200, "data": ...}``; any other code is a
  failure whose text is in ``info``
- Order ``type`` is 1 for buy and 0 for sell; ``entrustType`` is 0 for
  limit and 1 for market
- Order ``status`` is 0 open, 1 partially filled, 2 filled, 3 cancelled
- ``completeNumber`` is the executed quantity
- History pages are wrapped as ``{"record": [...]}`` with page metadata
"""

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.exchange.domain.numbers import (
    require_decimal,
    require_optional_decimal,
    to_datetime,
    to_decimal,
    to_int,
)
from src.exchange.domain.symbols import SymbolFormat
from src.exchange.enums import (
    AccountPolicy,
    KlinePeriod,
    TradeSide,
    TradeStatus,
)
from src.exchange.model import (
    Account,
    Currency,
    CurrencyPair,
    Depth,
    Kline,
    Order,
    Page,
    SubAccount,
    Ticker,
    Trade,
)
from src.exchange.normalize import (
    COMMON_SUBSTRINGS,
    ErrorClassifier,
    KlineColumns,
    LevelColumns,
    NormalizeContext,
    build_model,
    decode_model,
    parse_side,
)

VENUE = "atop"

# =============================================================================
# VENUE TABLES
# =============================================================================

SYMBOL_FORMAT = SymbolFormat(separator="_", lowercase=True)

# [time (s), open, high, low, close, volume]
KLINE_COLUMNS = KlineColumns(
    time=0, open=1, high=2, low=3, close=4, volume=5, time_unit="s"
)

LEVEL_COLUMNS = LevelColumns(price=0, amount=1)

PERIODS: dict[KlinePeriod, str] = {
    KlinePeriod.MIN_1: "1min",
    KlinePeriod.MIN_3: "3min",
    KlinePeriod.MIN_5: "5min",
    KlinePeriod.MIN_15: "15min",
    KlinePeriod.MIN_30: "30min",
    KlinePeriod.HOUR_1: "1hour",
    KlinePeriod.HOUR_2: "2hour",
    KlinePeriod.HOUR_4: "4hour",
    KlinePeriod.HOUR_6: "6hour",
    KlinePeriod.HOUR_8: "8hour",
    KlinePeriod.HOUR_12: "12hour",
    KlinePeriod.DAY_1: "1day",
    KlinePeriod.DAY_3: "3day",
    KlinePeriod.WEEK_1: "7day",
    KlinePeriod.MONTH_1: "30day",
}

STATUS_TABLE: dict[str, TradeStatus] = {
    "0": TradeStatus.UNFINISHED,
    "1": TradeStatus.PARTIALLY_FILLED,
    "2": TradeStatus.FILLED,
    "3": TradeStatus.CANCELED,
}

# Order ``type``: 1 buys, 0 sells.
SIDE_TABLE: dict[str, str] = {"1": "buy", "0": "sell"}

# Order ``entrustType``: 0 limit, 1 market.
MARKET_ENTRUST_TYPE = "1"

SUCCESS_CODE = 200

ERRORS = ErrorClassifier(substrings=COMMON_SUBSTRINGS)


# =============================================================================
# RAW MODELS
# =============================================================================


class AtopEnvelope(BaseModel):
    """``{"code": 200, "info": "...", "data": ...}`` wrapper."""

    code: int
    info: str = ""
    data: Any = None

    model_config = ConfigDict(extra="ignore")


class AtopTicker(BaseModel):
    """Ticker from ``/data/api/v1/getTicker``; carries no timestamp."""

    price_raw: str | float = Field(alias="price", default="0")
    bid_raw: str | float = Field(alias="bid", default="0")
    ask_raw: str | float = Field(alias="ask", default="0")
    high_raw: str | float = Field(alias="high", default="0")
    low_raw: str | float = Field(alias="low", default="0")
    coin_vol_raw: str | float = Field(alias="coinVol", default="0")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_ticker(self, ctx: NormalizeContext) -> Ticker:
        """Convert to the canonical ticker stamped with capture time."""
        return Ticker(
            pair=ctx.pair,
            last=to_decimal(self.price_raw),
            bid=to_decimal(self.bid_raw),
            ask=to_decimal(self.ask_raw),
            high=to_decimal(self.high_raw),
            low=to_decimal(self.low_raw),
            volume=to_decimal(self.coin_vol_raw),
            timestamp=ctx.received_at,
        )


class AtopOrder(BaseModel):
    """Order row from ``getOrder``, ``getOpenOrders`` or ``getHistorys``."""

    id: int | str
    type_raw: int | str | None = Field(alias="type", default=None)
    flag: str | None = None
    entrust_type: int | str | None = Field(alias="entrustType", default=None)
    status: int | str | None = None
    price_raw: str | float | None = Field(alias="price", default=None)
    number_raw: str | float | None = Field(alias="number", default=None)
    complete_number_raw: str | float | None = Field(
        alias="completeNumber", default=None
    )
    avg_price_raw: str | float | None = Field(alias="avgPrice", default=None)
    fee_raw: str | float | None = Field(alias="fee", default=None)
    time: int | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @property
    def trade_side(self) -> TradeSide:
        """
        Canonical side.

        ``getOrder`` reports ``flag`` ("buy"/"sale") while list endpoints
        report the numeric ``type``.
        """
        market = str(self.entrust_type) == MARKET_ENTRUST_TYPE
        if self.flag:
            return parse_side(VENUE, self.flag, market=market)
        return parse_side(VENUE, self.type_raw, market=market, table=SIDE_TABLE)

    def to_order(self, pair: CurrencyPair) -> Order:
        """Convert to the canonical order; fill fields are strict."""
        deal = require_optional_decimal(self.complete_number_raw, "completeNumber")
        avg = to_decimal(self.avg_price_raw)
        time = to_int(self.time)
        # Times above 1e12 are milliseconds.
        created = to_datetime(time, "ms" if time > 10**12 else "s")
        return build_model(
            Order,
            order_id=str(self.id),
            pair=pair,
            side=self.trade_side,
            price=to_decimal(self.price_raw),
            amount=require_decimal(self.number_raw, "number"),
            deal_amount=deal,
            avg_price=avg if avg > 0 else None,
            fee=require_optional_decimal(self.fee_raw, "fee"),
            status=TradeStatus.lookup(STATUS_TABLE, self.status),
            created_at=created,
        )


class AtopHistory(BaseModel):
    """``getHistorys`` data: ``{"record": [...], "pageIndex", "totalPage"}``."""

    record: list[dict[str, Any]] = Field(default_factory=list)
    page_index: int | None = Field(alias="pageIndex", default=None)
    total_page: int | None = Field(alias="totalPage", default=None)

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AtopBalance(BaseModel):
    """One currency of ``getBalance`` data."""

    available_raw: str | float = Field(alias="available")
    freeze_raw: str | float = Field(alias="freeze", default="0")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# =============================================================================
# NORMALIZERS
# =============================================================================


def unwrap(payload: Any) -> Any:
    """Return envelope ``data``; call after error_fields found no failure."""
    envelope = decode_model(AtopEnvelope, payload)
    return envelope.data


def error_fields(payload: Any) -> tuple[object, str] | None:
    """``(code, info)`` when the payload is a failure envelope."""
    if isinstance(payload, dict) and "code" in payload:
        code = to_int(payload.get("code"), default=-1)
        if code != SUCCESS_CODE:
            return payload.get("code"), str(payload.get("info") or payload)
    return None


def normalize_ticker(payload: Any, ctx: NormalizeContext) -> Ticker:
    """Ticker from ``getTicker``."""
    return decode_model(AtopTicker, payload).to_ticker(ctx)


def normalize_depth(payload: Any, ctx: NormalizeContext, size: int) -> Depth:
    """Depth from ``getDepth``; the venue returns every level unsorted."""
    return Depth.build(
        pair=ctx.pair,
        bids=LEVEL_COLUMNS.read_all(payload.get("bids")),
        asks=LEVEL_COLUMNS.read_all(payload.get("asks")),
        timestamp=ctx.received_at,
        size=size,
    )


def normalize_klines(payload: Any, ctx: NormalizeContext) -> list[Kline]:
    """Candles from ``getKLine`` (``{"datas": [[...]]}``)."""
    return KLINE_COLUMNS.read_all(payload.get("datas") or [], ctx.pair)


def normalize_trades(payload: Sequence[Any], ctx: NormalizeContext) -> list[Trade]:
    """
    Public tape from ``getTrades``.

    Rows carry ``isBuyerMaker``; a maker buyer means the taker sold.
    """
    trades = []
    for row in payload:
        side = TradeSide.SELL if row.get("isBuyerMaker") else TradeSide.BUY
        trades.append(
            Trade(
                pair=ctx.pair,
                trade_id=str(row.get("id", "")),
                side=side,
                price=to_decimal(row.get("price")),
                amount=to_decimal(row.get("qty")),
                timestamp=to_datetime(row.get("time"), "ms") or ctx.received_at,
            )
        )
    return trades


def normalize_order(data: Any, pair: CurrencyPair) -> Order:
    """Single order from envelope ``data``."""
    return decode_model(AtopOrder, data).to_order(pair)


def normalize_history(
    data: Any, pair: CurrencyPair, page: int, page_size: int
) -> Page[Order]:
    """History page; more pages exist while ``pageIndex < totalPage``."""
    history = decode_model(AtopHistory, data)
    orders = tuple(normalize_order(row, pair) for row in history.record)
    if history.total_page is not None:
        current = history.page_index or page
        has_more = current < history.total_page
    else:
        has_more = len(orders) >= page_size
    return Page[Order](
        items=orders,
        has_more=has_more,
        next_cursor=str(page + 1) if has_more else None,
    )


def normalize_account(data: Any) -> Account:
    """Balances keyed by lower-case currency."""
    rows = []
    for symbol, raw in (data or {}).items():
        balance = decode_model(AtopBalance, raw)
        rows.append(
            build_model(
                SubAccount,
                currency=Currency.of(symbol),
                available=require_decimal(balance.available_raw, "available"),
                frozen=require_decimal(balance.freeze_raw, "freeze"),
            )
        )
    return Account.from_balances(VENUE, rows, policy=AccountPolicy.REJECT)


def order_id_of(data: Any) -> str:
    """Order id from a placement response's ``data``."""
    return str(data["id"])
