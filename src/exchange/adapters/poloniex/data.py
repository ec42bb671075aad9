"""
Poloniex REST API Pydantic Models.

Venue conventions:
- Symbols put the quote first: ``USDT_BTC`` is BTC priced in USDT
- Poloniex calls our quote currency its "base"; ``quoteVolume`` is the
  volume in our base currency
- Failures are ``{"error": "..."}``; order status failures are wrapped as
  ``{"success": 0, "result": {"error": "..."}}``
- Order ``amount`` is what remains on the book; ``startingAmount`` is the
  original size
- Datetimes are ``YYYY-MM-DD HH:MM:SS`` in UTC
"""

from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.exchange.domain.numbers import (
    ZERO,
    average_price,
    parse_iso,
    require_decimal,
    require_optional_decimal,
    to_decimal,
    to_float,
    to_int,
)
from src.exchange.domain.symbols import SymbolFormat, resolve_alias
from src.exchange.enums import (
    AccountPolicy,
    ErrorKind,
    KlinePeriod,
    TradeStatus,
)
from src.exchange.model import (
    Account,
    Currency,
    CurrencyPair,
    Depth,
    Kline,
    Order,
    SubAccount,
    Ticker,
    Trade,
)
from src.exchange.normalize import (
    COMMON_SUBSTRINGS,
    ErrorClassifier,
    LevelColumns,
    NormalizeContext,
    build_model,
    decode_model,
    parse_side,
)

VENUE = "poloniex"

# =============================================================================
# VENUE TABLES
# =============================================================================

SYMBOL_FORMAT = SymbolFormat(separator="_", reverse=True)

LEVEL_COLUMNS = LevelColumns(price=0, amount=1)

# Chart period in seconds.
PERIODS: dict[KlinePeriod, int] = {
    KlinePeriod.MIN_5: 300,
    KlinePeriod.MIN_15: 900,
    KlinePeriod.MIN_30: 1800,
    KlinePeriod.HOUR_2: 7200,
    KlinePeriod.HOUR_4: 14400,
    KlinePeriod.DAY_1: 86400,
}

STATUS_TABLE: dict[str, TradeStatus] = {
    "Open": TradeStatus.UNFINISHED,
    "Partially filled": TradeStatus.PARTIALLY_FILLED,
}

ERRORS = ErrorClassifier(
    substrings=(
        ("order not found", ErrorKind.ORDER_NOT_FOUND),
        ("invalid order number", ErrorKind.ORDER_NOT_FOUND),
        ("please do not make more than", ErrorKind.RATE_LIMITED),
        *COMMON_SUBSTRINGS,
    ),
)


# =============================================================================
# RAW MODELS
# =============================================================================


class PoloniexTicker(BaseModel):
    """One pair entry of ``returnTicker``."""

    last_raw: str | None = Field(alias="last", default=None)
    lowest_ask_raw: str | None = Field(alias="lowestAsk", default=None)
    highest_bid_raw: str | None = Field(alias="highestBid", default=None)
    high_raw: str | None = Field(alias="high24hr", default=None)
    low_raw: str | None = Field(alias="low24hr", default=None)
    quote_volume_raw: str | None = Field(alias="quoteVolume", default=None)

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_ticker(self, ctx: NormalizeContext) -> Ticker:
        """Convert to the canonical ticker; volume is in the base currency."""
        return Ticker(
            pair=ctx.pair,
            last=to_decimal(self.last_raw),
            bid=to_decimal(self.highest_bid_raw),
            ask=to_decimal(self.lowest_ask_raw),
            high=to_decimal(self.high_raw),
            low=to_decimal(self.low_raw),
            volume=to_decimal(self.quote_volume_raw),
            timestamp=ctx.received_at,
        )


class PoloniexCandle(BaseModel):
    """One object of ``returnChartData``."""

    date: int
    open: float | str | None = None
    high: float | str | None = None
    low: float | str | None = None
    close: float | str | None = None
    quote_volume: float | str | None = Field(alias="quoteVolume", default=None)

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_kline(self, pair: CurrencyPair) -> Kline:
        """Convert to the canonical candle."""
        return Kline(
            pair=pair,
            timestamp=to_int(self.date),
            open=to_float(self.open),
            high=to_float(self.high),
            low=to_float(self.low),
            close=to_float(self.close),
            volume=to_float(self.quote_volume),
        )


class PoloniexTrade(BaseModel):
    """Public trade from ``returnTradeHistory``; ``type`` is the taker side."""

    trade_id: int | str = Field(alias="tradeID")
    date: str
    type: str
    rate_raw: str = Field(alias="rate")
    amount_raw: str = Field(alias="amount")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_trade(self, ctx: NormalizeContext) -> Trade:
        """Convert to the canonical trade."""
        return Trade(
            pair=ctx.pair,
            trade_id=str(self.trade_id),
            side=parse_side(VENUE, self.type),
            price=to_decimal(self.rate_raw),
            amount=to_decimal(self.amount_raw),
            timestamp=parse_iso(self.date) or ctx.received_at,
        )


class PoloniexOrder(BaseModel):
    """Working order from ``returnOpenOrders`` or ``returnOrderStatus``."""

    order_number: str | None = Field(alias="orderNumber", default=None)
    type: str
    status: str = "Open"
    rate_raw: str = Field(alias="rate")
    amount_raw: str = Field(alias="amount")
    starting_amount_raw: str | None = Field(alias="startingAmount", default=None)
    date: str | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_order(self, pair: CurrencyPair, order_id: str | None = None) -> Order:
        """Convert; the fill is the starting amount minus what remains."""
        remaining = require_decimal(self.amount_raw, "amount")
        amount = remaining
        if self.starting_amount_raw is not None:
            amount = require_decimal(self.starting_amount_raw, "startingAmount")
        deal = amount - remaining
        status = TradeStatus.lookup(STATUS_TABLE, self.status)
        if status == TradeStatus.UNFINISHED and deal > 0:
            status = TradeStatus.PARTIALLY_FILLED
        return build_model(
            Order,
            order_id=order_id or str(self.order_number),
            pair=pair,
            side=parse_side(VENUE, self.type),
            price=require_decimal(self.rate_raw, "rate"),
            amount=amount,
            deal_amount=deal,
            status=status,
            created_at=parse_iso(self.date),
        )


class PoloniexBalance(BaseModel):
    """One currency of ``returnCompleteBalances``."""

    available_raw: str = Field(alias="available")
    on_orders_raw: str = Field(alias="onOrders", default="0")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_sub_account(self, symbol: str) -> SubAccount:
        """Convert to a canonical balance."""
        return build_model(
            SubAccount,
            currency=Currency.of(resolve_alias(symbol)),
            available=require_decimal(self.available_raw, "available"),
            frozen=require_decimal(self.on_orders_raw, "onOrders"),
        )


# =============================================================================
# NORMALIZERS
# =============================================================================


def error_fields(payload: Any) -> tuple[object, str] | None:
    """``(None, error)`` of a plain or status-wrapped failure."""
    if not isinstance(payload, dict):
        return None
    if "error" in payload:
        return None, str(payload["error"])
    result = payload.get("result")
    if payload.get("success") == 0 and isinstance(result, dict) and "error" in result:
        return None, str(result["error"])
    return None


def normalize_ticker(payload: Mapping[str, Any], ctx: NormalizeContext) -> Ticker:
    """Ticker of one pair out of the all-pairs ``returnTicker``."""
    symbol = ctx.pair.to_symbol(SYMBOL_FORMAT)
    return decode_model(PoloniexTicker, payload.get(symbol)).to_ticker(ctx)


def normalize_depth(payload: Any, ctx: NormalizeContext, size: int) -> Depth:
    """Depth from ``returnOrderBook``; prices are strings, amounts numbers."""
    return Depth.build(
        pair=ctx.pair,
        bids=LEVEL_COLUMNS.read_all(payload.get("bids")),
        asks=LEVEL_COLUMNS.read_all(payload.get("asks")),
        timestamp=ctx.received_at,
        size=size,
    )


def normalize_klines(payload: Sequence[Any], ctx: NormalizeContext) -> list[Kline]:
    """Chart data, oldest first."""
    klines = [decode_model(PoloniexCandle, row).to_kline(ctx.pair) for row in payload]
    return sorted(klines, key=lambda k: k.timestamp)


def normalize_trades(payload: Sequence[Any], ctx: NormalizeContext) -> list[Trade]:
    """Public tape, newest first."""
    return [decode_model(PoloniexTrade, row).to_trade(ctx) for row in payload]


def normalize_open_orders(payload: Sequence[Any], pair: CurrencyPair) -> list[Order]:
    """Working orders of one pair."""
    return [decode_model(PoloniexOrder, row).to_order(pair) for row in payload]


def normalize_order_status(payload: Any, order_id: str, pair: CurrencyPair) -> Order:
    """Working order from ``returnOrderStatus`` (keyed by order number)."""
    entry = (payload.get("result") or {}).get(order_id)
    return decode_model(PoloniexOrder, entry).to_order(pair, order_id)


def fills_of(rows: Sequence[Any]) -> tuple[Decimal, Decimal, Decimal]:
    """``(filled amount, filled total, fees)`` of ``returnOrderTrades`` rows."""
    deal = total = fee = ZERO
    for row in rows:
        amount = require_decimal(row.get("amount"), "amount")
        deal += amount
        total += amount * require_decimal(row.get("rate"), "rate")
        fee += require_optional_decimal(row.get("fee"), "fee")
    return deal, total, fee


def normalize_order_trades(
    rows: Sequence[Any], order_id: str, pair: CurrencyPair
) -> Order:
    """
    Finished order rebuilt from its fills.

    Poloniex keeps no record of an order once it leaves the book, only its
    trades, so the order reads as filled for the traded amount.
    """
    deal, total, fee = fills_of(rows)
    first = rows[0]
    return build_model(
        Order,
        order_id=order_id,
        pair=pair,
        side=parse_side(VENUE, first.get("type")),
        price=to_decimal(first.get("rate")),
        amount=deal,
        deal_amount=deal,
        avg_price=average_price(total, deal),
        fee=fee,
        status=TradeStatus.FILLED,
        created_at=parse_iso(first.get("date")),
    )


def normalize_account(payload: Mapping[str, Any]) -> Account:
    """Balances from ``returnCompleteBalances``."""
    rows = [
        decode_model(PoloniexBalance, data).to_sub_account(symbol)
        for symbol, data in payload.items()
    ]
    return Account.from_balances(VENUE, rows, policy=AccountPolicy.REJECT)
