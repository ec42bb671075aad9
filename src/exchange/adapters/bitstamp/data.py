"""
Bitstamp REST API Pydantic Models.

Venue conventions:
- Symbols are lower case with no separator (``btcusd``)
- Failures are ``{"status": "error", "reason": ..., "code": ...}`` where
  ``reason`` may be a string or a field-to-messages mapping; older
  endpoints answer ``{"error": "..."}``
- Order ``type`` is ``0`` for buy and ``1`` for sell; the same encoding is
  used on the public tape
- Order status transactions report the filled amount under the base
  currency's lower-case symbol (``"btc": "0.5"``)
- Balances are one flat object with ``<currency>_available`` and
  ``<currency>_reserved`` keys
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
    to_datetime,
    to_decimal,
    to_float,
    to_int,
)
from src.exchange.domain.symbols import SymbolFormat, resolve_alias
from src.exchange.enums import (
    AccountPolicy,
    ErrorKind,
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

VENUE = "bitstamp"

# =============================================================================
# VENUE TABLES
# =============================================================================

SYMBOL_FORMAT = SymbolFormat(lowercase=True)

LEVEL_COLUMNS = LevelColumns(price=0, amount=1)

# Candle step in seconds.
STEPS: dict[KlinePeriod, int] = {
    KlinePeriod.MIN_1: 60,
    KlinePeriod.MIN_3: 180,
    KlinePeriod.MIN_5: 300,
    KlinePeriod.MIN_15: 900,
    KlinePeriod.MIN_30: 1800,
    KlinePeriod.HOUR_1: 3600,
    KlinePeriod.HOUR_2: 7200,
    KlinePeriod.HOUR_4: 14400,
    KlinePeriod.HOUR_6: 21600,
    KlinePeriod.HOUR_12: 43200,
    KlinePeriod.DAY_1: 86400,
    KlinePeriod.DAY_3: 259200,
}

MAX_CANDLES = 1000

SIDE_TABLE: dict[str, str] = {"0": "buy", "1": "sell"}

STATUS_TABLE: dict[str, TradeStatus] = {
    "Open": TradeStatus.UNFINISHED,
    "Queue": TradeStatus.UNFINISHED,
    "Finished": TradeStatus.FILLED,
    "Canceled": TradeStatus.CANCELED,
    "Expired": TradeStatus.CANCELED,
}

ERRORS = ErrorClassifier(
    codes={
        "API0004": ErrorKind.ORDER_NOT_FOUND,
        "API0013": ErrorKind.RATE_LIMITED,
    },
    substrings=(
        ("you have only", ErrorKind.INSUFFICIENT_BALANCE),
        ("you can only", ErrorKind.INSUFFICIENT_BALANCE),
        *COMMON_SUBSTRINGS,
    ),
)

AVAILABLE_SUFFIX = "_available"
RESERVED_SUFFIX = "_reserved"


def trade_side(native: object, market: bool = False) -> TradeSide:
    """Side from the ``type`` code."""
    return parse_side(VENUE, native, market=market, table=SIDE_TABLE)


# =============================================================================
# RAW MODELS
# =============================================================================


class BitstampTicker(BaseModel):
    """Ticker from ``/api/v2/ticker/<symbol>/``."""

    last_raw: str | None = Field(alias="last", default=None)
    bid_raw: str | None = Field(alias="bid", default=None)
    ask_raw: str | None = Field(alias="ask", default=None)
    high_raw: str | None = Field(alias="high", default=None)
    low_raw: str | None = Field(alias="low", default=None)
    volume_raw: str | None = Field(alias="volume", default=None)
    timestamp: str | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_ticker(self, ctx: NormalizeContext) -> Ticker:
        """Convert to the canonical ticker."""
        return Ticker(
            pair=ctx.pair,
            last=to_decimal(self.last_raw),
            bid=to_decimal(self.bid_raw),
            ask=to_decimal(self.ask_raw),
            high=to_decimal(self.high_raw),
            low=to_decimal(self.low_raw),
            volume=to_decimal(self.volume_raw),
            timestamp=to_datetime(self.timestamp, "s") or ctx.received_at,
        )


class BitstampCandle(BaseModel):
    """One object of ``/api/v2/ohlc`` ``data.ohlc``."""

    timestamp: str | int
    open: str | float | None = None
    high: str | float | None = None
    low: str | float | None = None
    close: str | float | None = None
    volume: str | float | None = None

    model_config = ConfigDict(extra="ignore")

    def to_kline(self, pair: CurrencyPair) -> Kline:
        """Convert to the canonical candle."""
        return Kline(
            pair=pair,
            timestamp=to_int(self.timestamp),
            open=to_float(self.open),
            high=to_float(self.high),
            low=to_float(self.low),
            close=to_float(self.close),
            volume=to_float(self.volume),
        )


class BitstampTrade(BaseModel):
    """Public trade from ``/api/v2/transactions/<symbol>/``."""

    tid: str | int
    date: str | int
    price_raw: str = Field(alias="price")
    amount_raw: str = Field(alias="amount")
    type: str | int

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_trade(self, ctx: NormalizeContext) -> Trade:
        """Convert to the canonical trade."""
        return Trade(
            pair=ctx.pair,
            trade_id=str(self.tid),
            side=trade_side(self.type),
            price=to_decimal(self.price_raw),
            amount=to_decimal(self.amount_raw),
            timestamp=to_datetime(self.date, "s") or ctx.received_at,
        )


class BitstampOpenOrder(BaseModel):
    """
    Working order from ``/api/v2/open_orders/<symbol>/``.

    ``amount`` is what is still on the book; ``amount_at_create`` (when
    reported) is the original size.
    """

    id: str | int
    datetime: str | None = None
    type: str | int
    price_raw: str | None = Field(alias="price", default=None)
    amount_raw: str = Field(alias="amount")
    amount_at_create_raw: str | None = Field(alias="amount_at_create", default=None)

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_order(self, pair: CurrencyPair) -> Order:
        """Convert to the canonical order; amounts are strict."""
        remaining = require_decimal(self.amount_raw, "amount")
        amount = remaining
        if self.amount_at_create_raw is not None:
            amount = require_decimal(self.amount_at_create_raw, "amount_at_create")
        deal = amount - remaining
        return build_model(
            Order,
            order_id=str(self.id),
            pair=pair,
            side=trade_side(self.type),
            price=to_decimal(self.price_raw),
            amount=amount,
            deal_amount=deal,
            status=(
                TradeStatus.PARTIALLY_FILLED if deal > 0 else TradeStatus.UNFINISHED
            ),
            created_at=parse_iso(self.datetime),
        )


class BitstampOrderStatus(BaseModel):
    """Order from ``/api/v2/order_status/``."""

    id: str | int
    status: str
    type: str | int
    datetime: str | None = None
    price_raw: str | None = Field(alias="price", default=None)
    amount_remaining_raw: str | None = Field(alias="amount_remaining", default=None)
    transactions: list[dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def fills(self, base: str) -> tuple[Decimal, Decimal, Decimal]:
        """``(filled base, filled quote value, fees)`` summed over transactions."""
        deal = quote = fee = ZERO
        for tx in self.transactions:
            amount = require_decimal(tx.get(base), base)
            deal += amount
            quote += amount * require_decimal(tx.get("price"), "price")
            fee += require_optional_decimal(tx.get("fee"), "fee")
        return deal, quote, fee

    def trade_status(self, deal: Decimal) -> TradeStatus:
        """Native status, refined to partially filled for open orders."""
        status = TradeStatus.lookup(STATUS_TABLE, self.status)
        if status == TradeStatus.UNFINISHED and deal > 0:
            return TradeStatus.PARTIALLY_FILLED
        return status

    def to_order(self, pair: CurrencyPair) -> Order:
        """Convert; the original size is the fill plus what remains."""
        deal, quote, fee = self.fills(pair.base.symbol.lower())
        remaining = require_optional_decimal(
            self.amount_remaining_raw, "amount_remaining"
        )
        return build_model(
            Order,
            order_id=str(self.id),
            pair=pair,
            side=trade_side(self.type),
            price=to_decimal(self.price_raw),
            amount=deal + remaining,
            deal_amount=deal,
            avg_price=average_price(quote, deal),
            fee=fee,
            status=self.trade_status(deal),
            created_at=parse_iso(self.datetime),
        )


# =============================================================================
# NORMALIZERS
# =============================================================================


def _reason_text(reason: Any) -> str:
    if isinstance(reason, Mapping):
        return "; ".join(
            str(m) for messages in reason.values() for m in _as_list(messages)
        )
    return str(reason)


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else [value]


def error_fields(payload: Any) -> tuple[object, str] | None:
    """``(code, reason)`` of a v2 error or ``(None, error)`` of a legacy one."""
    if not isinstance(payload, dict):
        return None
    if payload.get("status") == "error":
        return payload.get("code"), _reason_text(payload.get("reason", payload))
    if "error" in payload and "id" not in payload:
        return None, _reason_text(payload["error"])
    return None


def normalize_ticker(payload: Any, ctx: NormalizeContext) -> Ticker:
    """Ticker."""
    return decode_model(BitstampTicker, payload).to_ticker(ctx)


def normalize_depth(payload: Any, ctx: NormalizeContext, size: int) -> Depth:
    """Depth from the full order book."""
    return Depth.build(
        pair=ctx.pair,
        bids=LEVEL_COLUMNS.read_all(payload.get("bids")),
        asks=LEVEL_COLUMNS.read_all(payload.get("asks")),
        timestamp=to_datetime(payload.get("timestamp"), "s") or ctx.received_at,
        size=size,
    )


def normalize_klines(payload: Any, ctx: NormalizeContext) -> list[Kline]:
    """Candles from ``data.ohlc``, oldest first."""
    rows = (payload.get("data") or {}).get("ohlc") or []
    klines = [decode_model(BitstampCandle, row).to_kline(ctx.pair) for row in rows]
    return sorted(klines, key=lambda k: k.timestamp)


def normalize_trades(payload: Sequence[Any], ctx: NormalizeContext) -> list[Trade]:
    """Public tape, newest first."""
    return [decode_model(BitstampTrade, row).to_trade(ctx) for row in payload]


def normalize_placed(payload: Any, pair: CurrencyPair, market: bool) -> Order:
    """Order echoed by a buy or sell call; nothing is filled yet."""
    return build_model(
        Order,
        order_id=str(payload["id"]),
        pair=pair,
        side=trade_side(payload.get("type"), market=market),
        price=to_decimal(payload.get("price")),
        amount=require_decimal(payload.get("amount"), "amount"),
        created_at=parse_iso(payload.get("datetime")),
    )


def normalize_order_status(payload: Any, pair: CurrencyPair) -> Order:
    """Single order with its transactions."""
    return decode_model(BitstampOrderStatus, payload).to_order(pair)


def normalize_open_orders(payload: Sequence[Any], pair: CurrencyPair) -> list[Order]:
    """Working orders."""
    return [decode_model(BitstampOpenOrder, row).to_order(pair) for row in payload]


def normalize_account(payload: Mapping[str, Any]) -> Account:
    """Balances from the flat ``<currency>_available`` / ``_reserved`` keys."""
    rows = []
    for key, value in payload.items():
        if not key.endswith(AVAILABLE_SUFFIX):
            continue
        symbol = key[: -len(AVAILABLE_SUFFIX)]
        rows.append(
            build_model(
                SubAccount,
                currency=Currency.of(resolve_alias(symbol)),
                available=require_decimal(value, key),
                frozen=require_optional_decimal(
                    payload.get(symbol + RESERVED_SUFFIX), symbol + RESERVED_SUFFIX
                ),
            )
        )
    return Account.from_balances(VENUE, rows, policy=AccountPolicy.REJECT)
