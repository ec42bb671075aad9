"""
OKEx v3 REST API Pydantic Models.

Spot and margin share the ``BTC-USDT`` instrument format and order schema;
perpetual swaps use ``BTC-USDT-SWAP`` and their own order schema where
``type`` encodes both direction and position effect.

Venue conventions:
- Times are ISO-8601 strings with millisecond precision and a ``Z`` suffix
- Failures come as ``{"code": 30008, "message": "..."}`` or, for order
  endpoints, ``{"error_code": "33014", "error_message": "..."}``
- Order ``state``: -2 failed, -1 cancelled, 0 open, 1 partially filled,
  2 filled, 3 placing, 4 cancelling
- Candles are ``[iso time, open, high, low, close, volume]``, newest first
"""

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.exchange.domain.numbers import (
    parse_iso,
    require_decimal,
    require_optional_decimal,
    to_decimal,
)
from src.exchange.domain.symbols import SymbolFormat
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

VENUE = "okex"

# =============================================================================
# VENUE TABLES
# =============================================================================

SPOT_FORMAT = SymbolFormat(separator="-")

SWAP_FORMAT = SymbolFormat(separator="-", suffix="-SWAP")

# [time (ISO), open, high, low, close, volume, (swap: currency volume)]
KLINE_COLUMNS = KlineColumns(
    time=0, open=1, high=2, low=3, close=4, volume=5, time_unit="iso"
)

# [price, size, (swap: liquidated orders,) order count]
LEVEL_COLUMNS = LevelColumns(price=0, amount=1)

# ``granularity`` in seconds; OKEx has no 8h, 3d or monthly candles.
GRANULARITIES: dict[KlinePeriod, int] = {
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
    KlinePeriod.WEEK_1: 604800,
}

STATUS_TABLE: dict[str, TradeStatus] = {
    "-2": TradeStatus.FAILED,
    "-1": TradeStatus.CANCELED,
    "0": TradeStatus.UNFINISHED,
    "1": TradeStatus.PARTIALLY_FILLED,
    "2": TradeStatus.FILLED,
    "3": TradeStatus.UNFINISHED,
    "4": TradeStatus.CANCEL_PENDING,
}

# Order list ``state`` filters.
STATE_OPEN = "6"
STATE_COMPLETE = "7"

# Swap order ``type``: open long, open short, close long, close short.
SWAP_OPEN_LONG = "1"
SWAP_OPEN_SHORT = "2"
SWAP_CLOSE_LONG = "3"
SWAP_CLOSE_SHORT = "4"

SWAP_SIDE_TABLE: dict[str, str] = {
    SWAP_OPEN_LONG: "buy",
    SWAP_OPEN_SHORT: "sell",
    SWAP_CLOSE_LONG: "sell",
    SWAP_CLOSE_SHORT: "buy",
}

# Swap ``order_type``: 0 limit, 4 market.
SWAP_MARKET_ORDER_TYPE = "4"

# Spot and margin ``margin_trading``: 1 spot, 2 margin.
MARGIN_TRADING = "2"

# History pages are capped at 100 rows.
MAX_PAGE_SIZE = 100

ERRORS = ErrorClassifier(
    codes={
        "33014": ErrorKind.ORDER_NOT_FOUND,
        "35029": ErrorKind.ORDER_NOT_FOUND,
        "30014": ErrorKind.RATE_LIMITED,
        "30026": ErrorKind.RATE_LIMITED,
        "33017": ErrorKind.INSUFFICIENT_BALANCE,
        "35008": ErrorKind.INSUFFICIENT_BALANCE,
    },
    substrings=(
        ("order not exist", ErrorKind.ORDER_NOT_FOUND),
        ("requests too frequent", ErrorKind.RATE_LIMITED),
        *COMMON_SUBSTRINGS,
    ),
)


# =============================================================================
# RAW MODELS
# =============================================================================


class OKExTicker(BaseModel):
    """Ticker of a spot or swap instrument."""

    last_raw: str | None = Field(alias="last", default=None)
    best_bid_raw: str | None = Field(alias="best_bid", default=None)
    best_ask_raw: str | None = Field(alias="best_ask", default=None)
    high_raw: str | None = Field(alias="high_24h", default=None)
    low_raw: str | None = Field(alias="low_24h", default=None)
    base_volume_raw: str | None = Field(alias="base_volume_24h", default=None)
    volume_raw: str | None = Field(alias="volume_24h", default=None)
    timestamp: str | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_ticker(self, ctx: NormalizeContext) -> Ticker:
        """Convert; spot reports base volume, swap reports contracts."""
        volume = self.base_volume_raw
        if volume is None:
            volume = self.volume_raw
        return Ticker(
            pair=ctx.pair,
            last=to_decimal(self.last_raw),
            bid=to_decimal(self.best_bid_raw),
            ask=to_decimal(self.best_ask_raw),
            high=to_decimal(self.high_raw),
            low=to_decimal(self.low_raw),
            volume=to_decimal(volume),
            timestamp=parse_iso(self.timestamp) or ctx.received_at,
        )


class OKExTrade(BaseModel):
    """Public trade; ``side`` is the taker side."""

    trade_id: str
    price_raw: str = Field(alias="price")
    size_raw: str = Field(alias="size")
    side: str
    timestamp: str | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_trade(self, ctx: NormalizeContext) -> Trade:
        """Convert to the canonical trade."""
        return Trade(
            pair=ctx.pair,
            trade_id=self.trade_id,
            side=parse_side(VENUE, self.side),
            price=to_decimal(self.price_raw),
            amount=to_decimal(self.size_raw),
            timestamp=parse_iso(self.timestamp) or ctx.received_at,
        )


class OKExSpotOrder(BaseModel):
    """Spot or margin order from ``orders``, ``orders_pending`` or ``orders/<id>``."""

    order_id: str
    client_oid: str = ""
    side: str
    type: str = "limit"
    price_raw: str | None = Field(alias="price", default=None)
    size_raw: str | None = Field(alias="size", default=None)
    notional_raw: str | None = Field(alias="notional", default=None)
    filled_size_raw: str | None = Field(alias="filled_size", default=None)
    price_avg_raw: str | None = Field(alias="price_avg", default=None)
    fee_raw: str | None = Field(alias="fee", default=None)
    state: str | int | None = None
    timestamp: str | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_order(self, pair: CurrencyPair) -> Order:
        """
        Convert to the canonical order.

        Market buys are sized by ``notional`` and report no ``size`` until
        filled; the filled size stands in for the amount then.
        """
        deal = require_optional_decimal(self.filled_size_raw, "filled_size")
        amount = require_optional_decimal(self.size_raw, "size")
        if amount == 0:
            amount = deal
        status = TradeStatus.lookup(STATUS_TABLE, self.state)
        avg = to_decimal(self.price_avg_raw)
        return build_model(
            Order,
            order_id=self.order_id,
            client_order_id=self.client_oid or None,
            pair=pair,
            side=parse_side(VENUE, self.side, market=self.type == "market"),
            price=to_decimal(self.price_raw),
            amount=amount,
            deal_amount=deal,
            avg_price=avg if avg > 0 else None,
            fee=abs(require_optional_decimal(self.fee_raw, "fee")),
            status=status,
            created_at=parse_iso(self.timestamp),
        )


class OKExSwapOrder(BaseModel):
    """Swap order; amounts are in contracts."""

    order_id: str
    client_oid: str = ""
    type: str
    order_type: str = "0"
    price_raw: str | None = Field(alias="price", default=None)
    size_raw: str | None = Field(alias="size", default=None)
    filled_qty_raw: str | None = Field(alias="filled_qty", default=None)
    price_avg_raw: str | None = Field(alias="price_avg", default=None)
    fee_raw: str | None = Field(alias="fee", default=None)
    state: str | int | None = None
    timestamp: str | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @property
    def trade_side(self) -> TradeSide:
        """Direction of the fill: opening long and closing short both buy."""
        return parse_side(
            VENUE,
            self.type,
            market=self.order_type == SWAP_MARKET_ORDER_TYPE,
            table=SWAP_SIDE_TABLE,
        )

    def to_order(self, pair: CurrencyPair) -> Order:
        """Convert to the canonical order."""
        avg = to_decimal(self.price_avg_raw)
        return build_model(
            Order,
            order_id=self.order_id,
            client_order_id=self.client_oid or None,
            pair=pair,
            side=self.trade_side,
            price=to_decimal(self.price_raw),
            amount=require_decimal(self.size_raw, "size"),
            deal_amount=require_optional_decimal(self.filled_qty_raw, "filled_qty"),
            avg_price=avg if avg > 0 else None,
            fee=abs(require_optional_decimal(self.fee_raw, "fee")),
            status=TradeStatus.lookup(STATUS_TABLE, self.state),
            created_at=parse_iso(self.timestamp),
        )


class OKExSpotBalance(BaseModel):
    """One currency of ``/api/spot/v3/accounts``."""

    currency: str
    available_raw: str = Field(alias="available")
    hold_raw: str = Field(alias="hold", default="0")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_sub_account(self) -> SubAccount:
        """Convert to a canonical balance."""
        return build_model(
            SubAccount,
            currency=Currency.of(self.currency),
            available=require_decimal(self.available_raw, "available"),
            frozen=require_decimal(self.hold_raw, "hold"),
        )


class OKExMarginBalance(BaseModel):
    """One ``currency:<SYMBOL>`` entry of a margin account."""

    available_raw: str = Field(alias="available")
    hold_raw: str = Field(alias="hold", default="0")
    borrowed_raw: str = Field(alias="borrowed", default="0")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class OKExSwapBalance(BaseModel):
    """One instrument entry of ``/api/swap/v3/accounts``."""

    currency: str
    total_avail_balance_raw: str = Field(alias="total_avail_balance")
    margin_frozen_raw: str = Field(alias="margin_frozen", default="0")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_sub_account(self) -> SubAccount:
        """Convert to a canonical balance."""
        return build_model(
            SubAccount,
            currency=Currency.of(self.currency),
            available=require_decimal(
                self.total_avail_balance_raw, "total_avail_balance"
            ),
            frozen=require_decimal(self.margin_frozen_raw, "margin_frozen"),
        )


# =============================================================================
# NORMALIZERS
# =============================================================================


def error_fields(payload: Any) -> tuple[object, str] | None:
    """
    ``(code, message)`` when the payload reports a failure.

    Order endpoints answer with ``error_code`` ("" or "0" on success) and
    a ``result`` flag; other endpoints use ``code`` and ``message``.
    """
    if not isinstance(payload, dict):
        return None
    error_code = payload.get("error_code")
    if error_code not in (None, "", "0", 0):
        return error_code, str(payload.get("error_message") or payload)
    code = payload.get("code")
    if code not in (None, "", "0", 0):
        return code, str(payload.get("message") or payload)
    if payload.get("result") in (False, "false"):
        return None, str(payload.get("error_message") or "request rejected")
    return None


def normalize_ticker(payload: Any, ctx: NormalizeContext) -> Ticker:
    """Ticker of a spot or swap instrument."""
    return decode_model(OKExTicker, payload).to_ticker(ctx)


def normalize_depth(payload: Any, ctx: NormalizeContext, size: int) -> Depth:
    """Depth from ``book`` (spot) or ``depth`` (swap)."""
    timestamp = payload.get("timestamp") or payload.get("time")
    return Depth.build(
        pair=ctx.pair,
        bids=LEVEL_COLUMNS.read_all(payload.get("bids")),
        asks=LEVEL_COLUMNS.read_all(payload.get("asks")),
        timestamp=parse_iso(timestamp) or ctx.received_at,
        size=size,
    )


def normalize_klines(payload: Sequence[Any], ctx: NormalizeContext) -> list[Kline]:
    """Candles, returned oldest first."""
    klines = KLINE_COLUMNS.read_all(payload, ctx.pair)
    return sorted(klines, key=lambda k: k.timestamp)


def normalize_trades(payload: Sequence[Any], ctx: NormalizeContext) -> list[Trade]:
    """Public tape of a spot or swap instrument."""
    return [decode_model(OKExTrade, row).to_trade(ctx) for row in payload]


def normalize_spot_order(payload: Any, pair: CurrencyPair) -> Order:
    """Spot or margin order."""
    return decode_model(OKExSpotOrder, payload).to_order(pair)


def normalize_swap_order(payload: Any, pair: CurrencyPair) -> Order:
    """Swap order."""
    return decode_model(OKExSwapOrder, payload).to_order(pair)


def order_page(orders: Sequence[Order], limit: int) -> Page[Order]:
    """
    Page of a newest-first order list.

    The next cursor is the oldest order id seen; OKEx's ``after`` returns
    orders older than it.
    """
    has_more = len(orders) >= limit
    return Page[Order](
        items=tuple(orders),
        has_more=has_more,
        next_cursor=orders[-1].order_id if has_more and orders else None,
    )


def normalize_spot_account(payload: Sequence[Any]) -> Account:
    """Spot wallet; each currency appears once."""
    rows = [decode_model(OKExSpotBalance, row).to_sub_account() for row in payload]
    return Account.from_balances(VENUE, rows, policy=AccountPolicy.REJECT)


def margin_sub_accounts(payload: dict[str, Any]) -> list[SubAccount]:
    """Balances of one margin instrument, read from ``currency:<SYMBOL>`` keys."""
    rows = []
    for key, raw in payload.items():
        if not key.startswith("currency:") or not isinstance(raw, dict):
            continue
        balance = decode_model(OKExMarginBalance, raw)
        rows.append(
            build_model(
                SubAccount,
                currency=Currency.of(key.split(":", 1)[1]),
                available=require_decimal(balance.available_raw, "available"),
                frozen=require_decimal(balance.hold_raw, "hold"),
                loan=require_decimal(balance.borrowed_raw, "borrowed"),
            )
        )
    return rows


def normalize_margin_account(payload: Any) -> Account:
    """
    Margin balances.

    A single instrument's account is a dict; the all-instruments listing
    is a list of them, in which a currency repeats across instruments and
    is summed.
    """
    entries = payload if isinstance(payload, list) else [payload]
    rows = [row for entry in entries for row in margin_sub_accounts(entry)]
    return Account.from_balances(VENUE, rows, policy=AccountPolicy.SUM)


def normalize_swap_account(payload: Any) -> Account:
    """Swap margin per settlement currency, summed across instruments."""
    info = payload.get("info") if isinstance(payload, dict) else payload
    entries = info if isinstance(info, list) else [info]
    rows = [decode_model(OKExSwapBalance, row).to_sub_account() for row in entries]
    return Account.from_balances(VENUE, rows, policy=AccountPolicy.SUM)


def server_time_ms(payload: Any) -> int:
    """Server time from ``/api/general/v3/time`` (``epoch`` is seconds)."""
    return int(to_decimal(payload.get("epoch")) * 1000)
