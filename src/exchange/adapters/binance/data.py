"""
Binance REST API Pydantic Models.

This module implements Pydantic models that decode Binance spot REST
payloads and the normalizer functions that turn them into canonical
models. Raw fields keep the venue's values as-is (``_raw`` suffix) and
properties expose typed values.

Venue conventions:
- Symbols are ``BASE`` + ``QUOTE`` upper case with no separator
- Errors come as ``{"code": <negative int>, "msg": "..."}``
- Times are epoch milliseconds
- Public trades carry ``isBuyerMaker``; the taker is the buyer when it is false
"""

from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.exchange.domain.numbers import (
    average_price,
    require_decimal,
    to_datetime,
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

VENUE = "binance"

# =============================================================================
# VENUE TABLES
# =============================================================================

SYMBOL_FORMAT = SymbolFormat()

DEPTH_TIERS: tuple[int, ...] = (5, 10, 20, 50, 100, 500, 1000)

# [open time (ms), open, high, low, close, volume, close time, ...]
KLINE_COLUMNS = KlineColumns(time=0, open=1, high=2, low=3, close=4, volume=5)

LEVEL_COLUMNS = LevelColumns(price=0, amount=1)

PERIODS: dict[KlinePeriod, str] = {period: period.value for period in KlinePeriod}

STATUS_TABLE: dict[str, TradeStatus] = {
    "NEW": TradeStatus.UNFINISHED,
    "PARTIALLY_FILLED": TradeStatus.PARTIALLY_FILLED,
    "FILLED": TradeStatus.FILLED,
    "CANCELED": TradeStatus.CANCELED,
    "PENDING_CANCEL": TradeStatus.CANCEL_PENDING,
    "REJECTED": TradeStatus.FAILED,
    "EXPIRED": TradeStatus.CANCELED,
}

ERRORS = ErrorClassifier(
    codes={
        "-2013": ErrorKind.ORDER_NOT_FOUND,
        "-2011": ErrorKind.ORDER_NOT_FOUND,
        "-1003": ErrorKind.RATE_LIMITED,
        "-1015": ErrorKind.RATE_LIMITED,
    },
    substrings=(
        ("unknown order sent", ErrorKind.ORDER_NOT_FOUND),
        *COMMON_SUBSTRINGS,
    ),
)


# =============================================================================
# RAW MODELS
# =============================================================================


class BinanceTicker(BaseModel):
    """24h rolling ticker from ``/api/v3/ticker/24hr``."""

    symbol: str
    last_price_raw: str | float = Field(alias="lastPrice", default="0")
    bid_price_raw: str | float = Field(alias="bidPrice", default="0")
    ask_price_raw: str | float = Field(alias="askPrice", default="0")
    high_price_raw: str | float = Field(alias="highPrice", default="0")
    low_price_raw: str | float = Field(alias="lowPrice", default="0")
    volume_raw: str | float = Field(alias="volume", default="0")
    close_time: int = Field(alias="closeTime", default=0)

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_ticker(self, ctx: NormalizeContext) -> Ticker:
        """Convert to the canonical ticker."""
        return Ticker(
            pair=ctx.pair,
            last=to_decimal(self.last_price_raw),
            bid=to_decimal(self.bid_price_raw),
            ask=to_decimal(self.ask_price_raw),
            high=to_decimal(self.high_price_raw),
            low=to_decimal(self.low_price_raw),
            volume=to_decimal(self.volume_raw),
            timestamp=to_datetime(self.close_time, "ms") or ctx.received_at,
        )


class BinanceTrade(BaseModel):
    """Public trade from ``/api/v3/trades`` or ``/api/v3/historicalTrades``."""

    id: int
    price_raw: str = Field(alias="price")
    qty_raw: str = Field(alias="qty")
    time: int
    is_buyer_maker: bool = Field(alias="isBuyerMaker")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @property
    def side(self) -> TradeSide:
        """Taker side: a maker buyer means the taker sold."""
        return TradeSide.SELL if self.is_buyer_maker else TradeSide.BUY

    def to_trade(self, ctx: NormalizeContext) -> Trade:
        """Convert to the canonical trade."""
        return Trade(
            pair=ctx.pair,
            trade_id=str(self.id),
            side=self.side,
            price=to_decimal(self.price_raw),
            amount=to_decimal(self.qty_raw),
            timestamp=to_datetime(self.time, "ms") or ctx.received_at,
        )


class BinanceOrder(BaseModel):
    """Order from ``order`` (RESULT response), ``openOrders`` or ``allOrders``."""

    symbol: str
    order_id: int = Field(alias="orderId")
    client_order_id: str = Field(alias="clientOrderId", default="")
    price_raw: str = Field(alias="price", default="0")
    orig_qty_raw: str | None = Field(alias="origQty", default=None)
    executed_qty_raw: str | None = Field(alias="executedQty", default=None)
    quote_qty_raw: str | None = Field(alias="cummulativeQuoteQty", default=None)
    status: str = "NEW"
    type: str = "LIMIT"
    side: str = "BUY"
    time: int | None = None
    transact_time: int | None = Field(alias="transactTime", default=None)
    update_time: int | None = Field(alias="updateTime", default=None)

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @property
    def trade_status(self) -> TradeStatus:
        """Canonical status."""
        return TradeStatus.lookup(STATUS_TABLE, self.status)

    @property
    def trade_side(self) -> TradeSide:
        """Canonical side, market orders flagged."""
        return parse_side(VENUE, self.side, market=self.type == "MARKET")

    def to_order(self, pair: CurrencyPair) -> Order:
        """Convert to the canonical order; fill fields are strict."""
        amount = require_decimal(self.orig_qty_raw, "origQty")
        deal = require_decimal(self.executed_qty_raw, "executedQty")
        quote = require_decimal(self.quote_qty_raw, "cummulativeQuoteQty")
        status = self.trade_status
        created = to_datetime(self.time or self.transact_time, "ms")
        finished = to_datetime(self.update_time, "ms") if status.is_final else None
        return build_model(
            Order,
            order_id=str(self.order_id),
            client_order_id=self.client_order_id or None,
            pair=pair,
            side=self.trade_side,
            price=to_decimal(self.price_raw),
            amount=amount,
            deal_amount=deal,
            avg_price=average_price(quote, deal),
            status=status,
            created_at=created,
            finished_at=finished,
        )


class BinanceBalance(BaseModel):
    """One asset row of ``/api/v3/account``."""

    asset: str
    free_raw: str = Field(alias="free")
    locked_raw: str = Field(alias="locked")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_sub_account(self) -> SubAccount:
        """Convert to a canonical balance; amounts are strict."""
        return build_model(
            SubAccount,
            currency=Currency.of(self.asset),
            available=require_decimal(self.free_raw, "free"),
            frozen=require_decimal(self.locked_raw, "locked"),
        )


class BinanceAccount(BaseModel):
    """Payload of ``/api/v3/account``."""

    balances: list[BinanceBalance] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class SymbolFilters(BaseModel):
    """Trading rules of one symbol, read from exchange info filters."""

    symbol: str
    pair: CurrencyPair
    status: str = "TRADING"
    tick_size: Decimal = Decimal("0")
    step_size: Decimal = Decimal("0")
    min_qty: Decimal = Decimal("0")
    min_notional: Decimal = Decimal("0")

    model_config = ConfigDict(frozen=True)

    @property
    def price_precision(self) -> int:
        """Decimal places allowed in prices."""
        return _precision(self.tick_size)

    @property
    def amount_precision(self) -> int:
        """Decimal places allowed in amounts."""
        return _precision(self.step_size)


def _precision(step: Decimal) -> int:
    if step <= 0:
        return 8
    exponent = step.normalize().as_tuple().exponent
    return max(0, -exponent) if isinstance(exponent, int) else 8


class BinanceSymbolInfo(BaseModel):
    """One entry of ``/api/v3/exchangeInfo``."""

    symbol: str
    status: str = "TRADING"
    base_asset: str = Field(alias="baseAsset")
    quote_asset: str = Field(alias="quoteAsset")
    filters: list[dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def _filter(self, name: str) -> dict[str, Any]:
        for entry in self.filters:
            if entry.get("filterType") == name:
                return entry
        return {}

    def to_filters(self) -> SymbolFilters:
        """Collect the filters adapters need when sizing orders."""
        lot = self._filter("LOT_SIZE")
        notional = self._filter("NOTIONAL") or self._filter("MIN_NOTIONAL")
        return SymbolFilters(
            symbol=self.symbol,
            pair=CurrencyPair.of(self.base_asset, self.quote_asset),
            status=self.status,
            tick_size=to_decimal(self._filter("PRICE_FILTER").get("tickSize")),
            step_size=to_decimal(lot.get("stepSize")),
            min_qty=to_decimal(lot.get("minQty")),
            min_notional=to_decimal(notional.get("minNotional")),
        )


class BinanceExchangeInfo(BaseModel):
    """Payload of ``/api/v3/exchangeInfo``."""

    server_time: int = Field(alias="serverTime", default=0)
    symbols: list[BinanceSymbolInfo] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# =============================================================================
# NORMALIZERS
# =============================================================================


def normalize_ticker(payload: Any, ctx: NormalizeContext) -> Ticker:
    """Ticker from ``/api/v3/ticker/24hr``."""
    return decode_model(BinanceTicker, payload).to_ticker(ctx)


def normalize_depth(payload: Any, ctx: NormalizeContext, size: int) -> Depth:
    """Depth from ``/api/v3/depth``; ``{"bids": [[p, q]], "asks": [[p, q]]}``."""
    return Depth.build(
        pair=ctx.pair,
        bids=LEVEL_COLUMNS.read_all(payload.get("bids")),
        asks=LEVEL_COLUMNS.read_all(payload.get("asks")),
        timestamp=ctx.received_at,
        size=size,
    )


def normalize_klines(payload: Any, ctx: NormalizeContext) -> list[Kline]:
    """Candles from ``/api/v3/klines``."""
    return KLINE_COLUMNS.read_all(payload, ctx.pair)


def normalize_trades(payload: Sequence[Any], ctx: NormalizeContext) -> list[Trade]:
    """Public tape, oldest first as returned."""
    return [decode_model(BinanceTrade, row).to_trade(ctx) for row in payload]


def normalize_order(payload: Any, pair: CurrencyPair) -> Order:
    """Single order object."""
    return decode_model(BinanceOrder, payload).to_order(pair)


def normalize_account(payload: Any) -> Account:
    """Balances; Binance lists each asset once."""
    account = decode_model(BinanceAccount, payload)
    return Account.from_balances(
        VENUE,
        (row.to_sub_account() for row in account.balances),
        policy=AccountPolicy.REJECT,
    )


def error_fields(payload: Any) -> tuple[object, str] | None:
    """``(code, message)`` when the payload is an error envelope."""
    if isinstance(payload, dict) and "code" in payload and "msg" in payload:
        code = payload["code"]
        if code not in (0, 200):
            return code, str(payload["msg"])
    return None


def server_time_ms(payload: Any) -> int:
    """Server time from ``/api/v3/time``."""
    return int(payload["serverTime"])

