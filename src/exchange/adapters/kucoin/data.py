"""
KuCoin REST API Pydantic Models.

Venue conventions:
- Symbols are ``BASE-QUOTE`` upper case
- Every response is ``{"code": "200000", "data": ...}``; any other code is
  a failure with its text in ``msg``
- Order status is two flags: ``isActive`` and ``cancelExist``
- One currency appears once per account type (main, trade, margin); the
  snapshot sums them
- Candles are ``[time (s), open, close, high, low, volume, turnover]``
"""

from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.exchange.domain.numbers import (
    average_price,
    require_decimal,
    require_optional_decimal,
    to_datetime,
    to_decimal,
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

VENUE = "kucoin"

# =============================================================================
# VENUE TABLES
# =============================================================================

SYMBOL_FORMAT = SymbolFormat(separator="-")

DEPTH_TIERS: tuple[int, ...] = (20, 100)

KLINE_COLUMNS = KlineColumns(
    time=0, open=1, close=2, high=3, low=4, volume=5, time_unit="s"
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
    KlinePeriod.WEEK_1: "1week",
}

SUCCESS_CODE = "200000"

ERRORS = ErrorClassifier(
    codes={
        "429000": ErrorKind.RATE_LIMITED,
        "200004": ErrorKind.INSUFFICIENT_BALANCE,
        "400600": ErrorKind.ORDER_NOT_FOUND,
    },
    substrings=(
        ("order not exist", ErrorKind.ORDER_NOT_FOUND),
        ("balance insufficient", ErrorKind.INSUFFICIENT_BALANCE),
        *COMMON_SUBSTRINGS,
    ),
)


# =============================================================================
# RAW MODELS
# =============================================================================


class KuCoinStats(BaseModel):
    """24h statistics from ``/api/v1/market/stats``."""

    last_raw: str | None = Field(alias="last", default=None)
    buy_raw: str | None = Field(alias="buy", default=None)
    sell_raw: str | None = Field(alias="sell", default=None)
    high_raw: str | None = Field(alias="high", default=None)
    low_raw: str | None = Field(alias="low", default=None)
    vol_raw: str | None = Field(alias="vol", default=None)
    time: int | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_ticker(self, ctx: NormalizeContext) -> Ticker:
        """Convert to the canonical ticker."""
        return Ticker(
            pair=ctx.pair,
            last=to_decimal(self.last_raw),
            bid=to_decimal(self.buy_raw),
            ask=to_decimal(self.sell_raw),
            high=to_decimal(self.high_raw),
            low=to_decimal(self.low_raw),
            volume=to_decimal(self.vol_raw),
            timestamp=to_datetime(self.time, "ms") or ctx.received_at,
        )


class KuCoinTrade(BaseModel):
    """Public trade from ``/api/v1/market/histories``; ``side`` is the taker's."""

    sequence: str | int
    price_raw: str = Field(alias="price")
    size_raw: str = Field(alias="size")
    side: str
    time: int

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_trade(self, ctx: NormalizeContext) -> Trade:
        """Convert; ``time`` is nanoseconds."""
        return Trade(
            pair=ctx.pair,
            trade_id=str(self.sequence),
            side=parse_side(VENUE, self.side),
            price=to_decimal(self.price_raw),
            amount=to_decimal(self.size_raw),
            timestamp=to_datetime(self.time, "ns") or ctx.received_at,
        )


class KuCoinOrder(BaseModel):
    """Order from ``/api/v1/orders/<id>`` or an ``/api/v1/orders`` page."""

    id: str
    client_oid: str = Field(alias="clientOid", default="")
    side: str
    type: str = "limit"
    price_raw: str | None = Field(alias="price", default=None)
    size_raw: str | None = Field(alias="size", default=None)
    deal_size_raw: str | None = Field(alias="dealSize", default=None)
    deal_funds_raw: str | None = Field(alias="dealFunds", default=None)
    fee_raw: str | None = Field(alias="fee", default=None)
    is_active: bool = Field(alias="isActive", default=False)
    cancel_exist: bool = Field(alias="cancelExist", default=False)
    created_at: int | None = Field(alias="createdAt", default=None)

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def trade_status(self, deal: Decimal) -> TradeStatus:
        """Status from the active and cancel flags plus the fill."""
        if self.is_active:
            return TradeStatus.PARTIALLY_FILLED if deal > 0 else TradeStatus.UNFINISHED
        if self.cancel_exist:
            return TradeStatus.CANCELED
        return TradeStatus.FILLED

    def to_order(self, pair: CurrencyPair) -> Order:
        """Convert to the canonical order; fill fields are strict."""
        deal = require_optional_decimal(self.deal_size_raw, "dealSize")
        funds = require_optional_decimal(self.deal_funds_raw, "dealFunds")
        amount = require_optional_decimal(self.size_raw, "size")
        if amount == 0:
            # Market buys sized by funds report no size.
            amount = deal
        return build_model(
            Order,
            order_id=self.id,
            client_order_id=self.client_oid or None,
            pair=pair,
            side=parse_side(VENUE, self.side, market=self.type == "market"),
            price=to_decimal(self.price_raw),
            amount=amount,
            deal_amount=deal,
            avg_price=average_price(funds, deal),
            fee=require_optional_decimal(self.fee_raw, "fee"),
            status=self.trade_status(deal),
            created_at=to_datetime(self.created_at, "ms"),
        )


class KuCoinOrderPage(BaseModel):
    """Paginated ``/api/v1/orders`` data."""

    current_page: int = Field(alias="currentPage", default=1)
    page_size: int = Field(alias="pageSize", default=50)
    total_page: int = Field(alias="totalPage", default=0)
    items: list[dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class KuCoinAccount(BaseModel):
    """One account row of ``/api/v1/accounts``."""

    currency: str
    type: str = "trade"
    available_raw: str = Field(alias="available")
    holds_raw: str = Field(alias="holds", default="0")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_sub_account(self) -> SubAccount:
        """Convert to a canonical balance."""
        return build_model(
            SubAccount,
            currency=Currency.of(resolve_alias(self.currency)),
            available=require_decimal(self.available_raw, "available"),
            frozen=require_decimal(self.holds_raw, "holds"),
        )


# =============================================================================
# NORMALIZERS
# =============================================================================


def error_fields(payload: Any) -> tuple[object, str] | None:
    """``(code, msg)`` when the envelope code is not 200000."""
    if isinstance(payload, dict) and "code" in payload:
        code = str(payload.get("code"))
        if code != SUCCESS_CODE:
            return code, str(payload.get("msg") or payload)
    return None


def data_of(payload: Any) -> Any:
    """Envelope ``data``; call after error_fields found no failure."""
    return payload.get("data") if isinstance(payload, dict) else payload


def normalize_ticker(data: Any, ctx: NormalizeContext) -> Ticker:
    """Ticker from market stats."""
    return decode_model(KuCoinStats, data).to_ticker(ctx)


def normalize_depth(data: Any, ctx: NormalizeContext, size: int) -> Depth:
    """Depth from the level-2 snapshot."""
    return Depth.build(
        pair=ctx.pair,
        bids=LEVEL_COLUMNS.read_all(data.get("bids")),
        asks=LEVEL_COLUMNS.read_all(data.get("asks")),
        timestamp=to_datetime(data.get("time"), "ms") or ctx.received_at,
        size=size,
    )


def normalize_klines(data: Sequence[Any], ctx: NormalizeContext) -> list[Kline]:
    """Candles, returned oldest first."""
    klines = KLINE_COLUMNS.read_all(data or [], ctx.pair)
    return sorted(klines, key=lambda k: k.timestamp)


def normalize_trades(data: Sequence[Any], ctx: NormalizeContext) -> list[Trade]:
    """Public tape."""
    return [decode_model(KuCoinTrade, row).to_trade(ctx) for row in data or []]


def normalize_order(data: Any, pair: CurrencyPair) -> Order:
    """Single order."""
    return decode_model(KuCoinOrder, data).to_order(pair)


def normalize_order_page(data: Any, pair: CurrencyPair) -> Page[Order]:
    """Order page; the cursor is the next page number."""
    page = decode_model(KuCoinOrderPage, data)
    orders = tuple(normalize_order(row, pair) for row in page.items)
    has_more = page.current_page < page.total_page
    return Page[Order](
        items=orders,
        has_more=has_more,
        next_cursor=str(page.current_page + 1) if has_more else None,
    )


def normalize_account(data: Sequence[Any]) -> Account:
    """Balances summed across account types."""
    rows = [decode_model(KuCoinAccount, row).to_sub_account() for row in data or []]
    return Account.from_balances(VENUE, rows, policy=AccountPolicy.SUM)
