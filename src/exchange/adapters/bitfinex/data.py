"""
Bitfinex REST API Pydantic Models.

Market data and trading use the v1 API; candles come from v2.

Venue conventions:
- v1 symbols are lower case with no separator (``btcusd``); v2 trading
  symbols are upper case with a ``t`` prefix (``tBTCUSD``)
- Several currencies have legacy three-letter names (``DSH``, ``QTM``,
  ``IOT``, ``UST``)
- v1 failures are ``{"message": "..."}`` or ``{"error": "..."}``; v2
  failures are ``["error", code, "message"]``
- v1 timestamps are decimal epoch seconds as strings
- v2 candles are ``[ms, open, close, high, low, volume]``
- Balances are reported per wallet (exchange, trading, deposit)
"""

from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.exchange.domain.numbers import (
    require_decimal,
    require_optional_decimal,
    to_datetime,
    to_decimal,
)
from src.exchange.domain.symbols import SymbolFormat, invert_aliases, resolve_alias
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
    DepthRecord,
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
    NormalizeContext,
    build_model,
    decode_model,
    parse_side,
    price_amount,
)

VENUE = "bitfinex"

# =============================================================================
# VENUE TABLES
# =============================================================================

# Canonical symbol to Bitfinex symbol.
ALIASES: dict[str, str] = {
    "USDT": "UST",
    "DASH": "DSH",
    "QTUM": "QTM",
    "IOTA": "IOT",
}

SYMBOL_FORMAT = SymbolFormat(lowercase=True, aliases=ALIASES)

V2_FORMAT = SymbolFormat(aliases=ALIASES)

KLINE_COLUMNS = KlineColumns(time=0, open=1, close=2, high=3, low=4, volume=5)

PERIODS: dict[KlinePeriod, str] = {
    KlinePeriod.MIN_1: "1m",
    KlinePeriod.MIN_5: "5m",
    KlinePeriod.MIN_15: "15m",
    KlinePeriod.MIN_30: "30m",
    KlinePeriod.HOUR_1: "1h",
    KlinePeriod.HOUR_6: "6h",
    KlinePeriod.HOUR_12: "12h",
    KlinePeriod.DAY_1: "1D",
    KlinePeriod.WEEK_1: "7D",
    KlinePeriod.MONTH_1: "1M",
}

EXCHANGE_WALLET = "exchange"

LIMIT_ORDER_TYPE = "exchange limit"
MARKET_ORDER_TYPE = "exchange market"

ERRORS = ErrorClassifier(
    substrings=(
        ("no such order", ErrorKind.ORDER_NOT_FOUND),
        ("order could not be cancelled", ErrorKind.ORDER_NOT_FOUND),
        ("ratelimit", ErrorKind.RATE_LIMITED),
        ("err_rate_limit", ErrorKind.RATE_LIMITED),
        *COMMON_SUBSTRINGS,
    ),
)

_CANONICAL = invert_aliases(ALIASES)


def canonical_currency(symbol: str) -> Currency:
    """Currency from a Bitfinex currency name (``ust`` reads as USDT)."""
    upper = symbol.upper()
    return Currency.of(resolve_alias(_CANONICAL.get(upper, upper)))


def v2_symbol(pair: CurrencyPair) -> str:
    """Trading symbol for the v2 API."""
    return "t" + pair.to_symbol(V2_FORMAT)


# =============================================================================
# RAW MODELS
# =============================================================================


class BitfinexTicker(BaseModel):
    """Ticker from ``/v1/pubticker/<symbol>``."""

    last_price_raw: str | None = Field(alias="last_price", default=None)
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
            last=to_decimal(self.last_price_raw),
            bid=to_decimal(self.bid_raw),
            ask=to_decimal(self.ask_raw),
            high=to_decimal(self.high_raw),
            low=to_decimal(self.low_raw),
            volume=to_decimal(self.volume_raw),
            timestamp=to_datetime(self.timestamp, "s") or ctx.received_at,
        )


class BitfinexTrade(BaseModel):
    """Public trade from ``/v1/trades/<symbol>``; ``type`` is the taker side."""

    tid: int
    price_raw: str = Field(alias="price")
    amount_raw: str = Field(alias="amount")
    type: str
    timestamp: int

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_trade(self, ctx: NormalizeContext) -> Trade:
        """Convert to the canonical trade."""
        return Trade(
            pair=ctx.pair,
            trade_id=str(self.tid),
            side=parse_side(VENUE, self.type),
            price=to_decimal(self.price_raw),
            amount=to_decimal(self.amount_raw),
            timestamp=to_datetime(self.timestamp, "s") or ctx.received_at,
        )


class BitfinexOrder(BaseModel):
    """Order from ``order/new``, ``order/status``, ``orders`` or ``orders/hist``."""

    id: int
    symbol: str = ""
    side: str
    type: str = LIMIT_ORDER_TYPE
    price_raw: str | None = Field(alias="price", default=None)
    avg_execution_price_raw: str | None = Field(
        alias="avg_execution_price", default=None
    )
    original_amount_raw: str | None = Field(alias="original_amount", default=None)
    executed_amount_raw: str | None = Field(alias="executed_amount", default=None)
    is_live: bool = False
    is_cancelled: bool = False
    timestamp: str | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def trade_status(self, amount: Decimal, deal: Decimal) -> TradeStatus:
        """Status from the live and cancelled flags plus the fill."""
        if self.is_cancelled:
            return TradeStatus.CANCELED
        if deal >= amount > 0:
            return TradeStatus.FILLED
        if deal > 0:
            return TradeStatus.PARTIALLY_FILLED
        return TradeStatus.UNFINISHED

    def to_order(self, pair: CurrencyPair) -> Order:
        """Convert to the canonical order; amounts are strict."""
        amount = require_decimal(self.original_amount_raw, "original_amount")
        deal = require_optional_decimal(self.executed_amount_raw, "executed_amount")
        avg = to_decimal(self.avg_execution_price_raw)
        return build_model(
            Order,
            order_id=str(self.id),
            pair=pair,
            side=parse_side(VENUE, self.side, market="market" in self.type),
            price=to_decimal(self.price_raw),
            amount=amount,
            deal_amount=deal,
            avg_price=avg if avg > 0 else None,
            status=self.trade_status(amount, deal),
            created_at=to_datetime(self.timestamp, "s"),
        )


class BitfinexBalance(BaseModel):
    """One wallet row of ``/v1/balances``."""

    type: str
    currency: str
    amount_raw: str = Field(alias="amount")
    available_raw: str = Field(alias="available")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_sub_account(self) -> SubAccount:
        """Convert; the frozen part is whatever is not available."""
        amount = require_decimal(self.amount_raw, "amount")
        available = require_decimal(self.available_raw, "available")
        return build_model(
            SubAccount,
            currency=canonical_currency(self.currency),
            available=available,
            frozen=amount - available,
        )


# =============================================================================
# NORMALIZERS
# =============================================================================


def error_fields(payload: Any) -> tuple[object, str] | None:
    """``(code, message)`` of a v1 or v2 failure payload."""
    if isinstance(payload, list) and payload and payload[0] == "error":
        code = payload[1] if len(payload) > 1 else None
        message = payload[2] if len(payload) > 2 else str(payload)
        return code, str(message)
    if isinstance(payload, dict):
        for key in ("error", "message"):
            if key in payload and "id" not in payload:
                return None, str(payload[key])
    return None


def normalize_ticker(payload: Any, ctx: NormalizeContext) -> Ticker:
    """Ticker from ``pubticker``."""
    return decode_model(BitfinexTicker, payload).to_ticker(ctx)


def normalize_depth(payload: Any, ctx: NormalizeContext, size: int) -> Depth:
    """Depth from ``/v1/book``; levels are ``{"price", "amount", "timestamp"}``."""

    def levels(rows: Sequence[Any] | None) -> list[DepthRecord]:
        return [price_amount(r.get("price"), r.get("amount")) for r in rows or []]

    return Depth.build(
        pair=ctx.pair,
        bids=levels(payload.get("bids")),
        asks=levels(payload.get("asks")),
        timestamp=ctx.received_at,
        size=size,
    )


def normalize_klines(payload: Sequence[Any], ctx: NormalizeContext) -> list[Kline]:
    """v2 candles, returned oldest first."""
    klines = KLINE_COLUMNS.read_all(payload, ctx.pair)
    return sorted(klines, key=lambda k: k.timestamp)


def normalize_trades(payload: Sequence[Any], ctx: NormalizeContext) -> list[Trade]:
    """Public tape."""
    return [decode_model(BitfinexTrade, row).to_trade(ctx) for row in payload]


def normalize_order(payload: Any, pair: CurrencyPair) -> Order:
    """Single order."""
    return decode_model(BitfinexOrder, payload).to_order(pair)


def normalize_orders(
    payload: Sequence[Any], pair: CurrencyPair, symbol: str
) -> list[Order]:
    """Orders of one symbol out of an all-symbols listing."""
    return [
        normalize_order(row, pair)
        for row in payload
        if str(row.get("symbol", "")).lower() == symbol
    ]


def normalize_wallets(payload: Sequence[Any]) -> dict[str, Account]:
    """Balances grouped by wallet type; each wallet lists a currency once."""
    by_wallet: dict[str, list[SubAccount]] = {}
    for row in payload:
        balance = decode_model(BitfinexBalance, row)
        by_wallet.setdefault(balance.type, []).append(balance.to_sub_account())
    return {
        wallet: Account.from_balances(VENUE, rows, policy=AccountPolicy.REJECT)
        for wallet, rows in by_wallet.items()
    }
