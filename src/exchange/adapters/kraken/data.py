"""
Kraken REST API Pydantic Models.

Venue conventions:
- Request symbols are the pair altname with no separator (``XBTUSD``);
  Kraken calls bitcoin ``XBT`` and dogecoin ``XDG``
- Every response is ``{"error": [...], "result": ...}``; a non-empty error
  list is a failure whatever the HTTP status
- Market data results are keyed by Kraken's internal pair name
  (``XXBTZUSD``), which differs from the request symbol
- Asset codes in balances may carry an ``X`` (crypto) or ``Z`` (fiat)
  prefix: ``XXBT``, ``ZUSD``
- Orders are keyed by transaction id; the order body does not repeat it
- OHLC rows are ``[time (s), open, high, low, close, vwap, volume, count]``
"""

from collections.abc import Mapping
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

VENUE = "kraken"

# =============================================================================
# VENUE TABLES
# =============================================================================

# Canonical symbol to Kraken symbol.
ALIASES: dict[str, str] = {
    "BTC": "XBT",
    "DOGE": "XDG",
}

SYMBOL_FORMAT = SymbolFormat(aliases=ALIASES)

MAX_DEPTH = 500

KLINE_COLUMNS = KlineColumns(
    time=0, open=1, high=2, low=3, close=4, volume=6, time_unit="s"
)

LEVEL_COLUMNS = LevelColumns(price=0, amount=1)

# Candle interval in minutes.
INTERVALS: dict[KlinePeriod, int] = {
    KlinePeriod.MIN_1: 1,
    KlinePeriod.MIN_5: 5,
    KlinePeriod.MIN_15: 15,
    KlinePeriod.MIN_30: 30,
    KlinePeriod.HOUR_1: 60,
    KlinePeriod.HOUR_4: 240,
    KlinePeriod.DAY_1: 1440,
    KlinePeriod.WEEK_1: 10080,
}

STATUS_TABLE: dict[str, TradeStatus] = {
    "pending": TradeStatus.UNFINISHED,
    "open": TradeStatus.UNFINISHED,
    "closed": TradeStatus.FILLED,
    "canceled": TradeStatus.CANCELED,
    "expired": TradeStatus.CANCELED,
}

# Trade tape side letters (taker side).
SIDE_TABLE: dict[str, str] = {"b": "buy", "s": "sell"}

ERRORS = ErrorClassifier(
    codes={
        "EOrder:Unknown order": ErrorKind.ORDER_NOT_FOUND,
        "EOrder:Insufficient funds": ErrorKind.INSUFFICIENT_BALANCE,
        "EAPI:Rate limit exceeded": ErrorKind.RATE_LIMITED,
        "EOrder:Rate limit exceeded": ErrorKind.RATE_LIMITED,
    },
    substrings=COMMON_SUBSTRINGS,
)


# Legacy asset codes with an X (crypto) or Z (fiat) class prefix. Assets
# listed later carry no prefix, so only these codes are stripped.
PREFIXED_ASSETS: dict[str, str] = {
    "XXBT": "XBT",
    "XETH": "ETH",
    "XETC": "ETC",
    "XLTC": "LTC",
    "XXRP": "XRP",
    "XXLM": "XLM",
    "XXMR": "XMR",
    "XZEC": "ZEC",
    "XMLN": "MLN",
    "XREP": "REP",
    "XXDG": "XDG",
    "ZUSD": "USD",
    "ZEUR": "EUR",
    "ZGBP": "GBP",
    "ZCAD": "CAD",
    "ZJPY": "JPY",
    "ZAUD": "AUD",
}


def canonical_currency(asset: str) -> Currency:
    """Currency from a Kraken asset code (``XXBT`` and ``XBT`` read as BTC)."""
    code = asset.upper()
    code = PREFIXED_ASSETS.get(code, code)
    return Currency.of(resolve_alias(code))


# =============================================================================
# RAW MODELS
# =============================================================================


class KrakenTicker(BaseModel):
    """
    One entry of ``/0/public/Ticker``.

    Each field is an array; index 0 is today and index 1 the last 24 hours
    for ``h``, ``l`` and ``v``. ``a``, ``b`` and ``c`` lead with the price.
    """

    ask: list[str] = Field(alias="a", default_factory=list)
    bid: list[str] = Field(alias="b", default_factory=list)
    last: list[str] = Field(alias="c", default_factory=list)
    volume: list[str] = Field(alias="v", default_factory=list)
    high: list[str] = Field(alias="h", default_factory=list)
    low: list[str] = Field(alias="l", default_factory=list)

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_ticker(self, ctx: NormalizeContext) -> Ticker:
        """Convert to the canonical ticker, using the rolling 24h values."""

        def at(values: list[str], index: int) -> Any:
            return values[index] if len(values) > index else None

        return Ticker(
            pair=ctx.pair,
            last=to_decimal(at(self.last, 0)),
            bid=to_decimal(at(self.bid, 0)),
            ask=to_decimal(at(self.ask, 0)),
            high=to_decimal(at(self.high, 1)),
            low=to_decimal(at(self.low, 1)),
            volume=to_decimal(at(self.volume, 1)),
            timestamp=ctx.received_at,
        )


class KrakenOrderDescription(BaseModel):
    """The ``descr`` object of an order."""

    pair: str = ""
    type: str
    ordertype: str = "limit"
    price_raw: str | None = Field(alias="price", default=None)

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class KrakenOrder(BaseModel):
    """Order from ``QueryOrders``, ``OpenOrders`` or ``ClosedOrders``."""

    status: str
    descr: KrakenOrderDescription
    vol_raw: str = Field(alias="vol")
    vol_exec_raw: str | None = Field(alias="vol_exec", default=None)
    cost_raw: str | None = Field(alias="cost", default=None)
    fee_raw: str | None = Field(alias="fee", default=None)
    userref: int | None = None
    opentm: float | None = None
    closetm: float | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def trade_status(self, deal: Decimal) -> TradeStatus:
        """Native status, refined to partially filled for open orders."""
        status = TradeStatus.lookup(STATUS_TABLE, self.status)
        if status == TradeStatus.UNFINISHED and deal > 0:
            return TradeStatus.PARTIALLY_FILLED
        return status

    def to_order(self, txid: str, pair: CurrencyPair) -> Order:
        """Convert to the canonical order; volumes are strict."""
        amount = require_decimal(self.vol_raw, "vol")
        deal = require_optional_decimal(self.vol_exec_raw, "vol_exec")
        cost = require_optional_decimal(self.cost_raw, "cost")
        market = self.descr.ordertype == "market"
        return build_model(
            Order,
            order_id=txid,
            client_order_id=str(self.userref) if self.userref else None,
            pair=pair,
            side=parse_side(VENUE, self.descr.type, market=market),
            price=to_decimal(self.descr.price_raw),
            amount=amount,
            deal_amount=deal,
            avg_price=average_price(cost, deal),
            fee=require_optional_decimal(self.fee_raw, "fee"),
            status=self.trade_status(deal),
            created_at=to_datetime(self.opentm, "s"),
            finished_at=to_datetime(self.closetm, "s"),
        )


class KrakenBalance(BaseModel):
    """One asset of ``BalanceEx``; ``hold_trade`` is locked in open orders."""

    balance_raw: str = Field(alias="balance")
    hold_trade_raw: str = Field(alias="hold_trade", default="0")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_sub_account(self, asset: str) -> SubAccount:
        """Convert; the available part is the balance minus the hold."""
        balance = require_decimal(self.balance_raw, "balance")
        hold = require_decimal(self.hold_trade_raw, "hold_trade")
        return build_model(
            SubAccount,
            currency=canonical_currency(asset),
            available=balance - hold,
            frozen=hold,
        )


# =============================================================================
# NORMALIZERS
# =============================================================================


def error_fields(payload: Any) -> tuple[object, str] | None:
    """``(first error, all errors)`` when the error list is not empty."""
    if isinstance(payload, dict):
        errors = payload.get("error") or []
        if errors:
            return str(errors[0]), "; ".join(str(e) for e in errors)
    return None


def result_of(payload: Any) -> Any:
    """Envelope ``result``; call after error_fields found no failure."""
    return payload.get("result") if isinstance(payload, dict) else payload


def pair_entry(result: Mapping[str, Any]) -> Any:
    """
    The single pair-keyed entry of a market data result.

    Kraken keys the data by its internal pair name and may add a ``last``
    cursor beside it.
    """
    for key, value in result.items():
        if key != "last":
            return value
    return None


def normalize_ticker(result: Mapping[str, Any], ctx: NormalizeContext) -> Ticker:
    """Ticker from ``/0/public/Ticker``."""
    return decode_model(KrakenTicker, pair_entry(result)).to_ticker(ctx)


def normalize_depth(
    result: Mapping[str, Any], ctx: NormalizeContext, size: int
) -> Depth:
    """Depth from ``/0/public/Depth``; levels are ``[price, volume, time]``."""
    book = pair_entry(result) or {}
    return Depth.build(
        pair=ctx.pair,
        bids=LEVEL_COLUMNS.read_all(book.get("bids")),
        asks=LEVEL_COLUMNS.read_all(book.get("asks")),
        timestamp=ctx.received_at,
        size=size,
    )


def normalize_klines(result: Mapping[str, Any], ctx: NormalizeContext) -> list[Kline]:
    """OHLC rows, oldest first."""
    return KLINE_COLUMNS.read_all(pair_entry(result) or [], ctx.pair)


def normalize_trades(result: Mapping[str, Any], ctx: NormalizeContext) -> list[Trade]:
    """
    Public tape from ``/0/public/Trades``.

    Rows are ``[price, volume, time, side, type, misc, trade_id]``; older
    responses have no trade id, in which case the time stands in for it.
    """
    trades = []
    for row in pair_entry(result) or []:
        trade_id = row[6] if len(row) > 6 else row[2]
        trades.append(
            Trade(
                pair=ctx.pair,
                trade_id=str(trade_id),
                side=parse_side(VENUE, row[3], table=SIDE_TABLE),
                price=to_decimal(row[0]),
                amount=to_decimal(row[1]),
                timestamp=to_datetime(row[2], "s") or ctx.received_at,
            )
        )
    return trades


def normalize_order(txid: str, data: Any, pair: CurrencyPair) -> Order:
    """Single order body keyed by ``txid``."""
    return decode_model(KrakenOrder, data).to_order(txid, pair)


def normalize_orders(
    orders: Mapping[str, Any], pair: CurrencyPair, symbol: str
) -> list[Order]:
    """Orders of one pair out of a txid-keyed mapping."""
    result = []
    for txid, data in orders.items():
        description = data.get("descr") or {}
        if str(description.get("pair", "")).upper() == symbol:
            result.append(normalize_order(txid, data, pair))
    return result


def normalize_closed_page(
    result: Mapping[str, Any], pair: CurrencyPair, symbol: str, offset: int
) -> Page[Order]:
    """``ClosedOrders`` page; the cursor is the next offset."""
    closed = result.get("closed") or {}
    total = int(result.get("count") or 0)
    next_offset = offset + len(closed)
    has_more = bool(closed) and next_offset < total
    return Page[Order](
        items=tuple(normalize_orders(closed, pair, symbol)),
        has_more=has_more,
        next_cursor=str(next_offset) if has_more else None,
    )


def normalize_account(result: Mapping[str, Any]) -> Account:
    """
    Balances from ``BalanceEx``.

    Staking and earn variants (``ETH2.S``, ``DOT.F``) are separate ledgers
    of the same currency and are left out.
    """
    rows = [
        decode_model(KrakenBalance, data).to_sub_account(asset)
        for asset, data in result.items()
        if "." not in asset
    ]
    return Account.from_balances(VENUE, rows, policy=AccountPolicy.REJECT)
