"""
Coinbase Exchange REST API Pydantic Models.

Venue conventions:
- Products are ``BASE-QUOTE`` upper case (``BTC-USD``)
- Failures are ``{"message": "..."}`` with a 4xx status
- Trade ``side`` on the public tape is the maker's side; the taker did
  the opposite
- Candles are ``[time (s), low, high, open, close, volume]``, newest first
- Book levels are ``[price, size, num-orders]``
"""

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.exchange.domain.numbers import parse_iso, to_decimal
from src.exchange.domain.symbols import SymbolFormat
from src.exchange.enums import ErrorKind, KlinePeriod
from src.exchange.model import Depth, Kline, Ticker, Trade
from src.exchange.normalize import (
    COMMON_SUBSTRINGS,
    ErrorClassifier,
    KlineColumns,
    LevelColumns,
    NormalizeContext,
    decode_model,
    parse_side,
)

VENUE = "coinbase"

# =============================================================================
# VENUE TABLES
# =============================================================================

SYMBOL_FORMAT = SymbolFormat(separator="-")

# Book levels: 1 is the best bid and ask only, 2 the aggregated top of book.
DEPTH_LEVELS: tuple[int, ...] = (1, 2)

KLINE_COLUMNS = KlineColumns(
    time=0, low=1, high=2, open=3, close=4, volume=5, time_unit="s"
)

LEVEL_COLUMNS = LevelColumns(price=0, amount=1)

# Candle granularity in seconds.
GRANULARITIES: dict[KlinePeriod, int] = {
    KlinePeriod.MIN_1: 60,
    KlinePeriod.MIN_5: 300,
    KlinePeriod.MIN_15: 900,
    KlinePeriod.HOUR_1: 3600,
    KlinePeriod.HOUR_6: 21600,
    KlinePeriod.DAY_1: 86400,
}

MAX_CANDLES = 300

ERRORS = ErrorClassifier(
    substrings=(
        ("notfound", ErrorKind.ORDER_NOT_FOUND),
        *COMMON_SUBSTRINGS,
    ),
)


# =============================================================================
# RAW MODELS
# =============================================================================


class CoinbaseTicker(BaseModel):
    """Snapshot from ``/products/<id>/ticker``."""

    price_raw: str | None = Field(alias="price", default=None)
    bid_raw: str | None = Field(alias="bid", default=None)
    ask_raw: str | None = Field(alias="ask", default=None)
    volume_raw: str | None = Field(alias="volume", default=None)
    time: str | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CoinbaseStats(BaseModel):
    """24h statistics from ``/products/<id>/stats``."""

    high_raw: str | None = Field(alias="high", default=None)
    low_raw: str | None = Field(alias="low", default=None)

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CoinbaseTrade(BaseModel):
    """Public trade from ``/products/<id>/trades``; ``side`` is the maker's."""

    trade_id: int
    price_raw: str = Field(alias="price")
    size_raw: str = Field(alias="size")
    side: str
    time: str

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_trade(self, ctx: NormalizeContext) -> Trade:
        """Convert; the canonical side is the taker's."""
        return Trade(
            pair=ctx.pair,
            trade_id=str(self.trade_id),
            side=parse_side(VENUE, self.side).opposite(),
            price=to_decimal(self.price_raw),
            amount=to_decimal(self.size_raw),
            timestamp=parse_iso(self.time) or ctx.received_at,
        )


# =============================================================================
# NORMALIZERS
# =============================================================================


def error_fields(payload: Any) -> tuple[object, str] | None:
    """``(None, message)`` of a failure body."""
    if isinstance(payload, dict) and "message" in payload and "price" not in payload:
        return None, str(payload["message"])
    return None


def normalize_ticker(ticker: Any, stats: Any, ctx: NormalizeContext) -> Ticker:
    """Ticker from the snapshot plus the 24h high and low."""
    snapshot = decode_model(CoinbaseTicker, ticker)
    day = decode_model(CoinbaseStats, stats)
    return Ticker(
        pair=ctx.pair,
        last=to_decimal(snapshot.price_raw),
        bid=to_decimal(snapshot.bid_raw),
        ask=to_decimal(snapshot.ask_raw),
        high=to_decimal(day.high_raw),
        low=to_decimal(day.low_raw),
        volume=to_decimal(snapshot.volume_raw),
        timestamp=parse_iso(snapshot.time) or ctx.received_at,
    )


def normalize_depth(payload: Any, ctx: NormalizeContext, size: int) -> Depth:
    """Depth from the product book."""
    return Depth.build(
        pair=ctx.pair,
        bids=LEVEL_COLUMNS.read_all(payload.get("bids")),
        asks=LEVEL_COLUMNS.read_all(payload.get("asks")),
        timestamp=ctx.received_at,
        size=size,
    )


def normalize_klines(payload: Sequence[Any], ctx: NormalizeContext) -> list[Kline]:
    """Candles, returned oldest first."""
    klines = KLINE_COLUMNS.read_all(payload, ctx.pair)
    return sorted(klines, key=lambda k: k.timestamp)


def normalize_trades(payload: Sequence[Any], ctx: NormalizeContext) -> list[Trade]:
    """Public tape, newest first."""
    return [decode_model(CoinbaseTrade, row).to_trade(ctx) for row in payload]
