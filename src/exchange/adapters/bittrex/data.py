"""
Bittrex v1.1 public API Pydantic Models.

Venue conventions:
- Markets put the quote first: ``USDT-BTC`` is BTC priced in USDT
- Every body is ``{"success": bool, "message": str, "result": ...}``
- Field names are PascalCase and values are JSON numbers
- Timestamps are ISO-8601 without a zone and are UTC
"""

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.exchange.domain.numbers import parse_iso, to_decimal
from src.exchange.domain.symbols import SymbolFormat
from src.exchange.enums import ErrorKind
from src.exchange.model import Depth, DepthRecord, Ticker, Trade
from src.exchange.normalize import (
    COMMON_SUBSTRINGS,
    ErrorClassifier,
    NormalizeContext,
    decode_model,
    parse_side,
    price_amount,
)

VENUE = "bittrex"

# =============================================================================
# VENUE TABLES
# =============================================================================

SYMBOL_FORMAT = SymbolFormat(separator="-", reverse=True)

ERRORS = ErrorClassifier(
    substrings=(
        ("INVALID_ORDER", ErrorKind.ORDER_NOT_FOUND),
        ("INSUFFICIENT_FUNDS", ErrorKind.INSUFFICIENT_BALANCE),
        *COMMON_SUBSTRINGS,
    ),
)


# =============================================================================
# RAW MODELS
# =============================================================================


class BittrexSummary(BaseModel):
    """One market of ``public/getmarketsummary``."""

    last_raw: float | str | None = Field(alias="Last", default=None)
    bid_raw: float | str | None = Field(alias="Bid", default=None)
    ask_raw: float | str | None = Field(alias="Ask", default=None)
    high_raw: float | str | None = Field(alias="High", default=None)
    low_raw: float | str | None = Field(alias="Low", default=None)
    volume_raw: float | str | None = Field(alias="Volume", default=None)
    time_stamp: str | None = Field(alias="TimeStamp", default=None)

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
            timestamp=parse_iso(self.time_stamp) or ctx.received_at,
        )


class BittrexFill(BaseModel):
    """Public trade from ``public/getmarkethistory``."""

    id: int | str = Field(alias="Id")
    time_stamp: str = Field(alias="TimeStamp")
    quantity_raw: float | str = Field(alias="Quantity")
    price_raw: float | str = Field(alias="Price")
    order_type: str = Field(alias="OrderType")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_trade(self, ctx: NormalizeContext) -> Trade:
        """Convert; ``OrderType`` is the taker's side."""
        return Trade(
            pair=ctx.pair,
            trade_id=str(self.id),
            side=parse_side(VENUE, self.order_type),
            price=to_decimal(self.price_raw),
            amount=to_decimal(self.quantity_raw),
            timestamp=parse_iso(self.time_stamp) or ctx.received_at,
        )


# =============================================================================
# NORMALIZERS
# =============================================================================


def error_fields(payload: Any) -> tuple[object, str] | None:
    """``(None, message)`` when ``success`` is false."""
    if isinstance(payload, dict) and payload.get("success") is False:
        return None, str(payload.get("message") or "request failed")
    return None


def normalize_ticker(result: Sequence[Any], ctx: NormalizeContext) -> Ticker:
    """Ticker from the one-element summary list."""
    return decode_model(BittrexSummary, result[0]).to_ticker(ctx)


def normalize_depth(result: Any, ctx: NormalizeContext, size: int) -> Depth:
    """Depth from ``{"buy": [...], "sell": [...]}`` rate/quantity objects."""

    def levels(rows: Sequence[Any] | None) -> list[DepthRecord]:
        return [price_amount(r.get("Rate"), r.get("Quantity")) for r in rows or []]

    return Depth.build(
        pair=ctx.pair,
        bids=levels(result.get("buy")),
        asks=levels(result.get("sell")),
        timestamp=ctx.received_at,
        size=size,
    )


def normalize_trades(result: Sequence[Any], ctx: NormalizeContext) -> list[Trade]:
    """Public tape, newest first."""
    return [decode_model(BittrexFill, row).to_trade(ctx) for row in result]
