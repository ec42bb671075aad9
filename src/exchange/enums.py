"""
Enums for exchange trading.

This module defines the standardized enum values used throughout the gateway.
These enums represent the semantic vocabulary of the domain and establish consistent
naming across venues and adapters. Every venue's native vocabulary is mapped
onto these closed sets by that venue's normalizer.

"""

from __future__ import annotations

import enum

# =============================================================================
# VENUE STRUCTURE ENUMS
# =============================================================================


class Venue(str, enum.Enum):
    """
    Supported venue identifiers.

    These identifiers name the exchanges integrated with the gateway
    and are used for adapter registration, credential lookup and
    tagging of account snapshots.
    """

    BINANCE = "binance"
    ATOP = "atop"
    OKEX = "okex"
    KUCOIN = "kucoin"
    BITFINEX = "bitfinex"
    KRAKEN = "kraken"
    BITSTAMP = "bitstamp"
    POLONIEX = "poloniex"
    COINBASE = "coinbase"
    BITTREX = "bittrex"


class ProductType(str, enum.Enum):
    """
    Endpoint family a currency pair trades on.

    Multi-product venues split spot, margin, swap and futures trading
    into separate endpoint families sharing one credential set.
    """

    SPOT = "spot"
    MARGIN = "margin"
    SWAP = "swap"
    FUTURES = "futures"


# =============================================================================
# ORDER ENUMS
# =============================================================================


class TradeSide(str, enum.Enum):
    """
    Standardized enum for order and trade sides.

    Represents the direction of an order (buy or sell) and whether
    it was submitted at market, in a consistent format across venues.
    """

    BUY = "buy"  # Limit buy
    SELL = "sell"  # Limit sell
    BUY_MARKET = "buy_market"  # Market buy
    SELL_MARKET = "sell_market"  # Market sell

    @classmethod
    def from_exchange(cls, side: str, market: bool = False) -> TradeSide:
        """
        Convert exchange side format to standardized enum.

        Args:
            side: Exchange side string (e.g., "BUY", "sell", "b", "bid")
            market: Whether the order was a market order

        Returns:
            Standardized TradeSide enum value

        """
        normalized = side.lower()
        if normalized in {"buy", "b", "bid"}:
            return cls.BUY_MARKET if market else cls.BUY
        elif normalized in {"sell", "s", "ask", "sale"}:
            return cls.SELL_MARKET if market else cls.SELL
        else:
            raise ValueError(f"Invalid trade side: {side}")

    @property
    def is_buy(self) -> bool:
        """Whether this side buys the base currency."""
        return self in (TradeSide.BUY, TradeSide.BUY_MARKET)

    @property
    def is_market(self) -> bool:
        """Whether this side was submitted at market."""
        return self in (TradeSide.BUY_MARKET, TradeSide.SELL_MARKET)

    def opposite(self) -> TradeSide:
        """Return the side of the counterparty."""
        return {
            TradeSide.BUY: TradeSide.SELL,
            TradeSide.SELL: TradeSide.BUY,
            TradeSide.BUY_MARKET: TradeSide.SELL_MARKET,
            TradeSide.SELL_MARKET: TradeSide.BUY_MARKET,
        }[self]


class TradeStatus(str, enum.Enum):
    """
    Order lifecycle status.

    Native status codes that a venue table does not name map to
    UNFINISHED, so an unrecognised order is treated as still working.
    """

    UNFINISHED = "unfinished"  # Accepted, nothing filled yet
    PARTIALLY_FILLED = "partially_filled"  # Some fills, still working
    FILLED = "filled"  # Completely filled
    CANCELED = "canceled"  # Removed before completion
    CANCEL_PENDING = "cancel_pending"  # Cancel requested, not confirmed
    FAILED = "failed"  # Rejected by the venue

    @classmethod
    def lookup(cls, table: dict[str, TradeStatus], native: object) -> TradeStatus:
        """
        Map a native status through a venue table.

        Args:
            table: Venue mapping from native code (as string) to status
            native: Native status value as found in the payload

        Returns:
            Mapped status, UNFINISHED when the code is not in the table

        """
        if native is None:
            return cls.UNFINISHED
        return table.get(str(native).strip(), cls.UNFINISHED)

    @property
    def is_final(self) -> bool:
        """Whether no further fills can happen."""
        return self in (TradeStatus.FILLED, TradeStatus.CANCELED, TradeStatus.FAILED)


class KlinePeriod(str, enum.Enum):
    """Candle bucket sizes."""

    MIN_1 = "1m"
    MIN_3 = "3m"
    MIN_5 = "5m"
    MIN_15 = "15m"
    MIN_30 = "30m"
    HOUR_1 = "1h"
    HOUR_2 = "2h"
    HOUR_4 = "4h"
    HOUR_6 = "6h"
    HOUR_8 = "8h"
    HOUR_12 = "12h"
    DAY_1 = "1d"
    DAY_3 = "3d"
    WEEK_1 = "1w"
    MONTH_1 = "1M"

    @property
    def seconds(self) -> int:
        """Bucket length in seconds (a month counts as 30 days)."""
        unit = self.value[-1]
        count = int(self.value[:-1])
        return count * {
            "m": 60,
            "h": 3600,
            "d": 86400,
            "w": 604800,
            "M": 2592000,
        }[unit]


# =============================================================================
# ERROR ENUMS
# =============================================================================


class ErrorKind(str, enum.Enum):
    """
    Cross-venue business error kinds.

    Venue error codes and messages are classified into this small set so
    callers can react without knowing each venue's vocabulary.
    """

    ORDER_NOT_FOUND = "order_not_found"
    RATE_LIMITED = "rate_limited"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    OTHER = "other"


class AccountPolicy(str, enum.Enum):
    """
    How duplicate currency rows in a balance response are combined.

    SUM adds rows for the same currency (e.g. several wallet types);
    REJECT treats a duplicate as a malformed payload.
    """

    SUM = "sum"
    REJECT = "reject"
