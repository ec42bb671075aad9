"""
Order book depth model.

Bids are always sorted descending and asks ascending by price, so index 0
is the best quote on each side. Venues return levels in inconsistent order
and sometimes pre-truncate, so ``Depth.build`` sorts first and truncates
to the requested size afterwards.
"""

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.exchange.model.currency import CurrencyPair


class DepthRecord(BaseModel):
    """One aggregated price level."""

    price: Decimal
    amount: Decimal

    model_config = ConfigDict(frozen=True)

    @field_validator("price", "amount")
    @classmethod
    def validate_positive(cls, v: Decimal) -> Decimal:
        """Ensure price and amount are non-negative."""
        if v < 0:
            raise ValueError("Price and amount must be non-negative")
        return v

    def to_tuple(self) -> tuple[Decimal, Decimal]:
        """Convert to tuple for compatibility."""
        return (self.price, self.amount)


class Depth(BaseModel):
    """Snapshot of both sides of the book for one pair."""

    pair: CurrencyPair
    bids: tuple[DepthRecord, ...] = Field(default=(), description="Descending")
    asks: tuple[DepthRecord, ...] = Field(default=(), description="Ascending")
    timestamp: datetime

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_ordering(self) -> "Depth":
        """Reject books whose sides are not in canonical order."""
        bid_prices = [r.price for r in self.bids]
        ask_prices = [r.price for r in self.asks]
        if bid_prices != sorted(bid_prices, reverse=True):
            raise ValueError("Bids must be sorted by descending price")
        if ask_prices != sorted(ask_prices):
            raise ValueError("Asks must be sorted by ascending price")
        return self

    @classmethod
    def build(
        cls,
        pair: CurrencyPair,
        bids: Iterable[DepthRecord],
        asks: Iterable[DepthRecord],
        timestamp: datetime,
        size: int | None = None,
    ) -> "Depth":
        """
        Sort both sides and truncate to ``size``.

        Args:
            pair: Pair the book belongs to
            bids: Bid levels in any order
            asks: Ask levels in any order
            timestamp: Observation time
            size: Levels to keep per side, all when None

        Returns:
            Canonically ordered depth

        """
        sorted_bids = sorted(bids, key=lambda r: r.price, reverse=True)
        sorted_asks = sorted(asks, key=lambda r: r.price)
        if size is not None:
            sorted_bids = sorted_bids[:size]
            sorted_asks = sorted_asks[:size]
        return cls(
            pair=pair,
            bids=tuple(sorted_bids),
            asks=tuple(sorted_asks),
            timestamp=timestamp,
        )

    @property
    def best_bid(self) -> DepthRecord | None:
        """Highest bid level."""
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> DepthRecord | None:
        """Lowest ask level."""
        return self.asks[0] if self.asks else None

    @property
    def spread(self) -> Decimal | None:
        """Best ask minus best bid."""
        if self.best_bid is None or self.best_ask is None:
            return None
        return self.best_ask.price - self.best_bid.price
