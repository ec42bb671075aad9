"""
Explicit column tables for array-of-arrays payloads.

Candle and book-level rows are positional, and every venue orders the
columns differently. Each venue declares its layout once as a table;
positions are never guessed at runtime.
"""

from collections.abc import Iterable, Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict

from src.exchange.domain.numbers import TimeUnit, to_decimal, to_float, to_seconds
from src.exchange.model.currency import CurrencyPair
from src.exchange.model.depth import DepthRecord
from src.exchange.model.kline import Kline


class KlineColumns(BaseModel):
    """
    Positions of the OHLCV fields in one candle row.

    The default layout is ``[time-ms, open, high, low, close, volume]``.
    """

    time: int = 0
    open: int = 1
    high: int = 2
    low: int = 3
    close: int = 4
    volume: int = 5
    time_unit: TimeUnit = "ms"

    model_config = ConfigDict(frozen=True)

    def read(self, row: Sequence[Any], pair: CurrencyPair) -> Kline:
        """Read one candle row; numbers may be JSON numbers or strings."""

        def at(index: int) -> Any:
            return row[index] if index < len(row) else None

        return Kline(
            pair=pair,
            timestamp=to_seconds(at(self.time), self.time_unit),
            open=to_float(at(self.open)),
            high=to_float(at(self.high)),
            low=to_float(at(self.low)),
            close=to_float(at(self.close)),
            volume=to_float(at(self.volume)),
        )

    def read_all(
        self, rows: Iterable[Sequence[Any]], pair: CurrencyPair
    ) -> list[Kline]:
        """Read every row, skipping ones that are not arrays."""
        return [self.read(row, pair) for row in rows if isinstance(row, list | tuple)]


class LevelColumns(BaseModel):
    """Positions of price and amount in one book-level row."""

    price: int = 0
    amount: int = 1

    model_config = ConfigDict(frozen=True)

    def read(self, row: Sequence[Any]) -> DepthRecord:
        """Read one level; negative amounts (short-side encodings) are abs()'d."""
        return DepthRecord(
            price=to_decimal(row[self.price]),
            amount=abs(to_decimal(row[self.amount])),
        )

    def read_all(self, rows: Iterable[Sequence[Any]] | None) -> list[DepthRecord]:
        """Read every level row, skipping malformed ones."""
        records = []
        width = max(self.price, self.amount)
        for row in rows or ():
            if isinstance(row, list | tuple) and len(row) > width:
                records.append(self.read(row))
        return records


def clamp_depth_size(size: int, tiers: Sequence[int] | None) -> int:
    """
    Round a depth request up to the nearest tier the venue accepts.

    Args:
        size: Levels the caller wants per side
        tiers: Ascending tiers the venue accepts; None means any size

    Returns:
        Size to request from the venue (the largest tier when ``size``
        exceeds them all)

    Raises:
        ValueError: If ``size`` is not positive

    """
    if size <= 0:
        raise ValueError(f"Depth size must be positive, got {size}")
    if not tiers:
        return size
    for tier in sorted(tiers):
        if tier >= size:
            return tier
    return max(tiers)


def price_amount(price: Any, amount: Any) -> DepthRecord:
    """Depth record from two loose JSON values (object-shaped levels)."""
    return DepthRecord(price=to_decimal(price), amount=abs(to_decimal(amount)))
