"""Candle (OHLCV) model."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from src.exchange.model.currency import CurrencyPair


class Kline(BaseModel):
    """
    OHLCV summary for one time bucket.

    ``timestamp`` is the bucket open in epoch seconds regardless of the
    unit the venue reports. Prices and volume are floats, as they are
    used for charting and indicators rather than accounting.
    """

    pair: CurrencyPair
    timestamp: int = Field(..., ge=0, description="Bucket open, epoch seconds")
    open: float
    high: float
    low: float
    close: float
    volume: float = Field(..., description="Volume in base currency")

    model_config = ConfigDict(frozen=True)

    @property
    def opened_at(self) -> datetime:
        """Bucket open as a UTC datetime."""
        return datetime.fromtimestamp(self.timestamp, tz=UTC)
