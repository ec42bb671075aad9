"""
Ticker domain model.

This model represents a venue ticker in the domain layer, independent of
any specific venue's field names. The observation timestamp is the venue's
own time when the payload carries one and the adapter's capture time
otherwise.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from src.exchange.model.currency import CurrencyPair


class Ticker(BaseModel):
    """Last trade, best quotes and rolling 24h statistics for a pair."""

    model_config = ConfigDict(frozen=True)

    pair: CurrencyPair
    last: Decimal = Field(..., ge=0, description="Last traded price")
    bid: Decimal = Field(..., ge=0, description="Best bid price")
    ask: Decimal = Field(..., ge=0, description="Best ask price")
    high: Decimal = Field(..., ge=0, description="24h high")
    low: Decimal = Field(..., ge=0, description="24h low")
    volume: Decimal = Field(..., ge=0, description="24h volume in base currency")
    timestamp: datetime = Field(..., description="Observation time (UTC)")

    @computed_field  # type: ignore[misc]
    @property
    def spread(self) -> Decimal | None:
        """Calculate bid-ask spread."""
        if self.bid == 0 or self.ask == 0:
            return None
        return self.ask - self.bid

    @computed_field  # type: ignore[misc]
    @property
    def mid_price(self) -> Decimal | None:
        """Calculate mid price between bid and ask."""
        if self.bid == 0 or self.ask == 0:
            return None
        return (self.bid + self.ask) / Decimal("2")

    def is_inverted(self) -> bool:
        """Check if spread is inverted (bid > ask)."""
        if self.bid == 0 or self.ask == 0:
            return False
        return self.bid > self.ask
