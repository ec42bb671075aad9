"""
Public trade tape model.

``side`` is the taker side: a BUY entry means an incoming buy order lifted
a resting ask.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.exchange.enums import TradeSide
from src.exchange.model.currency import CurrencyPair


class Trade(BaseModel):
    """One public execution."""

    pair: CurrencyPair
    trade_id: str = Field(..., description="Venue trade identifier")
    side: TradeSide = Field(..., description="Taker side")
    price: Decimal = Field(..., ge=0)
    amount: Decimal = Field(..., ge=0, description="Amount in base currency")
    timestamp: datetime

    model_config = ConfigDict(frozen=True)

    @property
    def notional(self) -> Decimal:
        """Price times amount, in quote currency."""
        return self.price * self.amount
