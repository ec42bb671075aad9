"""
Order domain model.

Invariants:
- ``0 <= deal_amount <= amount``
- ``avg_price`` is None unless something was filled

Normalizers build orders through ``normalize.context.build_model`` so a
violated invariant surfaces as NormalizationError instead of a pydantic
ValidationError.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.exchange.enums import TradeSide, TradeStatus
from src.exchange.model.currency import CurrencyPair


class Order(BaseModel):
    """A venue order and its fill state."""

    order_id: str = Field(..., min_length=1, description="Venue order id")
    client_order_id: str | None = Field(default=None, description="Caller id")
    pair: CurrencyPair
    side: TradeSide
    price: Decimal = Field(default=Decimal("0"), ge=0, description="Limit price")
    amount: Decimal = Field(..., ge=0, description="Requested base amount")
    deal_amount: Decimal = Field(default=Decimal("0"), ge=0, description="Filled")
    avg_price: Decimal | None = Field(default=None, ge=0)
    fee: Decimal = Field(default=Decimal("0"), description="Fee charged")
    status: TradeStatus = TradeStatus.UNFINISHED
    created_at: datetime | None = None
    finished_at: datetime | None = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def drop_unfilled_average(cls, data: Any) -> Any:
        """Discard any average price reported for an unfilled order."""
        if isinstance(data, dict) and data.get("avg_price") is not None:
            deal = data.get("deal_amount") or 0
            if Decimal(str(deal)) == 0:
                data = {**data, "avg_price": None}
        return data

    @model_validator(mode="after")
    def check_fill(self) -> "Order":
        """Ensure the filled amount never exceeds the requested amount."""
        if self.deal_amount > self.amount:
            raise ValueError(
                f"deal_amount {self.deal_amount} exceeds amount {self.amount}"
            )
        return self

    @property
    def remaining(self) -> Decimal:
        """Amount still working on the book."""
        return self.amount - self.deal_amount

    @property
    def fill_ratio(self) -> Decimal:
        """Filled fraction of the requested amount."""
        if self.amount == 0:
            return Decimal("0")
        return self.deal_amount / self.amount

    @classmethod
    def accepted(
        cls,
        order_id: str,
        pair: CurrencyPair,
        side: TradeSide,
        amount: Decimal,
        price: Decimal | None,
        created_at: datetime | None = None,
    ) -> "Order":
        """
        Order as known right after placement.

        For venues whose placement response carries only the order id.
        """
        return cls(
            order_id=order_id,
            pair=pair,
            side=side,
            price=price or Decimal("0"),
            amount=amount,
            created_at=created_at,
        )
