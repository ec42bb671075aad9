"""
Currency and currency-pair value types.

Currencies compare by symbol only; the display name is informational.
A CurrencyPair carries the product type it trades on so multi-product
venues can route it to the right endpoint family.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.exchange.domain.symbols import SymbolFormat
from src.exchange.enums import ProductType


class Currency(BaseModel):
    """A currency identified by its upper-case symbol."""

    symbol: str = Field(..., min_length=1, description="Upper-case ticker symbol")
    name: str = Field(default="", description="Display name")

    model_config = ConfigDict(frozen=True)

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        """Store symbols upper-cased and trimmed."""
        return v.strip().upper()

    @classmethod
    def of(cls, symbol: str, name: str = "") -> Currency:
        """Build a currency from a symbol string."""
        return cls(symbol=symbol, name=name)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Currency):
            return self.symbol == other.symbol
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.symbol)

    def __str__(self) -> str:
        return self.symbol


class CurrencyPair(BaseModel):
    """
    Ordered (base, quote) pair.

    The base is the asset being bought or sold, the quote is what prices
    are expressed in. ``BTC/USDT`` buys BTC with USDT.
    """

    base: Currency
    quote: Currency
    product: ProductType = Field(
        default=ProductType.SPOT, description="Endpoint family the pair trades on"
    )

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def coerce_currencies(cls, data: Any) -> Any:
        """Accept plain symbol strings for either leg."""
        if isinstance(data, dict):
            for key in ("base", "quote"):
                if isinstance(data.get(key), str):
                    data = {**data, key: Currency.of(data[key])}
        return data

    @model_validator(mode="after")
    def check_distinct(self) -> CurrencyPair:
        """Reject pairs whose legs are the same currency."""
        if self.base == self.quote:
            raise ValueError(f"Base and quote must differ, got {self.base}")
        return self

    @classmethod
    def of(
        cls, base: str, quote: str, product: ProductType = ProductType.SPOT
    ) -> CurrencyPair:
        """Build a pair from two symbol strings."""
        return cls(base=Currency.of(base), quote=Currency.of(quote), product=product)

    @classmethod
    def from_symbol(
        cls,
        symbol: str,
        fmt: SymbolFormat,
        base_length: int | None = None,
        product: ProductType = ProductType.SPOT,
    ) -> CurrencyPair:
        """
        Parse a venue symbol back into a pair.

        Args:
            symbol: Venue pair symbol
            fmt: The venue's symbol format
            base_length: Length of the base leg for separator-less venues
            product: Product type to tag the pair with

        Returns:
            Parsed currency pair

        """
        base, quote = fmt.split(symbol, base_length)
        return cls.of(base, quote, product)

    def to_symbol(self, fmt: SymbolFormat) -> str:
        """Render this pair in a venue's symbol format."""
        return fmt.render(self.base.symbol, self.quote.symbol)

    def with_product(self, product: ProductType) -> CurrencyPair:
        """Same legs on another product type."""
        return CurrencyPair(base=self.base, quote=self.quote, product=product)

    def reversed(self) -> CurrencyPair:
        """Pair with the legs swapped."""
        return CurrencyPair(base=self.quote, quote=self.base, product=self.product)

    def __str__(self) -> str:
        return f"{self.base.symbol}_{self.quote.symbol}"


# Frequently used currencies and pairs
BTC = Currency.of("BTC", "Bitcoin")
ETH = Currency.of("ETH", "Ethereum")
LTC = Currency.of("LTC", "Litecoin")
BCH = Currency.of("BCH", "Bitcoin Cash")
XRP = Currency.of("XRP", "Ripple")
USD = Currency.of("USD", "US Dollar")
EUR = Currency.of("EUR", "Euro")
USDT = Currency.of("USDT", "Tether")

BTC_USD = CurrencyPair(base=BTC, quote=USD)
BTC_USDT = CurrencyPair(base=BTC, quote=USDT)
ETH_BTC = CurrencyPair(base=ETH, quote=BTC)
ETH_USDT = CurrencyPair(base=ETH, quote=USDT)
LTC_BTC = CurrencyPair(base=LTC, quote=BTC)
