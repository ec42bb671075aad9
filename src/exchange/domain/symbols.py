"""
Currency aliasing and venue symbol rendering.

Rendering a CurrencyPair into a venue symbol is the single normalization
point every adapter uses. Each venue declares one SymbolFormat and passes
its own alias table; nothing here holds mutable state.
"""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

# Legacy or venue-specific tickers mapped to the canonical symbol.
CANONICAL_ALIASES: dict[str, str] = {
    "BCC": "BCH",
    "XBT": "BTC",
    "XDG": "DOGE",
}


def resolve_alias(symbol: str, aliases: Mapping[str, str] = CANONICAL_ALIASES) -> str:
    """
    Resolve a venue currency symbol to its canonical symbol.

    Args:
        symbol: Currency symbol in any case
        aliases: Mapping from legacy symbol to successor

    Returns:
        Upper-cased canonical symbol

    """
    upper = symbol.strip().upper()
    return aliases.get(upper, upper)


def adapt_symbol(symbol: str, aliases: Mapping[str, str]) -> str:
    """Rename a canonical symbol to the name a venue expects."""
    upper = symbol.upper()
    return aliases.get(upper, upper)


def invert_aliases(aliases: Mapping[str, str]) -> dict[str, str]:
    """Reverse a venue alias table so venue names map back to canonical ones."""
    return {venue_name: canonical for canonical, venue_name in aliases.items()}


class SymbolFormat(BaseModel):
    """
    How a venue spells currency pairs.

    Examples:
        Binance ``BTCUSDT``: separator "", upper case
        OKEx ``BTC-USDT``: separator "-"
        Poloniex ``USDT_BTC``: separator "_", reversed (quote first)
        Bitstamp ``btcusd``: separator "", lowercase

    """

    separator: str = Field(default="", description="Text joining the two legs")
    lowercase: bool = Field(default=False, description="Render lower case")
    reverse: bool = Field(default=False, description="Quote currency first")
    suffix: str = Field(default="", description="Product suffix, e.g. -SWAP")
    aliases: dict[str, str] = Field(
        default_factory=dict,
        description="Canonical symbol to venue symbol renames",
    )

    model_config = ConfigDict(frozen=True)

    def render(self, base: str, quote: str) -> str:
        """Render two canonical symbols as a venue pair symbol."""
        legs = [adapt_symbol(base, self.aliases), adapt_symbol(quote, self.aliases)]
        if self.reverse:
            legs.reverse()
        text = self.separator.join(legs) + self.suffix
        return text.lower() if self.lowercase else text

    def split(self, symbol: str, base_length: int | None = None) -> tuple[str, str]:
        """
        Split a venue symbol into canonical (base, quote) symbols.

        Args:
            symbol: Venue pair symbol
            base_length: Length of the first leg, required when the
                venue uses no separator

        Returns:
            Canonical (base, quote) tuple

        Raises:
            ValueError: If the symbol cannot be split unambiguously

        """
        text = symbol.upper()
        suffix = self.suffix.upper()
        if suffix and text.endswith(suffix):
            text = text[: -len(suffix)]
        if self.separator:
            parts = text.split(self.separator.upper())
            if len(parts) != 2 or not all(parts):
                raise ValueError(f"Cannot split symbol '{symbol}'")
            first, second = parts
        elif base_length is not None and 0 < base_length < len(text):
            first, second = text[:base_length], text[base_length:]
        else:
            raise ValueError(
                f"Symbol '{symbol}' has no separator; a leg length is required"
            )
        if self.reverse:
            first, second = second, first
        reverse = invert_aliases(self.aliases)
        return (
            resolve_alias(reverse.get(first, first)),
            resolve_alias(reverse.get(second, second)),
        )
