"""
Checked trade side parsing.

Every venue spells sides differently ("BUY", "sell", "b", "0"). A side the
table does not know is a schema mismatch, never a default direction.
"""

from collections.abc import Mapping

from src.exchange.enums import TradeSide
from src.exchange.errors import NormalizationError


def parse_side(
    venue: str,
    native: object,
    market: bool = False,
    table: Mapping[str, str] | None = None,
) -> TradeSide:
    """
    Convert a native side to TradeSide.

    Args:
        venue: Venue name for error messages
        native: Side as found in the payload
        market: Whether the order was a market order
        table: Venue codes mapped to side words (e.g. ``{"0": "buy"}``)

    Returns:
        Canonical side

    Raises:
        NormalizationError: If the side is missing or unknown

    """
    text = None if native is None else str(native).strip()
    if table is not None and text is not None:
        text = table.get(text)
    if not text:
        raise NormalizationError(f"{venue} reported unknown side {native!r}")
    try:
        return TradeSide.from_exchange(text, market=market)
    except ValueError as e:
        raise NormalizationError(f"{venue} reported unknown side {native!r}") from e
