"""
Exchange Domain Layer.

Pure conversion functions shared by every venue: numeric coercion from
heterogeneous JSON, timestamp unit conversion, currency aliasing and
venue symbol rendering. Nothing in this package performs I/O or holds
mutable state.
"""

from src.exchange.domain.numbers import (
    average_price,
    format_number,
    require_decimal,
    to_datetime,
    to_decimal,
    to_float,
    to_int,
    to_seconds,
)
from src.exchange.domain.symbols import SymbolFormat, resolve_alias

__all__ = [
    "SymbolFormat",
    "average_price",
    "format_number",
    "require_decimal",
    "resolve_alias",
    "to_datetime",
    "to_decimal",
    "to_float",
    "to_int",
    "to_seconds",
]
