"""
Shared normalization helpers.

Venue normalizers compose these instead of inheriting from a base class:
envelope decoding and error classification, explicit column tables,
depth-tier clamping, checked model construction and the populate-once
metadata cache.
"""

from src.exchange.normalize.cache import OnceCell
from src.exchange.normalize.columns import (
    KlineColumns,
    LevelColumns,
    clamp_depth_size,
    price_amount,
)
from src.exchange.normalize.context import NormalizeContext, build_model, decode_model
from src.exchange.normalize.envelope import (
    COMMON_SUBSTRINGS,
    ErrorClassifier,
    check_http_status,
    decode_json,
    raise_venue_error,
)
from src.exchange.normalize.sides import parse_side

__all__ = [
    "COMMON_SUBSTRINGS",
    "ErrorClassifier",
    "KlineColumns",
    "LevelColumns",
    "NormalizeContext",
    "OnceCell",
    "build_model",
    "check_http_status",
    "clamp_depth_size",
    "decode_json",
    "decode_model",
    "parse_side",
    "price_amount",
    "raise_venue_error",
]
