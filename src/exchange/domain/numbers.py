"""
Numeric coercion for heterogeneous venue payloads.

Venues encode numbers as JSON numbers, numeric strings, empty strings or
omit them entirely. Two policies apply:

- Soft coercion (``to_decimal``, ``to_float``, ``to_int``) is used for
  read-only market data. Unparsable values become zero so one malformed
  field does not discard an otherwise usable ticker or order book.
- Strict coercion (``require_decimal``) is used for order and account
  fields. A malformed fill amount or balance raises NormalizationError.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Literal

from src.exchange.errors import NormalizationError

logger = logging.getLogger(__name__)

TimeUnit = Literal["s", "ms", "ns", "iso"]

ZERO = Decimal("0")


def _parse_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise InvalidOperation(f"boolean is not a number: {value}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int | float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        result = Decimal(value.strip())
    else:
        raise InvalidOperation(f"unsupported type {type(value).__name__}")
    if not result.is_finite():
        raise InvalidOperation(f"non-finite value {value!r}")
    return result


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """
    Convert a JSON value to Decimal, falling back to ``default``.

    Args:
        value: Number, numeric string or None

    Returns:
        Parsed Decimal or ``default`` when the value is missing or malformed

    """
    if value is None or value == "":
        return default
    try:
        return _parse_decimal(value)
    except (InvalidOperation, ValueError):
        logger.debug(f"Soft-coerced unparsable number {value!r} to {default}")
        return default


def to_float(value: Any, default: float = 0.0) -> float:
    """Convert a JSON value to float, falling back to ``default``."""
    if value is None or value == "":
        return default
    try:
        return float(_parse_decimal(value))
    except (InvalidOperation, ValueError):
        logger.debug(f"Soft-coerced unparsable number {value!r} to {default}")
        return default


def to_int(value: Any, default: int = 0) -> int:
    """Convert a JSON value to int (truncating), falling back to ``default``."""
    if value is None or value == "":
        return default
    try:
        return int(_parse_decimal(value))
    except (InvalidOperation, ValueError):
        logger.debug(f"Soft-coerced unparsable integer {value!r} to {default}")
        return default


def require_decimal(value: Any, field: str) -> Decimal:
    """
    Convert a financial field to Decimal or fail.

    Args:
        value: Raw JSON value
        field: Field name used in the error message

    Returns:
        Parsed Decimal

    Raises:
        NormalizationError: If the value is missing or not numeric

    """
    if value is None or value == "":
        raise NormalizationError(f"Missing financial field '{field}'")
    try:
        return _parse_decimal(value)
    except (InvalidOperation, ValueError) as e:
        raise NormalizationError(
            f"Financial field '{field}' is not numeric: {value!r}"
        ) from e


def require_optional_decimal(value: Any, field: str) -> Decimal:
    """Like ``require_decimal`` but an absent field reads as zero."""
    if value is None or value == "":
        return ZERO
    return require_decimal(value, field)


def average_price(quote_total: Decimal, deal_amount: Decimal) -> Decimal | None:
    """Average fill price, defined only when something was filled."""
    if deal_amount <= 0:
        return None
    return quote_total / deal_amount


def to_seconds(value: Any, unit: TimeUnit) -> int:
    """
    Convert a venue timestamp to epoch seconds.

    Args:
        value: Raw timestamp (number, numeric string or ISO-8601 string)
        unit: Unit the venue uses for this field

    Returns:
        Epoch seconds, 0 when the value cannot be read

    """
    if unit == "iso":
        parsed = parse_iso(value)
        return int(parsed.timestamp()) if parsed is not None else 0
    raw = to_decimal(value)
    match unit:
        case "ms":
            return int(raw / 1000)
        case "ns":
            return int(raw / 1_000_000_000)
        case _:
            return int(raw)


def to_datetime(value: Any, unit: TimeUnit) -> datetime | None:
    """Convert a venue timestamp to an aware UTC datetime, None if absent."""
    if value is None or value == "" or value == 0:
        return None
    if unit == "iso":
        return parse_iso(value)
    raw = to_decimal(value)
    if raw <= 0:
        return None
    divisor = {"s": 1, "ms": 1000, "ns": 1_000_000_000}[unit]
    return datetime.fromtimestamp(float(raw / divisor), tz=UTC)


def parse_iso(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (with or without ``Z``) as UTC."""
    if not isinstance(value, str) or not value:
        return None
    text = value.strip().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug(f"Unparsable timestamp {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_number(value: Decimal | str | float) -> str:
    """Render an amount or price for a request without exponent notation."""
    if isinstance(value, str):
        return value
    number = Decimal(str(value)) if isinstance(value, float) else value
    text = format(number, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def format_iso(epoch_seconds: int) -> str:
    """Render epoch seconds as ISO-8601 UTC with milliseconds and ``Z``."""
    moment = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.000Z")
