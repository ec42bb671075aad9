"""
Error taxonomy for the exchange gateway.

Every failure an adapter surfaces is one of four kinds:

- TransportError: the network exchange itself failed (never retried here)
- VenueError: the venue answered with a business error envelope
- NotSupportedError: the venue does not offer the operation
- NormalizationError: a financial field did not match the expected schema

VenueError carries a cross-venue ErrorKind and has one subclass per kind so
callers can catch e.g. ``OrderNotFoundError`` directly.
"""

from __future__ import annotations

from src.exchange.enums import ErrorKind


class ExchangeError(Exception):
    """Base class for every gateway error."""


class TransportError(ExchangeError):
    """
    Network or HTTP failure.

    When raised from order placement or cancellation the request may already
    have executed venue-side; ``order_state_unknown`` is set and the caller
    must reconcile with ``get_order`` or ``get_open_orders``.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        order_state_unknown: bool = False,
    ) -> None:
        if order_state_unknown:
            message = (
                f"{message} (order state unknown, reconcile via "
                "get_order/get_open_orders)"
            )
        super().__init__(message)
        self.status_code = status_code
        self.order_state_unknown = order_state_unknown


class VenueError(ExchangeError):
    """Business error reported by a venue, with its raw code and message."""

    kind: ErrorKind = ErrorKind.OTHER

    def __init__(
        self,
        venue: str,
        message: str,
        code: str | None = None,
        kind: ErrorKind | None = None,
    ) -> None:
        super().__init__(f"[{venue}] {code + ': ' if code else ''}{message}")
        self.venue = venue
        self.message = message
        self.code = code
        if kind is not None:
            self.kind = kind

    @classmethod
    def create(
        cls,
        venue: str,
        kind: ErrorKind,
        message: str,
        code: str | None = None,
    ) -> VenueError:
        """
        Build the VenueError subclass matching ``kind``.

        Args:
            venue: Venue name
            kind: Classified error kind
            message: Raw venue message, preserved for diagnostics
            code: Raw venue error code, if any

        Returns:
            Error instance ready to raise

        """
        match kind:
            case ErrorKind.ORDER_NOT_FOUND:
                return OrderNotFoundError(venue, message, code)
            case ErrorKind.RATE_LIMITED:
                return RateLimitedError(venue, message, code)
            case ErrorKind.INSUFFICIENT_BALANCE:
                return InsufficientBalanceError(venue, message, code)
            case _:
                return VenueError(venue, message, code, ErrorKind.OTHER)


class OrderNotFoundError(VenueError):
    """The venue does not know the referenced order."""

    kind = ErrorKind.ORDER_NOT_FOUND


class RateLimitedError(VenueError):
    """The venue throttled the request."""

    kind = ErrorKind.RATE_LIMITED


class InsufficientBalanceError(VenueError):
    """The account cannot cover the requested order."""

    kind = ErrorKind.INSUFFICIENT_BALANCE


class NotSupportedError(ExchangeError):
    """The venue does not offer this operation."""

    def __init__(self, venue: str, operation: str, detail: str = "") -> None:
        message = f"{operation} is not supported by {venue}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.venue = venue
        self.operation = operation


class NormalizationError(ExchangeError):
    """A payload did not match the schema expected for a financial field."""
