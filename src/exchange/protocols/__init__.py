"""Exchange gateway protocols."""

from src.exchange.protocols.venue import (
    ClockProtocol,
    ExchangeAdapterProtocol,
    HTTPClientProtocol,
    RawAmount,
    SignerProtocol,
)

__all__ = [
    "ClockProtocol",
    "ExchangeAdapterProtocol",
    "HTTPClientProtocol",
    "RawAmount",
    "SignerProtocol",
]
