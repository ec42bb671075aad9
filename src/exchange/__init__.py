"""
Cross-venue crypto exchange gateway.

Venue adapters translate each exchange's REST dialect into one canonical
vocabulary: currency pairs, tickers, depth, klines, trades, orders and
accounts. ``create_adapter`` is the entry point.
"""

from src.exchange.config import AdapterConfig, Credentials
from src.exchange.enums import KlinePeriod, TradeSide, TradeStatus, Venue
from src.exchange.errors import (
    ExchangeError,
    InsufficientBalanceError,
    NormalizationError,
    NotSupportedError,
    OrderNotFoundError,
    RateLimitedError,
    TransportError,
    VenueError,
)
from src.exchange.model import (
    Account,
    Currency,
    CurrencyPair,
    Depth,
    Kline,
    Order,
    Page,
    Ticker,
    Trade,
)
from src.exchange.protocols import (
    ClockProtocol,
    ExchangeAdapterProtocol,
    HTTPClientProtocol,
)
from src.exchange.registry import AdapterRegistry, get_default_registry


def create_adapter(
    venue: Venue | str,
    credentials: Credentials | None = None,
    http: HTTPClientProtocol | None = None,
    **kwargs: object,
) -> ExchangeAdapterProtocol:
    """
    Build a registered venue adapter.

    Args:
        venue: Venue or its name (e.g. ``"binance"``)
        credentials: API credentials, read from ``EXCHANGE_<VENUE>_*`` if None
        http: HTTP capability, a new HttpxClient if None
        **kwargs: Passed to the registry (``clock``, ``config``, ``base_url``)

    Returns:
        Adapter instance

    Raises:
        KeyError: If the venue is unknown or has no adapter

    """
    import src.exchange.adapters  # noqa: F401

    return get_default_registry().create(
        venue, credentials=credentials, http=http, **kwargs
    )


__all__ = [
    "Account",
    "AdapterConfig",
    "AdapterRegistry",
    "ClockProtocol",
    "Credentials",
    "Currency",
    "CurrencyPair",
    "Depth",
    "ExchangeAdapterProtocol",
    "ExchangeError",
    "HTTPClientProtocol",
    "InsufficientBalanceError",
    "Kline",
    "KlinePeriod",
    "NormalizationError",
    "NotSupportedError",
    "Order",
    "OrderNotFoundError",
    "Page",
    "RateLimitedError",
    "Ticker",
    "Trade",
    "TradeSide",
    "TradeStatus",
    "TransportError",
    "Venue",
    "VenueError",
    "create_adapter",
]
