"""
============================

Exchange Venue Adapters.

============================

One sub-package per venue. Each holds a ``data`` module (venue tables, raw
pydantic models and normalizers) and an adapter that implements
ExchangeAdapterProtocol. Importing this package registers every adapter
with the default registry.
"""

# Force registration of all adapters
from . import (  # noqa: F401
    atop,
    binance,
    bitfinex,
    bitstamp,
    bittrex,
    coinbase,
    kraken,
    kucoin,
    okex,
    poloniex,
)
