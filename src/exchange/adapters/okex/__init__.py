"""OKEx v3 adapters: spot, margin and perpetual swap behind one facade."""

from src.exchange.adapters.okex.facade import OKExFacade
from src.exchange.adapters.okex.rest import OKExRest
from src.exchange.adapters.okex.spot import OKExMarginAdapter, OKExSpotAdapter
from src.exchange.adapters.okex.swap import OKExSwapAdapter

__all__ = [
    "OKExFacade",
    "OKExMarginAdapter",
    "OKExRest",
    "OKExSpotAdapter",
    "OKExSwapAdapter",
]
