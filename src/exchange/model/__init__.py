"""Canonical exchange models."""

from src.exchange.model.account import Account, SubAccount
from src.exchange.model.currency import Currency, CurrencyPair
from src.exchange.model.depth import Depth, DepthRecord
from src.exchange.model.kline import Kline
from src.exchange.model.order import Order
from src.exchange.model.page import Page
from src.exchange.model.ticker import Ticker
from src.exchange.model.trade import Trade

__all__ = [
    "Account",
    "Currency",
    "CurrencyPair",
    "Depth",
    "DepthRecord",
    "Kline",
    "Order",
    "Page",
    "SubAccount",
    "Ticker",
    "Trade",
]
