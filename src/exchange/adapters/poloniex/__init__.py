"""Poloniex spot adapter."""

from src.exchange.adapters.poloniex.adapter import PoloniexAdapter

__all__ = ["PoloniexAdapter"]
