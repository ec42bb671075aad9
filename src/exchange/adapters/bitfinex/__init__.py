"""Bitfinex spot adapter."""

from src.exchange.adapters.bitfinex.adapter import BitfinexAdapter

__all__ = ["BitfinexAdapter"]
