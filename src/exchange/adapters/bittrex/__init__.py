"""Bittrex market data adapter."""

from src.exchange.adapters.bittrex.adapter import BittrexAdapter

__all__ = ["BittrexAdapter"]
