"""Coinbase Exchange market data adapter."""

from src.exchange.adapters.coinbase.adapter import CoinbaseAdapter

__all__ = ["CoinbaseAdapter"]
