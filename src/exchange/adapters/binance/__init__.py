"""Binance spot adapter."""

from src.exchange.adapters.binance.adapter import BinanceAdapter

__all__ = ["BinanceAdapter"]
