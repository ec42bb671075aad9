"""Bitstamp spot adapter."""

from src.exchange.adapters.bitstamp.adapter import BitstampAdapter

__all__ = ["BitstampAdapter"]
