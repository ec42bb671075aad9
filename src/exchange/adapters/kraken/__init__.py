"""Kraken spot adapter."""

from src.exchange.adapters.kraken.adapter import KrakenAdapter

__all__ = ["KrakenAdapter"]
