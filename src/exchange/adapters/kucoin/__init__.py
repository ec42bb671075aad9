"""KuCoin spot adapter."""

from src.exchange.adapters.kucoin.adapter import KuCoinAdapter

__all__ = ["KuCoinAdapter"]
