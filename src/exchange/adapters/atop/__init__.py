"""Atop spot adapter."""

from src.exchange.adapters.atop.adapter import AtopAdapter

__all__ = ["AtopAdapter"]
