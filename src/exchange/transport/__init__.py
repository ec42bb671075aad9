"""HTTP transport for venue adapters."""

from src.exchange.transport.http import HttpxClient
from src.exchange.transport.response import HttpResponse

__all__ = ["HttpResponse", "HttpxClient"]
