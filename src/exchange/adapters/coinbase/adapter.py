"""
Coinbase Exchange market data adapter.

Only the public product endpoints are wired; every trading and account
operation raises NotSupportedError.
"""

import logging
from typing import Any, NoReturn

from src.exchange.adapters.coinbase.data import (
    DEPTH_LEVELS,
    ERRORS,
    GRANULARITIES,
    MAX_CANDLES,
    SYMBOL_FORMAT,
    VENUE,
    error_fields,
    normalize_depth,
    normalize_klines,
    normalize_ticker,
    normalize_trades,
)
from src.exchange.adapters.session import VenueSession
from src.exchange.config import AdapterConfig, Credentials
from src.exchange.domain.numbers import format_iso
from src.exchange.enums import KlinePeriod, Venue
from src.exchange.model import (
    Account,
    CurrencyPair,
    Depth,
    Kline,
    Order,
    Page,
    Ticker,
    Trade,
)
from src.exchange.normalize import (
    check_http_status,
    clamp_depth_size,
    decode_json,
    raise_venue_error,
)
from src.exchange.protocols.venue import ClockProtocol, HTTPClientProtocol, RawAmount
from src.exchange.registry import register
from src.exchange.transport.response import HttpResponse

logger = logging.getLogger(__name__)

BASE_URL = "https://api.exchange.coinbase.com"


@register(Venue.COINBASE)
class CoinbaseAdapter:
    """Coinbase public market data."""

    def __init__(
        self,
        credentials: Credentials,
        http: HTTPClientProtocol,
        clock: ClockProtocol,
        config: AdapterConfig | None = None,
        base_url: str = BASE_URL,
    ) -> None:
        self.config = config or AdapterConfig()
        self.session = VenueSession(Venue.COINBASE, base_url, http, clock)

    @property
    def name(self) -> Venue:
        """Venue identifier."""
        return Venue.COINBASE

    # =========================================================================
    # MARKET DATA
    # =========================================================================

    def get_ticker(self, pair: CurrencyPair) -> Ticker:
        """Get the last trade and top of book with the 24h high and low."""
        product = self._symbol(pair)
        ticker = self._public(f"/products/{product}/ticker")
        stats = self._public(f"/products/{product}/stats")
        return normalize_ticker(ticker, stats, self.session.context(pair))

    def get_depth(self, pair: CurrencyPair, size: int) -> Depth:
        """Get the best level (``size`` 1) or the aggregated book."""
        level = clamp_depth_size(size, DEPTH_LEVELS)
        payload = self._public(f"/products/{self._symbol(pair)}/book", {"level": level})
        return normalize_depth(payload, self.session.context(pair), size)

    def get_klines(
        self,
        pair: CurrencyPair,
        period: KlinePeriod,
        size: int,
        since: int | None = None,
    ) -> list[Kline]:
        """Get candles, oldest first; ``since`` is epoch seconds."""
        granularity = GRANULARITIES.get(period)
        if granularity is None:
            self.session.unsupported("get_klines", f"no {period.value} candles")
        query: dict[str, Any] = {"granularity": granularity}
        if since is not None:
            count = min(size, MAX_CANDLES)
            query["start"] = format_iso(since)
            query["end"] = format_iso(since + granularity * count)
        payload = self._public(f"/products/{self._symbol(pair)}/candles", query)
        klines = normalize_klines(payload, self.session.context(pair))
        if since is not None:
            return klines[:size]
        return klines[-size:] if size > 0 else klines

    def get_trades(self, pair: CurrencyPair, since: int | None = None) -> list[Trade]:
        """Get the latest public trades with the taker's side."""
        if since is not None:
            self.session.unsupported("get_trades", "recent trades only")
        payload = self._public(f"/products/{self._symbol(pair)}/trades")
        return normalize_trades(payload, self.session.context(pair))

    # =========================================================================
    # TRADING
    # =========================================================================

    def limit_buy(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Not supported."""
        self._private_only("limit_buy")

    def limit_sell(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Not supported."""
        self._private_only("limit_sell")

    def market_buy(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Not supported."""
        self._private_only("market_buy")

    def market_sell(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Not supported."""
        self._private_only("market_sell")

    def cancel_order(self, order_id: str, pair: CurrencyPair) -> bool:
        """Not supported."""
        self._private_only("cancel_order")

    def get_order(self, order_id: str, pair: CurrencyPair) -> Order:
        """Not supported."""
        self._private_only("get_order")

    def get_open_orders(self, pair: CurrencyPair) -> list[Order]:
        """Not supported."""
        self._private_only("get_open_orders")

    def get_order_history(
        self,
        pair: CurrencyPair,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> Page[Order]:
        """Not supported."""
        self._private_only("get_order_history")

    def get_account(self) -> Account:
        """Not supported."""
        self._private_only("get_account")

    # =========================================================================
    # PLUMBING
    # =========================================================================

    def _symbol(self, pair: CurrencyPair) -> str:
        return pair.to_symbol(SYMBOL_FORMAT)

    def _private_only(self, operation: str) -> NoReturn:
        self.session.unsupported(operation, "public market data only")

    def _public(self, path: str, query: dict[str, Any] | None = None) -> Any:
        return self._unwrap(self.session.get(path, query))

    def _unwrap(self, response: HttpResponse) -> Any:
        payload = decode_json(response, VENUE)
        error = error_fields(payload)
        if error is not None:
            raise_venue_error(VENUE, ERRORS, error[1], error[0])
        check_http_status(response, VENUE)
        return payload
