"""
Bittrex v1.1 market data adapter.

Ticker, depth and the public trade tape only. Bittrex v1.1 serves no
candles through this API, and trading is not wired.
"""

import logging
from typing import Any, NoReturn

from src.exchange.adapters.bittrex.data import (
    ERRORS,
    SYMBOL_FORMAT,
    VENUE,
    error_fields,
    normalize_depth,
    normalize_ticker,
    normalize_trades,
)
from src.exchange.adapters.session import VenueSession
from src.exchange.config import AdapterConfig, Credentials
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

BASE_URL = "https://bittrex.com/api/v1.1"


@register(Venue.BITTREX)
class BittrexAdapter:
    """Bittrex public ticker, book and trades."""

    def __init__(
        self,
        credentials: Credentials,
        http: HTTPClientProtocol,
        clock: ClockProtocol,
        config: AdapterConfig | None = None,
        base_url: str = BASE_URL,
    ) -> None:
        self.config = config or AdapterConfig()
        self.session = VenueSession(Venue.BITTREX, base_url, http, clock)

    @property
    def name(self) -> Venue:
        """Venue identifier."""
        return Venue.BITTREX

    # =========================================================================
    # MARKET DATA
    # =========================================================================

    def get_ticker(self, pair: CurrencyPair) -> Ticker:
        """
        Get the 24h market summary.

        Raises:
            VenueError: If Bittrex returns no summary for the market

        """
        result = self._public("/public/getmarketsummary", market=self._symbol(pair))
        if not result:
            raise_venue_error(VENUE, ERRORS, f"no summary for {self._symbol(pair)}")
        return normalize_ticker(result, self.session.context(pair))

    def get_depth(self, pair: CurrencyPair, size: int) -> Depth:
        """Get both sides of the book, truncated to ``size``."""
        clamp_depth_size(size, None)
        result = self._public(
            "/public/getorderbook", market=self._symbol(pair), type="both"
        )
        return normalize_depth(result, self.session.context(pair), size)

    def get_klines(
        self,
        pair: CurrencyPair,
        period: KlinePeriod,
        size: int,
        since: int | None = None,
    ) -> list[Kline]:
        """Not offered by the v1.1 API."""
        self.session.unsupported("get_klines", "no candles on v1.1")

    def get_trades(self, pair: CurrencyPair, since: int | None = None) -> list[Trade]:
        """Get the latest public trades."""
        if since is not None:
            self.session.unsupported("get_trades", "recent trades only")
        result = self._public("/public/getmarkethistory", market=self._symbol(pair))
        return normalize_trades(result or [], self.session.context(pair))

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

    def _public(self, path: str, **query: Any) -> Any:
        return self._unwrap(self.session.get(path, query))

    def _unwrap(self, response: HttpResponse) -> Any:
        """Check the ``success`` envelope and return ``result``."""
        payload = decode_json(response, VENUE)
        error = error_fields(payload)
        if error is not None:
            raise_venue_error(VENUE, ERRORS, error[1], error[0])
        check_http_status(response, VENUE)
        return payload.get("result")
