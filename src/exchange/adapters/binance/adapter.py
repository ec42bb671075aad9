"""
Binance spot adapter.

Private calls are signed with HMAC-SHA256 over the sorted form, with a
millisecond ``timestamp`` and ``recvWindow``; the key travels in the
``X-MBX-APIKEY`` header. Server time is fetched once at construction
and exchange info (symbols and trading filters) is loaded once on
first use.
"""

import logging
from typing import Any

from src.exchange.adapters.binance.data import (
    DEPTH_TIERS,
    ERRORS,
    PERIODS,
    SYMBOL_FORMAT,
    VENUE,
    BinanceExchangeInfo,
    SymbolFilters,
    error_fields,
    normalize_account,
    normalize_depth,
    normalize_klines,
    normalize_order,
    normalize_ticker,
    normalize_trades,
    server_time_ms,
)
from src.exchange.adapters.session import VenueSession
from src.exchange.config import AdapterConfig, Credentials
from src.exchange.domain.numbers import format_number
from src.exchange.enums import KlinePeriod, TradeSide, Venue
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
    OnceCell,
    check_http_status,
    clamp_depth_size,
    decode_json,
    decode_model,
    raise_venue_error,
)
from src.exchange.protocols.venue import ClockProtocol, HTTPClientProtocol, RawAmount
from src.exchange.registry import register
from src.exchange.signing import FormHmacSha256Signer, NonceGenerator, OffsetClock
from src.exchange.transport.response import HttpResponse

logger = logging.getLogger(__name__)

BASE_URL = "https://api.binance.com"


@register(Venue.BINANCE)
class BinanceAdapter:
    """Binance spot trading and market data."""

    def __init__(
        self,
        credentials: Credentials,
        http: HTTPClientProtocol,
        clock: ClockProtocol,
        config: AdapterConfig | None = None,
        base_url: str = BASE_URL,
    ) -> None:
        """
        Initialize the adapter.

        Args:
            credentials: API key and secret
            http: Injected HTTP capability
            clock: Local clock; wrapped with the server offset when syncing
            config: Adapter settings (clock sync, receive window)
            base_url: REST endpoint root

        """
        self.config = config or AdapterConfig()
        self.session = VenueSession(Venue.BINANCE, base_url, http, clock)
        if self.config.sync_clock:
            clock = OffsetClock.synchronized(clock, self._fetch_server_time, "binance")
            self.session.clock = clock
        self.nonces = NonceGenerator(clock, unit="ms")
        self.signer = FormHmacSha256Signer(
            credentials, nonce_field="timestamp", key_header="X-MBX-APIKEY"
        )
        self._exchange_info = OnceCell(
            self._load_exchange_info, "binance exchange info"
        )

    @property
    def name(self) -> Venue:
        """Venue identifier."""
        return Venue.BINANCE

    # =========================================================================
    # MARKET DATA
    # =========================================================================

    def get_ticker(self, pair: CurrencyPair) -> Ticker:
        """Get the 24h ticker."""
        payload = self._public("/api/v3/ticker/24hr", {"symbol": self._symbol(pair)})
        return normalize_ticker(payload, self.session.context(pair))

    def get_depth(self, pair: CurrencyPair, size: int) -> Depth:
        """Get the book, requesting the smallest tier covering ``size``."""
        limit = clamp_depth_size(size, DEPTH_TIERS)
        payload = self._public(
            "/api/v3/depth", {"symbol": self._symbol(pair), "limit": limit}
        )
        return normalize_depth(payload, self.session.context(pair), size)

    def get_klines(
        self,
        pair: CurrencyPair,
        period: KlinePeriod,
        size: int,
        since: int | None = None,
    ) -> list[Kline]:
        """Get candles; ``since`` is epoch seconds."""
        query = {
            "symbol": self._symbol(pair),
            "interval": PERIODS[period],
            "limit": size,
            "startTime": since * 1000 if since is not None else None,
        }
        payload = self._public("/api/v3/klines", query)
        return normalize_klines(payload, self.session.context(pair))

    def get_trades(self, pair: CurrencyPair, since: int | None = None) -> list[Trade]:
        """
        Get public trades.

        Without ``since`` the most recent trades are returned. With it,
        ``since`` is a trade id and older trades are paged from there
        through ``historicalTrades``, which needs the API key header.
        """
        symbol = self._symbol(pair)
        if since is None:
            payload = self._public("/api/v3/trades", {"symbol": symbol, "limit": 500})
        else:
            query = {"symbol": symbol, "limit": 500, "fromId": since}
            response = self.session.get(
                "/api/v3/historicalTrades",
                query,
                headers={"X-MBX-APIKEY": self.signer.api_key},
            )
            payload = self._unwrap(response)
        return normalize_trades(payload, self.session.context(pair))

    # =========================================================================
    # TRADING
    # =========================================================================

    def limit_buy(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Place a limit buy order."""
        return self._place(pair, TradeSide.BUY, amount, price)

    def limit_sell(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Place a limit sell order."""
        return self._place(pair, TradeSide.SELL, amount, price)

    def market_buy(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Place a market buy for ``amount`` base currency; ``price`` is ignored."""
        return self._place(pair, TradeSide.BUY_MARKET, amount, None)

    def market_sell(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Place a market sell; ``price`` is ignored."""
        return self._place(pair, TradeSide.SELL_MARKET, amount, None)

    def cancel_order(self, order_id: str, pair: CurrencyPair) -> bool:
        """Cancel an order; True once Binance acknowledges it."""
        params = {"symbol": self._symbol(pair), "orderId": order_id}
        with self.session.order_mutation("cancel_order"):
            payload = self._private("DELETE", "/api/v3/order", params)
        return str(payload.get("orderId")) == str(order_id)

    def get_order(self, order_id: str, pair: CurrencyPair) -> Order:
        """Get one order."""
        params = {"symbol": self._symbol(pair), "orderId": order_id}
        payload = self._private("GET", "/api/v3/order", params)
        return normalize_order(payload, pair)

    def get_open_orders(self, pair: CurrencyPair) -> list[Order]:
        """Get working orders."""
        payload = self._private(
            "GET", "/api/v3/openOrders", {"symbol": self._symbol(pair)}
        )
        return [normalize_order(row, pair) for row in payload]

    def get_order_history(
        self,
        pair: CurrencyPair,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> Page[Order]:
        """
        Get orders of every status, oldest first.

        The cursor is the order id to start from; the next cursor is one
        past the last id returned.
        """
        limit = limit or self.config.default_history_limit
        params: dict[str, Any] = {"symbol": self._symbol(pair), "limit": limit}
        if cursor is not None:
            params["orderId"] = cursor
        payload = self._private("GET", "/api/v3/allOrders", params)
        orders = [normalize_order(row, pair) for row in payload]
        has_more = len(orders) >= limit
        next_cursor = (
            str(max(int(o.order_id) for o in orders) + 1) if has_more else None
        )
        return Page[Order](
            items=tuple(orders), has_more=has_more, next_cursor=next_cursor
        )

    def get_account(self) -> Account:
        """Get balances."""
        return normalize_account(self._private("GET", "/api/v3/account", {}))

    # =========================================================================
    # EXCHANGE INFO
    # =========================================================================

    def get_symbol_filters(self, pair: CurrencyPair) -> SymbolFilters:
        """
        Get the lot size and precision rules of a pair.

        Raises:
            KeyError: If Binance does not list the pair

        """
        symbol = self._symbol(pair)
        filters = self._exchange_info.get().get(symbol)
        if filters is None:
            raise KeyError(f"Symbol '{symbol}' not listed on binance")
        return filters

    def pair_from_symbol(self, symbol: str) -> CurrencyPair:
        """Resolve a separator-less Binance symbol through exchange info."""
        filters = self._exchange_info.get().get(symbol.upper())
        if filters is None:
            raise KeyError(f"Symbol '{symbol}' not listed on binance")
        return filters.pair

    # =========================================================================
    # PLUMBING
    # =========================================================================

    def _symbol(self, pair: CurrencyPair) -> str:
        return pair.to_symbol(SYMBOL_FORMAT)

    def _place(
        self,
        pair: CurrencyPair,
        side: TradeSide,
        amount: RawAmount,
        price: RawAmount | None,
    ) -> Order:
        params: dict[str, Any] = {
            "symbol": self._symbol(pair),
            "side": "BUY" if side.is_buy else "SELL",
            "type": "MARKET" if side.is_market else "LIMIT",
            "quantity": format_number(amount),
            "newOrderRespType": "RESULT",
        }
        if price is not None:
            params["price"] = format_number(price)
            params["timeInForce"] = "GTC"
        with self.session.order_mutation("place_order"):
            payload = self._private("POST", "/api/v3/order", params)
        return normalize_order(payload, pair)

    def _public(self, path: str, query: dict[str, Any]) -> Any:
        return self._unwrap(self.session.get(path, query))

    def _private(self, method: str, path: str, params: dict[str, Any]) -> Any:
        fields = [(k, str(v)) for k, v in params.items() if v is not None]
        fields.append(("recvWindow", str(self.config.recv_window)))
        signature = self.signer.sign(
            method, path, fields, nonce=self.nonces.next()
        )
        match method:
            case "POST":
                response = self.session.post_form(
                    path, signature.params, headers=signature.headers
                )
            case "DELETE":
                response = self.session.delete(
                    path, signature.params, headers=signature.headers
                )
            case _:
                response = self.session.get(
                    path, signature.params, headers=signature.headers
                )
        return self._unwrap(response)

    def _unwrap(self, response: HttpResponse) -> Any:
        payload = decode_json(response, VENUE)
        error = error_fields(payload)
        if error is not None:
            raise_venue_error(VENUE, ERRORS, error[1], error[0])
        check_http_status(response, VENUE)
        return payload

    def _fetch_server_time(self) -> int:
        return server_time_ms(self._public("/api/v3/time", {}))

    def _load_exchange_info(self) -> dict[str, SymbolFilters]:
        payload = self._public("/api/v3/exchangeInfo", {})
        info = decode_model(BinanceExchangeInfo, payload)
        return {entry.symbol: entry.to_filters() for entry in info.symbols}
