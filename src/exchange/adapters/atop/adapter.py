"""
Atop spot adapter.

Public data lives under ``/data/api/v1`` and needs no signature. Trading
calls under ``/trade/api/v1`` are POSTed as forms carrying ``accesskey``
and a millisecond ``nonce``; the sorted form is signed with HMAC-SHA256
and the hex digest appended as ``signature``.
"""

import logging
from typing import Any

from src.exchange.adapters.atop.data import (
    ERRORS,
    PERIODS,
    SYMBOL_FORMAT,
    VENUE,
    error_fields,
    normalize_account,
    normalize_depth,
    normalize_history,
    normalize_klines,
    normalize_order,
    normalize_ticker,
    normalize_trades,
    order_id_of,
    unwrap,
)
from src.exchange.adapters.session import VenueSession
from src.exchange.config import AdapterConfig, Credentials
from src.exchange.domain.numbers import format_number, to_decimal, to_int
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
    check_http_status,
    clamp_depth_size,
    decode_json,
    raise_venue_error,
)
from src.exchange.protocols.venue import ClockProtocol, HTTPClientProtocol, RawAmount
from src.exchange.registry import register
from src.exchange.signing import FormHmacSha256Signer, NonceGenerator, OffsetClock
from src.exchange.transport.response import HttpResponse

logger = logging.getLogger(__name__)

BASE_URL = "https://api.a.top"

OPEN_ORDERS_PAGE_SIZE = 100


@register(Venue.ATOP)
class AtopAdapter:
    """Atop spot trading and market data."""

    def __init__(
        self,
        credentials: Credentials,
        http: HTTPClientProtocol,
        clock: ClockProtocol,
        config: AdapterConfig | None = None,
        base_url: str = BASE_URL,
    ) -> None:
        self.config = config or AdapterConfig()
        self.session = VenueSession(Venue.ATOP, base_url, http, clock)
        if self.config.sync_clock:
            clock = OffsetClock.synchronized(clock, self._fetch_server_time, "atop")
            self.session.clock = clock
        self.nonces = NonceGenerator(clock, unit="ms")
        self.signer = FormHmacSha256Signer(
            credentials, nonce_field="nonce", key_field="accesskey"
        )

    @property
    def name(self) -> Venue:
        """Venue identifier."""
        return Venue.ATOP

    # =========================================================================
    # MARKET DATA
    # =========================================================================

    def get_ticker(self, pair: CurrencyPair) -> Ticker:
        """Get the ticker; stamped with the capture time."""
        query = {"market": self._symbol(pair)}
        payload = self._public("/data/api/v1/getTicker", query)
        return normalize_ticker(payload, self.session.context(pair))

    def get_depth(self, pair: CurrencyPair, size: int) -> Depth:
        """Get the full book and keep ``size`` levels per side."""
        clamp_depth_size(size, None)
        query = {"market": self._symbol(pair)}
        payload = self._public("/data/api/v1/getDepth", query)
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
            "market": self._symbol(pair),
            "type": PERIODS[period],
            "since": since,
        }
        payload = self._public("/data/api/v1/getKLine", query)
        klines = normalize_klines(payload, self.session.context(pair))
        return klines[-size:] if size > 0 else klines

    def get_trades(self, pair: CurrencyPair, since: int | None = None) -> list[Trade]:
        """Get recent public trades; ``since`` is not supported by the venue."""
        if since is not None:
            self.session.unsupported("get_trades", "atop returns recent trades only")
        query = {"market": self._symbol(pair)}
        payload = self._public("/data/api/v1/getTrades", query)
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
        """Place a market buy order."""
        return self._place(pair, TradeSide.BUY_MARKET, amount, price)

    def market_sell(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Place a market sell order."""
        return self._place(pair, TradeSide.SELL_MARKET, amount, price)

    def cancel_order(self, order_id: str, pair: CurrencyPair) -> bool:
        """Cancel an order; True once the venue answers code 200."""
        params = {"market": self._symbol(pair), "id": order_id}
        with self.session.order_mutation("cancel_order"):
            self._private("/trade/api/v1/cancel", params)
        return True

    def get_order(self, order_id: str, pair: CurrencyPair) -> Order:
        """Get one order."""
        params = {"market": self._symbol(pair), "id": order_id}
        data = self._private("/trade/api/v1/getOrder", params)
        return normalize_order(data, pair)

    def get_open_orders(self, pair: CurrencyPair) -> list[Order]:
        """Get working orders (first page of up to 100)."""
        params = {
            "market": self._symbol(pair),
            "page": 1,
            "pageSize": OPEN_ORDERS_PAGE_SIZE,
        }
        data = self._private("/trade/api/v1/getOpenOrders", params)
        return [normalize_order(row, pair) for row in data or []]

    def get_order_history(
        self,
        pair: CurrencyPair,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> Page[Order]:
        """
        Get finished orders.

        The cursor is the 1-based page number.
        """
        page = to_int(cursor, default=1) if cursor is not None else 1
        page_size = limit or self.config.default_history_limit
        params = {"market": self._symbol(pair), "page": page, "pageSize": page_size}
        data = self._private("/trade/api/v1/getHistorys", params)
        return normalize_history(data, pair, page, page_size)

    def get_account(self) -> Account:
        """Get balances."""
        return normalize_account(self._private("/trade/api/v1/getBalance", {}))

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
        price: RawAmount,
    ) -> Order:
        params = {
            "market": self._symbol(pair),
            "type": 1 if side.is_buy else 0,
            "entrustType": 1 if side.is_market else 0,
            "price": format_number(price),
            "number": format_number(amount),
        }
        with self.session.order_mutation("place_order"):
            data = self._private("/trade/api/v1/order", params)
        order_id = order_id_of(data)
        logger.info(f"atop placed {side.value} {params['number']} {pair}: {order_id}")
        return Order.accepted(
            order_id,
            pair,
            side,
            to_decimal(amount),
            to_decimal(price),
            created_at=self.session.received_at(),
        )

    def _public(self, path: str, query: dict[str, Any]) -> Any:
        return self._unwrap(self.session.get(path, query))

    def _private(self, path: str, params: dict[str, Any]) -> Any:
        fields = [(k, str(v)) for k, v in params.items() if v is not None]
        signature = self.signer.sign("POST", path, fields, nonce=self.nonces.next())
        response = self.session.post_form(
            path, signature.params, headers=signature.headers
        )
        return unwrap(self._unwrap(response))

    def _unwrap(self, response: HttpResponse) -> Any:
        payload = decode_json(response, VENUE)
        error = error_fields(payload)
        if error is not None:
            raise_venue_error(VENUE, ERRORS, error[1], error[0])
        check_http_status(response, VENUE)
        return payload

    def _fetch_server_time(self) -> int:
        payload = self._public("/trade/api/v1/getServerTime", {})
        return to_int(unwrap(payload).get("serverTime"))
