"""
Poloniex spot adapter.

Public data comes from ``/public?command=...``. Trading calls are form
POSTs to ``/tradingApi`` carrying ``command`` and a millisecond ``nonce``;
the form is signed with HMAC-SHA512 and sent in the ``Key`` and ``Sign``
headers. Poloniex takes limit orders only and keeps no order history
endpoint, so market orders and ``get_order_history`` are not supported.
"""

import logging
from typing import Any

from src.exchange.adapters.poloniex.data import (
    ERRORS,
    PERIODS,
    SYMBOL_FORMAT,
    VENUE,
    error_fields,
    normalize_account,
    normalize_depth,
    normalize_klines,
    normalize_open_orders,
    normalize_order_status,
    normalize_order_trades,
    normalize_ticker,
    normalize_trades,
)
from src.exchange.adapters.session import VenueSession
from src.exchange.config import AdapterConfig, Credentials
from src.exchange.domain.numbers import format_number, to_decimal, to_int
from src.exchange.enums import KlinePeriod, TradeSide, Venue
from src.exchange.errors import OrderNotFoundError
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
from src.exchange.signing import FormHmacSha512Signer, NonceGenerator
from src.exchange.transport.response import HttpResponse

logger = logging.getLogger(__name__)

BASE_URL = "https://poloniex.com"


@register(Venue.POLONIEX)
class PoloniexAdapter:
    """Poloniex spot limit trading and market data."""

    def __init__(
        self,
        credentials: Credentials,
        http: HTTPClientProtocol,
        clock: ClockProtocol,
        config: AdapterConfig | None = None,
        base_url: str = BASE_URL,
    ) -> None:
        self.config = config or AdapterConfig()
        self.session = VenueSession(Venue.POLONIEX, base_url, http, clock)
        self.nonces = NonceGenerator(clock, unit="ms")
        self.signer = FormHmacSha512Signer(credentials)

    @property
    def name(self) -> Venue:
        """Venue identifier."""
        return Venue.POLONIEX

    # =========================================================================
    # MARKET DATA
    # =========================================================================

    def get_ticker(self, pair: CurrencyPair) -> Ticker:
        """
        Get the 24h ticker.

        Raises:
            VenueError: If Poloniex does not list the pair

        """
        payload = self._public("returnTicker")
        symbol = self._symbol(pair)
        if symbol not in payload:
            raise_venue_error(VENUE, ERRORS, f"Invalid currency pair {symbol}")
        return normalize_ticker(payload, self.session.context(pair))

    def get_depth(self, pair: CurrencyPair, size: int) -> Depth:
        """Get up to ``size`` levels per side."""
        depth = clamp_depth_size(size, None)
        payload = self._public(
            "returnOrderBook", currencyPair=self._symbol(pair), depth=depth
        )
        return normalize_depth(payload, self.session.context(pair), size)

    def get_klines(
        self,
        pair: CurrencyPair,
        period: KlinePeriod,
        size: int,
        since: int | None = None,
    ) -> list[Kline]:
        """
        Get chart candles, oldest first.

        ``returnChartData`` needs a time window: it starts at ``since``
        (epoch seconds) or, without one, ``size`` periods before now.
        """
        seconds = PERIODS.get(period)
        if seconds is None:
            self.session.unsupported("get_klines", f"no {period.value} candles")
        start = since
        if start is None:
            start = self.session.clock.now_ms() // 1000 - seconds * size
        payload = self._public(
            "returnChartData",
            currencyPair=self._symbol(pair),
            period=seconds,
            start=start,
            end=start + seconds * size,
        )
        klines = normalize_klines(payload, self.session.context(pair))
        return klines[:size] if since is not None else klines[-size:]

    def get_trades(self, pair: CurrencyPair, since: int | None = None) -> list[Trade]:
        """Get public trades; with ``since`` (epoch seconds) up to now."""
        window = {}
        if since is not None:
            window = {"start": since, "end": self.session.clock.now_ms() // 1000}
        payload = self._public(
            "returnTradeHistory", currencyPair=self._symbol(pair), **window
        )
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
        """Not offered by Poloniex."""
        self.session.unsupported("market_buy", "limit orders only")

    def market_sell(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Not offered by Poloniex."""
        self.session.unsupported("market_sell", "limit orders only")

    def cancel_order(self, order_id: str, pair: CurrencyPair) -> bool:
        """Cancel an order; True when Poloniex reports success."""
        with self.session.order_mutation("cancel_order"):
            payload = self._private("cancelOrder", orderNumber=order_id)
        return to_int(payload.get("success")) == 1

    def get_order(self, order_id: str, pair: CurrencyPair) -> Order:
        """
        Get one order.

        Working orders come from ``returnOrderStatus``. Once an order has
        left the book only its trades remain, so it is rebuilt from
        ``returnOrderTrades``.

        Raises:
            OrderNotFoundError: When neither source knows the order

        """
        try:
            payload = self._private("returnOrderStatus", orderNumber=order_id)
        except OrderNotFoundError:
            logger.debug(f"poloniex order {order_id} not on book, reading trades")
        else:
            return normalize_order_status(payload, order_id, pair)
        rows = self._private("returnOrderTrades", orderNumber=order_id)
        if not rows:
            raise OrderNotFoundError(VENUE, f"order {order_id} has no trades")
        return normalize_order_trades(rows, order_id, pair)

    def get_open_orders(self, pair: CurrencyPair) -> list[Order]:
        """Get working orders."""
        payload = self._private("returnOpenOrders", currencyPair=self._symbol(pair))
        return normalize_open_orders(payload, pair)

    def get_order_history(
        self,
        pair: CurrencyPair,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> Page[Order]:
        """Not offered by Poloniex."""
        self.session.unsupported("get_order_history", "no order history endpoint")

    def get_account(self) -> Account:
        """Get available and on-order balances."""
        return normalize_account(self._private("returnCompleteBalances"))

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
        command = "buy" if side.is_buy else "sell"
        with self.session.order_mutation("place_order"):
            payload = self._private(
                command,
                currencyPair=self._symbol(pair),
                rate=format_number(price),
                amount=format_number(amount),
            )
        order_id = str(payload["orderNumber"])
        logger.info(f"poloniex placed {side.value} {pair}: {order_id}")
        return Order.accepted(
            order_id,
            pair,
            side,
            to_decimal(amount),
            to_decimal(price),
            created_at=self.session.received_at(),
        )

    def _public(self, command: str, **params: Any) -> Any:
        query = {"command": command, **params}
        return self._unwrap(self.session.get("/public", query))

    def _private(self, command: str, **params: Any) -> Any:
        fields = {"command": command, **{k: str(v) for k, v in params.items()}}
        signature = self.signer.sign(
            "POST", "/tradingApi", params=fields, nonce=self.nonces.next()
        )
        response = self.session.post_form(
            "/tradingApi", signature.params, headers=signature.headers
        )
        return self._unwrap(response)

    def _unwrap(self, response: HttpResponse) -> Any:
        payload = decode_json(response, VENUE)
        error = error_fields(payload)
        if error is not None:
            raise_venue_error(VENUE, ERRORS, error[1], error[0])
        check_http_status(response, VENUE)
        return payload
