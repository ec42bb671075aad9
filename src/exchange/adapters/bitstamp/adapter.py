"""
Bitstamp spot adapter.

Every private call is a form POST carrying ``key``, ``nonce`` and an
upper-case HMAC-SHA256 of ``nonce + client_id + api_key``; the request
parameters themselves are not signed. Bitstamp offers no per-pair order
history, so ``get_order_history`` is not supported.
"""

import logging
from typing import Any

from src.exchange.adapters.bitstamp.data import (
    ERRORS,
    MAX_CANDLES,
    STEPS,
    SYMBOL_FORMAT,
    VENUE,
    error_fields,
    normalize_account,
    normalize_depth,
    normalize_klines,
    normalize_open_orders,
    normalize_order_status,
    normalize_placed,
    normalize_ticker,
    normalize_trades,
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
    check_http_status,
    clamp_depth_size,
    decode_json,
    raise_venue_error,
)
from src.exchange.protocols.venue import ClockProtocol, HTTPClientProtocol, RawAmount
from src.exchange.registry import register
from src.exchange.signing import ClientIdHmacSha256Signer, NonceGenerator
from src.exchange.transport.response import HttpResponse

logger = logging.getLogger(__name__)

BASE_URL = "https://www.bitstamp.net"


@register(Venue.BITSTAMP)
class BitstampAdapter:
    """Bitstamp spot trading and market data."""

    def __init__(
        self,
        credentials: Credentials,
        http: HTTPClientProtocol,
        clock: ClockProtocol,
        config: AdapterConfig | None = None,
        base_url: str = BASE_URL,
    ) -> None:
        self.config = config or AdapterConfig()
        self.session = VenueSession(Venue.BITSTAMP, base_url, http, clock)
        self.nonces = NonceGenerator(clock, unit="ms")
        self.signer = ClientIdHmacSha256Signer(credentials)

    @property
    def name(self) -> Venue:
        """Venue identifier."""
        return Venue.BITSTAMP

    # =========================================================================
    # MARKET DATA
    # =========================================================================

    def get_ticker(self, pair: CurrencyPair) -> Ticker:
        """Get the 24h ticker."""
        payload = self._public(f"/api/v2/ticker/{self._symbol(pair)}/")
        return normalize_ticker(payload, self.session.context(pair))

    def get_depth(self, pair: CurrencyPair, size: int) -> Depth:
        """Get the full book, truncated to ``size``."""
        clamp_depth_size(size, None)
        payload = self._public(f"/api/v2/order_book/{self._symbol(pair)}/")
        return normalize_depth(payload, self.session.context(pair), size)

    def get_klines(
        self,
        pair: CurrencyPair,
        period: KlinePeriod,
        size: int,
        since: int | None = None,
    ) -> list[Kline]:
        """Get candles, oldest first; ``since`` is epoch seconds."""
        step = STEPS.get(period)
        if step is None:
            self.session.unsupported("get_klines", f"no {period.value} candles")
        query = {"step": step, "limit": min(size, MAX_CANDLES), "start": since}
        payload = self._public(f"/api/v2/ohlc/{self._symbol(pair)}/", query)
        klines = normalize_klines(payload, self.session.context(pair))
        if since is not None:
            return klines[:size]
        return klines[-size:] if size > 0 else klines

    def get_trades(self, pair: CurrencyPair, since: int | None = None) -> list[Trade]:
        """Get trades of the last hour."""
        if since is not None:
            self.session.unsupported("get_trades", "recent trades only")
        payload = self._public(
            f"/api/v2/transactions/{self._symbol(pair)}/", {"time": "hour"}
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
        """Place a market buy for ``amount`` base currency; ``price`` is ignored."""
        return self._place(pair, TradeSide.BUY_MARKET, amount, None)

    def market_sell(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Place a market sell; ``price`` is ignored."""
        return self._place(pair, TradeSide.SELL_MARKET, amount, None)

    def cancel_order(self, order_id: str, pair: CurrencyPair) -> bool:
        """Cancel an order; True when Bitstamp echoes it back."""
        with self.session.order_mutation("cancel_order"):
            payload = self._private("/api/v2/cancel_order/", {"id": order_id})
        return str(payload.get("id")) == str(order_id)

    def get_order(self, order_id: str, pair: CurrencyPair) -> Order:
        """Get one order with its fills."""
        payload = self._private("/api/v2/order_status/", {"id": order_id})
        return normalize_order_status(payload, pair)

    def get_open_orders(self, pair: CurrencyPair) -> list[Order]:
        """Get working orders."""
        payload = self._private(f"/api/v2/open_orders/{self._symbol(pair)}/")
        return normalize_open_orders(payload, pair)

    def get_order_history(
        self,
        pair: CurrencyPair,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> Page[Order]:
        """Not offered by Bitstamp."""
        self.session.unsupported("get_order_history", "no per-pair order history")

    def get_account(self) -> Account:
        """Get available and reserved balances."""
        return normalize_account(self._private("/api/v2/balance/"))

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
        direction = "buy" if side.is_buy else "sell"
        kind = "market/" if side.is_market else ""
        params = {"amount": format_number(amount)}
        if price is not None:
            params["price"] = format_number(price)
        path = f"/api/v2/{direction}/{kind}{self._symbol(pair)}/"
        with self.session.order_mutation("place_order"):
            payload = self._private(path, params)
        order = normalize_placed(payload, pair, market=side.is_market)
        logger.info(f"bitstamp placed {side.value} {pair}: {order.order_id}")
        return order

    def _public(self, path: str, query: dict[str, Any] | None = None) -> Any:
        return self._unwrap(self.session.get(path, query))

    def _private(self, path: str, params: dict[str, str] | None = None) -> Any:
        signature = self.signer.sign(
            "POST", path, params=params, nonce=self.nonces.next()
        )
        response = self.session.post_form(path, signature.params)
        return self._unwrap(response)

    def _unwrap(self, response: HttpResponse) -> Any:
        payload = decode_json(response, VENUE)
        error = error_fields(payload)
        if error is not None:
            raise_venue_error(VENUE, ERRORS, error[1], error[0])
        check_http_status(response, VENUE)
        return payload
