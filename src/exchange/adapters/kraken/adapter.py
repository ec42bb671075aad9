"""
Kraken spot adapter.

Public data is read with GETs under ``/0/public``. Private calls are
form POSTs under ``/0/private`` whose first field is a nanosecond nonce;
``API-Sign`` is an HMAC-SHA512, keyed with the base64-decoded secret, of
the URL path followed by SHA256(nonce + form).
"""

import logging
from typing import Any

from src.exchange.adapters.kraken.data import (
    ERRORS,
    INTERVALS,
    MAX_DEPTH,
    SYMBOL_FORMAT,
    VENUE,
    error_fields,
    normalize_account,
    normalize_closed_page,
    normalize_depth,
    normalize_klines,
    normalize_order,
    normalize_orders,
    normalize_ticker,
    normalize_trades,
    result_of,
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
from src.exchange.signing import KrakenSigner, NonceGenerator, OffsetClock
from src.exchange.transport.response import HttpResponse

logger = logging.getLogger(__name__)

BASE_URL = "https://api.kraken.com"


@register(Venue.KRAKEN)
class KrakenAdapter:
    """Kraken spot trading and market data."""

    def __init__(
        self,
        credentials: Credentials,
        http: HTTPClientProtocol,
        clock: ClockProtocol,
        config: AdapterConfig | None = None,
        base_url: str = BASE_URL,
    ) -> None:
        self.config = config or AdapterConfig()
        self.session = VenueSession(Venue.KRAKEN, base_url, http, clock)
        if self.config.sync_clock:
            clock = OffsetClock.synchronized(clock, self._fetch_server_time, VENUE)
            self.session.clock = clock
        self.nonces = NonceGenerator(clock, unit="ns")
        self.signer = KrakenSigner(credentials)

    @property
    def name(self) -> Venue:
        """Venue identifier."""
        return Venue.KRAKEN

    # =========================================================================
    # MARKET DATA
    # =========================================================================

    def get_ticker(self, pair: CurrencyPair) -> Ticker:
        """Get the ticker with rolling 24h high, low and volume."""
        result = self._public("Ticker", {"pair": self._symbol(pair)})
        return normalize_ticker(result, self.session.context(pair))

    def get_depth(self, pair: CurrencyPair, size: int) -> Depth:
        """Get up to ``size`` levels per side (at most 500)."""
        count = min(clamp_depth_size(size, None), MAX_DEPTH)
        result = self._public("Depth", {"pair": self._symbol(pair), "count": count})
        return normalize_depth(result, self.session.context(pair), size)

    def get_klines(
        self,
        pair: CurrencyPair,
        period: KlinePeriod,
        size: int,
        since: int | None = None,
    ) -> list[Kline]:
        """
        Get OHLC candles, oldest first.

        Kraken returns at most 720 candles ending now; with ``since`` (epoch
        seconds) the first ``size`` candles after it are kept, otherwise
        the last ``size``.
        """
        interval = INTERVALS.get(period)
        if interval is None:
            self.session.unsupported("get_klines", f"no {period.value} candles")
        query = {"pair": self._symbol(pair), "interval": interval, "since": since}
        klines = normalize_klines(
            self._public("OHLC", query), self.session.context(pair)
        )
        if since is not None:
            return klines[:size]
        return klines[-size:] if size > 0 else klines

    def get_trades(self, pair: CurrencyPair, since: int | None = None) -> list[Trade]:
        """Get public trades, oldest first; ``since`` is epoch seconds."""
        query = {
            "pair": self._symbol(pair),
            "since": since * 1_000_000_000 if since is not None else None,
        }
        result = self._public("Trades", query)
        return normalize_trades(result, self.session.context(pair))

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
        """Cancel an order; True when Kraken reports at least one cancelled."""
        with self.session.order_mutation("cancel_order"):
            result = self._private("CancelOrder", {"txid": order_id})
        return to_int(result.get("count")) > 0

    def get_order(self, order_id: str, pair: CurrencyPair) -> Order:
        """
        Get one order.

        Raises:
            OrderNotFoundError: When Kraken returns no entry for the id

        """
        result = self._private("QueryOrders", {"txid": order_id})
        data = result.get(order_id)
        if data is None:
            raise OrderNotFoundError(VENUE, f"order {order_id} not returned")
        return normalize_order(order_id, data, pair)

    def get_open_orders(self, pair: CurrencyPair) -> list[Order]:
        """Get working orders of ``pair``; Kraken lists every pair."""
        result = self._private("OpenOrders")
        return normalize_orders(result.get("open") or {}, pair, self._symbol(pair))

    def get_order_history(
        self,
        pair: CurrencyPair,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> Page[Order]:
        """
        Get closed orders, newest first; the cursor is a result offset.

        Kraken pages all pairs together in fixed pages of 50, so ``limit``
        is not sent and a page may hold fewer orders of ``pair``.
        """
        offset = to_int(cursor) if cursor is not None else 0
        result = self._private("ClosedOrders", {"ofs": offset})
        return normalize_closed_page(result, pair, self._symbol(pair), offset)

    def get_account(self) -> Account:
        """Get balances with the amount held by open orders as frozen."""
        return normalize_account(self._private("BalanceEx"))

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
        params = {
            "pair": self._symbol(pair),
            "type": "buy" if side.is_buy else "sell",
            "ordertype": "market" if side.is_market else "limit",
            "volume": format_number(amount),
        }
        if price is not None:
            params["price"] = format_number(price)
        with self.session.order_mutation("place_order"):
            result = self._private("AddOrder", params)
        order_id = str(result["txid"][0])
        logger.info(f"kraken placed {side.value} {params['volume']} {pair}: {order_id}")
        return Order.accepted(
            order_id,
            pair,
            side,
            to_decimal(amount),
            to_decimal(price) if price is not None else None,
            created_at=self.session.received_at(),
        )

    def _public(self, method: str, query: dict[str, Any] | None = None) -> Any:
        return self._unwrap(self.session.get(f"/0/public/{method}", query))

    def _private(self, method: str, params: dict[str, Any] | None = None) -> Any:
        path = f"/0/private/{method}"
        signature = self.signer.sign(
            "POST", path, params=params, nonce=self.nonces.next()
        )
        response = self.session.post_form(
            path, signature.params, headers=signature.headers
        )
        return self._unwrap(response)

    def _unwrap(self, response: HttpResponse) -> Any:
        payload = decode_json(response, VENUE)
        error = error_fields(payload)
        if error is not None:
            raise_venue_error(VENUE, ERRORS, error[1], error[0])
        check_http_status(response, VENUE)
        return result_of(payload)

    def _fetch_server_time(self) -> int:
        return to_int(self._public("Time").get("unixtime")) * 1000
