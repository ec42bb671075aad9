"""
KuCoin spot adapter.

Private calls carry ``KC-API-*`` headers: a base64 HMAC-SHA256 over
``timestamp + METHOD + path?query + body`` with millisecond timestamps,
and the passphrase signed with the same secret (key version 2).
"""

import json
import logging
import uuid
from typing import Any

from src.exchange.adapters.kucoin.data import (
    DEPTH_TIERS,
    ERRORS,
    PERIODS,
    SYMBOL_FORMAT,
    VENUE,
    data_of,
    error_fields,
    normalize_account,
    normalize_depth,
    normalize_klines,
    normalize_order,
    normalize_order_page,
    normalize_ticker,
    normalize_trades,
)
from src.exchange.adapters.session import VenueSession, encode_query
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
from src.exchange.signing import NonceGenerator, OffsetClock, PrehashHmacSha256Signer
from src.exchange.transport.response import HttpResponse

logger = logging.getLogger(__name__)

BASE_URL = "https://api.kucoin.com"

# Open orders are read from a single page of this size.
OPEN_ORDERS_PAGE_SIZE = 500


@register(Venue.KUCOIN)
class KuCoinAdapter:
    """KuCoin spot trading and market data."""

    def __init__(
        self,
        credentials: Credentials,
        http: HTTPClientProtocol,
        clock: ClockProtocol,
        config: AdapterConfig | None = None,
        base_url: str = BASE_URL,
    ) -> None:
        self.config = config or AdapterConfig()
        self.session = VenueSession(Venue.KUCOIN, base_url, http, clock)
        if self.config.sync_clock:
            clock = OffsetClock.synchronized(clock, self._fetch_server_time, VENUE)
            self.session.clock = clock
        self.nonces = NonceGenerator(clock, unit="ms")
        self.signer = PrehashHmacSha256Signer.kucoin(credentials)

    @property
    def name(self) -> Venue:
        """Venue identifier."""
        return Venue.KUCOIN

    # =========================================================================
    # MARKET DATA
    # =========================================================================

    def get_ticker(self, pair: CurrencyPair) -> Ticker:
        """Get 24h market statistics."""
        data = self._public("/api/v1/market/stats", {"symbol": self._symbol(pair)})
        return normalize_ticker(data, self.session.context(pair))

    def get_depth(self, pair: CurrencyPair, size: int) -> Depth:
        """Get the 20 or 100 level snapshot, truncated to ``size``."""
        tier = clamp_depth_size(size, DEPTH_TIERS)
        data = self._public(
            f"/api/v1/market/orderbook/level2_{tier}", {"symbol": self._symbol(pair)}
        )
        return normalize_depth(data, self.session.context(pair), size)

    def get_klines(
        self,
        pair: CurrencyPair,
        period: KlinePeriod,
        size: int,
        since: int | None = None,
    ) -> list[Kline]:
        """Get candles, oldest first; ``since`` is epoch seconds."""
        native = PERIODS.get(period)
        if native is None:
            self.session.unsupported("get_klines", f"no {period.value} candles")
        query = {
            "symbol": self._symbol(pair),
            "type": native,
            "startAt": since,
            "endAt": since + period.seconds * size if since is not None else None,
        }
        data = self._public("/api/v1/market/candles", query)
        klines = normalize_klines(data, self.session.context(pair))
        return klines[-size:] if size > 0 else klines

    def get_trades(self, pair: CurrencyPair, since: int | None = None) -> list[Trade]:
        """Get the latest public trades."""
        if since is not None:
            self.session.unsupported("get_trades", "kucoin returns recent trades only")
        data = self._public("/api/v1/market/histories", {"symbol": self._symbol(pair)})
        return normalize_trades(data, self.session.context(pair))

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
        """Cancel an order; True when KuCoin lists it as cancelled."""
        with self.session.order_mutation("cancel_order"):
            data = self._private("DELETE", f"/api/v1/orders/{order_id}")
        return order_id in (data or {}).get("cancelledOrderIds", [])

    def get_order(self, order_id: str, pair: CurrencyPair) -> Order:
        """Get one order."""
        return normalize_order(self._private("GET", f"/api/v1/orders/{order_id}"), pair)

    def get_open_orders(self, pair: CurrencyPair) -> list[Order]:
        """Get working orders."""
        query = {
            "status": "active",
            "symbol": self._symbol(pair),
            "currentPage": 1,
            "pageSize": OPEN_ORDERS_PAGE_SIZE,
        }
        data = self._private("GET", "/api/v1/orders", query)
        return list(normalize_order_page(data, pair).items)

    def get_order_history(
        self,
        pair: CurrencyPair,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> Page[Order]:
        """Get finished orders; the cursor is the page number."""
        query = {
            "status": "done",
            "symbol": self._symbol(pair),
            "currentPage": to_int(cursor, default=1) if cursor is not None else 1,
            "pageSize": limit or self.config.default_history_limit,
        }
        data = self._private("GET", "/api/v1/orders", query)
        return normalize_order_page(data, pair)

    def get_account(self) -> Account:
        """Get balances summed over main, trade and margin accounts."""
        return normalize_account(self._private("GET", "/api/v1/accounts"))

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
        client_oid = uuid.uuid4().hex
        body = {
            "clientOid": client_oid,
            "side": "buy" if side.is_buy else "sell",
            "symbol": self._symbol(pair),
            "type": "market" if side.is_market else "limit",
            "size": format_number(amount),
        }
        if price is not None:
            body["price"] = format_number(price)
        with self.session.order_mutation("place_order"):
            data = self._private("POST", "/api/v1/orders", body=body)
        order_id = str(data["orderId"])
        logger.info(f"kucoin placed {side.value} {body['size']} {pair}: {order_id}")
        accepted = Order.accepted(
            order_id,
            pair,
            side,
            to_decimal(amount),
            to_decimal(price) if price is not None else None,
            created_at=self.session.received_at(),
        )
        return accepted.model_copy(update={"client_order_id": client_oid})

    def _public(self, path: str, query: dict[str, Any] | None = None) -> Any:
        return self._unwrap(self.session.get(path, query))

    def _private(
        self,
        method: str,
        path: str,
        query: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        encoded = encode_query(query)
        request_path = f"{path}?{encoded}" if encoded else path
        text = json.dumps(body, separators=(",", ":")) if body is not None else ""
        signature = self.signer.sign(
            method, request_path, body=text, nonce=self.nonces.next()
        )
        match method:
            case "POST":
                response = self.session.post(
                    request_path, text, headers=signature.headers
                )
            case "DELETE":
                response = self.session.delete(request_path, headers=signature.headers)
            case _:
                response = self.session.get(request_path, headers=signature.headers)
        return self._unwrap(response)

    def _unwrap(self, response: HttpResponse) -> Any:
        payload = decode_json(response, VENUE)
        error = error_fields(payload)
        if error is not None:
            raise_venue_error(VENUE, ERRORS, error[1], error[0])
        check_http_status(response, VENUE)
        return data_of(payload)

    def _fetch_server_time(self) -> int:
        return to_int(self._public("/api/v1/timestamp"))
