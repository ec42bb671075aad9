"""
Bitfinex spot adapter.

Private calls go to the v1 API: the request path, a nanosecond nonce and
the parameters are serialized to JSON, sent as the body and signed with
HMAC-SHA384 in ``X-BFX-*`` headers. Only the exchange wallet takes part
in the canonical contract; ``get_wallet_balances`` exposes the others.
"""

import logging
from typing import Any

from src.exchange.adapters.bitfinex.data import (
    ERRORS,
    EXCHANGE_WALLET,
    LIMIT_ORDER_TYPE,
    MARKET_ORDER_TYPE,
    PERIODS,
    SYMBOL_FORMAT,
    VENUE,
    error_fields,
    normalize_depth,
    normalize_klines,
    normalize_order,
    normalize_orders,
    normalize_ticker,
    normalize_trades,
    normalize_wallets,
    v2_symbol,
)
from src.exchange.adapters.session import VenueSession
from src.exchange.config import AdapterConfig, Credentials
from src.exchange.domain.numbers import format_number, to_decimal
from src.exchange.enums import AccountPolicy, KlinePeriod, TradeSide, Venue
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
from src.exchange.signing import NonceGenerator, PayloadHmacSha384Signer
from src.exchange.transport.response import HttpResponse

logger = logging.getLogger(__name__)

BASE_URL = "https://api.bitfinex.com"

# Market orders still need a positive price field.
MARKET_PRICE_PLACEHOLDER = "1"

MAX_TRADES = 500


@register(Venue.BITFINEX)
class BitfinexAdapter:
    """Bitfinex exchange-wallet trading and market data."""

    def __init__(
        self,
        credentials: Credentials,
        http: HTTPClientProtocol,
        clock: ClockProtocol,
        config: AdapterConfig | None = None,
        base_url: str = BASE_URL,
    ) -> None:
        self.config = config or AdapterConfig()
        self.session = VenueSession(Venue.BITFINEX, base_url, http, clock)
        self.nonces = NonceGenerator(clock, unit="ns")
        self.signer = PayloadHmacSha384Signer(credentials)

    @property
    def name(self) -> Venue:
        """Venue identifier."""
        return Venue.BITFINEX

    # =========================================================================
    # MARKET DATA
    # =========================================================================

    def get_ticker(self, pair: CurrencyPair) -> Ticker:
        """Get the ticker."""
        payload = self._public(f"/v1/pubticker/{self._symbol(pair)}")
        return normalize_ticker(payload, self.session.context(pair))

    def get_depth(self, pair: CurrencyPair, size: int) -> Depth:
        """Get up to ``size`` aggregated levels per side."""
        limit = clamp_depth_size(size, None)
        query = {"limit_bids": limit, "limit_asks": limit}
        payload = self._public(f"/v1/book/{self._symbol(pair)}", query)
        return normalize_depth(payload, self.session.context(pair), size)

    def get_klines(
        self,
        pair: CurrencyPair,
        period: KlinePeriod,
        size: int,
        since: int | None = None,
    ) -> list[Kline]:
        """Get v2 candles, oldest first; ``since`` is epoch seconds."""
        native = PERIODS.get(period)
        if native is None:
            self.session.unsupported("get_klines", f"no {period.value} candles")
        query = {
            "limit": size,
            "start": since * 1000 if since is not None else None,
            "sort": 1 if since is not None else None,
        }
        path = f"/v2/candles/trade:{native}:{v2_symbol(pair)}/hist"
        klines = normalize_klines(self._public(path, query), self.session.context(pair))
        if since is not None:
            return klines[:size]
        return klines[-size:] if size > 0 else klines

    def get_trades(self, pair: CurrencyPair, since: int | None = None) -> list[Trade]:
        """Get public trades, newest first; ``since`` is epoch seconds."""
        query = {"timestamp": since, "limit_trades": MAX_TRADES}
        payload = self._public(f"/v1/trades/{self._symbol(pair)}", query)
        return normalize_trades(payload, self.session.context(pair))

    # =========================================================================
    # TRADING
    # =========================================================================

    def limit_buy(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Place a limit buy on the exchange wallet."""
        return self._place(pair, TradeSide.BUY, amount, price)

    def limit_sell(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Place a limit sell on the exchange wallet."""
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
        """Cancel an order; True when Bitfinex echoes it back."""
        with self.session.order_mutation("cancel_order"):
            payload = self._private("/v1/order/cancel", {"order_id": int(order_id)})
        return str(payload.get("id")) == str(order_id)

    def get_order(self, order_id: str, pair: CurrencyPair) -> Order:
        """Get one order."""
        payload = self._private("/v1/order/status", {"order_id": int(order_id)})
        return normalize_order(payload, pair)

    def get_open_orders(self, pair: CurrencyPair) -> list[Order]:
        """Get working orders of ``pair``; Bitfinex lists every symbol."""
        payload = self._private("/v1/orders")
        return normalize_orders(payload, pair, self._symbol(pair))

    def get_order_history(
        self,
        pair: CurrencyPair,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> Page[Order]:
        """
        Get the most recent finished orders of ``pair``.

        The v1 history endpoint has no offset, so there is a single page:
        ``cursor`` is ignored and ``has_more`` is always False.
        """
        query = {"limit": limit or self.config.default_history_limit}
        payload = self._private("/v1/orders/hist", query)
        orders = normalize_orders(payload, pair, self._symbol(pair))
        return Page[Order](items=tuple(orders), has_more=False, next_cursor=None)

    def get_account(self) -> Account:
        """Get exchange wallet balances."""
        wallets = self.get_wallet_balances()
        return wallets.get(EXCHANGE_WALLET) or Account.from_balances(
            VENUE, [], policy=AccountPolicy.REJECT
        )

    def get_wallet_balances(self) -> dict[str, Account]:
        """Get balances of every wallet, keyed by wallet type."""
        return normalize_wallets(self._private("/v1/balances"))

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
        native_price = MARKET_PRICE_PLACEHOLDER
        if price is not None:
            native_price = format_number(price)
        params = {
            "symbol": self._symbol(pair),
            "amount": format_number(amount),
            "price": native_price,
            "side": "buy" if side.is_buy else "sell",
            "type": MARKET_ORDER_TYPE if side.is_market else LIMIT_ORDER_TYPE,
            "exchange": "bitfinex",
        }
        with self.session.order_mutation("place_order"):
            payload = self._private("/v1/order/new", params)
        order_id = str(payload.get("order_id") or payload["id"])
        logger.info(f"bitfinex placed {side.value} {pair}: {order_id}")
        return Order.accepted(
            order_id,
            pair,
            side,
            to_decimal(amount),
            to_decimal(price) if price is not None else None,
            created_at=self.session.received_at(),
        )

    def _public(self, path: str, query: dict[str, Any] | None = None) -> Any:
        return self._unwrap(self.session.get(path, query))

    def _private(self, path: str, params: dict[str, Any] | None = None) -> Any:
        signature = self.signer.sign(
            "POST", path, params=params, nonce=self.nonces.next()
        )
        response = self.session.post(path, signature.body, headers=signature.headers)
        return self._unwrap(response)

    def _unwrap(self, response: HttpResponse) -> Any:
        payload = decode_json(response, VENUE)
        error = error_fields(payload)
        if error is not None:
            raise_venue_error(VENUE, ERRORS, error[1], error[0])
        check_http_status(response, VENUE)
        return payload
