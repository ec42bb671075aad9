"""
OKEx perpetual swap adapter.

Amounts are in contracts. A canonical buy opens a long and a canonical
sell opens a short; ``close_long`` and ``close_short`` reduce positions.
"""

import logging

from src.exchange.adapters.okex.data import (
    MAX_PAGE_SIZE,
    STATE_COMPLETE,
    STATE_OPEN,
    SWAP_CLOSE_LONG,
    SWAP_CLOSE_SHORT,
    SWAP_FORMAT,
    SWAP_MARKET_ORDER_TYPE,
    SWAP_OPEN_LONG,
    SWAP_OPEN_SHORT,
    SWAP_SIDE_TABLE,
    normalize_depth,
    normalize_swap_account,
    normalize_swap_order,
    normalize_ticker,
    normalize_trades,
    order_page,
)
from src.exchange.adapters.okex.rest import OKExRest
from src.exchange.adapters.okex.spot import MAX_DEPTH, fetch_klines
from src.exchange.domain.numbers import format_number, to_decimal
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
from src.exchange.normalize import clamp_depth_size
from src.exchange.protocols.venue import RawAmount

logger = logging.getLogger(__name__)


class OKExSwapAdapter:
    """OKEx perpetual swap trading and market data."""

    def __init__(self, rest: OKExRest) -> None:
        self.rest = rest

    @property
    def name(self) -> Venue:
        """Venue identifier."""
        return Venue.OKEX

    # =========================================================================
    # MARKET DATA
    # =========================================================================

    def get_ticker(self, pair: CurrencyPair) -> Ticker:
        """Get the 24h ticker; volume is in contracts."""
        payload = self.rest.public(self._instrument_path(pair, "ticker"))
        return normalize_ticker(payload, self.rest.session.context(pair))

    def get_depth(self, pair: CurrencyPair, size: int) -> Depth:
        """Get up to ``size`` levels per side (at most 200)."""
        limit = min(clamp_depth_size(size, None), MAX_DEPTH)
        path = self._instrument_path(pair, "depth")
        payload = self.rest.public(path, {"size": limit})
        return normalize_depth(payload, self.rest.session.context(pair), size)

    def get_klines(
        self,
        pair: CurrencyPair,
        period: KlinePeriod,
        size: int,
        since: int | None = None,
    ) -> list[Kline]:
        """Get candles, oldest first; ``since`` is epoch seconds."""
        path = self._instrument_path(pair, "candles")
        return fetch_klines(self.rest, path, pair, period, size, since)

    def get_trades(self, pair: CurrencyPair, since: int | None = None) -> list[Trade]:
        """Get the latest 100 public trades."""
        if since is not None:
            self.rest.session.unsupported("get_trades", "recent trades only")
        path = self._instrument_path(pair, "trades")
        payload = self.rest.public(path, {"limit": 100})
        return normalize_trades(payload, self.rest.session.context(pair))

    # =========================================================================
    # TRADING
    # =========================================================================

    def limit_buy(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Open a long with a limit order."""
        return self.place(pair, SWAP_OPEN_LONG, amount, price)

    def limit_sell(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Open a short with a limit order."""
        return self.place(pair, SWAP_OPEN_SHORT, amount, price)

    def market_buy(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Open a long at market; ``price`` is ignored."""
        return self.place(pair, SWAP_OPEN_LONG, amount, None)

    def market_sell(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Open a short at market; ``price`` is ignored."""
        return self.place(pair, SWAP_OPEN_SHORT, amount, None)

    def close_long(
        self, amount: RawAmount, price: RawAmount | None, pair: CurrencyPair
    ) -> Order:
        """Reduce a long position; at market when ``price`` is None."""
        return self.place(pair, SWAP_CLOSE_LONG, amount, price)

    def close_short(
        self, amount: RawAmount, price: RawAmount | None, pair: CurrencyPair
    ) -> Order:
        """Reduce a short position; at market when ``price`` is None."""
        return self.place(pair, SWAP_CLOSE_SHORT, amount, price)

    def place(
        self,
        pair: CurrencyPair,
        swap_type: str,
        amount: RawAmount,
        price: RawAmount | None,
    ) -> Order:
        """
        Place a swap order of one of the four position types.

        Args:
            pair: Swap instrument
            swap_type: "1" open long, "2" open short, "3" close long,
                "4" close short
            amount: Contracts
            price: Limit price, or None for a market order

        Returns:
            The accepted order

        Raises:
            ValueError: If ``swap_type`` is not one of the four types

        """
        market = price is None
        native = SWAP_SIDE_TABLE.get(swap_type)
        if native is None:
            raise ValueError(f"Invalid okex swap order type: {swap_type!r}")
        side = TradeSide.from_exchange(native, market=market)
        body = {
            "instrument_id": self._symbol(pair),
            "type": swap_type,
            "size": format_number(amount),
            "order_type": SWAP_MARKET_ORDER_TYPE if market else "0",
        }
        if not market:
            body["price"] = format_number(price)
        with self.rest.session.order_mutation("place_order"):
            payload = self.rest.private("POST", "/api/swap/v3/order", body=body)
        order_id = str(payload["order_id"])
        logger.info(f"okex swap placed type {swap_type} {pair}: {order_id}")
        return Order.accepted(
            order_id,
            pair,
            side,
            to_decimal(amount),
            None if market else to_decimal(price),
            created_at=self.rest.session.received_at(),
        )

    def cancel_order(self, order_id: str, pair: CurrencyPair) -> bool:
        """Cancel an order; True when OKEx reports ``result``."""
        path = f"/api/swap/v3/cancel_order/{self._symbol(pair)}/{order_id}"
        with self.rest.session.order_mutation("cancel_order"):
            payload = self.rest.private("POST", path, body={})
        return payload.get("result") in (True, "true")

    def get_order(self, order_id: str, pair: CurrencyPair) -> Order:
        """Get one order."""
        path = f"/api/swap/v3/orders/{self._symbol(pair)}/{order_id}"
        return normalize_swap_order(self.rest.private("GET", path), pair)

    def get_open_orders(self, pair: CurrencyPair) -> list[Order]:
        """Get working orders."""
        return self._list_orders(pair, STATE_OPEN, MAX_PAGE_SIZE, None)

    def get_order_history(
        self,
        pair: CurrencyPair,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> Page[Order]:
        """Get filled and cancelled orders; the cursor is the oldest id seen."""
        limit = min(limit or self.rest.config.default_history_limit, MAX_PAGE_SIZE)
        orders = self._list_orders(pair, STATE_COMPLETE, limit, cursor)
        return order_page(orders, limit)

    def get_account(self) -> Account:
        """Get swap margin balances per settlement currency."""
        return normalize_swap_account(self.rest.private("GET", "/api/swap/v3/accounts"))

    # =========================================================================
    # PLUMBING
    # =========================================================================

    def _symbol(self, pair: CurrencyPair) -> str:
        return pair.to_symbol(SWAP_FORMAT)

    def _instrument_path(self, pair: CurrencyPair, resource: str) -> str:
        return f"/api/swap/v3/instruments/{self._symbol(pair)}/{resource}"

    def _list_orders(
        self, pair: CurrencyPair, state: str, limit: int, after: str | None
    ) -> list[Order]:
        query = {"state": state, "limit": limit, "after": after}
        payload = self.rest.private(
            "GET", f"/api/swap/v3/orders/{self._symbol(pair)}", query
        )
        rows = payload.get("order_info", []) if isinstance(payload, dict) else payload
        return [normalize_swap_order(row, pair) for row in rows]
