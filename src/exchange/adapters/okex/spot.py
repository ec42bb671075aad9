"""
OKEx spot and margin adapters.

Margin trading shares the spot instruments, market data and order schema;
it differs in the endpoint prefix, the ``margin_trading`` order flag and
an account model that tracks borrowed amounts.
"""

import logging
from typing import Any

from src.exchange.adapters.okex.data import (
    GRANULARITIES,
    MARGIN_TRADING,
    MAX_PAGE_SIZE,
    SPOT_FORMAT,
    STATE_COMPLETE,
    normalize_depth,
    normalize_klines,
    normalize_margin_account,
    normalize_spot_account,
    normalize_spot_order,
    normalize_ticker,
    normalize_trades,
    order_page,
)
from src.exchange.adapters.okex.rest import OKExRest
from src.exchange.domain.numbers import format_iso, format_number, to_decimal
from src.exchange.enums import KlinePeriod, TradeSide, Venue
from src.exchange.model import (
    Account,
    Currency,
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

# Book requests above 200 levels are rejected.
MAX_DEPTH = 200


class OKExSpotAdapter:
    """OKEx spot trading and market data."""

    prefix = "/api/spot/v3"

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
        """Get the 24h ticker."""
        payload = self.rest.public(
            f"/api/spot/v3/instruments/{self._symbol(pair)}/ticker"
        )
        return normalize_ticker(payload, self.rest.session.context(pair))

    def get_depth(self, pair: CurrencyPair, size: int) -> Depth:
        """Get up to ``size`` levels per side (at most 200)."""
        limit = min(clamp_depth_size(size, None), MAX_DEPTH)
        payload = self.rest.public(
            f"/api/spot/v3/instruments/{self._symbol(pair)}/book", {"size": limit}
        )
        return normalize_depth(payload, self.rest.session.context(pair), size)

    def get_klines(
        self,
        pair: CurrencyPair,
        period: KlinePeriod,
        size: int,
        since: int | None = None,
    ) -> list[Kline]:
        """Get candles, oldest first; ``since`` is epoch seconds."""
        return fetch_klines(
            self.rest,
            f"/api/spot/v3/instruments/{self._symbol(pair)}/candles",
            pair,
            period,
            size,
            since,
        )

    def get_trades(self, pair: CurrencyPair, since: int | None = None) -> list[Trade]:
        """Get the latest 100 public trades."""
        if since is not None:
            self.rest.session.unsupported("get_trades", "recent trades only")
        payload = self.rest.public(
            f"/api/spot/v3/instruments/{self._symbol(pair)}/trades", {"limit": 100}
        )
        return normalize_trades(payload, self.rest.session.context(pair))

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
        """
        Place a market buy for ``amount`` base currency.

        OKEx sizes market buys in quote currency, so ``amount * price``
        is sent as the notional; ``price`` is the caller's reference price.
        """
        return self._place(pair, TradeSide.BUY_MARKET, amount, price)

    def market_sell(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Place a market sell for ``amount`` base currency."""
        return self._place(pair, TradeSide.SELL_MARKET, amount, price)

    def cancel_order(self, order_id: str, pair: CurrencyPair) -> bool:
        """Cancel an order; True when OKEx reports ``result``."""
        body = {"instrument_id": self._symbol(pair)}
        with self.rest.session.order_mutation("cancel_order"):
            payload = self.rest.private(
                "POST", f"{self.prefix}/cancel_orders/{order_id}", body=body
            )
        return payload.get("result") in (True, "true")

    def get_order(self, order_id: str, pair: CurrencyPair) -> Order:
        """Get one order."""
        payload = self.rest.private(
            "GET",
            f"{self.prefix}/orders/{order_id}",
            {"instrument_id": self._symbol(pair)},
        )
        return normalize_spot_order(payload, pair)

    def get_open_orders(self, pair: CurrencyPair) -> list[Order]:
        """Get working orders."""
        payload = self.rest.private(
            "GET",
            f"{self.prefix}/orders_pending",
            {"instrument_id": self._symbol(pair)},
        )
        return [normalize_spot_order(row, pair) for row in payload]

    def get_order_history(
        self,
        pair: CurrencyPair,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> Page[Order]:
        """
        Get filled and cancelled orders, newest first.

        The cursor is the oldest order id of the previous page.
        """
        limit = min(limit or self.rest.config.default_history_limit, MAX_PAGE_SIZE)
        query = {
            "instrument_id": self._symbol(pair),
            "state": STATE_COMPLETE,
            "limit": limit,
            "after": cursor,
        }
        payload = self.rest.private("GET", f"{self.prefix}/orders", query)
        orders = [normalize_spot_order(row, pair) for row in payload]
        return order_page(orders, limit)

    def get_account(self) -> Account:
        """Get spot wallet balances."""
        return normalize_spot_account(self.rest.private("GET", "/api/spot/v3/accounts"))

    # =========================================================================
    # PLUMBING
    # =========================================================================

    def _symbol(self, pair: CurrencyPair) -> str:
        return pair.to_symbol(SPOT_FORMAT)

    def _order_body(
        self,
        pair: CurrencyPair,
        side: TradeSide,
        amount: RawAmount,
        price: RawAmount,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "instrument_id": self._symbol(pair),
            "side": "buy" if side.is_buy else "sell",
            "type": "market" if side.is_market else "limit",
            "order_type": "0",
        }
        match side:
            case TradeSide.BUY_MARKET:
                notional = to_decimal(amount) * to_decimal(price)
                if notional <= 0:
                    raise ValueError("okex market buys need a positive reference price")
                body["notional"] = format_number(notional)
            case TradeSide.SELL_MARKET:
                body["size"] = format_number(amount)
            case _:
                body["price"] = format_number(price)
                body["size"] = format_number(amount)
        return body

    def _place(
        self,
        pair: CurrencyPair,
        side: TradeSide,
        amount: RawAmount,
        price: RawAmount,
    ) -> Order:
        body = self._order_body(pair, side, amount, price)
        with self.rest.session.order_mutation("place_order"):
            payload = self.rest.private("POST", f"{self.prefix}/orders", body=body)
        order_id = str(payload["order_id"])
        logger.info(f"okex {self.prefix} placed {side.value} {pair}: {order_id}")
        return Order.accepted(
            order_id,
            pair,
            side,
            to_decimal(amount),
            None if side.is_market else to_decimal(price),
            created_at=self.rest.session.received_at(),
        )


class OKExMarginAdapter(OKExSpotAdapter):
    """
    OKEx margin trading.

    Market data comes from the spot instruments. Borrowing and repayment
    are margin-only operations outside the common adapter contract.
    """

    prefix = "/api/margin/v3"

    def get_account(self) -> Account:
        """Get margin balances of every instrument, summed per currency."""
        payload = self.rest.private("GET", "/api/margin/v3/accounts")
        return normalize_margin_account(payload)

    def get_margin_account(self, pair: CurrencyPair) -> Account:
        """Get the isolated margin balances of one instrument."""
        payload = self.rest.private(
            "GET", f"/api/margin/v3/accounts/{self._symbol(pair)}"
        )
        return normalize_margin_account(payload)

    def borrow(self, pair: CurrencyPair, currency: Currency, amount: RawAmount) -> str:
        """
        Borrow ``amount`` of one leg of ``pair``.

        Returns:
            Venue borrow id, needed to repay that specific loan

        """
        body = {
            "instrument_id": self._symbol(pair),
            "currency": currency.symbol.lower(),
            "amount": format_number(amount),
        }
        payload = self.rest.private("POST", "/api/margin/v3/accounts/borrow", body=body)
        logger.info(f"okex borrowed {body['amount']} {currency} on {pair}")
        return str(payload["borrow_id"])

    def repay(
        self,
        pair: CurrencyPair,
        currency: Currency,
        amount: RawAmount,
        borrow_id: str | None = None,
    ) -> str:
        """
        Repay borrowed ``currency``; a specific loan when ``borrow_id`` is set.

        Returns:
            Venue repayment id

        """
        body = {
            "instrument_id": self._symbol(pair),
            "currency": currency.symbol.lower(),
            "amount": format_number(amount),
        }
        if borrow_id is not None:
            body["borrow_id"] = borrow_id
        payload = self.rest.private(
            "POST", "/api/margin/v3/accounts/repayment", body=body
        )
        logger.info(f"okex repaid {body['amount']} {currency} on {pair}")
        return str(payload["repayment_id"])

    def _order_body(
        self,
        pair: CurrencyPair,
        side: TradeSide,
        amount: RawAmount,
        price: RawAmount,
    ) -> dict[str, Any]:
        body = super()._order_body(pair, side, amount, price)
        body["margin_trading"] = MARGIN_TRADING
        return body


def fetch_klines(
    rest: OKExRest,
    path: str,
    pair: CurrencyPair,
    period: KlinePeriod,
    size: int,
    since: int | None,
) -> list[Kline]:
    """
    Candles from a spot or swap ``candles`` endpoint.

    Raises:
        NotSupportedError: For periods OKEx does not offer

    """
    granularity = GRANULARITIES.get(period)
    if granularity is None:
        rest.session.unsupported("get_klines", f"no {period.value} candles")
    query: dict[str, Any] = {"granularity": granularity}
    if since is not None:
        query["start"] = format_iso(since)
        query["end"] = format_iso(since + granularity * size)
    payload = rest.public(path, query)
    klines = normalize_klines(payload, rest.session.context(pair))
    return klines[-size:] if size > 0 else klines
