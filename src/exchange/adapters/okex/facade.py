"""
OKEx multi-product facade.

OKEx splits spot, margin and perpetual swap trading into separate
endpoint families behind one credential set. The facade owns the shared
REST core and routes each canonical call by the pair's product type.
Callers that need product-only operations (margin borrowing, closing
swap positions) use ``.spot``, ``.margin`` and ``.swap`` directly.
"""

import logging

from src.exchange.adapters.okex.rest import BASE_URL, OKExRest
from src.exchange.adapters.okex.spot import OKExMarginAdapter, OKExSpotAdapter
from src.exchange.adapters.okex.swap import OKExSwapAdapter
from src.exchange.config import AdapterConfig, Credentials
from src.exchange.enums import KlinePeriod, ProductType, Venue
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
from src.exchange.protocols.venue import ClockProtocol, HTTPClientProtocol, RawAmount
from src.exchange.registry import register

logger = logging.getLogger(__name__)

ProductAdapter = OKExSpotAdapter | OKExMarginAdapter | OKExSwapAdapter


@register(Venue.OKEX)
class OKExFacade:
    """OKEx spot, margin and swap behind the common adapter contract."""

    def __init__(
        self,
        credentials: Credentials,
        http: HTTPClientProtocol,
        clock: ClockProtocol,
        config: AdapterConfig | None = None,
        base_url: str = BASE_URL,
    ) -> None:
        self.rest = OKExRest(credentials, http, clock, config, base_url)
        self.spot = OKExSpotAdapter(self.rest)
        self.margin = OKExMarginAdapter(self.rest)
        self.swap = OKExSwapAdapter(self.rest)

    @property
    def name(self) -> Venue:
        """Venue identifier."""
        return Venue.OKEX

    def product(self, product: ProductType) -> ProductAdapter:
        """
        Adapter of one product family.

        Raises:
            NotSupportedError: For futures, which this gateway does not trade

        """
        match product:
            case ProductType.SPOT:
                return self.spot
            case ProductType.MARGIN:
                return self.margin
            case ProductType.SWAP:
                return self.swap
            case _:
                self.rest.session.unsupported(product.value, "okex futures")

    def for_pair(self, pair: CurrencyPair) -> ProductAdapter:
        """Adapter for the product type a pair is declared on."""
        return self.product(pair.product)

    # =========================================================================
    # MARKET DATA
    # =========================================================================

    def get_ticker(self, pair: CurrencyPair) -> Ticker:
        """Get the ticker from the pair's product family."""
        return self.for_pair(pair).get_ticker(pair)

    def get_depth(self, pair: CurrencyPair, size: int) -> Depth:
        """Get the book from the pair's product family."""
        return self.for_pair(pair).get_depth(pair, size)

    def get_klines(
        self,
        pair: CurrencyPair,
        period: KlinePeriod,
        size: int,
        since: int | None = None,
    ) -> list[Kline]:
        """Get candles from the pair's product family."""
        return self.for_pair(pair).get_klines(pair, period, size, since)

    def get_trades(self, pair: CurrencyPair, since: int | None = None) -> list[Trade]:
        """Get public trades from the pair's product family."""
        return self.for_pair(pair).get_trades(pair, since)

    # =========================================================================
    # TRADING
    # =========================================================================

    def limit_buy(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Place a limit buy on the pair's product family."""
        return self.for_pair(pair).limit_buy(amount, price, pair)

    def limit_sell(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Place a limit sell on the pair's product family."""
        return self.for_pair(pair).limit_sell(amount, price, pair)

    def market_buy(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Place a market buy on the pair's product family."""
        return self.for_pair(pair).market_buy(amount, price, pair)

    def market_sell(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Place a market sell on the pair's product family."""
        return self.for_pair(pair).market_sell(amount, price, pair)

    def cancel_order(self, order_id: str, pair: CurrencyPair) -> bool:
        """Cancel an order on the pair's product family."""
        return self.for_pair(pair).cancel_order(order_id, pair)

    def get_order(self, order_id: str, pair: CurrencyPair) -> Order:
        """Get an order from the pair's product family."""
        return self.for_pair(pair).get_order(order_id, pair)

    def get_open_orders(self, pair: CurrencyPair) -> list[Order]:
        """Get working orders from the pair's product family."""
        return self.for_pair(pair).get_open_orders(pair)

    def get_order_history(
        self,
        pair: CurrencyPair,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> Page[Order]:
        """Get order history from the pair's product family."""
        return self.for_pair(pair).get_order_history(pair, cursor, limit)

    def get_account(self, product: ProductType = ProductType.SPOT) -> Account:
        """Get balances of one product family (spot by default)."""
        return self.product(product).get_account()
