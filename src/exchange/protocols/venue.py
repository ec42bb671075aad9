"""
Venue Protocol Layer for the Exchange Gateway.

This module defines the capability contracts of the gateway. Every venue
adapter satisfies ExchangeAdapterProtocol through structure, not
inheritance, and composes the smaller capabilities below (HTTP transport,
clock, signer) that are injected at construction.

Key design principles:
- One capability interface with N independent venue implementations
- Canonical types only: adapters never leak venue payload shapes
- Explicit failure: unsupported operations raise NotSupportedError
- Injected collaborators: transport, clock and credentials are swappable
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from src.exchange.enums import KlinePeriod, Venue
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
from src.exchange.transport.response import HttpResponse

if TYPE_CHECKING:
    from src.exchange.signing.signers import Signature

# Amounts and prices accepted from callers
RawAmount = Decimal | str
FormParams = Sequence[tuple[str, str]] | Mapping[str, str]

# =============================================================================
# COLLABORATOR PROTOCOLS
# =============================================================================


@runtime_checkable
class HTTPClientProtocol(Protocol):
    """
    Protocol for the injected HTTP capability.

    Semantic Role: Network boundary
    Relationships:
    - Used by: every venue adapter
    - Returns: HttpResponse for any HTTP status
    - Raises: TransportError for connection-level failures only

    Timeouts and cancellation are applied here, never inside adapters.
    """

    def get(self, url: str, headers: Mapping[str, str] | None = None) -> HttpResponse:
        """Perform a GET request."""
        ...

    def post_form(
        self,
        url: str,
        params: FormParams,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        """POST an ``application/x-www-form-urlencoded`` body."""
        ...

    def post(
        self,
        url: str,
        body: str,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        """POST a pre-serialized body (JSON for most venues)."""
        ...

    def delete(
        self,
        url: str,
        params: FormParams | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        """Perform a DELETE request with query parameters."""
        ...


@runtime_checkable
class ClockProtocol(Protocol):
    """
    Protocol for the wall clock used by signers and normalizers.

    Semantic Role: Time source
    Relationships:
    - Used by: NonceGenerator, adapters (capture timestamps)
    - Implemented by: SystemClock, OffsetClock, test clocks
    """

    def now_ms(self) -> int:
        """Milliseconds since the epoch."""
        ...

    def now_ns(self) -> int:
        """Nanoseconds since the epoch."""
        ...


@runtime_checkable
class SignerProtocol(Protocol):
    """
    Protocol for a request signer.

    Semantic Role: Private request authentication
    Relationships:
    - Built from: Credentials
    - Used by: venue adapters for every private call
    - Pure: the nonce is an argument, so equal inputs sign equally
    """

    def sign(
        self,
        method: str,
        path: str,
        params: FormParams | None = None,
        body: str = "",
        nonce: int = 0,
    ) -> Signature:
        """Derive the signature and auth material for one request."""
        ...


# =============================================================================
# ADAPTER PROTOCOL
# =============================================================================


@runtime_checkable
class ExchangeAdapterProtocol(Protocol):
    """
    Protocol for a venue adapter.

    Semantic Role: Canonical trading and market-data capability
    Relationships:
    - Composes: signer, normalizer, HTTPClientProtocol, ClockProtocol
    - Produces: canonical models only
    - Registered in: AdapterRegistry under its Venue

    Operations a venue does not offer raise NotSupportedError. Order
    placement is a single non-idempotent call and is never retried.
    """

    @property
    def name(self) -> Venue:
        """
        Venue this adapter talks to.

        Returns:
            Venue identifier

        """
        ...

    def get_ticker(self, pair: CurrencyPair) -> Ticker:
        """
        Get the latest ticker.

        Args:
            pair: Pair to query

        Returns:
            Ticker with venue time, or capture time when the venue has none

        """
        ...

    def get_depth(self, pair: CurrencyPair, size: int) -> Depth:
        """
        Get the order book.

        Semantic Role: Liquidity snapshot
        Relationships:
        - Tiers: the request is rounded up to the venue's nearest tier
        - Result: exactly ``size`` levels per side when available

        Args:
            pair: Pair to query
            size: Levels wanted per side

        Returns:
            Depth with bids descending and asks ascending

        """
        ...

    def get_klines(
        self,
        pair: CurrencyPair,
        period: KlinePeriod,
        size: int,
        since: int | None = None,
    ) -> list[Kline]:
        """
        Get candles.

        Args:
            pair: Pair to query
            period: Bucket size
            size: Number of candles wanted
            since: Earliest bucket open, epoch seconds

        Returns:
            Candles with timestamps in epoch seconds

        """
        ...

    def get_trades(self, pair: CurrencyPair, since: int | None = None) -> list[Trade]:
        """
        Get recent public trades.

        Args:
            pair: Pair to query
            since: Venue cursor or epoch seconds, depending on venue

        Returns:
            Trades with the taker side

        """
        ...

    def limit_buy(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Place a limit buy order."""
        ...

    def limit_sell(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Place a limit sell order."""
        ...

    def market_buy(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Place a market buy order."""
        ...

    def market_sell(
        self, amount: RawAmount, price: RawAmount, pair: CurrencyPair
    ) -> Order:
        """Place a market sell order."""
        ...

    def cancel_order(self, order_id: str, pair: CurrencyPair) -> bool:
        """
        Cancel an order.

        Returns:
            True when the venue accepted the cancellation

        """
        ...

    def get_order(self, order_id: str, pair: CurrencyPair) -> Order:
        """Get one order with its fill state."""
        ...

    def get_open_orders(self, pair: CurrencyPair) -> list[Order]:
        """Get all working orders for a pair."""
        ...

    def get_order_history(
        self,
        pair: CurrencyPair,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> Page[Order]:
        """
        Get finished orders, one page at a time.

        Args:
            pair: Pair to query
            cursor: ``next_cursor`` of the previous page, None for the first
            limit: Page size, venue default when None

        Returns:
            Page of orders with ``has_more`` set

        """
        ...

    def get_account(self) -> Account:
        """Get balances, one entry per currency."""
        ...
