"""
Per-adapter HTTP session helper.

Adapters compose a VenueSession rather than inheriting shared behaviour:
it joins URLs, forwards calls to the injected HTTP capability, stamps
capture times for normalization contexts and marks transport failures
during order placement as leaving the order state unknown.
"""

import logging
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import NoReturn
from urllib.parse import urlencode

from src.exchange.enums import Venue
from src.exchange.errors import NotSupportedError, TransportError
from src.exchange.model.currency import CurrencyPair
from src.exchange.normalize.context import NormalizeContext
from src.exchange.protocols.venue import ClockProtocol, HTTPClientProtocol
from src.exchange.transport.response import HttpResponse

logger = logging.getLogger(__name__)

Query = Mapping[str, object] | Sequence[tuple[str, object]]


def encode_query(query: Query | None) -> str:
    """URL-encode query parameters, dropping ones whose value is None."""
    if not query:
        return ""
    items = query.items() if isinstance(query, Mapping) else query
    return urlencode([(k, str(v)) for k, v in items if v is not None])


class VenueSession:
    """Transport, clock and URL handling for one adapter instance."""

    def __init__(
        self,
        venue: Venue,
        base_url: str,
        http: HTTPClientProtocol,
        clock: ClockProtocol,
    ) -> None:
        self.venue = venue
        self.base_url = base_url.rstrip("/")
        self.http = http
        self.clock = clock

    def url(self, path: str, query: Query | None = None) -> str:
        """Absolute URL for ``path`` with an optional query string."""
        encoded = encode_query(query)
        return f"{self.base_url}{path}{'?' + encoded if encoded else ''}"

    def get(
        self,
        path: str,
        query: Query | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        """GET ``path`` on the venue."""
        url = self.url(path, query)
        logger.debug(f"{self.venue.value} GET {path}")
        return self.http.get(url, headers=headers)

    def post_form(
        self,
        path: str,
        params: Sequence[tuple[str, str]],
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        """POST a form to ``path``."""
        logger.debug(f"{self.venue.value} POST {path}")
        return self.http.post_form(self.url(path), params, headers=headers)

    def post(
        self,
        path: str,
        body: str,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        """POST a serialized body to ``path``."""
        logger.debug(f"{self.venue.value} POST {path}")
        return self.http.post(self.url(path), body, headers=headers)

    def delete(
        self,
        path: str,
        params: Sequence[tuple[str, str]] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        """DELETE ``path`` with query parameters."""
        logger.debug(f"{self.venue.value} DELETE {path}")
        return self.http.delete(self.url(path), params, headers=headers)

    def received_at(self) -> datetime:
        """Capture time for payloads that carry no venue timestamp."""
        return datetime.fromtimestamp(self.clock.now_ms() / 1000, tz=UTC)

    def context(self, pair: CurrencyPair) -> NormalizeContext:
        """Normalization context for one response."""
        return NormalizeContext(pair=pair, received_at=self.received_at())

    @contextmanager
    def order_mutation(self, operation: str) -> Iterator[None]:
        """
        Wrap a placement or cancellation call.

        A transport failure here may have happened after the venue
        executed the request, so it is re-raised with the order state
        marked unknown.
        """
        try:
            yield
        except TransportError as e:
            if e.order_state_unknown:
                raise
            logger.error(f"{self.venue.value} {operation} outcome unknown: {e}")
            raise TransportError(
                f"{self.venue.value} {operation} failed: {e}",
                status_code=e.status_code,
                order_state_unknown=True,
            ) from e

    def unsupported(self, operation: str, detail: str = "") -> NoReturn:
        """Raise NotSupportedError for ``operation``."""
        raise NotSupportedError(self.venue.value, operation, detail)
