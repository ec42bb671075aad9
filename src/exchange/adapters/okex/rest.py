"""
Shared OKEx v3 REST plumbing.

One OKExRest is built per facade and shared by the spot, margin and swap
adapters, so they use a single credential set, nonce sequence and server
clock offset.
"""

import json
import logging
from typing import Any

from src.exchange.adapters.okex.data import ERRORS, VENUE, error_fields, server_time_ms
from src.exchange.adapters.session import VenueSession, encode_query
from src.exchange.config import AdapterConfig, Credentials
from src.exchange.enums import Venue
from src.exchange.normalize import check_http_status, decode_json, raise_venue_error
from src.exchange.protocols.venue import ClockProtocol, HTTPClientProtocol
from src.exchange.signing import NonceGenerator, OffsetClock, PrehashHmacSha256Signer
from src.exchange.transport.response import HttpResponse

logger = logging.getLogger(__name__)

BASE_URL = "https://www.okex.com"


class OKExRest:
    """Signed and public request helpers for every OKEx product family."""

    def __init__(
        self,
        credentials: Credentials,
        http: HTTPClientProtocol,
        clock: ClockProtocol,
        config: AdapterConfig | None = None,
        base_url: str = BASE_URL,
    ) -> None:
        self.config = config or AdapterConfig()
        self.session = VenueSession(Venue.OKEX, base_url, http, clock)
        if self.config.sync_clock:
            clock = OffsetClock.synchronized(clock, self._fetch_server_time, VENUE)
            self.session.clock = clock
        self.nonces = NonceGenerator(clock, unit="ms")
        self.signer = PrehashHmacSha256Signer.okex(credentials)

    def public(self, path: str, query: dict[str, Any] | None = None) -> Any:
        """Unsigned GET."""
        return self.unwrap(self.session.get(path, query))

    def private(
        self,
        method: str,
        path: str,
        query: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """
        Signed request.

        The prehash covers the path with its query string and the exact
        JSON body sent, so both are rendered once here.
        """
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
            case _:
                response = self.session.get(
                    request_path, headers=signature.headers
                )
        return self.unwrap(response)

    def unwrap(self, response: HttpResponse) -> Any:
        """Decode a response, raising on a failure envelope or status."""
        payload = decode_json(response, VENUE)
        error = error_fields(payload)
        if error is not None:
            raise_venue_error(VENUE, ERRORS, error[1], error[0])
        check_http_status(response, VENUE)
        return payload

    def _fetch_server_time(self) -> int:
        return server_time_ms(self.public("/api/general/v3/time"))
