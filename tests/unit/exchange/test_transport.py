"""Tests for the httpx-backed transport and the venue session."""

import httpx
import pytest

from src.exchange.adapters.session import VenueSession, encode_query
from src.exchange.config import HttpConfig
from src.exchange.enums import Venue
from src.exchange.errors import NotSupportedError, TransportError
from src.exchange.model import CurrencyPair
from src.exchange.protocols import HTTPClientProtocol
from src.exchange.transport import HttpxClient
from tests.unit.exchange.helpers import FIXED_MS, FakeHTTPClient, FixedClock


def mock_client(handler) -> HttpxClient:  # type: ignore[no-untyped-def]
    return HttpxClient(client=httpx.Client(transport=httpx.MockTransport(handler)))


class TestHttpxClient:
    """HTTP capability over httpx."""

    def test_satisfies_protocol(self) -> None:
        """Test structural conformance."""
        assert isinstance(HttpxClient(HttpConfig()), HTTPClientProtocol)

    def test_get_returns_error_statuses(self) -> None:
        """Test that 4xx bodies are returned, not raised."""
        client = mock_client(
            lambda request: httpx.Response(400, json={"code": -1121, "msg": "bad"})
        )

        response = client.get("https://api.example.com/api/v3/ticker")

        assert response.status_code == 400
        assert not response.ok
        assert b"-1121" in response.content

    def test_post_form_keeps_order_and_content_type(self) -> None:
        """Test form encoding preserves the signed field order."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        client = mock_client(handler)
        client.post_form(
            "https://api.example.com/order",
            [("symbol", "BTCUSDT"), ("amount", "1"), ("signature", "abc")],
            headers={"X-MBX-APIKEY": "key"},
        )

        request = seen[0]
        assert request.method == "POST"
        assert request.content == b"symbol=BTCUSDT&amount=1&signature=abc"
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        assert request.headers["x-mbx-apikey"] == "key"

    def test_delete_appends_query(self) -> None:
        """Test DELETE parameters land in the query string."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        client = mock_client(handler)
        client.delete("https://api.example.com/order?x=1", {"orderId": "5"})

        assert seen[0].method == "DELETE"
        assert seen[0].url.params["x"] == "1"
        assert seen[0].url.params["orderId"] == "5"

    def test_connection_failure_is_transport_error(self) -> None:
        """Test that httpx errors become TransportError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = mock_client(handler)

        with pytest.raises(TransportError, match="refused"):
            client.get("https://api.example.com/ping")

    def test_context_manager_closes(self) -> None:
        """Test that leaving the block closes the pool."""
        inner = httpx.Client(
            transport=httpx.MockTransport(lambda r: httpx.Response(200))
        )

        with HttpxClient(client=inner):
            pass

        assert inner.is_closed


class TestVenueSession:
    """URL building, capture time and order mutation handling."""

    def session(self, http: FakeHTTPClient) -> VenueSession:
        return VenueSession(
            Venue.BINANCE, "https://api.example.com/", http, FixedClock()
        )

    def test_encode_query_drops_none(self) -> None:
        """Test that None values are omitted."""
        assert encode_query({"a": 1, "b": None, "c": "x y"}) == "a=1&c=x+y"
        assert encode_query(None) == ""

    def test_url(self) -> None:
        """Test base URL joining."""
        session = self.session(FakeHTTPClient())

        assert session.url("/api/v3/time") == "https://api.example.com/api/v3/time"
        assert session.url("/p", [("limit", 5)]) == "https://api.example.com/p?limit=5"

    def test_context_uses_clock(self) -> None:
        """Test that the capture time comes from the injected clock."""
        session = self.session(FakeHTTPClient())

        ctx = session.context(CurrencyPair.of("BTC", "USDT"))

        assert int(ctx.received_at.timestamp() * 1000) == FIXED_MS

    def test_order_mutation_marks_state_unknown(self) -> None:
        """Test that a transport failure during placement is flagged."""
        http = FakeHTTPClient().fail("POST", "/order", TransportError("timed out"))
        session = self.session(http)

        with pytest.raises(TransportError) as info:
            with session.order_mutation("limit_buy"):
                session.post_form("/order", [])

        assert info.value.order_state_unknown
        assert "limit_buy" in str(info.value)

    def test_order_mutation_passes_other_errors(self) -> None:
        """Test that non-transport errors are untouched."""
        session = self.session(FakeHTTPClient())

        with pytest.raises(ValueError):
            with session.order_mutation("cancel_order"):
                raise ValueError("bad input")

    def test_unsupported(self) -> None:
        """Test the NotSupportedError raised for missing operations."""
        session = self.session(FakeHTTPClient())

        with pytest.raises(NotSupportedError, match="get_klines is not supported"):
            session.unsupported("get_klines")
