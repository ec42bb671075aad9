"""Test helpers for exchange adapter tests."""

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from src.exchange.config import AdapterConfig, Credentials
from src.exchange.enums import TradeSide, TradeStatus
from src.exchange.model import CurrencyPair, Order
from src.exchange.normalize import NormalizeContext
from src.exchange.transport.response import HttpResponse

# 2021-07-01T00:00:00Z
FIXED_MS = 1625097600000

NO_SYNC = AdapterConfig(sync_clock=False)

TEST_CREDENTIALS = Credentials(
    api_key="key",
    secret_key="secret",
    passphrase="pass",
    client_id="cid",
)


def json_response(payload: Any, status: int = 200) -> HttpResponse:
    """HttpResponse carrying ``payload`` serialized as JSON."""
    return HttpResponse(status_code=status, content=json.dumps(payload).encode())


def context(pair: CurrencyPair) -> NormalizeContext:
    """Normalization context stamped at FIXED_MS."""
    return NormalizeContext(
        pair=pair, received_at=datetime.fromtimestamp(FIXED_MS / 1000, tz=UTC)
    )


class FixedClock:
    """Clock frozen at a given instant until advanced."""

    def __init__(self, now_ms: int = FIXED_MS) -> None:
        self.ms = now_ms

    def now_ms(self) -> int:
        """Current frozen milliseconds."""
        return self.ms

    def now_ns(self) -> int:
        """Current frozen nanoseconds."""
        return self.ms * 1_000_000

    def advance(self, ms: int) -> None:
        """Move the clock forward (or backward, for negative ``ms``)."""
        self.ms += ms


class RecordedCall:
    """One request seen by FakeHTTPClient."""

    def __init__(
        self,
        method: str,
        url: str,
        params: list[tuple[str, str]] | None = None,
        body: str = "",
        headers: Mapping[str, str] | None = None,
    ) -> None:
        parts = urlsplit(url)
        self.method = method
        self.url = url
        self.path = parts.path
        self.query = dict(parse_qsl(parts.query))
        self.params = list(params or [])
        self.body = body
        self.headers = dict(headers or {})

    @property
    def form(self) -> dict[str, str]:
        """Form fields as a dict."""
        return dict(self.params)

    @property
    def json(self) -> Any:
        """Body decoded as JSON."""
        return json.loads(self.body)


class FakeHTTPClient:
    """
    Scripted HTTPClientProtocol.

    Responses are keyed by method and URL path. Several responses queued
    for one route are served in order, and the last one repeats.
    """

    def __init__(self, base_url: str = "") -> None:
        self.base_url = base_url
        self.routes: dict[tuple[str, str], list[HttpResponse | Exception]] = {}
        self.calls: list[RecordedCall] = []

    def on(
        self, method: str, path: str, payload: Any, status: int = 200
    ) -> "FakeHTTPClient":
        """Queue a JSON answer for ``method path``."""
        answer = json_response(payload, status)
        self.routes.setdefault((method, path), []).append(answer)
        return self

    def on_raw(
        self, method: str, path: str, content: bytes, status: int = 200
    ) -> "FakeHTTPClient":
        """Queue a non-JSON answer."""
        answer = HttpResponse(status_code=status, content=content)
        self.routes.setdefault((method, path), []).append(answer)
        return self

    def fail(self, method: str, path: str, error: Exception) -> "FakeHTTPClient":
        """Raise ``error`` for ``method path``."""
        self.routes.setdefault((method, path), []).append(error)
        return self

    def get(self, url: str, headers: Mapping[str, str] | None = None) -> HttpResponse:
        """Record and answer a GET."""
        return self._answer(RecordedCall("GET", url, headers=headers))

    def post_form(
        self,
        url: str,
        params: Any,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        """Record and answer a form POST."""
        items = params.items() if isinstance(params, Mapping) else params
        fields = [(k, str(v)) for k, v in items]
        return self._answer(RecordedCall("POST", url, params=fields, headers=headers))

    def post(
        self,
        url: str,
        body: str,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        """Record and answer a body POST."""
        return self._answer(RecordedCall("POST", url, body=body, headers=headers))

    def delete(
        self,
        url: str,
        params: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        """Record and answer a DELETE."""
        items = params.items() if isinstance(params, Mapping) else params or []
        fields = [(k, str(v)) for k, v in items]
        return self._answer(
            RecordedCall("DELETE", url, params=fields, headers=headers)
        )

    def last(self, path: str | None = None) -> RecordedCall:
        """Most recent call, optionally the most recent to ``path``."""
        calls = [c for c in self.calls if path is None or c.path == path]
        assert calls, f"no call to {path}"
        return calls[-1]

    def count(self, path: str) -> int:
        """Number of calls to ``path``."""
        return sum(1 for c in self.calls if c.path == path)

    def _answer(self, call: RecordedCall) -> HttpResponse:
        self.calls.append(call)
        queue = self.routes.get((call.method, call.path))
        if not queue:
            raise AssertionError(f"unexpected {call.method} {call.path}")
        answer = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(answer, Exception):
            raise answer
        return answer


class OrderBuilder:
    """Builder for canonical orders."""

    def __init__(self, pair: CurrencyPair | None = None) -> None:
        """Initialize with a resting limit buy."""
        self._fields: dict[str, Any] = {
            "order_id": "1",
            "pair": pair or CurrencyPair.of("BTC", "USDT"),
            "side": TradeSide.BUY,
            "price": Decimal("100"),
            "amount": Decimal("1"),
            "deal_amount": Decimal("0"),
            "status": TradeStatus.UNFINISHED,
        }

    def with_id(self, order_id: str) -> "OrderBuilder":
        """Set the order id."""
        self._fields["order_id"] = order_id
        return self

    def with_fill(
        self, deal: str | Decimal, avg_price: str | Decimal | None = None
    ) -> "OrderBuilder":
        """Set the filled amount and average price."""
        self._fields["deal_amount"] = Decimal(str(deal))
        if avg_price is not None:
            self._fields["avg_price"] = Decimal(str(avg_price))
        return self

    def with_amount(self, amount: str | Decimal) -> "OrderBuilder":
        """Set the requested amount."""
        self._fields["amount"] = Decimal(str(amount))
        return self

    def with_status(self, status: TradeStatus) -> "OrderBuilder":
        """Set the status."""
        self._fields["status"] = status
        return self

    def build_dict(self) -> dict[str, Any]:
        """Fields as a dict, for invariant tests."""
        return dict(self._fields)

    def build(self) -> Order:
        """Build the order."""
        return Order(**self._fields)
