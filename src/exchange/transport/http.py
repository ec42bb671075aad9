"""
Default HTTP capability backed by httpx.

Adapters only depend on HTTPClientProtocol; this client is what the
registry injects when the caller brings no transport of its own. It owns
one pooled ``httpx.Client`` and converts httpx failures into
TransportError. HTTP error statuses are returned, not raised, so the
venue's error envelope can be read.
"""

import logging
from collections.abc import Mapping
from urllib.parse import urlencode

import httpx

from src.exchange.config import HttpConfig
from src.exchange.errors import TransportError
from src.exchange.transport.response import HttpResponse

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class HttpxClient:
    """
    Synchronous HTTP client satisfying HTTPClientProtocol.

    Safe to share between adapters and threads; httpx.Client pools
    connections internally.
    """

    def __init__(
        self,
        config: HttpConfig | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Timeout, user agent and proxy settings
            client: Pre-built httpx client (tests pass one with a MockTransport)

        """
        self.config = config or HttpConfig()
        self._client = client or httpx.Client(
            timeout=self.config.timeout,
            proxy=self.config.proxy,
            headers={"User-Agent": self.config.user_agent},
        )

    def get(self, url: str, headers: Mapping[str, str] | None = None) -> HttpResponse:
        """Perform a GET request."""
        return self._send("GET", url, headers=headers)

    def post_form(
        self,
        url: str,
        params: object,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        """POST a form-encoded body, keeping the caller's field order."""
        items = params.items() if isinstance(params, Mapping) else params
        merged = {"Content-Type": FORM_CONTENT_TYPE, **(headers or {})}
        return self._send("POST", url, content=urlencode(list(items)), headers=merged)

    def post(
        self,
        url: str,
        body: str,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        """POST a pre-serialized body."""
        return self._send("POST", url, content=body, headers=headers)

    def delete(
        self,
        url: str,
        params: object | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        """Perform a DELETE request with query parameters."""
        if params:
            items = params.items() if isinstance(params, Mapping) else params
            query = urlencode(list(items))
            url = f"{url}{'&' if '?' in url else '?'}{query}"
        return self._send("DELETE", url, headers=headers)

    def close(self) -> None:
        """Release pooled connections."""
        self._client.close()

    def __enter__(self) -> "HttpxClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _send(
        self,
        method: str,
        url: str,
        content: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        logger.debug(f"{method} {url}")
        try:
            response = self._client.request(
                method, url, content=content, headers=dict(headers or {})
            )
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise TransportError(f"{method} {url} failed: {e}") from e
        if response.status_code >= 400:
            logger.debug(f"{method} {url} returned HTTP {response.status_code}")
        return HttpResponse(status_code=response.status_code, content=response.content)
