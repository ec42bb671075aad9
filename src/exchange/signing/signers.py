"""
Request signers.

Each venue authenticates private requests with one of a handful of HMAC
schemes. A signer is built once from the credential set and is pure
afterwards: the nonce or timestamp is passed in, so signing the same
request twice with the same nonce gives the same result.

Every signer returns a Signature carrying what the adapter must send:
the final ordered form fields, extra headers and, for JSON venues, the
body that was signed.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any, Literal
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field

from src.exchange.config import Credentials

Params = Sequence[tuple[str, str]] | Mapping[str, str]


class Signature(BaseModel):
    """Authentication material for one request."""

    params: tuple[tuple[str, str], ...] = Field(
        default=(), description="Form or query fields to send, in order"
    )
    headers: dict[str, str] = Field(default_factory=dict)
    body: str = ""
    signature: str = Field(default="", description="The computed signature")

    model_config = ConfigDict(frozen=True)


def _items(params: Params | None) -> list[tuple[str, str]]:
    if params is None:
        return []
    if isinstance(params, Mapping):
        return [(k, str(v)) for k, v in params.items()]
    return [(k, str(v)) for k, v in params]


def _hmac(key: bytes, message: bytes, digest: Any) -> hmac.HMAC:
    return hmac.new(key, message, digest)


# =============================================================================
# FORM-ENCODED SCHEMES
# =============================================================================


class FormHmacSha256Signer:
    """
    HMAC-SHA256 hex over the URL-encoded form, appended as a form field.

    Fields are sorted by name before encoding. The nonce (milliseconds) is
    added under ``nonce_field``. The API key travels either as a header
    (Binance ``X-MBX-APIKEY``) or as a form field (Atop ``accesskey``).
    """

    def __init__(
        self,
        credentials: Credentials,
        nonce_field: str = "timestamp",
        signature_field: str = "signature",
        key_header: str | None = None,
        key_field: str | None = None,
    ) -> None:
        self.api_key = credentials.api_key
        self._secret = credentials.secret_key.encode()
        self.nonce_field = nonce_field
        self.signature_field = signature_field
        self.key_header = key_header
        self.key_field = key_field

    def sign(
        self,
        method: str,
        path: str,
        params: Params | None = None,
        body: str = "",
        nonce: int = 0,
    ) -> Signature:
        """Sign a form; ``method``, ``path`` and ``body`` are not covered."""
        fields = _items(params)
        if self.key_field:
            fields.append((self.key_field, self.api_key))
        fields.append((self.nonce_field, str(nonce)))
        fields.sort(key=lambda kv: kv[0])
        payload = urlencode(fields)
        digest = _hmac(self._secret, payload.encode(), hashlib.sha256).hexdigest()
        headers = {self.key_header: self.api_key} if self.key_header else {}
        return Signature(
            params=(*fields, (self.signature_field, digest)),
            headers=headers,
            signature=digest,
        )


class FormHmacSha512Signer:
    """
    HMAC-SHA512 hex over the URL-encoded form, delivered as a header.

    Used by Poloniex: the form carries ``nonce`` and the headers carry
    ``Key`` and ``Sign``.
    """

    def __init__(self, credentials: Credentials) -> None:
        self.api_key = credentials.api_key
        self._secret = credentials.secret_key.encode()

    def sign(
        self,
        method: str,
        path: str,
        params: Params | None = None,
        body: str = "",
        nonce: int = 0,
    ) -> Signature:
        """Sign a form with a trailing nonce field."""
        fields = [*_items(params), ("nonce", str(nonce))]
        payload = urlencode(fields)
        digest = _hmac(self._secret, payload.encode(), hashlib.sha512).hexdigest()
        return Signature(
            params=tuple(fields),
            headers={"Key": self.api_key, "Sign": digest},
            signature=digest,
        )


class ClientIdHmacSha256Signer:
    """
    Bitstamp scheme: HMAC-SHA256 over ``nonce + client_id + api_key``.

    The hex digest is upper-cased and sent with ``key`` and ``nonce`` as
    form fields; the request parameters are not signed.
    """

    def __init__(self, credentials: Credentials) -> None:
        self.api_key = credentials.api_key
        self.client_id = credentials.client_id
        self._secret = credentials.secret_key.encode()

    def sign(
        self,
        method: str,
        path: str,
        params: Params | None = None,
        body: str = "",
        nonce: int = 0,
    ) -> Signature:
        """Sign the credential triple and append the auth fields."""
        message = f"{nonce}{self.client_id}{self.api_key}".encode()
        digest = _hmac(self._secret, message, hashlib.sha256).hexdigest().upper()
        fields = [
            *_items(params),
            ("key", self.api_key),
            ("signature", digest),
            ("nonce", str(nonce)),
        ]
        return Signature(params=tuple(fields), signature=digest)


class KrakenSigner:
    """
    Kraken scheme.

    ``API-Sign = b64(HMAC-SHA512(b64decode(secret), path + SHA256(nonce + form)))``
    where ``form`` is the encoded POST body including the nonce field.
    """

    def __init__(self, credentials: Credentials) -> None:
        self.api_key = credentials.api_key
        self._secret = base64.b64decode(credentials.secret_key)

    def sign(
        self,
        method: str,
        path: str,
        params: Params | None = None,
        body: str = "",
        nonce: int = 0,
    ) -> Signature:
        """Sign a private POST to ``path`` (e.g. ``/0/private/Balance``)."""
        fields = [("nonce", str(nonce)), *_items(params)]
        payload = urlencode(fields)
        inner = hashlib.sha256((str(nonce) + payload).encode()).digest()
        mac = _hmac(self._secret, path.encode() + inner, hashlib.sha512)
        digest = base64.b64encode(mac.digest()).decode()
        return Signature(
            params=tuple(fields),
            headers={"API-Key": self.api_key, "API-Sign": digest},
            signature=digest,
        )


# =============================================================================
# HEADER SCHEMES
# =============================================================================


class PrehashHmacSha256Signer:
    """
    HMAC-SHA256 over ``timestamp + METHOD + path + body``, base64-encoded.

    The OKEx flavour sends an ISO-8601 timestamp with millisecond precision
    and a ``Z`` suffix; the KuCoin flavour sends epoch milliseconds and
    signs the passphrase with the same secret.
    """

    def __init__(
        self,
        credentials: Credentials,
        header_prefix: str,
        timestamp_format: Literal["iso", "ms"] = "iso",
        sign_passphrase: bool = False,
        key_version: str | None = None,
    ) -> None:
        self.api_key = credentials.api_key
        self._secret = credentials.secret_key.encode()
        self.header_prefix = header_prefix
        self.timestamp_format = timestamp_format
        self.key_version = key_version
        if sign_passphrase:
            mac = _hmac(self._secret, credentials.passphrase.encode(), hashlib.sha256)
            self.passphrase = base64.b64encode(mac.digest()).decode()
        else:
            self.passphrase = credentials.passphrase

    @classmethod
    def okex(cls, credentials: Credentials) -> PrehashHmacSha256Signer:
        """Signer with ``OK-ACCESS-*`` headers and ISO timestamps."""
        return cls(credentials, header_prefix="OK-ACCESS-", timestamp_format="iso")

    @classmethod
    def kucoin(cls, credentials: Credentials) -> PrehashHmacSha256Signer:
        """Signer with ``KC-API-*`` headers, ms timestamps, signed passphrase."""
        return cls(
            credentials,
            header_prefix="KC-API-",
            timestamp_format="ms",
            sign_passphrase=True,
            key_version="2",
        )

    def format_timestamp(self, nonce_ms: int) -> str:
        """Render the timestamp header value from epoch milliseconds."""
        if self.timestamp_format == "ms":
            return str(nonce_ms)
        moment = datetime.fromtimestamp(nonce_ms / 1000, tz=UTC)
        return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{nonce_ms % 1000:03d}Z"

    def sign(
        self,
        method: str,
        path: str,
        params: Params | None = None,
        body: str = "",
        nonce: int = 0,
    ) -> Signature:
        """
        Sign a request.

        Args:
            method: HTTP method
            path: Request path including any query string
            params: Unused; query parameters belong in ``path``
            body: Exact body that will be sent
            nonce: Epoch milliseconds

        Returns:
            Signature with the auth headers

        """
        timestamp = self.format_timestamp(nonce)
        message = f"{timestamp}{method.upper()}{path}{body}".encode()
        digest = base64.b64encode(
            _hmac(self._secret, message, hashlib.sha256).digest()
        ).decode()
        prefix = self.header_prefix
        headers = {
            f"{prefix}KEY": self.api_key,
            f"{prefix}SIGN": digest,
            f"{prefix}TIMESTAMP": timestamp,
            f"{prefix}PASSPHRASE": self.passphrase,
            "Content-Type": "application/json",
        }
        if self.key_version:
            headers[f"{prefix}KEY-VERSION"] = self.key_version
        return Signature(headers=headers, body=body, signature=digest)


class PayloadHmacSha384Signer:
    """
    Bitfinex v1 scheme.

    The request path, nonce and parameters form a JSON payload, which is
    base64-encoded and signed with HMAC-SHA384. All three travel in
    ``X-BFX-*`` headers; the JSON is also sent as the body.
    """

    def __init__(self, credentials: Credentials) -> None:
        self.api_key = credentials.api_key
        self._secret = credentials.secret_key.encode()

    def sign(
        self,
        method: str,
        path: str,
        params: Mapping[str, Any] | None = None,
        body: str = "",
        nonce: int = 0,
    ) -> Signature:
        """Build and sign the payload for ``path`` (e.g. ``/v1/balances``)."""
        payload = {"request": path, "nonce": str(nonce), **(params or {})}
        text = json.dumps(payload, separators=(",", ":"))
        encoded = base64.b64encode(text.encode()).decode()
        digest = _hmac(self._secret, encoded.encode(), hashlib.sha384).hexdigest()
        return Signature(
            headers={
                "X-BFX-APIKEY": self.api_key,
                "X-BFX-PAYLOAD": encoded,
                "X-BFX-SIGNATURE": digest,
                "Content-Type": "application/json",
            },
            body=text,
            signature=digest,
        )
