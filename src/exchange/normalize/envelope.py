"""
Envelope decoding and venue error classification.

Every venue wraps success and failure differently (``{code, data}``,
``{error: [...]}``, ``{code, msg}``, bare arrays). Adapters decode the body
here, run their venue-specific envelope check before reading any field,
and classify failures into the cross-venue ErrorKind set through an
ErrorClassifier table.
"""

import json
import logging
from typing import Any, NoReturn

from pydantic import BaseModel, ConfigDict, Field

from src.exchange.enums import ErrorKind
from src.exchange.errors import NormalizationError, TransportError, VenueError
from src.exchange.transport.response import HttpResponse

logger = logging.getLogger(__name__)


class ErrorClassifier(BaseModel):
    """
    Maps a venue's native error codes and messages to ErrorKind.

    Codes are matched exactly first, then message substrings are matched
    case-insensitively in declaration order. Anything else is OTHER.
    """

    codes: dict[str, ErrorKind] = Field(default_factory=dict)
    substrings: tuple[tuple[str, ErrorKind], ...] = ()

    model_config = ConfigDict(frozen=True)

    def classify(self, code: object, message: str) -> ErrorKind:
        """
        Classify one venue error.

        Args:
            code: Native error code (any JSON scalar) or None
            message: Native error message

        Returns:
            Cross-venue error kind

        """
        if code is not None and str(code) in self.codes:
            return self.codes[str(code)]
        lowered = message.lower()
        for needle, kind in self.substrings:
            if needle.lower() in lowered:
                return kind
        return ErrorKind.OTHER


# Substrings most venues share; venue tables extend this.
COMMON_SUBSTRINGS: tuple[tuple[str, ErrorKind], ...] = (
    ("order does not exist", ErrorKind.ORDER_NOT_FOUND),
    ("order not found", ErrorKind.ORDER_NOT_FOUND),
    ("unknown order", ErrorKind.ORDER_NOT_FOUND),
    ("too many request", ErrorKind.RATE_LIMITED),
    ("too much request", ErrorKind.RATE_LIMITED),
    ("rate limit", ErrorKind.RATE_LIMITED),
    ("insufficient", ErrorKind.INSUFFICIENT_BALANCE),
    ("not enough", ErrorKind.INSUFFICIENT_BALANCE),
)


def raise_venue_error(
    venue: str,
    classifier: ErrorClassifier,
    message: str,
    code: object = None,
) -> NoReturn:
    """
    Classify and raise a venue error, preserving the raw message.

    Raises:
        VenueError: Always, as the subclass matching the classified kind

    """
    kind = classifier.classify(code, message)
    code_text = None if code is None else str(code)
    logger.warning(f"{venue} error {code_text or '-'}: {message} ({kind.value})")
    raise VenueError.create(venue, kind, message, code_text)


def decode_json(response: HttpResponse, venue: str) -> Any:
    """
    Parse a response body as JSON.

    A non-JSON body on an error status is a transport-level failure (an
    HTML error page from a proxy, say); a non-JSON body on a 2xx status
    is a payload that does not match the venue schema.

    Args:
        response: Raw HTTP response
        venue: Venue name for error messages

    Returns:
        Parsed JSON value

    Raises:
        TransportError: Non-JSON body with an error status
        NormalizationError: Non-JSON body with a success status

    """
    try:
        return json.loads(response.content)
    except ValueError as e:
        snippet = response.text[:200]
        if not response.ok:
            check_http_status(response, venue)
        raise NormalizationError(f"{venue} returned non-JSON body: {snippet}") from e


def check_http_status(response: HttpResponse, venue: str) -> None:
    """
    Fail on an error status whose body carried no recognised envelope.

    Called after the venue's own envelope check, so only statuses the
    venue did not explain in its body reach this point.
    """
    if response.ok:
        return
    if response.status_code in (418, 429):
        message = f"HTTP {response.status_code}: {response.text[:200]}"
        logger.warning(f"{venue} rate limited: {message}")
        raise VenueError.create(venue, ErrorKind.RATE_LIMITED, message)
    raise TransportError(
        f"{venue} HTTP {response.status_code}: {response.text[:200]}",
        status_code=response.status_code,
    )
