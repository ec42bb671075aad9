"""Raw HTTP response handed from the transport to the normalizers."""

from pydantic import BaseModel, ConfigDict, Field


class HttpResponse(BaseModel):
    """
    Status code and undecoded body of one HTTP exchange.

    The transport returns every HTTP response, including 4xx/5xx, because
    most venues put their business error envelope in error responses. Only
    connection-level failures are raised by the transport.
    """

    status_code: int = Field(..., ge=100, le=599)
    content: bytes = b""

    model_config = ConfigDict(frozen=True)

    @property
    def ok(self) -> bool:
        """Whether the status is 2xx."""
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        """Body decoded as UTF-8."""
        return self.content.decode("utf-8", errors="replace")
