"""Wire-level HTTP request and response types."""

from dataclasses import dataclass, field
from http import HTTPStatus


@dataclass
class HttpRequest:
    """A request as read off the socket, before normalization."""

    method: str
    target: str
    version: str
    headers: dict[str, str]
    body: bytes = b""


@dataclass
class HttpResponse:
    """A complete response ready to be serialized."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    close_connection: bool = False

    @property
    def status_line(self) -> str:
        return f"HTTP/1.1 {self.status} {reason_phrase(self.status)}"


def reason_phrase(status: int) -> str:
    """Return the standard reason phrase, or an empty string for unknown codes."""
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


def should_close(request: HttpRequest) -> bool:
    """Determine whether the connection should be closed after responding."""
    connection = request.headers.get("connection", "").lower()
    if connection == "close":
        return True
    if request.version == "HTTP/1.0":
        return connection != "keep-alive"
    return False
