"""Per-request response sink guaranteeing a single write."""

import socket
import threading
from typing import Optional

from verbserver.domain.correlation_id import get_logger
from verbserver.domain.http_types import HttpResponse
from verbserver.pipeline.io import send_response

SINK_LOGGER = get_logger("pipeline.sink")


class ResponseSink:
    """Where a handler's response goes.

    Headers added with :meth:`add_header` before the write (for example the
    session cookie) are merged into the response. A second write is ignored.
    """

    def __init__(
        self,
        client_socket: socket.socket,
        close_connection: bool = False,
        head_only: bool = False,
    ) -> None:
        self._socket = client_socket
        self._lock = threading.Lock()
        self._pending_headers: dict[str, str] = {}
        self.close_connection = close_connection
        self.head_only = head_only
        self.status: Optional[int] = None

    @property
    def sent(self) -> bool:
        return self.status is not None

    def add_header(self, name: str, value: str) -> None:
        self._pending_headers[name] = value

    @property
    def pending_headers(self) -> dict[str, str]:
        return dict(self._pending_headers)

    def write(self, status: int, headers: dict[str, str], body: bytes) -> bool:
        """Send the response; returns False when one was already sent."""
        with self._lock:
            if self.status is not None:
                SINK_LOGGER.warning(
                    "Response already sent",
                    extra={"event": "duplicate_response", "status_code": status},
                )
                return False
            self.status = status
        response = HttpResponse(status, headers, body, self.close_connection)
        send_response(self._socket, response, include_body=not self.head_only)
        return True
