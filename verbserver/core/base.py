"""Abstract HTTP/HTTPS server dispatching requests to per-verb methods.

Subclass :class:`VerbServer`, override the verbs you need and construct it
with the ports to listen on::

    class HelloServer(VerbServer):
        def get(self, request, response):
            self.send_text(response, f"Hello from /{request.path}")

    server = HelloServer(8080, 8443)

Every request becomes a :class:`~verbserver.domain.normalized.NormalizedRequest`
and is passed to the method named after its HTTP verb. Handlers that decline
fall through to :meth:`all_methods`; if that declines too the client gets a
501 JSON error.
"""

import json
import logging
import platform
import threading
from typing import Any, Mapping, Optional

from verbserver.bootstrap.config import (
    COMPONENT,
    DEFAULT_CERT_FILE,
    DEFAULT_DIRECTORY,
    DEFAULT_HOST,
    DEFAULT_KEY_FILE,
    VERSION,
    PortConfig,
    ServerSettings,
    debug_enabled,
)
from verbserver.bootstrap.socket_factory import build_tls_context, create_listener
from verbserver.core.handlers import RequestHandlers
from verbserver.domain.correlation_id import get_logger
from verbserver.domain.errors import FileAccessError
from verbserver.domain.mime_types import mime_type_for
from verbserver.domain.sandbox import read_sandboxed_file
from verbserver.domain.statistics import ServerStatistics, utc_timestamp
from verbserver.lifecycle.state import ServerLifecycle
from verbserver.pipeline.sink import ResponseSink
from verbserver.transport.accept_loop import run_accept_loop
from verbserver.transport.context import ListenerContext

SERVER_LOGGER = get_logger("server")

SERVER_HEADER = f"{COMPONENT}/{VERSION} (Python {platform.python_version()})"


class VerbServer(RequestHandlers):
    """Base class for servers answering requests through per-verb methods."""

    def __init__(
        self,
        http_port: int = 0,
        https_port: int = 0,
        *,
        host: str = DEFAULT_HOST,
        cert_file: str = DEFAULT_CERT_FILE,
        key_file: str = DEFAULT_KEY_FILE,
        directory: str = DEFAULT_DIRECTORY,
        settings: Optional[ServerSettings] = None,
    ) -> None:
        self._debug = debug_enabled()
        self._log_debug(
            "Server constructor called",
            extra={"http_port": http_port, "https_port": https_port},
        )
        self.ports = PortConfig(http_port, https_port)
        self.host = host
        self.directory = directory
        self.settings = settings or ServerSettings()
        self.statistics = ServerStatistics(COMPONENT, VERSION)
        self.ping_enabled = True
        self._default_headers: dict[str, str] = {}
        self._lifecycle = ServerLifecycle()
        self._listeners: list[ListenerContext] = []
        self._accept_threads: list[threading.Thread] = []

        tls_context = None
        if self.ports.https_enabled:
            tls_context = build_tls_context(cert_file, key_file)

        try:
            if self.ports.http_enabled:
                self._bind("http", self.ports.http_port)
            if self.ports.https_enabled:
                self._bind("https", self.ports.https_port, tls_context)
        except OSError:
            for listener in self._listeners:
                listener.server_socket.close()
            raise

        for listener in self._listeners:
            thread = threading.Thread(
                target=run_accept_loop,
                args=(listener,),
                name=f"verbserver-{listener.name}-accept",
                daemon=True,
            )
            self._accept_threads.append(thread)
            thread.start()

        SERVER_LOGGER.info(
            "Server started",
            extra={
                "event": "server_started",
                "host": host,
                "http_port": self.ports.http_port,
                "https_port": self.ports.https_port,
                "directory": directory,
            },
        )

    def _bind(self, name: str, port: int, tls_context=None) -> None:
        self._log_debug(
            f"Creating {name.upper()} listener", extra={"port": port, "host": self.host}
        )
        server_socket = create_listener(self.host, port)
        self._listeners.append(
            ListenerContext(
                name=name,
                port=port,
                server_socket=server_socket,
                server=self,
                lifecycle=self._lifecycle,
                settings=self.settings,
                tls_context=tls_context,
            )
        )

    @property
    def diagnostics_level(self) -> int:
        """Level for per-request diagnostics; raised to INFO by VERBSERVER_DEBUG."""
        return logging.INFO if self._debug else logging.DEBUG

    def _log_debug(self, message: str, extra: Optional[dict] = None) -> None:
        if self._debug:
            SERVER_LOGGER.info(message, extra={"event": "debug", **(extra or {})})

    def __enter__(self) -> "VerbServer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.terminate()

    def __str__(self) -> str:
        flags = [
            ("HTTP", self.ports.http_enabled),
            ("HTTPS", self.ports.https_enabled),
            ("Active", self.is_active),
            ("Debug", self._debug),
        ]
        status = ", ".join(f"{name}: {str(value).lower()}" for name, value in flags)
        return f"{COMPONENT}[{status}]"

    @property
    def is_active(self) -> bool:
        return self._lifecycle.is_active()

    @property
    def http_port(self) -> int:
        return self.ports.http_port

    @property
    def https_port(self) -> int:
        return self.ports.https_port

    def disable_ping(self) -> None:
        """Stop answering ``GET /api/ping`` automatically."""
        self._log_debug("Automatic ping endpoint disabled")
        self.ping_enabled = False

    def set_headers(self, headers: Mapping[str, str]) -> None:
        """Set headers added to every response, e.g. CORS headers."""
        self._log_debug("Default headers set")
        self._default_headers = dict(headers)

    def get_statistics(self) -> dict:
        """Return server metadata and traffic counters."""
        return self.statistics.snapshot()

    def serve_forever(self, poll_interval: float = 0.5) -> None:
        """Block the calling thread until :meth:`terminate` is called."""
        while not self._lifecycle.wait_stopped(poll_interval):
            pass

    def terminate(self) -> None:
        """Stop listening, drop open connections and call :meth:`shutdown`.

        Safe to call more than once; only the first call does anything.
        """
        if not self._lifecycle.begin_termination():
            return
        self._log_debug("terminate() called")
        current = threading.current_thread()
        for thread in self._accept_threads:
            if thread is not current:
                thread.join()
        self._lifecycle.disconnect_workers()
        self._lifecycle.wait_for_workers(self.settings.shutdown_grace_seconds)
        SERVER_LOGGER.info("Server terminated", extra={"event": "server_stopped"})
        self.shutdown()

    def send_text(self, response: ResponseSink, text: str, status: int = 200) -> None:
        self._send_data(response, "text/plain", text.encode("utf-8"), status)

    def send_html(self, response: ResponseSink, html: str, status: int = 200) -> None:
        self._send_data(response, "text/html", html.encode("utf-8"), status)

    def send_json(self, response: ResponseSink, data: Any, status: int = 200) -> None:
        payload = json.dumps(data).encode("utf-8")
        self._send_data(response, "application/json", payload, status)

    def send_error(self, response: ResponseSink, message: str, status: int) -> None:
        """Send the standard JSON error envelope."""
        self.send_json(
            response,
            {
                "time": utc_timestamp(),
                "httpStatus": status,
                "component": COMPONENT,
                "error": message,
            },
            status,
        )

    def redirect_url(self, response: ResponseSink, location: str) -> None:
        """Permanently redirect the client to ``location``."""
        self._send_data(response, "text/plain", b"", 301, {"Location": location})

    def read_file(self, path: str, root: Optional[str] = None) -> bytes:
        """Return the content of ``path`` below ``root`` (default: the server directory).

        Raises ``FileAccessError`` carrying the HTTP status to answer with.
        """
        _, content = read_sandboxed_file(root or self.directory, path)
        return content

    def send_file(
        self,
        response: ResponseSink,
        path: str,
        root: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> None:
        """Send a file below ``root``, answering 400/404/500 on failure."""
        try:
            target, content = read_sandboxed_file(root or self.directory, path)
        except FileAccessError as error:
            SERVER_LOGGER.info(
                "File request rejected",
                extra={
                    "event": "file_rejected",
                    "path": path,
                    "status_code": error.status,
                },
            )
            self.send_error(response, error.message, error.status)
            return
        self._send_data(response, mime_type or mime_type_for(target.name), content)

    def _send_data(
        self,
        response: ResponseSink,
        mime_type: str,
        payload: bytes,
        status: int = 200,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Shared writer behind every send helper."""
        self._log_debug(
            "Sending response",
            extra={"status_code": status, "bytes_out": len(payload)},
        )
        if not self.is_active:
            return
        merged = dict(self._default_headers)
        merged.update(response.pending_headers)
        merged.update(headers or {})
        merged["Content-Type"] = mime_type
        merged["Content-Length"] = str(len(payload))
        merged["Server"] = SERVER_HEADER
        if response.write(status, merged, payload):
            self.statistics.record_response(0 if response.head_only else len(payload))