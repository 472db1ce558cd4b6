"""Worker thread logic for serving one client connection."""

import socket
import ssl
import threading
from typing import Optional

from verbserver.bootstrap.socket_factory import wrap_client_socket
from verbserver.domain.correlation_id import (
    clear_correlation_id,
    generate_correlation_id,
    get_logger,
    set_correlation_id,
)
from verbserver.domain.errors import MalformedRequest, RequestEntityTooLarge
from verbserver.domain.http_types import HttpRequest, should_close
from verbserver.pipeline.dispatcher import dispatch
from verbserver.pipeline.io import receive_request
from verbserver.pipeline.normalize import ConnectionInfo, describe_connection
from verbserver.pipeline.sink import ResponseSink
from verbserver.transport.context import ListenerContext

WORKER_LOGGER = get_logger("transport.worker")


def _report_client_error(
    context: ListenerContext,
    error: Exception,
    client_socket: Optional[socket.socket],
    client_addr_str: str,
    event: str,
) -> None:
    WORKER_LOGGER.warning(
        "Client connection error",
        extra={
            "event": event,
            "listener": context.name,
            "client": client_addr_str,
            "error_type": type(error).__name__,
            "error": str(error),
        },
    )
    try:
        context.server.client_error(error, client_socket)
    except Exception:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "client_error hook raised",
            extra={"event": "client_error_hook_failed", "client": client_addr_str},
            exc_info=True,
        )


def _secure(
    context: ListenerContext, client_socket: socket.socket, client_addr_str: str
) -> Optional[socket.socket]:
    """Run the TLS handshake; returns None when it fails."""
    tls_socket = wrap_client_socket(context.tls_context, client_socket)
    context.lifecycle.register_worker(threading.current_thread(), tls_socket)
    try:
        tls_socket.do_handshake()
    except (ssl.SSLError, OSError) as error:
        _report_client_error(
            context, error, tls_socket, client_addr_str, "tls_handshake_failed"
        )
        tls_socket.close()
        return None
    WORKER_LOGGER.debug(
        "TLS handshake complete",
        extra={
            "event": "tls_established",
            "client": client_addr_str,
            "tls_version": tls_socket.version(),
        },
    )
    return tls_socket


def _reject(
    context: ListenerContext, client_socket: socket.socket, message: str, status: int
) -> None:
    sink = ResponseSink(client_socket, close_connection=True)
    context.server.send_error(sink, message, status)


def _read_request(
    context: ListenerContext,
    client_socket: socket.socket,
    buffer: bytes,
    client_addr_str: str,
) -> tuple[Optional[HttpRequest], bytes]:
    try:
        return receive_request(
            client_socket, buffer, context.settings.max_body_bytes
        )
    except RequestEntityTooLarge:
        WORKER_LOGGER.warning(
            "Request body size exceeded limit",
            extra={"event": "body_size_exceeded", "client": client_addr_str},
        )
        _reject(
            context,
            client_socket,
            f"Request body exceeds {context.settings.max_body_bytes} bytes",
            413,
        )
        return None, b""
    except MalformedRequest as error:
        _report_client_error(
            context, error, client_socket, client_addr_str, "malformed_request"
        )
        _reject(context, client_socket, str(error), 400)
        return None, b""


def _serve(
    context: ListenerContext,
    client_socket: socket.socket,
    connection: ConnectionInfo,
    client_addr_str: str,
) -> None:
    buffer = b""
    while not context.lifecycle.should_stop():
        set_correlation_id(generate_correlation_id())
        request, buffer = _read_request(context, client_socket, buffer, client_addr_str)
        if request is None:
            break

        incoming_id = request.headers.get("x-request-id")
        if incoming_id:
            set_correlation_id(incoming_id)

        sink = ResponseSink(
            client_socket,
            close_connection=should_close(request),
            head_only=request.method.upper() == "HEAD",
        )
        dispatch(context.server, request, connection, sink)
        clear_correlation_id()
        if not sink.sent or sink.close_connection:
            break


def handle_client(
    client_socket: socket.socket,
    client_address: tuple,
    context: ListenerContext,
) -> None:
    """Serve requests on a client socket until it is closed."""
    client_addr_str = f"{client_address[0]}:{client_address[1]}"
    current_thread = threading.current_thread()
    client_socket.settimeout(context.settings.socket_timeout)

    try:
        if context.tls_context is not None:
            secured = _secure(context, client_socket, client_addr_str)
            if secured is None:
                return
            client_socket = secured
        _serve(context, client_socket, describe_connection(client_socket), client_addr_str)
    except TimeoutError:
        WORKER_LOGGER.debug(
            "Connection idle timeout",
            extra={"event": "idle_timeout", "client": client_addr_str},
        )
    except (ConnectionError, OSError) as error:
        if not context.lifecycle.should_stop():
            _report_client_error(
                context, error, client_socket, client_addr_str, "connection_error"
            )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
    finally:
        context.lifecycle.cleanup_worker(current_thread)
        try:
            client_socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass
        client_socket.close()
        clear_correlation_id()
        WORKER_LOGGER.debug(
            "Socket closed",
            extra={"event": "socket_closed", "client": client_addr_str},
        )
