"""Listening socket creation and TLS configuration."""

import socket
import ssl

from verbserver.bootstrap.config import ACCEPT_POLL_SECONDS
from verbserver.domain.correlation_id import get_logger
from verbserver.domain.errors import TlsConfigurationError

SOCKET_LOGGER = get_logger("bootstrap.socket")

ALPN_PROTOCOLS = ["http/1.1"]


def build_tls_context(cert_file: str, key_file: str) -> ssl.SSLContext:
    """Load the certificate chain and private key into a server-side context."""
    try:
        tls_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        tls_context.load_cert_chain(cert_file, key_file)
        tls_context.set_alpn_protocols(ALPN_PROTOCOLS)
    except (OSError, ssl.SSLError) as error:
        SOCKET_LOGGER.critical(
            "Failed to load TLS certificates",
            extra={
                "event": "tls_config_failed",
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )
        raise TlsConfigurationError(
            f"Unable to load TLS material from {cert_file} / {key_file}: {error}"
        ) from error
    return tls_context


def create_listener(host: str, port: int) -> socket.socket:
    """Bind a listening socket that polls so accept loops can observe shutdown."""
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    server_socket = socket.create_server((host, port), family=family)
    server_socket.settimeout(ACCEPT_POLL_SECONDS)
    SOCKET_LOGGER.debug(
        "Listener bound",
        extra={"event": "listener_bound", "host": host, "port": port},
    )
    return server_socket


def wrap_client_socket(
    tls_context: ssl.SSLContext, client_socket: socket.socket
) -> ssl.SSLSocket:
    """Wrap an accepted connection; the handshake runs on the worker thread."""
    return tls_context.wrap_socket(
        client_socket, server_side=True, do_handshake_on_connect=False
    )
