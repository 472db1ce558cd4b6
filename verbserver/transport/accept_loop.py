"""Connection acceptance loop, one per listener."""

import socket
import threading

from verbserver.domain.correlation_id import get_logger
from verbserver.transport.context import ListenerContext
from verbserver.transport.worker import handle_client

ACCEPT_LOGGER = get_logger("transport.accept")


def _start_worker(
    client_socket: socket.socket,
    client_address: tuple,
    context: ListenerContext,
) -> None:
    thread = threading.Thread(
        target=handle_client,
        args=(client_socket, client_address, context),
        name=f"verbserver-{context.name}-worker",
        daemon=True,
    )
    # Registered before start so terminate() can always reach the socket.
    context.lifecycle.register_worker(thread, client_socket)
    thread.start()


def run_accept_loop(context: ListenerContext) -> None:
    """Accept connections until the lifecycle is stopped, then close the listener."""
    lifecycle = context.lifecycle
    ACCEPT_LOGGER.info(
        "Listener accepting connections",
        extra={
            "event": "server_listening",
            "listener": context.name,
            "port": context.port,
            "tls": context.tls,
        },
    )
    try:
        while not lifecycle.should_stop():
            try:
                client_socket, client_address = context.server_socket.accept()
            except socket.timeout:
                continue
            except OSError as error:
                if lifecycle.should_stop():
                    break
                ACCEPT_LOGGER.error(
                    "Socket accept failed",
                    extra={
                        "event": "accept_error",
                        "listener": context.name,
                        "error_type": type(error).__name__,
                    },
                )
                continue

            if lifecycle.should_stop():
                client_socket.close()
                break

            ACCEPT_LOGGER.debug(
                "Client connection accepted",
                extra={
                    "event": "client_accepted",
                    "listener": context.name,
                    "client": f"{client_address[0]}:{client_address[1]}",
                },
            )
            _start_worker(client_socket, client_address, context)
    finally:
        context.server_socket.close()
        ACCEPT_LOGGER.info(
            "Listener closed",
            extra={"event": "listener_closed", "listener": context.name},
        )
