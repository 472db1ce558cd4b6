"""Turn a wire request plus connection metadata into a NormalizedRequest."""

import socket
import ssl
from dataclasses import dataclass

from verbserver.domain.http_types import HttpRequest
from verbserver.domain.normalized import (
    Endpoint,
    NormalizedRequest,
    freeze,
    host_from_header,
    ip_protocol_for,
    normalize_path,
    parse_cookies,
    parse_query,
    split_target,
)
from verbserver.domain.session import find_session_id, generate_session_id


@dataclass(frozen=True)
class ConnectionInfo:
    """Socket-level facts shared by every request on one connection."""

    server_address: str
    server_port: int
    client_address: str
    client_port: int
    tls: bool = False
    tls_version: str = ""
    tls_cipher: str = ""


def describe_connection(client_socket: socket.socket) -> ConnectionInfo:
    """Collect addresses and negotiated TLS parameters from a live socket."""
    local = client_socket.getsockname()
    remote = client_socket.getpeername()
    tls = isinstance(client_socket, ssl.SSLSocket)
    tls_version = ""
    tls_cipher = ""
    if tls:
        tls_version = client_socket.version() or ""
        cipher = client_socket.cipher()
        tls_cipher = cipher[0] if cipher else ""
    return ConnectionInfo(
        server_address=str(local[0]),
        server_port=int(local[1]),
        client_address=str(remote[0]),
        client_port=int(remote[1]),
        tls=tls,
        tls_version=tls_version,
        tls_cipher=tls_cipher,
    )


def build_normalized_request(
    raw: HttpRequest, connection: ConnectionInfo
) -> tuple[NormalizedRequest, bool]:
    """Build the handler-facing request.

    Returns the request and whether its session identifier was freshly
    generated (in which case the client must be sent a cookie).
    """
    raw_path, raw_query = split_target(raw.target)
    cookies = parse_cookies(raw.headers.get("cookie", ""))
    session_id = find_session_id(cookies)
    is_new_session = session_id is None
    if session_id is None:
        session_id = generate_session_id()

    hostname = host_from_header(raw.headers.get("host", "")) or socket.gethostname()
    request = NormalizedRequest(
        server=Endpoint(
            connection.server_address, str(connection.server_port), hostname
        ),
        client=Endpoint(connection.client_address, str(connection.client_port)),
        ip_protocol=ip_protocol_for(connection.client_address),
        http_version=raw.version.partition("/")[2],
        tls=connection.tls,
        tls_version=connection.tls_version,
        tls_cipher=connection.tls_cipher,
        method=raw.method.lower(),
        headers=freeze(raw.headers),
        cookies=freeze(cookies),
        data=raw.body.decode("utf-8", errors="replace"),
        raw_data=raw.body,
        path=normalize_path(raw_path),
        query=freeze(parse_query(raw_query)),
        session_id=session_id,
    )
    return request, is_new_session
