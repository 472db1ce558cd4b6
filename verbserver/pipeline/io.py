"""HTTP/1.x request reading and response serialization."""

import socket
from typing import Optional, Tuple

from verbserver.bootstrap.config import HEADER_DELIMITER, MAX_HEADER_BYTES
from verbserver.domain.correlation_id import get_correlation_id, get_logger
from verbserver.domain.errors import MalformedRequest, RequestEntityTooLarge
from verbserver.domain.http_types import HttpRequest, HttpResponse

IO_LOGGER = get_logger("pipeline.io")

CRLF = b"\r\n"
CONTINUE_LINE = b"HTTP/1.1 100 Continue\r\n\r\n"
SUPPORTED_VERSIONS = {"HTTP/1.0", "HTTP/1.1"}
# Repeated headers are folded with these separators.
_JOINERS = {"cookie": "; "}


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary."""
    parsed: dict[str, str] = {}
    for line in lines:
        if ":" not in line:
            continue
        name, value = line.split(":", 1)
        name = name.strip().lower()
        if not name:
            continue
        value = value.strip()
        if name in parsed:
            parsed[name] = _JOINERS.get(name, ", ").join((parsed[name], value))
        else:
            parsed[name] = value
    return parsed


def parse_request_line(request_line: str) -> Tuple[str, str, str]:
    """Split the request line into method, target and protocol version."""
    parts = request_line.split()
    if len(parts) != 3:
        raise MalformedRequest("Invalid request line")
    method, target, version = parts
    if version not in SUPPORTED_VERSIONS:
        raise MalformedRequest(f"Unsupported protocol version {version}")
    return method, target, version


def determine_content_length(headers: dict[str, str], max_body_bytes: int) -> int:
    """Return the declared Content-Length, or 0 when the header is absent."""
    header_value = headers.get("content-length")
    if header_value is None:
        return 0
    try:
        content_length = int(header_value)
    except ValueError as exc:
        raise MalformedRequest("Invalid Content-Length") from exc
    if content_length < 0:
        raise MalformedRequest("Negative Content-Length")
    if max_body_bytes and content_length > max_body_bytes:
        raise RequestEntityTooLarge
    return content_length


def _recv_more(client_socket: socket.socket, buffer: bytes) -> Optional[bytes]:
    chunk = client_socket.recv(4096)
    if not chunk:
        return None
    return buffer + chunk


def _read_chunked_body(
    client_socket: socket.socket, buffer: bytes, max_body_bytes: int
) -> Tuple[Optional[bytes], bytes]:
    """Decode a chunked request body, returning the body and leftover bytes."""
    body = b""
    while True:
        while CRLF not in buffer:
            buffer = _recv_more(client_socket, buffer)
            if buffer is None:
                return None, b""
        size_line, buffer = buffer.split(CRLF, 1)
        try:
            size = int(size_line.split(b";", 1)[0].strip(), 16)
        except ValueError as exc:
            raise MalformedRequest("Invalid chunk size") from exc
        if size == 0:
            # Skip optional trailers up to the terminating blank line.
            while not buffer.startswith(CRLF) and HEADER_DELIMITER not in buffer:
                buffer = _recv_more(client_socket, buffer)
                if buffer is None:
                    return None, b""
            if buffer.startswith(CRLF):
                return body, buffer[len(CRLF) :]
            return body, buffer.split(HEADER_DELIMITER, 1)[1]
        if max_body_bytes and len(body) + size > max_body_bytes:
            raise RequestEntityTooLarge
        while len(buffer) < size + len(CRLF):
            buffer = _recv_more(client_socket, buffer)
            if buffer is None:
                return None, b""
        body += buffer[:size]
        buffer = buffer[size + len(CRLF) :]


def receive_request(
    client_socket: socket.socket, buffer: bytes, max_body_bytes: int = 0
) -> Tuple[Optional[HttpRequest], bytes]:
    """Read bytes until a complete request is available.

    Returns ``(None, b"")`` when the peer closes the connection first.
    """
    while HEADER_DELIMITER not in buffer:
        if len(buffer) > MAX_HEADER_BYTES:
            raise MalformedRequest("Header section too large")
        chunk = client_socket.recv(4096)
        if not chunk:
            return None, b""
        buffer += chunk

    header_block, remainder = buffer.split(HEADER_DELIMITER, 1)
    header_lines = header_block.decode("iso-8859-1").split("\r\n")
    method, target, version = parse_request_line(header_lines[0])
    headers = parse_headers(header_lines[1:])

    if "chunked" in headers.get("transfer-encoding", "").lower():
        body, leftover = _read_chunked_body(client_socket, remainder, max_body_bytes)
        if body is None:
            return None, b""
        return HttpRequest(method, target, version, headers, body), leftover

    content_length = determine_content_length(headers, max_body_bytes)
    if (
        len(remainder) < content_length
        and headers.get("expect", "").lower() == "100-continue"
    ):
        client_socket.sendall(CONTINUE_LINE)

    while len(remainder) < content_length:
        chunk = client_socket.recv(4096)
        if not chunk:
            return None, b""
        remainder += chunk

    body = remainder[:content_length]
    leftover = remainder[content_length:]
    IO_LOGGER.debug(
        "Parsed request",
        extra={"event": "request_parsed", "method": method, "route": target},
    )
    return HttpRequest(method, target, version, headers, body), leftover


def serialize_response(response: HttpResponse, include_body: bool = True) -> bytes:
    """Render status line, headers and (optionally) the body."""
    headers = dict(response.headers)

    correlation_id = get_correlation_id()
    if correlation_id:
        headers.setdefault("X-Request-ID", correlation_id)

    headers["Content-Length"] = str(len(response.body))
    if response.close_connection:
        headers["Connection"] = "close"
    header_lines = [response.status_line]
    header_lines.extend(f"{name}: {value}" for name, value in headers.items())
    header_block = (
        "\r\n".join(header_lines).encode("iso-8859-1", "replace") + HEADER_DELIMITER
    )
    return header_block + response.body if include_body else header_block


def send_response(
    client_socket: socket.socket, response: HttpResponse, include_body: bool = True
) -> None:
    """Serialize and send the HTTP response over the socket."""
    client_socket.sendall(serialize_response(response, include_body))
    IO_LOGGER.debug(
        "Sent response",
        extra={
            "event": "response_sent",
            "status_code": response.status,
            "bytes_out": len(response.body),
        },
    )
