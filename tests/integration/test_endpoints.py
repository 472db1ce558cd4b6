"""Integration tests for request handling over real sockets."""

# pylint: disable=redefined-outer-name

import json
import socket
import threading

import pytest
import requests

from tests.conftest import HOST
from tests.utils.http import read_http_response
from verbserver.bootstrap.config import ServerSettings
from verbserver.core.base import VerbServer
from verbserver.core.handlers import Outcome
from verbserver.domain.errors import MalformedRequest

pytestmark = pytest.mark.integration


class EchoServer(VerbServer):
    """Echoes what it receives so tests can inspect normalization."""

    def __init__(self, *args, **kwargs):
        self.client_errors = []
        self.client_error_seen = threading.Event()
        super().__init__(*args, **kwargs)

    def get(self, request, response):
        if request.path == "stats":
            self.send_json(response, self.get_statistics())
        elif request.path == "boom":
            raise ValueError("kaboom")
        else:
            self.send_json(response, request.to_dict())

    head = get

    def post(self, request, response):
        self.send_json(response, {"data": request.data, "length": len(request.raw_data)})
        return Outcome.HANDLED

    def all_methods(self, request, response):
        if request.method == "foo":
            self.send_text(response, "foo accepted")
            return Outcome.HANDLED
        return Outcome.NOT_HANDLED

    def client_error(self, error, client_socket):
        self.client_errors.append(error)
        self.client_error_seen.set()


@pytest.fixture
def server(server_factory):
    return server_factory(
        EchoServer,
        settings=ServerSettings(
            socket_timeout=5, shutdown_grace_seconds=2, max_body_bytes=1024
        ),
    )


@pytest.fixture
def base_url(server):
    return f"http://{HOST}:{server.http_port}"


def _exchange(server, payload: bytes):
    with socket.create_connection((HOST, server.http_port), timeout=5) as sock:
        sock.sendall(payload)
        return read_http_response(sock)


def test_ping(base_url):
    """The built-in ping answers without a handler."""
    response = requests.get(f"{base_url}/api/ping", timeout=5)

    assert response.status_code == 200
    assert response.json() == {"response": "ok"}


def test_get_normalizes_request(base_url):
    """Handlers see the normalized path, query and headers."""
    response = requests.get(
        f"{base_url}/some/Path/?a=1&b=two+words",
        headers={"X-Custom": "yes"},
        timeout=5,
    )
    view = response.json()

    assert view["url"] == {"path": "some/Path", "query": {"a": "1", "b": "two words"}}
    assert view["http"]["method"] == "get"
    assert view["http"]["tls"] is False
    assert view["http"]["version"] == "1.1"
    assert view["http"]["headers"]["x-custom"] == "yes"
    assert view["ip"]["protocol"] == "ipv4"
    assert view["client"]["address"] == HOST


def test_post_round_trip(base_url):
    """POST bodies are delivered decoded and counted."""
    response = requests.post(f"{base_url}/submit", data="héllo".encode(), timeout=5)

    assert response.json() == {"data": "héllo", "length": 6}


def test_unimplemented_method_returns_501(base_url):
    """A registered method without a handler gets a 501 envelope."""
    response = requests.delete(f"{base_url}/thing", timeout=5)
    envelope = response.json()

    assert response.status_code == 501
    assert response.headers["Content-Type"] == "application/json"
    assert envelope["error"] == "No handler implemented for HTTP method DELETE"
    assert envelope["component"] == "VerbServer"


def test_unknown_method_goes_to_catch_all(base_url):
    """Unregistered methods reach all_methods."""
    assert requests.request("FOO", f"{base_url}/", timeout=5).text == "foo accepted"

    response = requests.request("BAR", f"{base_url}/", timeout=5)
    assert response.status_code == 501
    assert response.json()["error"] == "The server does not support the HTTP method BAR"


def test_handler_exception_returns_500(base_url):
    """A crashing handler does not take the connection down silently."""
    response = requests.get(f"{base_url}/boom", timeout=5)

    assert response.status_code == 500
    assert response.json()["httpStatus"] == 500


def test_session_cookie_round_trip(base_url):
    """A session is issued once and then recognized."""
    with requests.Session() as session:
        first = session.get(f"{base_url}/", timeout=5)
        session_id = first.cookies.get("ABSession")
        second = session.get(f"{base_url}/", timeout=5)

    assert session_id is not None
    assert len(session_id) == 44
    assert first.json()["sessionId"] == session_id
    assert "Set-Cookie" not in second.headers
    assert second.json()["sessionId"] == session_id


def test_head_sends_headers_only(server):
    """HEAD responses carry Content-Length but no body."""
    with socket.create_connection((HOST, server.http_port), timeout=5) as sock:
        sock.sendall(
            b"HEAD /x HTTP/1.1\r\nHost: localhost\r\n\r\n"
            b"GET /api/ping HTTP/1.1\r\nHost: localhost\r\n\r\n"
        )
        buffer = b""
        while buffer.count(b"HTTP/1.1 200 OK") < 2 or not buffer.endswith(b"}"):
            chunk = sock.recv(4096)
            if not chunk:
                break
            buffer += chunk

    head_block, rest = buffer.split(b"\r\n\r\n", 1)
    assert b"Content-Length: " in head_block
    assert rest.startswith(b"HTTP/1.1 200 OK")
    assert rest.endswith(b'{"response": "ok"}')


def test_keep_alive_serves_multiple_requests(server):
    """Several requests share one connection."""
    with socket.create_connection((HOST, server.http_port), timeout=5) as sock:
        for _ in range(3):
            sock.sendall(b"GET /api/ping HTTP/1.1\r\nHost: localhost\r\n\r\n")
            response = read_http_response(sock)
            assert response.status == 200
            assert "connection" not in response.headers


def test_http_10_closes_connection(server):
    """HTTP/1.0 without keep-alive gets Connection: close."""
    with socket.create_connection((HOST, server.http_port), timeout=5) as sock:
        sock.sendall(b"GET /api/ping HTTP/1.0\r\n\r\n")
        response = read_http_response(sock)
        assert response.headers["connection"] == "close"
        assert sock.recv(1024) == b""


def test_request_id_is_echoed(server):
    """A client-provided X-Request-ID is returned unchanged."""
    response = _exchange(
        server,
        b"GET /api/ping HTTP/1.1\r\nHost: localhost\r\nX-Request-ID: trace-1\r\n\r\n",
    )

    assert response.headers["x-request-id"] == "trace-1"


def test_malformed_request_returns_400_and_calls_hook(server):
    """Garbage on the wire is refused and reported."""
    response = _exchange(server, b"NONSENSE\r\n\r\n")

    assert response.status == 400
    assert response.headers["connection"] == "close"
    assert json.loads(response.body)["httpStatus"] == 400
    assert server.client_error_seen.wait(5)
    assert isinstance(server.client_errors[0], MalformedRequest)


def test_oversized_body_returns_413(server):
    """Bodies beyond the limit are rejected before reading."""
    response = _exchange(
        server, b"POST / HTTP/1.1\r\nHost: localhost\r\nContent-Length: 4096\r\n\r\n"
    )

    assert response.status == 413


def test_expect_continue(server):
    """The server invites the body when asked to."""
    with socket.create_connection((HOST, server.http_port), timeout=5) as sock:
        sock.sendall(
            b"POST / HTTP/1.1\r\nHost: localhost\r\nContent-Length: 3\r\n"
            b"Expect: 100-continue\r\n\r\n"
        )
        interim = sock.recv(len(b"HTTP/1.1 100 Continue\r\n\r\n"))
        assert interim.startswith(b"HTTP/1.1 100 Continue")
        sock.sendall(b"abc")
        response = read_http_response(sock)

    assert json.loads(response.body) == {"data": "abc", "length": 3}


def test_statistics_count_traffic(base_url):
    """Counters reflect requests already answered."""
    requests.post(f"{base_url}/", data=b"12345", timeout=5)
    stats = requests.get(f"{base_url}/stats", timeout=5).json()

    assert stats["server"]["component"] == "VerbServer"
    assert stats["request"]["http"]["count"] == 2
    assert stats["request"]["http"]["bytes"] == 5
    assert stats["request"]["https"]["count"] == 0
    assert stats["response"]["count"] == 1


def test_default_headers_reach_clients(server, base_url):
    """Headers from set_headers are added to every response."""
    server.set_headers({"Access-Control-Allow-Origin": "*"})

    response = requests.get(f"{base_url}/api/ping", timeout=5)

    assert response.headers["Access-Control-Allow-Origin"] == "*"
