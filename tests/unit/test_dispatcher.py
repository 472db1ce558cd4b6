"""Unit tests for per-request dispatch."""

import json
import logging

import pytest

from tests.utils.http import FakeSocket, parse_response_bytes
from verbserver.core.base import VerbServer
from verbserver.core.handlers import Outcome
from verbserver.domain.http_types import HttpRequest
from verbserver.domain.session import SESSION_COOKIE
from verbserver.pipeline.dispatcher import dispatch, resolve_outcome
from verbserver.pipeline.normalize import ConnectionInfo
from verbserver.pipeline.sink import ResponseSink

CONNECTION = ConnectionInfo("127.0.0.1", 8080, "127.0.0.1", 40000)


def _run(server, method="GET", target="/", headers=None, body=b""):
    sock = FakeSocket()
    sink = ResponseSink(sock, head_only=method.upper() == "HEAD")
    request = HttpRequest(method, target, "HTTP/1.1", headers or {}, body)
    normalized = dispatch(server, request, CONNECTION, sink)
    return normalized, parse_response_bytes(sock.sent)


class EchoServer(VerbServer):
    """Handles GET and POST, declines everything else."""

    def get(self, request, response):
        self.send_text(response, f"path={request.path}")

    def post(self, request, response):
        self.send_json(response, {"echo": request.data})
        return Outcome.HANDLED


class CatchAllServer(VerbServer):
    """Answers every method from the catch-all."""

    def all_methods(self, request, response):
        self.send_text(response, f"catch-all {request.method}")
        return True


class DecliningGetServer(VerbServer):
    """GET declines explicitly; the catch-all picks it up."""

    def get(self, request, response):
        return Outcome.NOT_HANDLED

    def all_methods(self, request, response):
        if request.method == "get":
            self.send_text(response, "fallback")
            return Outcome.HANDLED
        return Outcome.NOT_HANDLED


class ExplodingServer(VerbServer):
    def get(self, request, response):
        raise RuntimeError("handler bug")


class SilentServer(VerbServer):
    """Returns None without writing anything."""

    def get(self, request, response):
        return None


class BaseServer(VerbServer):
    """Relies on the default handlers for everything."""


def test_verb_handler_receives_normalized_request(server_factory):
    """GET goes to get() with a normalized path."""
    server = server_factory(EchoServer)

    _, response = _run(server, target="//hello/world/?q=1")

    assert response.status == 200
    assert response.body == b"path=hello/world"
    assert response.headers["content-type"] == "text/plain"


def test_post_body_is_decoded(server_factory):
    """POST data arrives decoded as text."""
    server = server_factory(EchoServer)

    _, response = _run(server, method="POST", body=b"abc")

    assert json.loads(response.body) == {"echo": "abc"}


@pytest.mark.parametrize("method", ["DELETE", "PUT", "PROPFIND", "VERSION-CONTROL"])
def test_unhandled_method_gets_501(server_factory, method):
    """Declined requests get a 501 envelope naming the method."""
    server = server_factory(EchoServer)

    _, response = _run(server, method=method)
    envelope = json.loads(response.body)

    assert response.status == 501
    assert envelope["httpStatus"] == 501
    assert envelope["component"] == "VerbServer"
    assert envelope["error"] == f"No handler implemented for HTTP method {method}"
    assert envelope["time"].endswith("Z")


def test_lowercase_method_is_normalized(server_factory):
    """Method tokens are matched case-insensitively."""
    server = server_factory(EchoServer)

    normalized, response = _run(server, method="get", target="/x")

    assert normalized.method == "get"
    assert response.body == b"path=x"


def test_unknown_method_reaches_catch_all(server_factory):
    """Methods outside the registry go straight to all_methods."""
    server = server_factory(CatchAllServer)

    _, response = _run(server, method="FOO")

    assert response.status == 200
    assert response.body == b"catch-all foo"


def test_unknown_method_without_catch_all(server_factory, caplog):
    """Unknown methods are refused with 501 and logged."""
    server = server_factory(BaseServer)

    with caplog.at_level(logging.WARNING, logger="verbserver"):
        _, response = _run(server, method="FOO")

    assert response.status == 501
    assert json.loads(response.body)["error"] == (
        "The server does not support the HTTP method FOO"
    )
    assert any(
        getattr(record, "event", None) == "unknown_method" for record in caplog.records
    )


def test_declined_verb_falls_through_to_catch_all(server_factory):
    """NOT_HANDLED from a verb hands the request to all_methods."""
    server = server_factory(DecliningGetServer)

    _, response = _run(server)

    assert response.body == b"fallback"


def test_handler_exception_becomes_500(server_factory, caplog):
    """A raising handler produces a 500 envelope."""
    server = server_factory(ExplodingServer)

    with caplog.at_level(logging.ERROR, logger="verbserver"):
        _, response = _run(server)

    assert response.status == 500
    assert "GET" in json.loads(response.body)["error"]
    assert any(
        getattr(record, "event", None) == "handler_error" for record in caplog.records
    )


def test_none_without_write_counts_as_not_handled(server_factory):
    """Returning None without responding falls through to 501."""
    server = server_factory(SilentServer)

    _, response = _run(server)

    assert response.status == 501


def test_ping_is_answered_automatically(server_factory):
    """GET /api/ping answers without reaching the verb handler."""
    server = server_factory(BaseServer)

    _, response = _run(server, target="/API/Ping/")

    assert response.status == 200
    assert json.loads(response.body) == {"response": "ok"}


def test_ping_can_be_disabled(server_factory):
    """After disable_ping the path reaches the handlers."""
    server = server_factory(EchoServer)
    server.disable_ping()

    _, response = _run(server, target="/api/ping")

    assert response.body == b"path=api/ping"


def test_new_session_sets_cookie(server_factory):
    """Requests without a session cookie get one."""
    server = server_factory(EchoServer)

    normalized, response = _run(server)

    assert response.headers["set-cookie"] == (
        f"{SESSION_COOKIE}={normalized.session_id}; Path=/; HttpOnly"
    )


def test_existing_session_is_not_reissued(server_factory):
    """A known session cookie is passed through without Set-Cookie."""
    server = server_factory(EchoServer)

    normalized, response = _run(server, headers={"cookie": f"{SESSION_COOKIE}=abc"})

    assert normalized.session_id == "abc"
    assert "set-cookie" not in response.headers


def test_request_counters_are_updated(server_factory):
    """Each dispatched request and response is counted."""
    server = server_factory(EchoServer)

    _run(server, method="POST", body=b"12345")
    _run(server)
    stats = server.get_statistics()

    assert stats["request"]["http"] == {"count": 2, "bytes": 5}
    assert stats["request"]["https"] == {"count": 0, "bytes": 0}
    assert stats["response"]["count"] == 2


@pytest.mark.parametrize(
    "result, sent, expected",
    [
        (Outcome.HANDLED, False, Outcome.HANDLED),
        (Outcome.NOT_HANDLED, True, Outcome.NOT_HANDLED),
        (True, False, Outcome.HANDLED),
        (False, True, Outcome.NOT_HANDLED),
        (None, True, Outcome.HANDLED),
        (None, False, Outcome.NOT_HANDLED),
    ],
)
def test_resolve_outcome(result, sent, expected):
    """Return values are mapped onto the two outcomes."""
    sink = ResponseSink(FakeSocket())
    if sent:
        sink.write(200, {}, b"")

    assert resolve_outcome(result, sink) is expected


def test_debug_toggle_surfaces_diagnostics_at_info(server_factory, monkeypatch, caplog):
    """VERBSERVER_DEBUG makes construction and request diagnostics visible at INFO."""
    monkeypatch.setenv("VERBSERVER_DEBUG", "true")

    with caplog.at_level(logging.INFO, logger="verbserver"):
        server = server_factory(EchoServer)
        _run(server, target="/traced")

    messages = [record.getMessage() for record in caplog.records]
    assert "Server constructor called" in messages
    assert "Request received" in messages
    assert "Debug: true" in str(server)


def test_request_diagnostics_hidden_without_debug_toggle(
    server_factory, monkeypatch, caplog
):
    """Without the toggle the request log stays at DEBUG."""
    monkeypatch.delenv("VERBSERVER_DEBUG", raising=False)

    with caplog.at_level(logging.INFO, logger="verbserver"):
        server = server_factory(EchoServer)
        _run(server)

    messages = [record.getMessage() for record in caplog.records]
    assert "Server constructor called" not in messages
    assert "Request received" not in messages
