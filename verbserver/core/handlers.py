"""The handler capability set a server subclass overrides."""

import enum
import socket
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from verbserver.domain.normalized import NormalizedRequest
    from verbserver.pipeline.sink import ResponseSink


class Outcome(enum.Enum):
    """What a handler did with a request."""

    HANDLED = "handled"
    NOT_HANDLED = "not_handled"


HandlerResult = Optional[Union[Outcome, bool]]


class RequestHandlers:
    """Default handlers for every registered HTTP method.

    Each verb handler receives ``(request, response)`` and declines by
    default, which hands the request to :meth:`all_methods`. A subclass
    overrides the verbs it supports and either writes a response or returns
    ``Outcome.NOT_HANDLED``.
    """

    def _decline(
        self, request: "NormalizedRequest", response: "ResponseSink"
    ) -> HandlerResult:
        return Outcome.NOT_HANDLED

    acl = baseline_control = bind = checkin = checkout = connect = _decline
    copy = delete = get = head = label = link = lock = merge = _decline
    mkactivity = mkcalendar = mkcol = mkredirectref = mkworkspace = _decline
    move = options = orderpatch = patch = post = pri = propfind = _decline
    proppatch = put = rebind = report = search = trace = unbind = _decline
    uncheckout = unlink = unlock = update = updateredirectref = _decline
    version_control = _decline

    def all_methods(
        self, request: "NormalizedRequest", response: "ResponseSink"
    ) -> HandlerResult:
        """Catch-all for requests no verb handler claimed."""
        return Outcome.NOT_HANDLED

    def client_error(
        self, error: Exception, client_socket: Optional[socket.socket]
    ) -> None:
        """Called for socket, TLS and protocol errors on a connection."""

    def shutdown(self) -> None:
        """Called once after the server has been terminated."""
