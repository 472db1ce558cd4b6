"""Per-request dispatch: session, counters, ping, verb handler, fallbacks."""

from typing import TYPE_CHECKING, Callable

from verbserver.bootstrap.logging_setup import redact_headers
from verbserver.core.handlers import HandlerResult, Outcome
from verbserver.domain.correlation_id import get_logger
from verbserver.domain.http_types import HttpRequest
from verbserver.domain.methods import HttpMethod
from verbserver.domain.normalized import NormalizedRequest
from verbserver.domain.session import session_cookie_header
from verbserver.pipeline.normalize import ConnectionInfo, build_normalized_request
from verbserver.pipeline.sink import ResponseSink

if TYPE_CHECKING:
    from verbserver.core.base import VerbServer

DISPATCH_LOGGER = get_logger("pipeline.dispatcher")

PING_PATH = "api/ping"
PING_RESPONSE = {"response": "ok"}

Handler = Callable[[NormalizedRequest, ResponseSink], HandlerResult]


def resolve_outcome(result: HandlerResult, response: ResponseSink) -> Outcome:
    """Interpret a handler's return value.

    ``None`` counts as handled only when the handler wrote a response.
    """
    if isinstance(result, Outcome):
        return result
    if result is None:
        return Outcome.HANDLED if response.sent else Outcome.NOT_HANDLED
    return Outcome.HANDLED if result else Outcome.NOT_HANDLED


def resolve_handler(server: "VerbServer", method: HttpMethod) -> Handler:
    """Return the bound handler for a method; unknown methods get the catch-all."""
    return getattr(server, method.handler_name)


def is_ping(request: NormalizedRequest) -> bool:
    return request.method == "get" and request.path.lower() == PING_PATH


def _invoke(
    server: "VerbServer",
    handler: Handler,
    request: NormalizedRequest,
    response: ResponseSink,
) -> Outcome:
    try:
        return resolve_outcome(handler(request, response), response)
    except Exception as error:  # pylint: disable=broad-except
        DISPATCH_LOGGER.error(
            "Handler raised an exception",
            extra={
                "event": "handler_error",
                "method": request.method.upper(),
                "route": request.path,
                "error_type": type(error).__name__,
            },
            exc_info=True,
        )
        if not response.sent:
            server.send_error(
                response,
                f"Internal error while handling HTTP method {request.method.upper()}",
                500,
            )
        return Outcome.HANDLED


def dispatch(
    server: "VerbServer",
    raw: HttpRequest,
    connection: ConnectionInfo,
    response: ResponseSink,
) -> NormalizedRequest:
    """Run the whole per-request pipeline and return the normalized request."""
    request, is_new_session = build_normalized_request(raw, connection)
    if is_new_session:
        response.add_header("Set-Cookie", session_cookie_header(request.session_id))

    server.statistics.record_request(request.tls, len(request.raw_data))

    level = server.diagnostics_level
    if DISPATCH_LOGGER.isEnabledFor(level):
        DISPATCH_LOGGER.log(
            level,
            "Request received",
            extra={
                "event": "request_received",
                "method": request.method.upper(),
                "route": f"/{request.path}",
                "tls": request.tls,
                "bytes_in": len(request.raw_data),
                "headers": redact_headers(request.headers),
                "session": "new" if is_new_session else "existing",
            },
        )

    if server.ping_enabled and is_ping(request):
        server.send_json(response, PING_RESPONSE)
        return request

    method = HttpMethod.from_token(request.method)
    if not method.is_known:
        DISPATCH_LOGGER.warning(
            "Unsupported HTTP method",
            extra={
                "event": "unknown_method",
                "method": request.method.upper(),
                "route": f"/{request.path}",
            },
        )
    else:
        outcome = _invoke(server, resolve_handler(server, method), request, response)
        if outcome is Outcome.HANDLED:
            return request

    outcome = _invoke(server, server.all_methods, request, response)
    if outcome is Outcome.HANDLED:
        return request

    if response.sent:
        return request
    if method.is_known:
        message = f"No handler implemented for HTTP method {request.method.upper()}"
    else:
        message = f"The server does not support the HTTP method {request.method.upper()}"
    DISPATCH_LOGGER.info(
        "Request not handled",
        extra={
            "event": "not_implemented",
            "method": request.method.upper(),
            "route": f"/{request.path}",
        },
    )
    server.send_error(response, message, 501)
    return request
