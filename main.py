"""Demo server built on VerbServer.

GET /stats returns server statistics, GET /files/<name> serves a file from
the configured directory, any other GET echoes the path and POST echoes the
body as JSON. With --redirect-https, plaintext GETs are redirected to the
HTTPS listener.
"""

import signal
import sys

from verbserver.bootstrap.config import ServerSettings, parse_cli_args
from verbserver.bootstrap.logging_setup import configure_logging
from verbserver.core.base import VerbServer
from verbserver.core.handlers import Outcome
from verbserver.domain.correlation_id import get_logger
from verbserver.domain.errors import PortConfigurationError, TlsConfigurationError

MAIN_LOGGER = get_logger("main")

FILES_PREFIX = "files/"


class DemoServer(VerbServer):
    """Small showcase of the handler API."""

    redirect_https = False

    def get(self, request, response):
        if self.redirect_https and not request.tls and self.https_port:
            self.redirect_url(
                response,
                f"https://{request.server.hostname}:{self.https_port}/{request.path}",
            )
            return Outcome.HANDLED
        if request.path == "stats":
            self.send_json(response, self.get_statistics())
        elif request.path.startswith(FILES_PREFIX):
            self.send_file(response, request.path[len(FILES_PREFIX) :])
        else:
            self.send_text(response, f"The URL sent was {request.path}")
        return Outcome.HANDLED

    def post(self, request, response):
        self.send_json(response, {"data": f"The raw data sent was {request.data}"})
        return Outcome.HANDLED


def main() -> None:
    """Start the demo server and block until SIGINT/SIGTERM."""
    args = parse_cli_args(sys.argv[1:])
    configure_logging(args.log_level, args.log_destination, args.log_json)

    settings = ServerSettings(
        socket_timeout=args.socket_timeout,
        shutdown_grace_seconds=args.shutdown_grace_seconds,
        max_body_bytes=args.max_body_bytes,
    )
    try:
        server = DemoServer(
            args.http_port,
            args.https_port,
            host=args.host,
            cert_file=args.cert,
            key_file=args.key,
            directory=args.directory,
            settings=settings,
        )
    except (PortConfigurationError, TlsConfigurationError) as error:
        MAIN_LOGGER.critical(
            "Server failed to start",
            extra={"event": "startup_failed", "error": str(error)},
        )
        sys.exit(1)

    server.redirect_https = args.redirect_https
    if not args.ping:
        server.disable_ping()

    def shutdown_handler(signum: int, _frame) -> None:
        MAIN_LOGGER.info(
            "Received shutdown signal", extra={"event": "signal", "signal": signum}
        )
        server.terminate()

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    MAIN_LOGGER.info(
        "Demo server running",
        extra={
            "event": "demo_started",
            "host": args.host,
            "http_port": args.http_port,
            "https_port": args.https_port,
            "directory": args.directory,
            "destination": args.log_destination,
            "log_level": args.log_level,
            "socket_timeout": settings.socket_timeout,
            "shutdown_grace_seconds": settings.shutdown_grace_seconds,
        },
    )
    server.serve_forever()


if __name__ == "__main__":
    main()
