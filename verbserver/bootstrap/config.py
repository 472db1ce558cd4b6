"""Server configuration: environment defaults, port validation and CLI parsing."""

import argparse
import os
from dataclasses import dataclass

from verbserver.domain.errors import PortConfigurationError

COMPONENT = "VerbServer"
VERSION = "2.1.0"

MIN_PORT = 0
MAX_PORT = 65535


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value else default


DEBUG_ENV_VAR = "VERBSERVER_DEBUG"

DEFAULT_HOST = _env_str("VERBSERVER_HOST", "0.0.0.0")
DEFAULT_CERT_FILE = _env_str("VERBSERVER_CERT_FILE", "cert.pem")
DEFAULT_KEY_FILE = _env_str("VERBSERVER_KEY_FILE", "key.pem")
DEFAULT_DIRECTORY = _env_str("VERBSERVER_DIRECTORY", ".")
DEFAULT_MAX_BODY_BYTES = _env_int("VERBSERVER_MAX_BODY_BYTES", 5 * 1024 * 1024)
DEFAULT_SOCKET_TIMEOUT = _env_int("VERBSERVER_SOCKET_TIMEOUT", 60)
DEFAULT_SHUTDOWN_GRACE_SECONDS = _env_int("VERBSERVER_SHUTDOWN_GRACE_SECONDS", 5)

HEADER_DELIMITER = b"\r\n\r\n"
MAX_HEADER_BYTES = 64 * 1024
ACCEPT_POLL_SECONDS = 0.5


def debug_enabled() -> bool:
    """Read the verbose-diagnostics toggle from the environment."""
    return _env_bool(DEBUG_ENV_VAR, False)


def _check_port(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise PortConfigurationError(
            f"{COMPONENT}: {name} must be an integer, got {value!r}"
        )
    if value < MIN_PORT or value > MAX_PORT:
        raise PortConfigurationError(
            f"{COMPONENT}: Both port arguments must be between {MIN_PORT} and {MAX_PORT}"
        )
    return value


@dataclass(frozen=True)
class PortConfig:
    """Validated pair of listener ports; 0 disables a listener."""

    http_port: int
    https_port: int

    def __post_init__(self) -> None:
        http_port = _check_port("http_port", self.http_port)
        https_port = _check_port("https_port", self.https_port)
        if http_port == 0 and https_port == 0:
            raise PortConfigurationError(
                f"{COMPONENT}: At least one port must be non-zero"
            )
        if http_port == https_port:
            raise PortConfigurationError(f"{COMPONENT}: Both ports must not be equal")

    @property
    def http_enabled(self) -> bool:
        return self.http_port != 0

    @property
    def https_enabled(self) -> bool:
        return self.https_port != 0


@dataclass(frozen=True)
class ServerSettings:
    """Runtime knobs for connection handling and shutdown."""

    socket_timeout: int = DEFAULT_SOCKET_TIMEOUT
    shutdown_grace_seconds: int = DEFAULT_SHUTDOWN_GRACE_SECONDS
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for the demo server."""
    parser = argparse.ArgumentParser(description=f"{COMPONENT} demo server")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument(
        "--http-port",
        type=int,
        default=_env_int("VERBSERVER_HTTP_PORT", 8080),
        help="Plaintext HTTP port (0 disables the listener)",
    )
    parser.add_argument(
        "--https-port",
        type=int,
        default=_env_int("VERBSERVER_HTTPS_PORT", 0),
        help="HTTPS port (0 disables the listener)",
    )
    parser.add_argument("--cert", default=DEFAULT_CERT_FILE, help="TLS certificate file")
    parser.add_argument("--key", default=DEFAULT_KEY_FILE, help="TLS private key file")
    parser.add_argument(
        "--directory",
        default=DEFAULT_DIRECTORY,
        help="Root directory for file responses",
    )
    default_log_level = os.getenv("VERBSERVER_LOG_LEVEL", "INFO").upper()
    default_destination = os.getenv("VERBSERVER_LOG_DESTINATION", "stdout")
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=default_destination,
        help="stdout or a file path",
    )
    parser.add_argument(
        "--log-json",
        action=argparse.BooleanOptionalAction,
        default=_env_bool("VERBSERVER_LOG_JSON", True),
        help="Emit structured JSON log lines",
    )
    parser.add_argument(
        "--socket-timeout",
        type=int,
        default=DEFAULT_SOCKET_TIMEOUT,
        help="Socket timeout in seconds for request processing",
    )
    parser.add_argument(
        "--shutdown-grace-seconds",
        type=int,
        default=DEFAULT_SHUTDOWN_GRACE_SECONDS,
        help="Grace period in seconds for in-flight connections on shutdown",
    )
    parser.add_argument(
        "--max-body-bytes",
        type=int,
        default=DEFAULT_MAX_BODY_BYTES,
        help="Largest accepted request body (0 for unlimited)",
    )
    parser.add_argument(
        "--ping",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Answer GET /api/ping automatically",
    )
    parser.add_argument(
        "--redirect-https",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Redirect plaintext GET requests to the HTTPS listener",
    )
    return parser.parse_args(argv)
