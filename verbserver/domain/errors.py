"""Exception hierarchy shared by the server components."""


class VerbServerError(Exception):
    """Base class for all errors raised by verbserver."""


class PortConfigurationError(VerbServerError, ValueError):
    """Raised when the HTTP/HTTPS port combination is invalid."""


class TlsConfigurationError(VerbServerError):
    """Raised when the TLS certificate or key cannot be loaded."""


class MalformedRequest(VerbServerError, ValueError):
    """Raised when the bytes on the wire are not a valid HTTP/1.x request."""


class RequestEntityTooLarge(VerbServerError):
    """Raised when a request body exceeds the configured limit."""


class FileAccessError(VerbServerError):
    """Raised by file helpers; carries the HTTP status to answer with."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message
