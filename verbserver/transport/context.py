"""Per-listener context handed to accept loops and worker threads."""

import socket
import ssl
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from verbserver.bootstrap.config import ServerSettings
from verbserver.lifecycle.state import ServerLifecycle

if TYPE_CHECKING:
    from verbserver.core.base import VerbServer


@dataclass
class ListenerContext:
    """Everything a worker needs to serve connections from one listener."""

    name: str
    port: int
    server_socket: socket.socket
    server: "VerbServer"
    lifecycle: ServerLifecycle
    settings: ServerSettings
    tls_context: Optional[ssl.SSLContext] = None

    @property
    def tls(self) -> bool:
        return self.tls_context is not None
