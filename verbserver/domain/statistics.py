"""Request and response counters owned by a server instance."""

import os
import platform
import socket
import threading
from datetime import datetime, timezone


def utc_timestamp() -> str:
    """Return the current UTC time as ISO 8601 with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ServerStatistics:
    """Thread-safe, monotonically increasing traffic counters."""

    def __init__(self, component: str, version: str) -> None:
        self._lock = threading.Lock()
        self._metadata = {
            "component": component,
            "version": version,
            "hostname": socket.gethostname(),
            "os": platform.system().lower(),
            "release": platform.release(),
            "arch": platform.machine(),
            "python": platform.python_version(),
            "pid": os.getpid(),
            "started": utc_timestamp(),
        }
        self._requests = {
            "http": {"count": 0, "bytes": 0},
            "https": {"count": 0, "bytes": 0},
        }
        self._responses = {"count": 0, "bytes": 0}

    def record_request(self, tls: bool, body_bytes: int) -> None:
        bucket = "https" if tls else "http"
        with self._lock:
            self._requests[bucket]["count"] += 1
            self._requests[bucket]["bytes"] += max(0, body_bytes)

    def record_response(self, body_bytes: int) -> None:
        with self._lock:
            self._responses["count"] += 1
            self._responses["bytes"] += max(0, body_bytes)

    def snapshot(self) -> dict:
        """Return a JSON-serializable copy of metadata and counters."""
        with self._lock:
            return {
                "server": dict(self._metadata),
                "request": {
                    "http": dict(self._requests["http"]),
                    "https": dict(self._requests["https"]),
                },
                "response": dict(self._responses),
            }
