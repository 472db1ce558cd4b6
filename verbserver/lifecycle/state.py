"""Server lifecycle state: listeners, worker tracking and one-shot termination."""

import socket
import threading
import time

from verbserver.domain.correlation_id import get_logger

LIFECYCLE_LOGGER = get_logger("lifecycle")


class ServerLifecycle:
    """Tracks whether the server is active and which workers are running."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._terminated = False
        self._workers: dict[threading.Thread, socket.socket] = {}

    def is_active(self) -> bool:
        return not self._stop_event.is_set()

    def should_stop(self) -> bool:
        """Check if accept loops and workers should wind down."""
        return self._stop_event.is_set()

    def begin_termination(self) -> bool:
        """Flip to stopping; returns True only for the first caller."""
        with self._lock:
            if self._terminated:
                return False
            self._terminated = True
        self._stop_event.set()
        LIFECYCLE_LOGGER.info("Server terminating", extra={"event": "terminating"})
        return True

    def wait_stopped(self, timeout: float | None = None) -> bool:
        return self._stop_event.wait(timeout)

    def register_worker(self, thread: threading.Thread, client: socket.socket) -> None:
        with self._lock:
            self._workers[thread] = client

    def cleanup_worker(self, thread: threading.Thread) -> None:
        with self._lock:
            self._workers.pop(thread, None)

    def has_worker(self, thread: threading.Thread) -> bool:
        with self._lock:
            return thread in self._workers

    def active_worker_count(self) -> int:
        with self._lock:
            return len(self._workers)

    def disconnect_workers(self) -> None:
        """Shut down every tracked client socket so blocked reads return."""
        with self._lock:
            clients = list(self._workers.values())
        for client in clients:
            try:
                client.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass

    def wait_for_workers(self, timeout: float) -> bool:
        """Wait for worker threads other than the caller to finish."""
        current = threading.current_thread()
        deadline = time.monotonic() + timeout
        while True:
            with self._lock:
                active_workers = [
                    w for w in self._workers if w.is_alive() and w is not current
                ]
            if not active_workers:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                LIFECYCLE_LOGGER.warning(
                    "Shutdown timeout exceeded",
                    extra={
                        "event": "shutdown_timeout",
                        "remaining_workers": len(active_workers),
                    },
                )
                return False
            for worker in active_workers:
                worker.join(timeout=min(0.1, remaining))
                if time.monotonic() >= deadline:
                    break
