"""Shared pytest fixtures for unit and integration tests."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Generator

import pytest

from tests.utils.http import reserve_port
from verbserver.bootstrap.config import ServerSettings
from verbserver.core.base import VerbServer

HOST = "127.0.0.1"
PROJECT_ROOT = Path(__file__).resolve().parent.parent

ServerFactory = Callable[..., VerbServer]


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Expose the repository root path to tests."""

    return PROJECT_ROOT


@pytest.fixture(name="server_factory")
def _server_factory(
    tmp_path: Path,
) -> Generator[ServerFactory, None, None]:
    """Build servers on free localhost ports and terminate them afterwards."""

    started: list[VerbServer] = []

    def factory(
        server_class: type[VerbServer] = VerbServer,
        *,
        https: bool = False,
        **kwargs,
    ) -> VerbServer:
        kwargs.setdefault("host", HOST)
        kwargs.setdefault("directory", str(tmp_path))
        kwargs.setdefault(
            "settings", ServerSettings(socket_timeout=5, shutdown_grace_seconds=2)
        )
        if https:
            server = server_class(0, reserve_port(HOST), **kwargs)
        else:
            server = server_class(reserve_port(HOST), 0, **kwargs)
        started.append(server)
        return server

    yield factory

    for server in started:
        server.terminate()


@pytest.fixture()
def file_root(tmp_path: Path) -> Path:
    """Provide a directory populated with a few files to serve."""

    root = tmp_path / "public"
    root.mkdir()
    (root / "index.html").write_text("<h1>Hello</h1>")
    (root / "notes.txt").write_text("plain notes")
    (root / "data.unknownext").write_bytes(b"\x00\x01")
    (root / "nested").mkdir()
    (root / "nested" / "style.css").write_text("body {}")
    return root
