from __future__ import annotations

from typing import Callable, Iterator

import pytest

from timeout_lab.config import ServerConfig
from timeout_lab.server import FaultInjectingServer


@pytest.fixture
def start_server() -> Iterator[Callable[..., FaultInjectingServer]]:
    servers: list[FaultInjectingServer] = []

    def _start(**overrides: object) -> FaultInjectingServer:
        server = FaultInjectingServer(ServerConfig(**overrides))
        server.start()
        servers.append(server)
        return server

    yield _start
    for server in servers:
        server.stop()
