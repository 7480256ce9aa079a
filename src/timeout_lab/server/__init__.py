from __future__ import annotations

from timeout_lab.server.fault_server import FaultInjectingServer
from timeout_lab.server.handlers import (
    ConnectionHandler,
    EchoHandler,
    NoAcceptHandler,
    NoResponseHandler,
    PartialReadHandler,
    SlowReadHandler,
    SlowResponseHandler,
    handler_for,
)

__all__ = [
    "ConnectionHandler",
    "EchoHandler",
    "FaultInjectingServer",
    "NoAcceptHandler",
    "NoResponseHandler",
    "PartialReadHandler",
    "SlowReadHandler",
    "SlowResponseHandler",
    "handler_for",
]
