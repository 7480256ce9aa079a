from __future__ import annotations

import logging
import socket
import threading
from dataclasses import dataclass
from typing import ClassVar, Protocol

from timeout_lab.config import FaultMode, ServerConfig
from timeout_lab.wire import LineBuffer, encode_line, recv_exactly

logger = logging.getLogger(__name__)


class ConnectionHandler(Protocol):
    mode: ClassVar[FaultMode]
    accepts: ClassVar[bool]

    def handle(self, conn: socket.socket, stop: threading.Event) -> None:
        ...


def _peer(conn: socket.socket) -> str:
    try:
        peer = conn.getpeername()
    except OSError:
        return "?"
    if isinstance(peer, tuple):
        return f"{peer[0]}:{peer[1]}"
    return str(peer) or "local"


@dataclass(frozen=True, slots=True)
class EchoHandler:
    mode: ClassVar[FaultMode] = FaultMode.NORMAL
    accepts: ClassVar[bool] = True

    def handle(self, conn: socket.socket, stop: threading.Event) -> None:
        lines = LineBuffer()
        while not stop.is_set():
            line = lines.read_line(conn)
            if line is None:
                return
            logger.debug("echo %s <- %r", _peer(conn), line)
            conn.sendall(encode_line("Echo: " + line))
            if line.lower() == "quit":
                return


@dataclass(frozen=True, slots=True)
class NoAcceptHandler:
    mode: ClassVar[FaultMode] = FaultMode.NO_ACCEPT
    accepts: ClassVar[bool] = False

    def handle(self, conn: socket.socket, stop: threading.Event) -> None:
        msg = "NO_ACCEPT servers never hand out connections"
        raise RuntimeError(msg)


@dataclass(frozen=True, slots=True)
class NoResponseHandler:
    mode: ClassVar[FaultMode] = FaultMode.NO_RESPONSE
    accepts: ClassVar[bool] = True

    def handle(self, conn: socket.socket, stop: threading.Event) -> None:
        request = LineBuffer().read_line(conn)
        logger.debug("no_response %s <- %r, holding silently", _peer(conn), request)
        stop.wait()


@dataclass(frozen=True, slots=True)
class SlowResponseHandler:
    banner: str
    interval_sec: float = 1.0

    mode: ClassVar[FaultMode] = FaultMode.SLOW_RESPONSE
    accepts: ClassVar[bool] = True

    def handle(self, conn: socket.socket, stop: threading.Event) -> None:
        request = LineBuffer().read_line(conn)
        if request is None:
            return
        logger.debug("slow_response %s <- %r", _peer(conn), request)
        for char in self.banner:
            if stop.is_set():
                return
            conn.sendall(char.encode("utf-8"))
            if stop.wait(self.interval_sec):
                return


@dataclass(frozen=True, slots=True)
class SlowReadHandler:
    interval_sec: float = 10.0

    mode: ClassVar[FaultMode] = FaultMode.SLOW_READ
    accepts: ClassVar[bool] = True

    def handle(self, conn: socket.socket, stop: threading.Event) -> None:
        total = 0
        while not stop.is_set():
            data = conn.recv(1)
            if not data:
                break
            total += 1
            logger.debug("slow_read %s: %d bytes drained", _peer(conn), total)
            if stop.wait(self.interval_sec):
                return
        conn.sendall(encode_line(f"Read complete: {total} bytes"))


@dataclass(frozen=True, slots=True)
class PartialReadHandler:
    prefix_bytes: int = 10

    mode: ClassVar[FaultMode] = FaultMode.PARTIAL_READ
    accepts: ClassVar[bool] = True

    def handle(self, conn: socket.socket, stop: threading.Event) -> None:
        prefix = recv_exactly(conn, self.prefix_bytes)
        logger.debug("partial_read %s: read %d bytes, no further reads", _peer(conn), len(prefix))
        stop.wait()


def handler_for(config: ServerConfig) -> ConnectionHandler:
    if config.mode is FaultMode.NORMAL:
        return EchoHandler()
    if config.mode is FaultMode.NO_ACCEPT:
        return NoAcceptHandler()
    if config.mode is FaultMode.NO_RESPONSE:
        return NoResponseHandler()
    if config.mode is FaultMode.SLOW_RESPONSE:
        return SlowResponseHandler(
            banner=config.slow_response_banner,
            interval_sec=config.slow_response_interval_sec,
        )
    if config.mode is FaultMode.SLOW_READ:
        return SlowReadHandler(interval_sec=config.slow_read_interval_sec)
    if config.mode is FaultMode.PARTIAL_READ:
        return PartialReadHandler(prefix_bytes=config.partial_read_bytes)
    msg = f"Unsupported fault mode: {config.mode}"
    raise ValueError(msg)
