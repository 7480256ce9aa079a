from __future__ import annotations

import logging
import socket
import threading

from timeout_lab.config import FaultMode, ServerConfig
from timeout_lab.errors import BindError
from timeout_lab.server.handlers import ConnectionHandler, handler_for

logger = logging.getLogger(__name__)

ACCEPT_POLL_SEC = 0.5
JOIN_TIMEOUT_SEC = 2.0


class FaultInjectingServer:
    def __init__(self, config: ServerConfig) -> None:
        self.config = config
        self._handler: ConnectionHandler = handler_for(config)
        self._lock = threading.Lock()
        self._running = False
        self._stop = threading.Event()
        self._sock: socket.socket | None = None
        self._accept_thread: threading.Thread | None = None
        self._connections: set[socket.socket] = set()
        self._address: tuple[str, int] | None = None

    @property
    def mode(self) -> FaultMode:
        return self.config.mode

    @property
    def address(self) -> tuple[str, int]:
        if self._address is None:
            msg = "Server has not been started"
            raise RuntimeError(msg)
        return self._address

    @property
    def port(self) -> int:
        return self.address[1]

    @property
    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            sock = self._bind()
            if self._handler.accepts:
                sock.settimeout(ACCEPT_POLL_SEC)
            self._sock = sock
            self._address = sock.getsockname()[:2]
            self._stop = threading.Event()
            self._running = True
            self._accept_thread = threading.Thread(
                target=self._serve,
                args=(sock, self._stop),
                name=f"fault-server-{self.mode.value}-{self._address[1]}",
                daemon=True,
            )
            self._accept_thread.start()
        logger.info(
            "Fault server listening on %s:%d mode=%s (%s)",
            self._address[0],
            self._address[1],
            self.mode.value,
            self.mode.description,
        )

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._stop.set()
            sock, self._sock = self._sock, None
            connections = list(self._connections)
            thread = self._accept_thread
        if sock is not None:
            _shutdown(sock)
            try:
                sock.close()
            except OSError:
                pass
        for conn in connections:
            _shutdown(conn)
        if thread is not None:
            thread.join(timeout=JOIN_TIMEOUT_SEC)
        logger.info("Fault server %s:%d stopped (%d live connections interrupted)", *self.address, len(connections))

    def __enter__(self) -> FaultInjectingServer:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _bind(self) -> socket.socket:
        host, port = self.config.host, self.config.port
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            if self.mode is not FaultMode.NO_ACCEPT:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if self.config.receive_buffer_bytes:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, self.config.receive_buffer_bytes)
            sock.bind((host, port))
            sock.listen(self.config.effective_backlog())
        except OSError as exc:
            sock.close()
            raise BindError(host, port, exc) from exc
        return sock

    def _serve(self, sock: socket.socket, stop: threading.Event) -> None:
        if not self._handler.accepts:
            logger.info("NO_ACCEPT: listening with backlog 1, accept() is never called")
            stop.wait()
            return
        while not stop.is_set():
            try:
                conn, peer = sock.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            conn.settimeout(None)
            with self._lock:
                if stop.is_set():
                    conn.close()
                    break
                self._connections.add(conn)
            logger.info("Accepted %s:%d (%s)", peer[0], peer[1], self.mode.value)
            threading.Thread(
                target=self._handle,
                args=(conn, stop),
                name=f"fault-handler-{self.mode.value}-{peer[1]}",
                daemon=True,
            ).start()

    def _handle(self, conn: socket.socket, stop: threading.Event) -> None:
        try:
            self._handler.handle(conn, stop)
        except OSError as exc:
            if not stop.is_set():
                logger.debug("Connection closed in %s handler: %s", self.mode.value, exc)
        except Exception:
            if not stop.is_set():
                logger.exception("Handler for %s failed", self.mode.value)
        finally:
            with self._lock:
                self._connections.discard(conn)
            try:
                conn.close()
            except OSError:
                pass


def _shutdown(conn: socket.socket) -> None:
    try:
        conn.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
