from __future__ import annotations

import logging
import socket
import threading
import time

from timeout_lab.config import ClientConfig
from timeout_lab.errors import Condition
from timeout_lab.wire import LineBuffer, encode_line

logger = logging.getLogger(__name__)


def _to_seconds(timeout_ms: int | None) -> float | None:
    # None and 0 both mean "wait forever", as with SO_TIMEOUT
    if not timeout_ms:
        return None
    return timeout_ms / 1000.0


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


class TimeoutAwareClient:
    def __init__(self, config: ClientConfig | None = None) -> None:
        self.config = config or ClientConfig()
        self.connect_timeout_ms = self.config.connect_timeout_ms
        self._read_timeout_ms = self.config.read_timeout_ms
        self.last_condition: Condition | None = None
        self.last_error: BaseException | None = None
        self.connect_ms: float | None = None
        self.read_ms: float | None = None
        self.write_ms: float | None = None
        self._lock = threading.Lock()
        self._sock: socket.socket | None = None
        self._connected = False
        self._aborted = False
        self._lines = LineBuffer()

    @property
    def read_timeout_ms(self) -> int | None:
        return self._read_timeout_ms

    @property
    def is_connected(self) -> bool:
        return self._connected and self._sock is not None

    def set_read_timeout(self, timeout_ms: int | None) -> None:
        self._read_timeout_ms = timeout_ms
        sock = self._sock
        if self._connected and sock is not None:
            try:
                sock.settimeout(_to_seconds(timeout_ms))
            except OSError as exc:
                logger.error("Failed to apply read timeout %s ms: %s", timeout_ms, exc)

    def connect(
        self,
        host: str | None = None,
        port: int | None = None,
        connect_timeout_ms: int | None = None,
    ) -> bool:
        host = host or self.config.host
        port = port if port is not None else self.config.port
        if connect_timeout_ms is not None:
            self.connect_timeout_ms = connect_timeout_ms
        timeout_ms = self.connect_timeout_ms

        if self._sock is not None:
            self.disconnect()
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        if self.config.send_buffer_bytes:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, self.config.send_buffer_bytes)
        sock.settimeout(_to_seconds(timeout_ms))
        with self._lock:
            self._sock = sock
        logger.debug("Connecting to %s:%d (connect timeout %s ms)", host, port, timeout_ms)

        start = time.perf_counter()
        try:
            sock.connect((host, port))
        except socket.timeout as exc:
            self.connect_ms = _elapsed_ms(start)
            self._fail(Condition.CONNECT_TIMEOUT, exc)
            logger.info("Connect timeout after %.0f ms (configured %s ms)", self.connect_ms, timeout_ms)
            self.disconnect()
            return False
        except ConnectionRefusedError as exc:
            self.connect_ms = _elapsed_ms(start)
            self._fail(Condition.CONNECTION_REFUSED, exc)
            logger.info("Connection refused by %s:%d after %.0f ms", host, port, self.connect_ms)
            self.disconnect()
            return False
        except OSError as exc:
            self.connect_ms = _elapsed_ms(start)
            self._fail(Condition.OTHER_FAILURE, exc)
            log = logger.debug if self._aborted else logger.warning
            log("Connect to %s:%d failed after %.0f ms: %s", host, port, self.connect_ms, exc)
            self.disconnect()
            return False
        self.connect_ms = _elapsed_ms(start)
        self._connected = True
        self._succeed()
        sock.settimeout(_to_seconds(self._read_timeout_ms))
        logger.debug("Connected to %s:%d in %.1f ms", host, port, self.connect_ms)
        return True

    def send(self, data: str | bytes) -> bool:
        sock = self._sock
        if not self._connected or sock is None:
            logger.error("send() called without an open connection")
            self._fail(Condition.OTHER_FAILURE, None)
            return False
        payload = encode_line(data) if isinstance(data, str) else data
        # writes never carry a deadline; only receive() does
        sock.settimeout(None)
        start = time.perf_counter()
        try:
            sock.sendall(payload)
        except OSError as exc:
            self.write_ms = _elapsed_ms(start)
            with self._lock:
                aborted = self._aborted
                if not aborted:
                    self._fail(Condition.OTHER_FAILURE, exc)
            if not aborted:
                logger.warning("Send of %d bytes failed after %.0f ms: %s", len(payload), self.write_ms, exc)
            return False
        finally:
            if not self._aborted:
                try:
                    sock.settimeout(_to_seconds(self._read_timeout_ms))
                except OSError:
                    pass
        self.write_ms = _elapsed_ms(start)
        with self._lock:
            if not self._aborted:
                self._succeed()
        logger.debug("Sent %d bytes in %.1f ms", len(payload), self.write_ms)
        return True

    def receive(self) -> str | None:
        sock = self._sock
        if not self._connected or sock is None:
            logger.error("receive() called without an open connection")
            self._fail(Condition.OTHER_FAILURE, None)
            return None
        sock.settimeout(_to_seconds(self._read_timeout_ms))
        start = time.perf_counter()
        try:
            line = self._lines.read_line(sock)
        except socket.timeout as exc:
            self.read_ms = _elapsed_ms(start)
            self._fail(Condition.READ_TIMEOUT, exc)
            logger.info("Read timeout after %.0f ms (configured %s ms)", self.read_ms, self._read_timeout_ms)
            return None
        except OSError as exc:
            self.read_ms = _elapsed_ms(start)
            self._fail(Condition.OTHER_FAILURE, exc)
            logger.warning("Receive failed after %.0f ms: %s", self.read_ms, exc)
            return None
        self.read_ms = _elapsed_ms(start)
        if line is None:
            self._fail(Condition.OTHER_FAILURE, EOFError("connection closed by peer"))
            logger.info("Connection closed by peer (EOF) after %.0f ms", self.read_ms)
            return None
        self._succeed()
        logger.debug("Received %r in %.1f ms", line[:50], self.read_ms)
        return line

    def echo(self, message: str) -> str | None:
        if not self.send(message):
            return None
        return self.receive()

    def abort(self) -> None:
        """Best-effort interruption of a call blocked on another thread.

        Shuts the socket down in both directions. Linux wakes a blocked
        ``connect``/``recv``/``sendall`` this way, other platforms may not.
        """
        with self._lock:
            self._aborted = True
            sock = self._sock
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass

    def mark_write_timeout(self, elapsed_ms: float) -> None:
        self.write_ms = elapsed_ms
        self._fail(Condition.WRITE_TIMEOUT, TimeoutError("write deadline exceeded"))

    def disconnect(self) -> None:
        with self._lock:
            sock, self._sock = self._sock, None
            self._connected = False
        if sock is None:
            return
        try:
            sock.close()
        except OSError as exc:
            logger.debug("Error while closing socket: %s", exc)

    def __enter__(self) -> TimeoutAwareClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.disconnect()

    def _fail(self, condition: Condition, error: BaseException | None) -> None:
        self.last_condition = condition
        self.last_error = error

    def _succeed(self) -> None:
        self.last_condition = None
        self.last_error = None
