from __future__ import annotations

import socket

ENCODING = "utf-8"
RECV_CHUNK = 8192


def encode_line(text: str) -> bytes:
    return (text + "\n").encode(ENCODING)


def decode_line(raw: bytes) -> str:
    return raw.decode(ENCODING, errors="replace").rstrip("\r")


class LineBuffer:
    def __init__(self) -> None:
        self._buf = bytearray()

    def __len__(self) -> int:
        return len(self._buf)

    def feed(self, data: bytes) -> None:
        self._buf.extend(data)

    def pop_line(self) -> str | None:
        idx = self._buf.find(b"\n")
        if idx < 0:
            return None
        raw = bytes(self._buf[:idx])
        del self._buf[: idx + 1]
        return decode_line(raw)

    def drain(self) -> str | None:
        if not self._buf:
            return None
        raw = bytes(self._buf)
        self._buf.clear()
        return decode_line(raw)

    def read_line(self, sock: socket.socket) -> str | None:
        while True:
            line = self.pop_line()
            if line is not None:
                return line
            chunk = sock.recv(RECV_CHUNK)
            if not chunk:
                return self.drain()
            self.feed(chunk)


def recv_exactly(sock: socket.socket, count: int) -> bytes:
    out = bytearray()
    while len(out) < count:
        chunk = sock.recv(count - len(out))
        if not chunk:
            break
        out.extend(chunk)
    return bytes(out)
