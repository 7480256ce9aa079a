from __future__ import annotations

import logging
import socket

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SEC = 0.25
MAX_FILLERS = 64


def saturate_backlog(host: str, port: int, *, limit: int = MAX_FILLERS) -> list[socket.socket]:
    fillers: list[socket.socket] = []
    for _ in range(limit):
        probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        probe.settimeout(PROBE_TIMEOUT_SEC)
        try:
            probe.connect((host, port))
        # a stalled handshake means the queue is full
        except (socket.timeout, ConnectionRefusedError):
            probe.close()
            logger.info("Backlog of %s:%d saturated with %d filler connections", host, port, len(fillers))
            return fillers
        except OSError:
            probe.close()
            release(fillers)
            raise
        fillers.append(probe)
    logger.warning("%s:%d still completing handshakes after %d fillers", host, port, limit)
    return fillers


def release(fillers: list[socket.socket]) -> None:
    for sock in fillers:
        try:
            sock.close()
        except OSError:
            pass
    fillers.clear()
