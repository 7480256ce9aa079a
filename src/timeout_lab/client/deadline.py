from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass

from timeout_lab.client.tcp_client import TimeoutAwareClient
from timeout_lab.wire import encode_line

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WriteAttempt:
    sent: bool
    timed_out: bool
    interrupted: bool
    elapsed_ms: float
    payload_bytes: int


def send_with_deadline(client: TimeoutAwareClient, data: str | bytes, deadline_ms: int) -> WriteAttempt:
    """Bound a ``send()`` that has no deadline of its own.

    The send runs on a daemon helper thread. When the deadline passes the
    client is marked ``WRITE_TIMEOUT`` and aborted, and this returns without
    joining the helper, which may stay blocked if the abort cannot reach it.
    """
    payload_bytes = len(encode_line(data)) if isinstance(data, str) else len(data)
    outcome: Future[bool] = Future()

    def _run() -> None:
        if not outcome.set_running_or_notify_cancel():
            return
        try:
            outcome.set_result(client.send(data))
        except BaseException as exc:
            outcome.set_exception(exc)

    helper = threading.Thread(target=_run, name="write-deadline", daemon=True)
    start = time.perf_counter()
    helper.start()
    try:
        sent = outcome.result(timeout=deadline_ms / 1000.0)
    except FutureTimeout:
        elapsed = (time.perf_counter() - start) * 1000.0
        client.abort()
        client.mark_write_timeout(elapsed)
        logger.info("Write of %d bytes exceeded %d ms deadline; connection aborted", payload_bytes, deadline_ms)
        return WriteAttempt(
            sent=False,
            timed_out=True,
            interrupted=True,
            elapsed_ms=elapsed,
            payload_bytes=payload_bytes,
        )
    elapsed = (time.perf_counter() - start) * 1000.0
    return WriteAttempt(
        sent=sent,
        timed_out=False,
        interrupted=False,
        elapsed_ms=elapsed,
        payload_bytes=payload_bytes,
    )
