from __future__ import annotations

import logging
import socket
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass

from timeout_lab.client import TimeoutAwareClient, release, saturate_backlog
from timeout_lab.config import ClientConfig, FaultMode, ScenarioConfig, ScenarioType, ServerConfig
from timeout_lab.errors import Condition
from timeout_lab.harness import ProgressCallback, ScenarioHarness
from timeout_lab.metrics import Criterion, Outcome, TrialResult
from timeout_lab.server import FaultInjectingServer

logger = logging.getLogger(__name__)

TERMINATE_GRACE_SEC = 5.0
SWEEP_INTERVAL_SEC = 0.05


@dataclass(frozen=True, slots=True)
class PoolReport:
    workers: int
    requests: int
    connect_timeout_ms: int | None
    drained: bool
    completed: int
    succeeded: int
    timed_out: int
    refused: int
    other_failures: int
    blocked_workers: int
    elapsed_ms: float
    forced_termination: bool

    def counters(self) -> dict[str, int]:
        return {
            "workers": self.workers,
            "requests": self.requests,
            "completed": self.completed,
            "succeeded": self.succeeded,
            "timed_out": self.timed_out,
            "refused": self.refused,
            "other_failures": self.other_failures,
            "blocked_workers": self.blocked_workers,
            "forced_termination": int(self.forced_termination),
        }


class _InFlight:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.current = 0

    def enter(self) -> None:
        with self._lock:
            self.current += 1

    def leave(self) -> None:
        with self._lock:
            self.current -= 1


def run_pool_trial(
    host: str,
    port: int,
    *,
    workers: int,
    requests: int,
    connect_timeout_ms: int | None,
    ceiling_sec: float,
) -> PoolReport:
    """Race ``requests`` connect attempts through a pool of ``workers`` threads.

    All attempts are queued first and released together through a shared
    gate. Whatever has not finished by ``ceiling_sec`` is left blocked, its
    count recorded, and the pool is then force-terminated: queued attempts are
    cancelled and running ones aborted until they return.
    """
    gate = threading.Event()
    gauge = _InFlight()
    clients: list[TimeoutAwareClient] = []
    clients_lock = threading.Lock()
    client_config = ClientConfig(host=host, port=port, connect_timeout_ms=connect_timeout_ms, read_timeout_ms=None)

    def attempt() -> Condition | None:
        gate.wait()
        client = TimeoutAwareClient(client_config)
        with clients_lock:
            clients.append(client)
        gauge.enter()
        try:
            client.connect()
            return client.last_condition
        finally:
            gauge.leave()
            client.disconnect()

    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="exhaustion-worker")
    futures: list[Future[Condition | None]] = []
    started = time.perf_counter()
    try:
        futures = [executor.submit(attempt) for _ in range(requests)]
        gate.set()
        done, pending = wait(futures, timeout=ceiling_sec)
        elapsed = (time.perf_counter() - started) * 1000.0
        blocked = gauge.current
        conditions = [f.result() for f in done if not f.cancelled() and f.exception() is None]
    finally:
        forced = _terminate(executor, futures, clients, clients_lock)

    report = PoolReport(
        workers=workers,
        requests=requests,
        connect_timeout_ms=connect_timeout_ms,
        drained=not pending,
        completed=len(done),
        succeeded=sum(1 for c in conditions if c is None),
        timed_out=sum(1 for c in conditions if c is Condition.CONNECT_TIMEOUT),
        refused=sum(1 for c in conditions if c is Condition.CONNECTION_REFUSED),
        other_failures=sum(1 for c in conditions if c is Condition.OTHER_FAILURE),
        blocked_workers=blocked if pending else 0,
        elapsed_ms=elapsed,
        forced_termination=forced,
    )
    logger.info(
        "pool W=%d N=%d timeout=%s: %d/%d completed in %.0fms, %d workers blocked",
        workers,
        requests,
        f"{connect_timeout_ms}ms" if connect_timeout_ms else "none",
        report.completed,
        requests,
        elapsed,
        report.blocked_workers,
    )
    return report


def _terminate(
    executor: ThreadPoolExecutor,
    futures: list[Future[Condition | None]],
    clients: list[TimeoutAwareClient],
    clients_lock: threading.Lock,
) -> bool:
    forced = any(not f.done() for f in futures)
    executor.shutdown(wait=False, cancel_futures=True)
    deadline = time.perf_counter() + TERMINATE_GRACE_SEC
    while any(not f.done() for f in futures) and time.perf_counter() < deadline:
        with clients_lock:
            live = list(clients)
        for client in live:
            client.abort()
        wait(futures, timeout=SWEEP_INTERVAL_SEC)
    stuck = sum(1 for f in futures if not f.done())
    if stuck:
        logger.warning("%d pool workers still blocked after forced termination", stuck)
    elif forced:
        logger.info("Pool force-terminated")
    return forced


class ThreadExhaustionScenario(ScenarioHarness):
    scenario_type = ScenarioType.THREAD_EXHAUSTION
    criterion = Criterion.EXHAUSTION_EXPECTED

    def __init__(self, config: ScenarioConfig, progress: ProgressCallback | None = None) -> None:
        super().__init__(config, progress)
        self.server: FaultInjectingServer | None = None
        self._fillers: list[socket.socket] = []

    def setup(self) -> None:
        self.server = FaultInjectingServer(
            ServerConfig(mode=FaultMode.NO_ACCEPT, host=self.config.host, port=self.config.exhaustion.port)
        )
        self.server.start()
        self._fillers = saturate_backlog(self.config.host, self.server.port)

    def run_trial(self, iteration: int) -> TrialResult:
        if self.server is None:
            msg = "run_trial() called before setup()"
            raise RuntimeError(msg)
        cfg = self.config.exhaustion
        bounded = iteration % 2 == 1
        timeout_ms = cfg.bounded_timeout_ms if bounded else None
        report = run_pool_trial(
            self.config.host,
            self.server.port,
            workers=cfg.pool_size,
            requests=cfg.total_requests,
            connect_timeout_ms=timeout_ms,
            ceiling_sec=cfg.completion_ceiling_sec if bounded else cfg.drain_ceiling_sec,
        )
        if bounded:
            criterion = Criterion.COMPLETION_EXPECTED
            passed = report.drained and report.succeeded + report.timed_out == cfg.total_requests
        else:
            criterion = Criterion.EXHAUSTION_EXPECTED
            passed = not report.drained
        condition = None if report.drained else Condition.POOL_EXHAUSTED
        error = None
        if not passed:
            error = (
                f"{report.succeeded + report.timed_out}/{cfg.total_requests} requests completed cleanly, "
                f"{report.refused} refused, {report.other_failures} failed, {report.blocked_workers} workers blocked"
            )
        return TrialResult(
            scenario=self.scenario_type,
            iteration=iteration,
            label="bounded" if bounded else "unbounded",
            configured_timeout_ms=timeout_ms,
            elapsed_ms=report.elapsed_ms,
            outcome=Outcome.from_condition(condition),
            condition=condition,
            criterion=criterion,
            passed=passed,
            error=error,
            counters=report.counters(),
        )

    def teardown(self) -> None:
        release(self._fillers)
        if self.server is not None:
            self.server.stop()
