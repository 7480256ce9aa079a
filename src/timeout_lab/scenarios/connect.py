from __future__ import annotations

import logging
import socket

from timeout_lab.client import TimeoutAwareClient, release, saturate_backlog
from timeout_lab.config import ClientConfig, FaultMode, ScenarioConfig, ScenarioType, ServerConfig
from timeout_lab.errors import Condition, describe_error
from timeout_lab.harness import ProgressCallback, ScenarioHarness, within_tolerance
from timeout_lab.metrics import Criterion, Outcome, TrialResult
from timeout_lab.server import FaultInjectingServer

logger = logging.getLogger(__name__)


class ConnectTimeoutScenario(ScenarioHarness):
    scenario_type = ScenarioType.CONNECT_TIMEOUT
    criterion = Criterion.TIMEOUT_EXPECTED

    def __init__(self, config: ScenarioConfig, progress: ProgressCallback | None = None) -> None:
        super().__init__(config, progress)
        if not config.connect.timeouts_ms:
            msg = "connect scenario needs at least one timeout"
            raise ValueError(msg)
        self.server: FaultInjectingServer | None = None
        self._fillers: list[socket.socket] = []

    def setup(self) -> None:
        self.server = FaultInjectingServer(
            ServerConfig(mode=FaultMode.NO_ACCEPT, host=self.config.host, port=self.config.connect.port)
        )
        self.server.start()
        self._fillers = saturate_backlog(self.config.host, self.server.port)

    def run_trial(self, iteration: int) -> TrialResult:
        if self.server is None:
            msg = "run_trial() called before setup()"
            raise RuntimeError(msg)
        timeouts = self.config.connect.timeouts_ms
        timeout_ms = timeouts[iteration % len(timeouts)]
        client = TimeoutAwareClient(
            ClientConfig(
                host=self.config.host,
                port=self.server.port,
                connect_timeout_ms=timeout_ms,
                read_timeout_ms=None,
            )
        )
        with client:
            connected = client.connect()
        elapsed = client.connect_ms or 0.0
        condition = client.last_condition
        passed = not connected and condition is Condition.CONNECT_TIMEOUT
        tolerance = within_tolerance(elapsed, timeout_ms)
        logger.info(
            "connect #%d: timeout=%dms elapsed=%.0fms condition=%s",
            iteration,
            timeout_ms,
            elapsed,
            condition.value if condition else "connected",
        )
        return TrialResult(
            scenario=self.scenario_type,
            iteration=iteration,
            label=f"{timeout_ms}ms",
            configured_timeout_ms=timeout_ms,
            elapsed_ms=elapsed,
            outcome=Outcome.from_condition(condition),
            condition=condition,
            criterion=self.criterion,
            passed=passed,
            within_tolerance=tolerance,
            error="connection unexpectedly established" if connected else describe_error(client.last_error),
        )

    def teardown(self) -> None:
        release(self._fillers)
        if self.server is not None:
            self.server.stop()
