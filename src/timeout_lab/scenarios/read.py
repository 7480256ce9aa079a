from __future__ import annotations

import logging

from timeout_lab.client import TimeoutAwareClient
from timeout_lab.config import ClientConfig, FaultMode, ScenarioConfig, ScenarioType, ServerConfig
from timeout_lab.errors import Condition, describe_error
from timeout_lab.harness import ProgressCallback, ScenarioHarness, within_tolerance
from timeout_lab.metrics import Criterion, Outcome, TrialResult
from timeout_lab.server import FaultInjectingServer

logger = logging.getLogger(__name__)

REQUEST_LINE = "GET / HTTP/1.1"


class ReadTimeoutScenario(ScenarioHarness):
    scenario_type = ScenarioType.READ_TIMEOUT
    criterion = Criterion.TIMEOUT_EXPECTED

    def __init__(self, config: ScenarioConfig, progress: ProgressCallback | None = None) -> None:
        super().__init__(config, progress)
        if not config.read.timeouts_ms:
            msg = "read scenario needs at least one timeout"
            raise ValueError(msg)
        self.servers: dict[FaultMode, FaultInjectingServer] = {}

    def setup(self) -> None:
        read = self.config.read
        self.servers[FaultMode.NO_RESPONSE] = FaultInjectingServer(
            ServerConfig(mode=FaultMode.NO_RESPONSE, host=self.config.host, port=read.no_response_port)
        )
        self.servers[FaultMode.SLOW_RESPONSE] = FaultInjectingServer(
            ServerConfig(
                mode=FaultMode.SLOW_RESPONSE,
                host=self.config.host,
                port=read.slow_response_port,
                slow_response_interval_sec=read.slow_response_interval_sec,
                slow_response_banner=read.slow_response_banner,
            )
        )
        for server in self.servers.values():
            server.start()

    def mode_for(self, iteration: int) -> FaultMode:
        return FaultMode.NO_RESPONSE if iteration % 2 == 0 else FaultMode.SLOW_RESPONSE

    def expected_criterion(self, mode: FaultMode, timeout_ms: int) -> Criterion:
        if mode is FaultMode.SLOW_RESPONSE:
            interval_ms = self.config.read.slow_response_interval_sec * 1000.0
            if timeout_ms > interval_ms:
                return Criterion.RECEIPT_EXPECTED
        return Criterion.TIMEOUT_EXPECTED

    def run_trial(self, iteration: int) -> TrialResult:
        timeouts = self.config.read.timeouts_ms
        timeout_ms = timeouts[iteration % len(timeouts)]
        mode = self.mode_for(iteration)
        criterion = self.expected_criterion(mode, timeout_ms)
        server = self.servers[mode]
        client = TimeoutAwareClient(
            ClientConfig(
                host=self.config.host,
                port=server.port,
                connect_timeout_ms=self.config.read.connect_timeout_ms,
                read_timeout_ms=timeout_ms,
            )
        )
        with client:
            line = None
            if client.connect() and client.send(REQUEST_LINE):
                line = client.receive()
            condition = client.last_condition
            elapsed = client.read_ms if client.read_ms is not None else (client.connect_ms or 0.0)

        if criterion is Criterion.RECEIPT_EXPECTED:
            passed = line is not None
            tolerance = None
        else:
            passed = condition is Condition.READ_TIMEOUT
            # only a silent peer makes the elapsed time comparable to the timeout
            tolerance = within_tolerance(elapsed, timeout_ms) if mode is FaultMode.NO_RESPONSE and passed else None
        logger.info(
            "read #%d: mode=%s timeout=%dms elapsed=%.0fms received=%r condition=%s",
            iteration,
            mode.value,
            timeout_ms,
            elapsed,
            line,
            condition.value if condition else None,
        )
        return TrialResult(
            scenario=self.scenario_type,
            iteration=iteration,
            label=mode.value,
            configured_timeout_ms=timeout_ms,
            elapsed_ms=elapsed,
            outcome=Outcome.from_condition(condition),
            condition=condition,
            criterion=criterion,
            passed=passed,
            within_tolerance=tolerance,
            error=describe_error(client.last_error),
        )

    def teardown(self) -> None:
        for server in self.servers.values():
            server.stop()
