from __future__ import annotations

import logging

from timeout_lab.client import TimeoutAwareClient, send_with_deadline
from timeout_lab.config import ClientConfig, FaultMode, ScenarioConfig, ScenarioType, ServerConfig
from timeout_lab.errors import Condition, describe_error
from timeout_lab.harness import ProgressCallback, ScenarioHarness, within_tolerance
from timeout_lab.metrics import Criterion, Outcome, TrialResult
from timeout_lab.server import FaultInjectingServer

logger = logging.getLogger(__name__)


def _label(size: int) -> str:
    if size >= 1_000_000:
        return f"{size // 1_000_000}MB"
    if size >= 1_000:
        return f"{size // 1_000}KB"
    return f"{size}B"


class WriteTimeoutScenario(ScenarioHarness):
    scenario_type = ScenarioType.WRITE_TIMEOUT
    criterion = Criterion.BOUNDED_COMPLETION

    def __init__(self, config: ScenarioConfig, progress: ProgressCallback | None = None) -> None:
        super().__init__(config, progress)
        if not config.write.payload_sizes:
            msg = "write scenario needs at least one payload size"
            raise ValueError(msg)
        self.servers: dict[FaultMode, FaultInjectingServer] = {}

    def setup(self) -> None:
        write = self.config.write
        self.servers[FaultMode.SLOW_READ] = FaultInjectingServer(
            ServerConfig(
                mode=FaultMode.SLOW_READ,
                host=self.config.host,
                port=write.slow_read_port,
                slow_read_interval_sec=write.slow_read_interval_sec,
                receive_buffer_bytes=write.receive_buffer_bytes,
            )
        )
        self.servers[FaultMode.PARTIAL_READ] = FaultInjectingServer(
            ServerConfig(
                mode=FaultMode.PARTIAL_READ,
                host=self.config.host,
                port=write.partial_read_port,
                receive_buffer_bytes=write.receive_buffer_bytes,
            )
        )
        for server in self.servers.values():
            server.start()

    def mode_for(self, iteration: int) -> FaultMode:
        return FaultMode.SLOW_READ if iteration % 2 == 0 else FaultMode.PARTIAL_READ

    def run_trial(self, iteration: int) -> TrialResult:
        write = self.config.write
        size = write.payload_sizes[iteration % len(write.payload_sizes)]
        mode = self.mode_for(iteration)
        server = self.servers[mode]
        client = TimeoutAwareClient(
            ClientConfig(
                host=self.config.host,
                port=server.port,
                connect_timeout_ms=write.connect_timeout_ms,
                read_timeout_ms=None,
                send_buffer_bytes=write.send_buffer_bytes,
            )
        )
        with client:
            if not client.connect():
                return TrialResult(
                    scenario=self.scenario_type,
                    iteration=iteration,
                    label=f"{mode.value}/{_label(size)}",
                    configured_timeout_ms=write.write_deadline_ms,
                    elapsed_ms=client.connect_ms or 0.0,
                    outcome=Outcome.from_condition(client.last_condition),
                    condition=client.last_condition,
                    criterion=self.criterion,
                    passed=False,
                    error=describe_error(client.last_error),
                )
            attempt = send_with_deadline(client, b"X" * size, write.write_deadline_ms)
            condition = client.last_condition

        clean_timeout = attempt.timed_out and condition is Condition.WRITE_TIMEOUT
        passed = attempt.sent or clean_timeout
        logger.info(
            "write #%d: mode=%s size=%s elapsed=%.0fms sent=%s timed_out=%s",
            iteration,
            mode.value,
            _label(size),
            attempt.elapsed_ms,
            attempt.sent,
            attempt.timed_out,
        )
        return TrialResult(
            scenario=self.scenario_type,
            iteration=iteration,
            label=f"{mode.value}/{_label(size)}",
            configured_timeout_ms=write.write_deadline_ms,
            elapsed_ms=attempt.elapsed_ms,
            outcome=Outcome.SUCCESS if attempt.sent else Outcome.from_condition(condition),
            condition=None if attempt.sent else condition,
            criterion=self.criterion,
            passed=passed,
            within_tolerance=within_tolerance(attempt.elapsed_ms, write.write_deadline_ms) if attempt.timed_out else None,
            error=None if attempt.sent else describe_error(client.last_error),
            counters={"payload_bytes": attempt.payload_bytes, "interrupted": int(attempt.interrupted)},
        )

    def teardown(self) -> None:
        for server in self.servers.values():
            server.stop()
