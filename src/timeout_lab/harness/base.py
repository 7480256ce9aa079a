from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, ClassVar

from timeout_lab.config import TOLERANCE_MS, ScenarioConfig, ScenarioType
from timeout_lab.errors import Condition, describe_error
from timeout_lab.metrics import (
    Criterion,
    HarnessStatistics,
    Outcome,
    ScenarioStatus,
    ScenarioSummary,
    StatisticsSnapshot,
    TrialResult,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class HarnessState(str, Enum):
    CREATED = "created"
    SETUP = "setup"
    WARMUP = "warmup"
    MEASURED_RUN = "measured_run"
    TEARDOWN = "teardown"
    DONE = "done"


def within_tolerance(elapsed_ms: float, configured_ms: int | None, tolerance_ms: float = TOLERANCE_MS) -> bool | None:
    if configured_ms is None:
        return None
    return abs(elapsed_ms - configured_ms) <= tolerance_ms


class ScenarioHarness(ABC):
    scenario_type: ClassVar[ScenarioType]
    criterion: ClassVar[Criterion]

    def __init__(self, config: ScenarioConfig, progress: ProgressCallback | None = None) -> None:
        if config.iterations < 0 or config.warmup_iterations < 0:
            msg = "iterations and warmup_iterations must be non-negative"
            raise ValueError(msg)
        self.config = config
        self.progress = progress
        self.state = HarnessState.CREATED

    @property
    def name(self) -> str:
        return self.scenario_type.value

    @abstractmethod
    def setup(self) -> None:
        ...

    @abstractmethod
    def run_trial(self, iteration: int) -> TrialResult:
        ...

    @abstractmethod
    def teardown(self) -> None:
        ...

    def execute(self) -> ScenarioSummary:
        started = time.perf_counter()
        stats = HarnessStatistics()
        trials: list[TrialResult] = []
        status = ScenarioStatus.COMPLETED
        error: str | None = None
        total = self.config.warmup_iterations + self.config.iterations
        done = 0
        logger.info(
            "Starting %s: %d warmup + %d measured iterations",
            self.name,
            self.config.warmup_iterations,
            self.config.iterations,
        )
        try:
            self._enter(HarnessState.SETUP)
            try:
                self.setup()
            except Exception as exc:
                logger.exception("Setup of %s failed", self.name)
                status = ScenarioStatus.FAILED
                error = f"setup: {exc}"
            else:
                self._enter(HarnessState.WARMUP)
                for i in range(self.config.warmup_iterations):
                    self._guarded_trial(i)
                    done += 1
                    self._report_progress(done, total)
                self._enter(HarnessState.MEASURED_RUN)
                for i in range(self.config.iterations):
                    result = self._guarded_trial(i)
                    stats.fold(result)
                    trials.append(result)
                    done += 1
                    self._report_progress(done, total)
        finally:
            self._enter(HarnessState.TEARDOWN)
            try:
                self.teardown()
            except Exception as exc:
                logger.exception("Teardown of %s failed", self.name)
                status = ScenarioStatus.FAILED
                error = error or f"teardown: {exc}"

        snapshot = stats.snapshot()
        wall_time = time.perf_counter() - started
        self._log_summary(snapshot, status, wall_time)
        self._enter(HarnessState.DONE)
        return ScenarioSummary(
            name=self.name,
            scenario_type=self.scenario_type,
            status=status,
            statistics=snapshot,
            wall_time_sec=wall_time,
            trials=tuple(trials),
            error=error,
        )

    def _guarded_trial(self, iteration: int) -> TrialResult:
        started = time.perf_counter()
        try:
            return self.run_trial(iteration)
        except Exception as exc:
            logger.exception("%s iteration %d raised", self.name, iteration)
            return TrialResult(
                scenario=self.scenario_type,
                iteration=iteration,
                label="error",
                configured_timeout_ms=None,
                elapsed_ms=(time.perf_counter() - started) * 1000.0,
                outcome=Outcome.OTHER_FAILURE,
                condition=Condition.OTHER_FAILURE,
                criterion=self.criterion,
                passed=False,
                error=describe_error(exc),
            )

    def _enter(self, state: HarnessState) -> None:
        logger.debug("%s: %s -> %s", self.name, self.state.value, state.value)
        self.state = state

    def _report_progress(self, done: int, total: int) -> None:
        if self.progress is not None:
            self.progress(done, total)

    def _log_summary(self, snapshot: StatisticsSnapshot, status: ScenarioStatus, wall_time: float) -> None:
        logger.info(
            "%s %s: %d/%d passed (success=%d timeout=%d other=%d) "
            "min=%.1fms mean=%.1fms max=%.1fms p50=%.1fms p95=%.1fms p99=%.1fms wall=%.1fs",
            self.name,
            status.value,
            snapshot.passed,
            snapshot.total,
            snapshot.successes,
            snapshot.timeouts,
            snapshot.other_failures,
            snapshot.min_ms,
            snapshot.mean_ms,
            snapshot.max_ms,
            snapshot.p50_ms,
            snapshot.p95_ms,
            snapshot.p99_ms,
            wall_time,
        )
