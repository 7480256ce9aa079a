from __future__ import annotations

from typing import Iterable

import numpy as np

from timeout_lab.metrics.models import Outcome, StatisticsSnapshot, TrialResult


class HarnessStatistics:
    def __init__(self) -> None:
        self.total = 0
        self.passed = 0
        self.successes = 0
        self.timeouts = 0
        self.other_failures = 0
        self._durations: list[float] = []

    @property
    def failed(self) -> int:
        return self.total - self.passed

    def fold(self, result: TrialResult) -> None:
        self.total += 1
        if result.passed:
            self.passed += 1
        if result.outcome is Outcome.SUCCESS:
            self.successes += 1
        elif result.outcome is Outcome.TIMEOUT:
            self.timeouts += 1
        else:
            self.other_failures += 1
        if result.elapsed_ms >= 0:
            self._durations.append(result.elapsed_ms)

    def snapshot(self) -> StatisticsSnapshot:
        if self._durations:
            durations = np.asarray(self._durations, dtype=float)
            min_ms = float(durations.min())
            max_ms = float(durations.max())
            mean_ms = float(durations.mean())
            p50, p95, p99 = (float(v) for v in np.percentile(durations, [50, 95, 99]))
        else:
            min_ms = max_ms = mean_ms = p50 = p95 = p99 = 0.0
        return StatisticsSnapshot(
            total=self.total,
            passed=self.passed,
            failed=self.failed,
            successes=self.successes,
            timeouts=self.timeouts,
            other_failures=self.other_failures,
            min_ms=min_ms,
            max_ms=max_ms,
            mean_ms=mean_ms,
            p50_ms=p50,
            p95_ms=p95,
            p99_ms=p99,
        )


def summarize_trials(trials: Iterable[TrialResult]) -> StatisticsSnapshot:
    stats = HarnessStatistics()
    for trial in trials:
        stats.fold(trial)
    return stats.snapshot()
