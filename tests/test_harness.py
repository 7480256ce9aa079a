from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from timeout_lab.config import ScenarioConfig, ScenarioType
from timeout_lab.errors import Condition
from timeout_lab.harness import HarnessState, ScenarioHarness, within_tolerance
from timeout_lab.metrics import Criterion, HarnessStatistics, Outcome, ScenarioStatus, TrialResult


def _trial(
    iteration: int,
    elapsed_ms: float = 10.0,
    outcome: Outcome = Outcome.SUCCESS,
    passed: bool = True,
) -> TrialResult:
    return TrialResult(
        scenario=ScenarioType.CONNECT_TIMEOUT,
        iteration=iteration,
        label="fake",
        configured_timeout_ms=None,
        elapsed_ms=elapsed_ms,
        outcome=outcome,
        condition=None if outcome is Outcome.SUCCESS else Condition.OTHER_FAILURE,
        criterion=Criterion.TIMEOUT_EXPECTED,
        passed=passed,
    )


class RecordingScenario(ScenarioHarness):
    scenario_type = ScenarioType.CONNECT_TIMEOUT
    criterion = Criterion.TIMEOUT_EXPECTED

    def __init__(
        self,
        config: ScenarioConfig,
        fail_setup: bool = False,
        fail_teardown: bool = False,
        raise_on: int | None = None,
        progress=None,
    ) -> None:
        super().__init__(config, progress)
        self.fail_setup = fail_setup
        self.fail_teardown = fail_teardown
        self.raise_on = raise_on
        self.calls: list[str] = []

    def setup(self) -> None:
        self.calls.append("setup")
        if self.fail_setup:
            raise OSError("port busy")

    def run_trial(self, iteration: int) -> TrialResult:
        self.calls.append(f"trial:{self.state.value}:{iteration}")
        if iteration == self.raise_on and self.state is HarnessState.MEASURED_RUN:
            raise RuntimeError("boom")
        return _trial(iteration)

    def teardown(self) -> None:
        self.calls.append("teardown")
        if self.fail_teardown:
            raise RuntimeError("teardown broke")


def _config(iterations: int = 3, warmup: int = 2) -> ScenarioConfig:
    return ScenarioConfig(ScenarioType.CONNECT_TIMEOUT, iterations=iterations, warmup_iterations=warmup)


def test_lifecycle_discards_warmup_trials() -> None:
    scenario = RecordingScenario(_config())
    summary = scenario.execute()
    assert scenario.calls == [
        "setup",
        "trial:warmup:0",
        "trial:warmup:1",
        "trial:measured_run:0",
        "trial:measured_run:1",
        "trial:measured_run:2",
        "teardown",
    ]
    assert scenario.state is HarnessState.DONE
    assert summary.status is ScenarioStatus.COMPLETED
    assert [t.iteration for t in summary.trials] == [0, 1, 2]
    assert summary.statistics.total == 3


def test_teardown_runs_after_setup_failure() -> None:
    scenario = RecordingScenario(_config(), fail_setup=True)
    summary = scenario.execute()
    assert scenario.calls == ["setup", "teardown"]
    assert summary.status is ScenarioStatus.FAILED
    assert summary.trials == ()
    assert "port busy" in summary.error


def test_trial_exception_does_not_abort_run() -> None:
    scenario = RecordingScenario(_config(iterations=4, warmup=0), raise_on=1)
    summary = scenario.execute()
    assert summary.status is ScenarioStatus.COMPLETED
    assert len(summary.trials) == 4
    failed = summary.trials[1]
    assert not failed.passed
    assert failed.condition is Condition.OTHER_FAILURE
    assert "boom" in failed.error
    assert summary.statistics.failed == 1
    assert summary.statistics.other_failures == 1


def test_teardown_failure_marks_summary_failed() -> None:
    summary = RecordingScenario(_config(), fail_teardown=True).execute()
    assert summary.status is ScenarioStatus.FAILED
    assert len(summary.trials) == 3


def test_progress_counts_every_trial() -> None:
    seen: list[tuple[int, int]] = []
    RecordingScenario(_config(iterations=2, warmup=1), progress=lambda done, total: seen.append((done, total))).execute()
    assert seen == [(1, 3), (2, 3), (3, 3)]


def test_negative_iterations_rejected() -> None:
    with pytest.raises(ValueError):
        RecordingScenario(_config(iterations=-1))


def test_within_tolerance() -> None:
    assert within_tolerance(1050.0, 1000) is True
    assert within_tolerance(1150.0, 1000) is False
    assert within_tolerance(10.0, None) is None


def test_empty_statistics_are_zero() -> None:
    snapshot = HarnessStatistics().snapshot()
    assert snapshot.total == 0
    assert snapshot.p99_ms == 0.0
    assert snapshot.pass_rate == 0.0


@given(
    samples=st.lists(
        st.tuples(
            st.floats(min_value=0.0, max_value=60_000.0, allow_nan=False),
            st.sampled_from(list(Outcome)),
            st.booleans(),
        ),
        min_size=1,
        max_size=50,
    )
)
def test_statistics_fold(samples: list[tuple[float, Outcome, bool]]) -> None:
    stats = HarnessStatistics()
    for i, (elapsed, outcome, passed) in enumerate(samples):
        stats.fold(_trial(i, elapsed, outcome, passed))
    snapshot = stats.snapshot()
    assert snapshot.total == len(samples)
    assert snapshot.passed + snapshot.failed == snapshot.total
    assert snapshot.successes + snapshot.timeouts + snapshot.other_failures == snapshot.total
    assert snapshot.passed == sum(1 for _, _, p in samples if p)
    eps = 1e-6
    assert snapshot.min_ms - eps <= snapshot.p50_ms <= snapshot.p95_ms + eps
    assert snapshot.p95_ms <= snapshot.p99_ms + eps
    assert snapshot.p99_ms <= snapshot.max_ms + eps
    assert snapshot.min_ms - eps <= snapshot.mean_ms <= snapshot.max_ms + eps
