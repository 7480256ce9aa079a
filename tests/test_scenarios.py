from __future__ import annotations

import pytest

from timeout_lab.config import (
    ConnectScenarioConfig,
    FaultMode,
    LabConfig,
    ReadScenarioConfig,
    ScenarioConfig,
    ScenarioType,
    WriteScenarioConfig,
)
from timeout_lab.errors import Condition
from timeout_lab.metrics import Criterion, Outcome, ScenarioStatus
from timeout_lab.scenarios.connect import ConnectTimeoutScenario
from timeout_lab.scenarios.exhaustion import ThreadExhaustionScenario
from timeout_lab.scenarios.factory import scenario_for
from timeout_lab.scenarios.read import ReadTimeoutScenario
from timeout_lab.scenarios.runner import run_session
from timeout_lab.scenarios.write import WriteTimeoutScenario
from timeout_lab.storage import Storage


def _connect_config(iterations: int = 2) -> ScenarioConfig:
    return ScenarioConfig(
        ScenarioType.CONNECT_TIMEOUT,
        iterations=iterations,
        warmup_iterations=0,
        connect=ConnectScenarioConfig(timeouts_ms=(300, 500), port=0),
    )


@pytest.mark.parametrize(
    ("scenario_type", "expected"),
    [
        (ScenarioType.CONNECT_TIMEOUT, ConnectTimeoutScenario),
        (ScenarioType.READ_TIMEOUT, ReadTimeoutScenario),
        (ScenarioType.WRITE_TIMEOUT, WriteTimeoutScenario),
        (ScenarioType.THREAD_EXHAUSTION, ThreadExhaustionScenario),
    ],
)
def test_factory_builds_matching_scenario(scenario_type: ScenarioType, expected: type) -> None:
    scenario = scenario_for(ScenarioConfig(scenario_type))
    assert isinstance(scenario, expected)
    assert scenario.name == scenario_type.value


def test_connect_scenario_times_out_each_configured_value() -> None:
    summary = scenario_for(_connect_config()).execute()
    assert summary.status is ScenarioStatus.COMPLETED
    assert [t.configured_timeout_ms for t in summary.trials] == [300, 500]
    for trial in summary.trials:
        assert trial.passed
        assert trial.condition is Condition.CONNECT_TIMEOUT
        assert trial.outcome is Outcome.TIMEOUT
        assert trial.within_tolerance


def test_read_scenario_alternates_modes() -> None:
    config = ScenarioConfig(
        ScenarioType.READ_TIMEOUT,
        iterations=2,
        warmup_iterations=0,
        read=ReadScenarioConfig(
            timeouts_ms=(300,),
            no_response_port=0,
            slow_response_port=0,
            slow_response_interval_sec=0.02,
        ),
    )
    summary = scenario_for(config).execute()
    silent, slow = summary.trials
    assert silent.label == "no_response"
    assert silent.criterion is Criterion.TIMEOUT_EXPECTED
    assert silent.condition is Condition.READ_TIMEOUT
    assert silent.within_tolerance
    assert slow.label == "slow_response"
    assert slow.criterion is Criterion.RECEIPT_EXPECTED
    assert slow.outcome is Outcome.SUCCESS
    assert summary.statistics.passed == 2


def test_read_scenario_expects_timeout_when_interval_is_longer() -> None:
    config = ScenarioConfig(
        ScenarioType.READ_TIMEOUT,
        read=ReadScenarioConfig(timeouts_ms=(500,), slow_response_interval_sec=1.0),
    )
    scenario = ReadTimeoutScenario(config)
    assert scenario.expected_criterion(FaultMode.SLOW_RESPONSE, 500) is Criterion.TIMEOUT_EXPECTED
    assert scenario.expected_criterion(FaultMode.SLOW_RESPONSE, 3000) is Criterion.RECEIPT_EXPECTED
    assert scenario.expected_criterion(FaultMode.NO_RESPONSE, 3000) is Criterion.TIMEOUT_EXPECTED


def test_write_scenario_bounds_every_send() -> None:
    config = ScenarioConfig(
        ScenarioType.WRITE_TIMEOUT,
        iterations=2,
        warmup_iterations=0,
        write=WriteScenarioConfig(
            payload_sizes=(100, 1_000_000),
            write_deadline_ms=400,
            slow_read_port=0,
            partial_read_port=0,
            slow_read_interval_sec=0.01,
            receive_buffer_bytes=4096,
            send_buffer_bytes=4096,
        ),
    )
    summary = scenario_for(config).execute()
    small, large = summary.trials
    assert small.label == "slow_read/100B"
    assert small.outcome is Outcome.SUCCESS
    assert large.label == "partial_read/1MB"
    assert large.condition is Condition.WRITE_TIMEOUT
    assert large.counters["interrupted"] == 1
    assert all(t.passed for t in summary.trials)


def test_run_session_stores_summaries(tmp_path) -> None:
    storage = Storage(tmp_path / "lab.duckdb")
    seen: list[tuple[str, int, int]] = []
    config = LabConfig(scenarios=(_connect_config(iterations=1),), pause_between_sec=0.0, session_id="s1")
    result = run_session(config, storage, progress=lambda name, done, total: seen.append((name, done, total)))
    assert result.session_id == "s1"
    assert result.all_passed
    assert seen == [("connect", 1, 1)]
    assert storage.session_exists("s1")
    assert len(storage.load_trials("s1")) == 1


def test_run_session_rejects_duplicate_session(tmp_path) -> None:
    storage = Storage(tmp_path / "lab.duckdb")
    config = LabConfig(scenarios=(), pause_between_sec=0.0, session_id="dup")
    run_session(config, storage)
    with pytest.raises(ValueError):
        run_session(config, storage)


def test_run_session_generates_id_without_storage() -> None:
    result = run_session(LabConfig(scenarios=(), pause_between_sec=0.0))
    assert len(result.session_id) == 32
    assert result.summaries == ()
