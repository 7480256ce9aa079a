from __future__ import annotations

import json

from timeout_lab.config import LabConfig, ScenarioType
from timeout_lab.errors import Condition
from timeout_lab.metrics import Criterion, Outcome, ScenarioStatus, ScenarioSummary, TrialResult, summarize_trials
from timeout_lab.storage import Storage


def _summary() -> ScenarioSummary:
    trials = (
        TrialResult(
            scenario=ScenarioType.CONNECT_TIMEOUT,
            iteration=0,
            label="1000ms",
            configured_timeout_ms=1000,
            elapsed_ms=1003.5,
            outcome=Outcome.TIMEOUT,
            condition=Condition.CONNECT_TIMEOUT,
            criterion=Criterion.TIMEOUT_EXPECTED,
            passed=True,
            within_tolerance=True,
        ),
        TrialResult(
            scenario=ScenarioType.CONNECT_TIMEOUT,
            iteration=1,
            label="error",
            configured_timeout_ms=None,
            elapsed_ms=2.0,
            outcome=Outcome.OTHER_FAILURE,
            condition=Condition.OTHER_FAILURE,
            criterion=Criterion.TIMEOUT_EXPECTED,
            passed=False,
            error="RuntimeError: boom",
            counters={"blocked_workers": 3},
        ),
    )
    return ScenarioSummary(
        name="connect",
        scenario_type=ScenarioType.CONNECT_TIMEOUT,
        status=ScenarioStatus.COMPLETED,
        statistics=summarize_trials(trials),
        wall_time_sec=1.2,
        trials=trials,
    )


def test_session_round_trip(tmp_path) -> None:
    storage = Storage(tmp_path / "nested" / "lab.duckdb")
    config = LabConfig(session_id="s1", notes="baseline")
    assert not storage.session_exists("s1")
    storage.save_session(config, "s1", [_summary()])
    assert storage.session_exists("s1")

    sessions = storage.list_sessions()
    assert sessions["session_id"].tolist() == ["s1"]
    meta = storage.load_session_meta("s1")
    assert meta["notes"] == "baseline"
    assert storage.load_session_meta("missing") is None

    summaries = storage.load_summaries("s1")
    assert summaries.loc[0, "total"] == 2
    assert summaries.loc[0, "passed"] == 1
    assert summaries.loc[0, "status"] == "completed"

    trials = storage.load_trials("s1")
    assert trials["iteration"].tolist() == [0, 1]
    assert trials.loc[0, "condition"] == "connect_timeout"
    assert trials.loc[0, "configured_timeout_ms"] == 1000
    assert json.loads(trials.loc[1, "counters_json"]) == {"blocked_workers": 3}
    assert storage.load_trials("s1", scenario="read").empty
