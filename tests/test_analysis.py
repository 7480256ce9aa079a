from __future__ import annotations

import pandas as pd

from timeout_lab.analysis import accuracy_grade, accuracy_table, compare_sessions, tolerance_misses


def _trials() -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"scenario": "connect", "iteration": 0, "configured_timeout_ms": 1000.0, "elapsed_ms": 1010.0, "condition": "connect_timeout"},
            {"scenario": "connect", "iteration": 1, "configured_timeout_ms": 1000.0, "elapsed_ms": 1030.0, "condition": "connect_timeout"},
            {"scenario": "connect", "iteration": 2, "configured_timeout_ms": 3000.0, "elapsed_ms": 3250.0, "condition": "connect_timeout"},
            {"scenario": "read", "iteration": 0, "configured_timeout_ms": 1000.0, "elapsed_ms": 40.0, "condition": None},
            {"scenario": "exhaustion", "iteration": 0, "configured_timeout_ms": None, "elapsed_ms": 30000.0, "condition": "pool_exhausted"},
        ]
    )


def test_accuracy_grade_thresholds() -> None:
    assert accuracy_grade(10.0) == "very accurate"
    assert accuracy_grade(75.0) == "good"
    assert accuracy_grade(150.0) == "inaccurate"


def test_accuracy_table_groups_by_configured_timeout() -> None:
    table = accuracy_table(_trials())
    assert table[["scenario", "configured_timeout_ms"]].values.tolist() == [["connect", 1000.0], ["connect", 3000.0]]
    first = table.iloc[0]
    assert first["samples"] == 2
    assert first["mean_error_ms"] == 20.0
    assert first["within_tolerance_pct"] == 100.0
    assert first["grade"] == "very accurate"
    assert table.iloc[1]["grade"] == "inaccurate"


def test_accuracy_table_empty_input() -> None:
    assert accuracy_table(pd.DataFrame()).empty


def test_tolerance_misses() -> None:
    misses = tolerance_misses(_trials())
    assert [(m.scenario, m.iteration) for m in misses] == [("connect", 2)]
    assert misses[0].error_ms == 250.0


def _summary(passed: int, p99: float, status: str = "completed") -> pd.DataFrame:
    return pd.DataFrame(
        [{"scenario_type": "connect", "status": status, "passed": passed, "total": 10, "p99_ms": p99}]
    )


def test_compare_sessions_flags_regressions() -> None:
    regressions = compare_sessions(_summary(10, 100.0), _summary(8, 150.0, status="failed"))
    assert {r.metric for r in regressions} == {"status", "pass_rate", "p99_ms"}
    pass_rate = next(r for r in regressions if r.metric == "pass_rate")
    assert round(pass_rate.delta_pct, 6) == 20.0


def test_compare_sessions_without_change() -> None:
    assert compare_sessions(_summary(10, 100.0), _summary(10, 105.0)) == []
    assert compare_sessions(pd.DataFrame(), _summary(10, 100.0)) == []
