from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import duckdb
import pandas as pd

from timeout_lab.config import LabConfig
from timeout_lab.metrics import ScenarioSummary


@dataclass(slots=True)
class Storage:
    db_path: Path

    def __post_init__(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> duckdb.DuckDBPyConnection:
        return duckdb.connect(str(self.db_path))

    def _init_schema(self) -> None:
        with self._connect() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS session_meta (
                    session_id TEXT PRIMARY KEY,
                    created_at TIMESTAMP,
                    config_json TEXT,
                    notes TEXT
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS scenario_summary (
                    session_id TEXT,
                    name TEXT,
                    scenario_type TEXT,
                    status TEXT,
                    total INTEGER,
                    passed INTEGER,
                    failed INTEGER,
                    successes INTEGER,
                    timeouts INTEGER,
                    other_failures INTEGER,
                    min_ms DOUBLE,
                    max_ms DOUBLE,
                    mean_ms DOUBLE,
                    p50_ms DOUBLE,
                    p95_ms DOUBLE,
                    p99_ms DOUBLE,
                    wall_time_sec DOUBLE,
                    error TEXT
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS trial_results (
                    session_id TEXT,
                    scenario TEXT,
                    iteration INTEGER,
                    label TEXT,
                    configured_timeout_ms DOUBLE,
                    elapsed_ms DOUBLE,
                    outcome TEXT,
                    condition TEXT,
                    criterion TEXT,
                    passed BOOLEAN,
                    within_tolerance BOOLEAN,
                    error TEXT,
                    counters_json TEXT
                );
                """
            )

    def session_exists(self, session_id: str) -> bool:
        with self._connect() as con:
            result = con.execute(
                "SELECT COUNT(*) FROM session_meta WHERE session_id = ?",
                [session_id],
            ).fetchone()
            return bool(result and result[0] > 0)

    def save_session(
        self,
        config: LabConfig,
        session_id: str,
        summaries: Iterable[ScenarioSummary],
    ) -> None:
        summaries = list(summaries)
        config_json = json.dumps(config.to_metadata())
        with self._connect() as con:
            con.execute(
                "INSERT INTO session_meta VALUES (?, ?, ?, ?)",
                [session_id, config.created_at, config_json, config.notes],
            )
            summary_df = pd.DataFrame(
                [
                    {
                        "session_id": session_id,
                        "name": s.name,
                        "scenario_type": s.scenario_type.value,
                        "status": s.status.value,
                        "total": s.statistics.total,
                        "passed": s.statistics.passed,
                        "failed": s.statistics.failed,
                        "successes": s.statistics.successes,
                        "timeouts": s.statistics.timeouts,
                        "other_failures": s.statistics.other_failures,
                        "min_ms": s.statistics.min_ms,
                        "max_ms": s.statistics.max_ms,
                        "mean_ms": s.statistics.mean_ms,
                        "p50_ms": s.statistics.p50_ms,
                        "p95_ms": s.statistics.p95_ms,
                        "p99_ms": s.statistics.p99_ms,
                        "wall_time_sec": s.wall_time_sec,
                        "error": s.error,
                    }
                    for s in summaries
                ]
            )
            if not summary_df.empty:
                con.execute("INSERT INTO scenario_summary SELECT * FROM summary_df")
            trials_df = pd.DataFrame(
                [
                    {
                        "session_id": session_id,
                        "scenario": t.scenario.value,
                        "iteration": t.iteration,
                        "label": t.label,
                        "configured_timeout_ms": (
                            float(t.configured_timeout_ms) if t.configured_timeout_ms is not None else None
                        ),
                        "elapsed_ms": t.elapsed_ms,
                        "outcome": t.outcome.value,
                        "condition": t.condition.value if t.condition else None,
                        "criterion": t.criterion.value,
                        "passed": t.passed,
                        "within_tolerance": t.within_tolerance,
                        "error": t.error,
                        "counters_json": json.dumps(t.counters),
                    }
                    for s in summaries
                    for t in s.trials
                ]
            )
            if not trials_df.empty:
                con.execute("INSERT INTO trial_results SELECT * FROM trials_df")

    def list_sessions(self) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                "SELECT session_id, created_at, notes FROM session_meta ORDER BY created_at DESC"
            ).fetchdf()

    def load_session_meta(self, session_id: str) -> dict[str, object] | None:
        with self._connect() as con:
            row = con.execute(
                "SELECT config_json FROM session_meta WHERE session_id = ?",
                [session_id],
            ).fetchone()
            if not row:
                return None
            return json.loads(row[0])

    def load_summaries(self, session_id: str) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                "SELECT * FROM scenario_summary WHERE session_id = ?",
                [session_id],
            ).fetchdf()

    def load_trials(self, session_id: str, scenario: str | None = None) -> pd.DataFrame:
        query = "SELECT * FROM trial_results WHERE session_id = ?"
        params: list[object] = [session_id]
        if scenario is not None:
            query += " AND scenario = ?"
            params.append(scenario)
        with self._connect() as con:
            return con.execute(query + " ORDER BY scenario, iteration", params).fetchdf()
