from __future__ import annotations

from dataclasses import dataclass
import pandas as pd


@dataclass(frozen=True, slots=True)
class Regression:
    scenario: str
    metric: str
    delta_pct: float
    message: str


def _pass_rate(frame: pd.DataFrame) -> pd.Series:
    return frame["passed"] / frame["total"].where(frame["total"] > 0)


def compare_sessions(base: pd.DataFrame, candidate: pd.DataFrame) -> list[Regression]:
    regressions: list[Regression] = []
    if base.empty or candidate.empty:
        return regressions
    base = base.assign(pass_rate=_pass_rate(base))
    candidate = candidate.assign(pass_rate=_pass_rate(candidate))
    merged = base.merge(candidate, on="scenario_type", suffixes=("_base", "_cand"))
    for _, row in merged.iterrows():
        scenario = str(row["scenario_type"])
        if row["status_base"] == "completed" and row["status_cand"] == "failed":
            regressions.append(
                Regression(
                    scenario=scenario,
                    metric="status",
                    delta_pct=100.0,
                    message="scenario no longer completes",
                )
            )
        base_rate = row["pass_rate_base"]
        cand_rate = row["pass_rate_cand"]
        if pd.notna(base_rate) and pd.notna(cand_rate) and base_rate > 0 and cand_rate < base_rate:
            regressions.append(
                Regression(
                    scenario=scenario,
                    metric="pass_rate",
                    delta_pct=(base_rate - cand_rate) / base_rate * 100,
                    message="fewer trials met their criterion",
                )
            )
        base_p99 = row["p99_ms_base"]
        cand_p99 = row["p99_ms_cand"]
        if base_p99 > 0:
            delta = (cand_p99 - base_p99) / base_p99
            if delta > 0.2:
                regressions.append(
                    Regression(
                        scenario=scenario,
                        metric="p99_ms",
                        delta_pct=delta * 100,
                        message="p99 elapsed time increased materially",
                    )
                )
    return regressions
