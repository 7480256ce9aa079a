from __future__ import annotations

from dataclasses import dataclass
import pandas as pd

from timeout_lab.config import TOLERANCE_MS

_TIMEOUT_CONDITIONS = ("connect_timeout", "read_timeout", "write_timeout")


@dataclass(frozen=True, slots=True)
class ToleranceMiss:
    scenario: str
    iteration: int
    configured_timeout_ms: float
    elapsed_ms: float
    error_ms: float


def accuracy_grade(mean_error_ms: float) -> str:
    if mean_error_ms < 50:
        return "very accurate"
    if mean_error_ms < 100:
        return "good"
    return "inaccurate"


def _timed_out(trials: pd.DataFrame) -> pd.DataFrame:
    if trials.empty:
        return trials
    mask = trials["condition"].isin(_TIMEOUT_CONDITIONS) & trials["configured_timeout_ms"].notna()
    rows = trials.loc[mask].copy()
    rows["error_ms"] = (rows["elapsed_ms"] - rows["configured_timeout_ms"]).abs()
    return rows


def accuracy_table(trials: pd.DataFrame) -> pd.DataFrame:
    columns = [
        "scenario",
        "configured_timeout_ms",
        "samples",
        "mean_elapsed_ms",
        "mean_error_ms",
        "max_error_ms",
        "within_tolerance_pct",
        "grade",
    ]
    rows = _timed_out(trials)
    if rows.empty:
        return pd.DataFrame(columns=columns)
    rows["within"] = rows["error_ms"] <= TOLERANCE_MS
    table = (
        rows.groupby(["scenario", "configured_timeout_ms"])
        .agg(
            samples=("elapsed_ms", "size"),
            mean_elapsed_ms=("elapsed_ms", "mean"),
            mean_error_ms=("error_ms", "mean"),
            max_error_ms=("error_ms", "max"),
            within_tolerance_pct=("within", "mean"),
        )
        .reset_index()
    )
    table["within_tolerance_pct"] = table["within_tolerance_pct"] * 100
    table["grade"] = table["mean_error_ms"].map(accuracy_grade)
    return table[columns]


def tolerance_misses(trials: pd.DataFrame, tolerance_ms: float = TOLERANCE_MS) -> list[ToleranceMiss]:
    misses: list[ToleranceMiss] = []
    rows = _timed_out(trials)
    if rows.empty:
        return misses
    for _, row in rows.loc[rows["error_ms"] > tolerance_ms].iterrows():
        misses.append(
            ToleranceMiss(
                scenario=str(row["scenario"]),
                iteration=int(row["iteration"]),
                configured_timeout_ms=float(row["configured_timeout_ms"]),
                elapsed_ms=float(row["elapsed_ms"]),
                error_ms=float(row["error_ms"]),
            )
        )
    return misses
