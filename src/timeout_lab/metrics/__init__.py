from __future__ import annotations

from timeout_lab.metrics.aggregator import HarnessStatistics, summarize_trials
from timeout_lab.metrics.models import (
    Criterion,
    Outcome,
    ScenarioStatus,
    ScenarioSummary,
    StatisticsSnapshot,
    TrialResult,
)

__all__ = [
    "Criterion",
    "HarnessStatistics",
    "Outcome",
    "ScenarioStatus",
    "ScenarioSummary",
    "StatisticsSnapshot",
    "TrialResult",
    "summarize_trials",
]
