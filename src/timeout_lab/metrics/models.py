from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from timeout_lab.config import ScenarioType
from timeout_lab.errors import Condition


class Outcome(str, Enum):
    SUCCESS = "success"
    TIMEOUT = "timeout"
    OTHER_FAILURE = "other_failure"

    @classmethod
    def from_condition(cls, condition: Condition | None) -> Outcome:
        if condition is None:
            return cls.SUCCESS
        if condition.is_timeout or condition is Condition.POOL_EXHAUSTED:
            return cls.TIMEOUT
        return cls.OTHER_FAILURE


class Criterion(str, Enum):
    TIMEOUT_EXPECTED = "timeout_expected"
    RECEIPT_EXPECTED = "receipt_expected"
    BOUNDED_COMPLETION = "bounded_completion"
    EXHAUSTION_EXPECTED = "exhaustion_expected"
    COMPLETION_EXPECTED = "completion_expected"


class ScenarioStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class TrialResult:
    scenario: ScenarioType
    iteration: int
    label: str
    configured_timeout_ms: int | None
    elapsed_ms: float
    outcome: Outcome
    condition: Condition | None
    criterion: Criterion
    passed: bool
    within_tolerance: bool | None = None
    error: str | None = None
    counters: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class StatisticsSnapshot:
    total: int
    passed: int
    failed: int
    successes: int
    timeouts: int
    other_failures: int
    min_ms: float
    max_ms: float
    mean_ms: float
    p50_ms: float
    p95_ms: float
    p99_ms: float

    @property
    def pass_rate(self) -> float:
        return self.passed / self.total if self.total else 0.0


@dataclass(frozen=True, slots=True)
class ScenarioSummary:
    name: str
    scenario_type: ScenarioType
    status: ScenarioStatus
    statistics: StatisticsSnapshot
    wall_time_sec: float
    trials: tuple[TrialResult, ...] = ()
    error: str | None = None
