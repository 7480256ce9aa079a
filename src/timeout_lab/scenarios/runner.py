from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable

from timeout_lab.config import LabConfig
from timeout_lab.metrics import ScenarioStatus, ScenarioSummary
from timeout_lab.scenarios.factory import scenario_for
from timeout_lab.storage import Storage

logger = logging.getLogger(__name__)

SessionProgress = Callable[[str, int, int], None]


@dataclass(frozen=True, slots=True)
class SessionResult:
    session_id: str
    summaries: tuple[ScenarioSummary, ...]
    wall_time_sec: float

    @property
    def all_passed(self) -> bool:
        return all(
            s.status is ScenarioStatus.COMPLETED and s.statistics.failed == 0 for s in self.summaries
        )

    def failed_scenarios(self) -> list[str]:
        return [
            s.name
            for s in self.summaries
            if s.status is ScenarioStatus.FAILED or s.statistics.failed > 0
        ]


def _new_session_id() -> str:
    return uuid.uuid4().hex


def run_session(
    config: LabConfig,
    storage: Storage | None = None,
    progress: SessionProgress | None = None,
) -> SessionResult:
    session_id = config.session_id or _new_session_id()
    if storage is not None and storage.session_exists(session_id):
        msg = f"Session {session_id} already exists"
        raise ValueError(msg)

    started = time.perf_counter()
    summaries: list[ScenarioSummary] = []
    for index, scenario_config in enumerate(config.scenarios):
        if index > 0 and config.pause_between_sec > 0:
            time.sleep(config.pause_between_sec)
        name = scenario_config.scenario_type.value
        callback = None
        if progress is not None:
            callback = _bind_progress(progress, name)
        summary = scenario_for(scenario_config, callback).execute()
        summaries.append(summary)

    result = SessionResult(
        session_id=session_id,
        summaries=tuple(summaries),
        wall_time_sec=time.perf_counter() - started,
    )
    if storage is not None:
        storage.save_session(config, session_id, summaries)
    logger.info(
        "Session %s finished in %.1fs: %s",
        session_id,
        result.wall_time_sec,
        "all scenarios passed" if result.all_passed else f"failures in {', '.join(result.failed_scenarios())}",
    )
    return result


def _bind_progress(progress: SessionProgress, name: str) -> Callable[[int, int], None]:
    def report(done: int, total: int) -> None:
        progress(name, done, total)

    return report
