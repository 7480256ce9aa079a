from __future__ import annotations

from timeout_lab.config import ScenarioConfig, ScenarioType
from timeout_lab.harness import ProgressCallback, ScenarioHarness
from timeout_lab.scenarios.connect import ConnectTimeoutScenario
from timeout_lab.scenarios.exhaustion import ThreadExhaustionScenario
from timeout_lab.scenarios.read import ReadTimeoutScenario
from timeout_lab.scenarios.write import WriteTimeoutScenario


def scenario_for(config: ScenarioConfig, progress: ProgressCallback | None = None) -> ScenarioHarness:
    if config.scenario_type is ScenarioType.CONNECT_TIMEOUT:
        return ConnectTimeoutScenario(config, progress)
    if config.scenario_type is ScenarioType.READ_TIMEOUT:
        return ReadTimeoutScenario(config, progress)
    if config.scenario_type is ScenarioType.WRITE_TIMEOUT:
        return WriteTimeoutScenario(config, progress)
    if config.scenario_type is ScenarioType.THREAD_EXHAUSTION:
        return ThreadExhaustionScenario(config, progress)
    msg = f"Unsupported scenario type: {config.scenario_type}"
    raise ValueError(msg)
