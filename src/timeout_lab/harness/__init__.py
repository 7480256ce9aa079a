from __future__ import annotations

from timeout_lab.harness.base import HarnessState, ProgressCallback, ScenarioHarness, within_tolerance

__all__ = ["HarnessState", "ProgressCallback", "ScenarioHarness", "within_tolerance"]
