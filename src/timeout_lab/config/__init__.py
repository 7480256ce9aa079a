from __future__ import annotations

from timeout_lab.config.models import (
    DEFAULT_CONNECT_TIMEOUT_MS,
    DEFAULT_HOST,
    DEFAULT_READ_TIMEOUT_MS,
    DEFAULT_SERVER_PORT,
    DEFAULT_WRITE_DEADLINE_MS,
    LARGE_PAYLOAD_BYTES,
    SLOW_RESPONSE_BANNER,
    TOLERANCE_MS,
    ClientConfig,
    ConnectScenarioConfig,
    ExhaustionScenarioConfig,
    FaultMode,
    LabConfig,
    ReadScenarioConfig,
    ScenarioConfig,
    ScenarioType,
    ServerConfig,
    WriteScenarioConfig,
    default_scenarios,
)

__all__ = [
    "DEFAULT_CONNECT_TIMEOUT_MS",
    "DEFAULT_HOST",
    "DEFAULT_READ_TIMEOUT_MS",
    "DEFAULT_SERVER_PORT",
    "DEFAULT_WRITE_DEADLINE_MS",
    "LARGE_PAYLOAD_BYTES",
    "SLOW_RESPONSE_BANNER",
    "TOLERANCE_MS",
    "ClientConfig",
    "ConnectScenarioConfig",
    "ExhaustionScenarioConfig",
    "FaultMode",
    "LabConfig",
    "ReadScenarioConfig",
    "ScenarioConfig",
    "ScenarioType",
    "ServerConfig",
    "WriteScenarioConfig",
    "default_scenarios",
]
