from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

DEFAULT_HOST = "127.0.0.1"
DEFAULT_SERVER_PORT = 8080
SERVER_BACKLOG = 50

DEFAULT_CONNECT_TIMEOUT_MS = 5000
DEFAULT_READ_TIMEOUT_MS = 10000
DEFAULT_WRITE_DEADLINE_MS = 5000

TOLERANCE_MS = 100.0

SLOW_RESPONSE_BANNER = "HTTP/1.1 200 OK\r\nContent-Length: 100\r\n\r\nSlow Response..."
LARGE_PAYLOAD_BYTES = 1_048_576


class FaultMode(str, Enum):
    NORMAL = "normal"
    NO_ACCEPT = "no_accept"
    NO_RESPONSE = "no_response"
    SLOW_RESPONSE = "slow_response"
    SLOW_READ = "slow_read"
    PARTIAL_READ = "partial_read"

    @property
    def description(self) -> str:
        return _MODE_DESCRIPTIONS[self]


_MODE_DESCRIPTIONS = {
    FaultMode.NORMAL: "echo server",
    FaultMode.NO_ACCEPT: "never accepts, stalls the handshake (connect timeout)",
    FaultMode.NO_RESPONSE: "accepts but never replies (read timeout)",
    FaultMode.SLOW_RESPONSE: "replies one character per interval",
    FaultMode.SLOW_READ: "drains one byte per interval (write stalls)",
    FaultMode.PARTIAL_READ: "reads a short prefix then stops reading (write stalls)",
}


class ScenarioType(str, Enum):
    CONNECT_TIMEOUT = "connect"
    READ_TIMEOUT = "read"
    WRITE_TIMEOUT = "write"
    THREAD_EXHAUSTION = "exhaustion"


@dataclass(frozen=True, slots=True)
class ServerConfig:
    mode: FaultMode = FaultMode.NORMAL
    host: str = DEFAULT_HOST
    port: int = 0
    backlog: int = SERVER_BACKLOG
    slow_response_interval_sec: float = 1.0
    slow_response_banner: str = SLOW_RESPONSE_BANNER
    slow_read_interval_sec: float = 10.0
    partial_read_bytes: int = 10
    receive_buffer_bytes: int | None = None

    def effective_backlog(self) -> int:
        # a single slot keeps the OS queue from absorbing extra handshakes
        if self.mode is FaultMode.NO_ACCEPT:
            return 1
        return self.backlog


@dataclass(frozen=True, slots=True)
class ClientConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_SERVER_PORT
    connect_timeout_ms: int | None = DEFAULT_CONNECT_TIMEOUT_MS
    read_timeout_ms: int | None = DEFAULT_READ_TIMEOUT_MS
    send_buffer_bytes: int | None = None


@dataclass(frozen=True, slots=True)
class ConnectScenarioConfig:
    timeouts_ms: tuple[int, ...] = (1000, 3000, 5000, 10000, 30000)
    port: int = 8081


@dataclass(frozen=True, slots=True)
class ReadScenarioConfig:
    timeouts_ms: tuple[int, ...] = (1000, 3000, 5000, 10000)
    connect_timeout_ms: int = 5000
    no_response_port: int = 8082
    slow_response_port: int = 8083
    slow_response_interval_sec: float = 1.0
    slow_response_banner: str = SLOW_RESPONSE_BANNER


@dataclass(frozen=True, slots=True)
class WriteScenarioConfig:
    payload_sizes: tuple[int, ...] = (100, 10_000, 100_000, 1_000_000)
    write_deadline_ms: int = DEFAULT_WRITE_DEADLINE_MS
    connect_timeout_ms: int = 5000
    slow_read_port: int = 8084
    partial_read_port: int = 8085
    slow_read_interval_sec: float = 10.0
    receive_buffer_bytes: int | None = None
    send_buffer_bytes: int | None = None


@dataclass(frozen=True, slots=True)
class ExhaustionScenarioConfig:
    pool_size: int = 10
    total_requests: int = 50
    bounded_timeout_ms: int = 3000
    drain_ceiling_sec: float = 30.0
    completion_ceiling_sec: float = 60.0
    port: int = 8086

    def __post_init__(self) -> None:
        if self.total_requests <= self.pool_size:
            msg = "total_requests must exceed pool_size to exhaust the pool"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class ScenarioConfig:
    scenario_type: ScenarioType
    iterations: int = 10
    warmup_iterations: int = 3
    host: str = DEFAULT_HOST
    connect: ConnectScenarioConfig = field(default_factory=ConnectScenarioConfig)
    read: ReadScenarioConfig = field(default_factory=ReadScenarioConfig)
    write: WriteScenarioConfig = field(default_factory=WriteScenarioConfig)
    exhaustion: ExhaustionScenarioConfig = field(default_factory=ExhaustionScenarioConfig)

    def to_metadata(self) -> Mapping[str, Any]:
        meta: dict[str, Any] = {
            "scenario_type": self.scenario_type.value,
            "iterations": self.iterations,
            "warmup_iterations": self.warmup_iterations,
            "host": self.host,
        }
        if self.scenario_type is ScenarioType.CONNECT_TIMEOUT:
            meta["params"] = {
                "timeouts_ms": list(self.connect.timeouts_ms),
                "port": self.connect.port,
            }
        elif self.scenario_type is ScenarioType.READ_TIMEOUT:
            meta["params"] = {
                "timeouts_ms": list(self.read.timeouts_ms),
                "connect_timeout_ms": self.read.connect_timeout_ms,
                "slow_response_interval_sec": self.read.slow_response_interval_sec,
            }
        elif self.scenario_type is ScenarioType.WRITE_TIMEOUT:
            meta["params"] = {
                "payload_sizes": list(self.write.payload_sizes),
                "write_deadline_ms": self.write.write_deadline_ms,
                "slow_read_interval_sec": self.write.slow_read_interval_sec,
            }
        else:
            meta["params"] = {
                "pool_size": self.exhaustion.pool_size,
                "total_requests": self.exhaustion.total_requests,
                "bounded_timeout_ms": self.exhaustion.bounded_timeout_ms,
                "drain_ceiling_sec": self.exhaustion.drain_ceiling_sec,
            }
        return meta


def default_scenarios() -> tuple[ScenarioConfig, ...]:
    return (
        ScenarioConfig(ScenarioType.CONNECT_TIMEOUT, iterations=20, warmup_iterations=5),
        ScenarioConfig(ScenarioType.READ_TIMEOUT, iterations=20, warmup_iterations=5),
        ScenarioConfig(ScenarioType.WRITE_TIMEOUT, iterations=20, warmup_iterations=5),
        ScenarioConfig(ScenarioType.THREAD_EXHAUSTION, iterations=2, warmup_iterations=0),
    )


@dataclass(frozen=True, slots=True)
class LabConfig:
    scenarios: tuple[ScenarioConfig, ...] = field(default_factory=default_scenarios)
    pause_between_sec: float = 2.0
    session_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    notes: str = ""

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "session_id": self.session_id or "",
            "created_at": self.created_at.isoformat(),
            "pause_between_sec": self.pause_between_sec,
            "notes": self.notes,
            "scenarios": [dict(s.to_metadata()) for s in self.scenarios],
        }
