from __future__ import annotations

from enum import Enum


class Condition(str, Enum):
    CONNECT_TIMEOUT = "connect_timeout"
    READ_TIMEOUT = "read_timeout"
    WRITE_TIMEOUT = "write_timeout"
    CONNECTION_REFUSED = "connection_refused"
    OTHER_FAILURE = "other_failure"
    POOL_EXHAUSTED = "pool_exhausted"

    @property
    def is_timeout(self) -> bool:
        return self in (Condition.CONNECT_TIMEOUT, Condition.READ_TIMEOUT, Condition.WRITE_TIMEOUT)


class LabError(Exception):
    pass


class BindError(LabError):
    def __init__(self, host: str, port: int, cause: OSError) -> None:
        super().__init__(f"Cannot bind {host}:{port}: {cause.strerror or cause}")
        self.host = host
        self.port = port
        self.cause = cause


def describe_error(error: BaseException | None) -> str | None:
    if error is None:
        return None
    return f"{type(error).__name__}: {error}"
