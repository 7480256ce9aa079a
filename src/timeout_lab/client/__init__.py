from __future__ import annotations

from timeout_lab.client.backlog import release, saturate_backlog
from timeout_lab.client.deadline import WriteAttempt, send_with_deadline
from timeout_lab.client.tcp_client import TimeoutAwareClient

__all__ = [
    "TimeoutAwareClient",
    "WriteAttempt",
    "release",
    "saturate_backlog",
    "send_with_deadline",
]
