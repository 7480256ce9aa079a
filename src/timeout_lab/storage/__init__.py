from __future__ import annotations

from pathlib import Path

from timeout_lab.storage.duckdb_store import Storage


def default_storage() -> Storage:
    return Storage(Path(".timeout_lab/timeout_lab.duckdb"))


__all__ = ["Storage", "default_storage"]
