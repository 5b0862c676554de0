from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RunContext:
    run_id: str
    duckdb_path: str
    events_table: str
