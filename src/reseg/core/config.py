from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class RunConfig:
    run_id: str = "auto"


@dataclass(frozen=True)
class FlushConfig:
    every_n_rows: int = 5000


@dataclass(frozen=True)
class StorageConfig:
    duckdb_path: str
    events_table: str = "events"
    write_results: bool = True
    flush: FlushConfig = FlushConfig()


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class ResegmentConfig:
    run: RunConfig
    storage: StorageConfig
    logging: LoggingConfig
    raw: dict[str, Any]  # original parsed YAML (for hashing / feature sections)


def load_yaml(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    data = yaml.safe_load(p.read_text())
    if not isinstance(data, dict):
        raise ValueError("Config YAML must parse to a dict at the top level.")
    return data


def parse_config(data: dict[str, Any]) -> ResegmentConfig:
    for key in ["run", "storage", "logging"]:
        if key not in data:
            raise ValueError(f"Missing required top-level config section: '{key}'")

    run = data.get("run") or {}
    storage = data.get("storage") or {}
    flush = storage.get("flush") or {}
    logging_cfg = data.get("logging") or {}

    if "duckdb_path" not in storage:
        raise ValueError("Missing required config key: 'storage.duckdb_path'")

    run_cfg = RunConfig(run_id=str(run.get("run_id", "auto")))

    storage_cfg = StorageConfig(
        duckdb_path=str(storage["duckdb_path"]),
        events_table=str(storage.get("events_table", "events")),
        write_results=bool(storage.get("write_results", True)),
        flush=FlushConfig(every_n_rows=int(flush.get("every_n_rows", 5000))),
    )

    log_cfg = LoggingConfig(level=str(logging_cfg.get("level", "INFO")).upper())
    if log_cfg.level not in _LOG_LEVELS:
        raise ValueError(f"Unsupported logging.level: {log_cfg.level!r}")

    return ResegmentConfig(run=run_cfg, storage=storage_cfg, logging=log_cfg, raw=data)


def load_config(path: str | Path) -> ResegmentConfig:
    data = load_yaml(path)
    return parse_config(data)
