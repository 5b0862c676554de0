from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from reseg.core.config import ResegmentConfig
from reseg.core.ids import deterministic_run_id_from_config
from reseg.core.logging import get_logger
from reseg.core.types import RunContext
from reseg.features.attribution.service import (
    AttributedSession,
    AttributionConfig,
    AttributionService,
    LabelCounts,
    count_labels,
    session_starts,
)
from reseg.features.persistence.duckdb_adapter import DuckDBAdapter
from reseg.features.persistence.service import PersistenceService
from reseg.features.reconcile.service import ReconciliationSummary, reconcile
from reseg.features.sessions.service import ResegmentService, SessionsConfig


@dataclass(frozen=True)
class PipelineResult:
    ctx: RunContext
    summary: ReconciliationSummary
    attributed: list[AttributedSession]
    label_counts: LabelCounts | None


def sessions_config_from_raw(raw: dict[str, Any]) -> SessionsConfig:
    s_raw = raw.get("sessions") or {}
    return SessionsConfig(
        inactivity_timeout_seconds=float(s_raw.get("inactivity_timeout_seconds", 1800.0)),
        index_base=int(s_raw.get("index_base", 0)),
    )


def attribution_config_from_raw(raw: dict[str, Any]) -> AttributionConfig:
    a_raw = raw.get("attribution") or {}
    return AttributionConfig(
        enabled=bool(a_raw.get("enabled", True)),
        recency_horizon_seconds=float(a_raw.get("recency_horizon_seconds", 15_811_200.0)),
    )


def run_pipeline(cfg: ResegmentConfig) -> PipelineResult:
    raw: dict[str, Any] = cfg.raw if isinstance(cfg.raw, dict) else {}

    # ----- run identity -----
    run_id = deterministic_run_id_from_config(raw) if cfg.run.run_id == "auto" else cfg.run.run_id
    logger = get_logger("reseg", cfg.logging.level)
    ctx = RunContext(
        run_id=run_id,
        duckdb_path=cfg.storage.duckdb_path,
        events_table=cfg.storage.events_table,
    )

    # ----- services (config errors surface before touching storage) -----
    resegmenter = ResegmentService(sessions_config_from_raw(raw))
    attr_cfg = attribution_config_from_raw(raw)
    attributor = AttributionService(attr_cfg) if attr_cfg.enabled else None

    adapter = DuckDBAdapter(path=cfg.storage.duckdb_path, events_table=cfg.storage.events_table)
    persistence: PersistenceService | None = None
    try:
        adapter.open()
        events = adapter.read_events()
        logger.info(
            "events loaded",
            extra={"run_id": run_id, "feature": "events", "num_events": len(events)},
        )

        resegmented = resegmenter.resegment(events)
        summary = reconcile(resegmented)
        logger.info(
            "resegmented",
            extra={
                "run_id": run_id,
                "feature": "sessions",
                "num_visitors": summary.visitors,
                "num_sessions": summary.resegmented_sessions,
            },
        )

        attributed: list[AttributedSession] = []
        label_counts: LabelCounts | None = None
        if attributor is not None:
            attributed = attributor.attribute(session_starts(resegmented))
            label_counts = count_labels(attributed)
            logger.info(
                "attributed",
                extra={"run_id": run_id, "feature": "attribution", "num_sessions": len(attributed)},
            )

        if cfg.storage.write_results:
            persistence = PersistenceService(
                adapter=adapter,
                run_id=run_id,
                every_n_rows=cfg.storage.flush.every_n_rows,
                log_level=cfg.logging.level,
            )
            persistence.open()
            for r in resegmented:
                persistence.emit_resegmented(r)
            for a in attributed:
                persistence.emit_attributed(a)
            persistence.flush(reason="pipeline_finish")
    except Exception:
        # earlier results for this run_id survive a failed write
        if persistence is not None:
            persistence.abort()
        raise
    finally:
        if persistence is not None:
            persistence.close()
        else:
            adapter.close()

    logger.info(
        "reconciled",
        extra={
            "run_id": run_id,
            "feature": "reconcile",
            "num_events": summary.events,
            "num_sessions": summary.resegmented_sessions,
        },
    )
    return PipelineResult(
        ctx=ctx, summary=summary, attributed=attributed, label_counts=label_counts
    )
