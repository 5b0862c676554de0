from __future__ import annotations

import re

from reseg.features.events.schema import EVENT_COLUMNS

RESEGMENTED_TABLE_NAME = "resegmented_events"
ATTRIBUTED_TABLE_NAME = "attributed_sessions"

RESEGMENTED_COLUMNS: tuple[str, ...] = (
    "run_id",
    "event_id",
    "visitor_id",
    "device_tstamp",
    "collector_tstamp",
    "original_session_index",
    "session_index",
    "referrer_partition",
    "representative_referrer",
    "is_session_start",
)

ATTRIBUTED_COLUMNS: tuple[str, ...] = (
    "run_id",
    "visitor_id",
    "session_index",
    "device_tstamp",
    "source",
    "medium",
)

RESEGMENTED_DDL = f"""
CREATE TABLE IF NOT EXISTS {RESEGMENTED_TABLE_NAME} (
    run_id TEXT NOT NULL,
    event_id TEXT,
    visitor_id TEXT NOT NULL,

    device_tstamp TIMESTAMP NOT NULL,
    collector_tstamp TIMESTAMP,

    original_session_index INTEGER,
    session_index INTEGER NOT NULL,

    referrer_partition INTEGER NOT NULL,
    representative_referrer TEXT,
    is_session_start BOOLEAN NOT NULL
);
"""

ATTRIBUTED_DDL = f"""
CREATE TABLE IF NOT EXISTS {ATTRIBUTED_TABLE_NAME} (
    run_id TEXT NOT NULL,
    visitor_id TEXT NOT NULL,
    session_index INTEGER NOT NULL,
    device_tstamp TIMESTAMP NOT NULL,

    source TEXT NOT NULL,
    medium TEXT NOT NULL
);
"""

RESULT_INDEXES = [
    f"CREATE INDEX IF NOT EXISTS idx_reseg_run_id ON {RESEGMENTED_TABLE_NAME}(run_id);",
    f"CREATE INDEX IF NOT EXISTS idx_attr_run_id ON {ATTRIBUTED_TABLE_NAME}(run_id);",
]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*){0,2}$")


def check_identifier(name: str) -> str:
    """
    Table names are interpolated into SQL, so only plain (optionally
    schema-qualified) identifiers are accepted.
    """
    if not _IDENTIFIER.match(name or ""):
        raise ValueError(f"Invalid table name: {name!r}")
    return name


def select_events_sql(table: str, *, limit: int | None = None) -> str:
    cols = ", ".join(EVENT_COLUMNS)
    sql = (
        f"SELECT {cols} FROM {check_identifier(table)} "
        "ORDER BY domain_userid, dvce_tstamp, collector_tstamp, event_id"
    )
    if limit is not None:
        sql += f" LIMIT {int(limit)}"
    return sql


def create_result_schema(conn) -> None:
    """
    Create result tables/indexes. No migrations. Safe to call per run.
    """
    conn.execute(RESEGMENTED_DDL)
    conn.execute(ATTRIBUTED_DDL)
    for ddl in RESULT_INDEXES:
        conn.execute(ddl)
