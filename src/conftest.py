from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import duckdb
import pytest

from reseg.features.events.schema import EVENT_COLUMNS

T0 = datetime(2026, 1, 1)  # naive UTC, as stored by the tracker

SOURCE_DDL = """
CREATE TABLE {table} (
    event_id TEXT,
    domain_userid TEXT,
    domain_sessionidx INTEGER,
    collector_tstamp TIMESTAMP,
    dvce_tstamp TIMESTAMP,
    page_referrer TEXT,
    mkt_medium TEXT,
    mkt_source TEXT,
    mkt_term TEXT,
    mkt_content TEXT,
    mkt_campaign TEXT,
    refr_source TEXT,
    refr_medium TEXT
);
"""


def source_row(
    event_id: str, visitor: str | None, t: float | None, sessionidx: int | None = 1, **fields: Any
) -> dict[str, Any]:
    ts = None if t is None else T0 + timedelta(seconds=t)
    row: dict[str, Any] = {c: None for c in EVENT_COLUMNS}
    row.update(
        event_id=event_id,
        domain_userid=visitor,
        domain_sessionidx=sessionidx,
        collector_tstamp=ts,
        dvce_tstamp=ts,
    )
    row.update(fields)
    return row


@pytest.fixture
def make_source_db(tmp_path: Path) -> Callable[..., Path]:
    def _make(rows: list[dict[str, Any]], *, table: str = "events") -> Path:
        db_path = tmp_path / "tracker.duckdb"
        con = duckdb.connect(str(db_path))
        try:
            con.execute(SOURCE_DDL.format(table=table))
            if rows:
                placeholders = ", ".join("?" for _ in EVENT_COLUMNS)
                con.executemany(
                    f"INSERT INTO {table} ({', '.join(EVENT_COLUMNS)}) VALUES ({placeholders})",
                    [tuple(r[c] for c in EVENT_COLUMNS) for r in rows],
                )
        finally:
            con.close()
        return db_path

    return _make
