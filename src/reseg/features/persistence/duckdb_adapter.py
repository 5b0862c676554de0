from __future__ import annotations

import os
import time
from collections.abc import Sequence
from dataclasses import dataclass

import duckdb

from reseg.features.events.schema import Event

from .schema import (
    ATTRIBUTED_COLUMNS,
    ATTRIBUTED_TABLE_NAME,
    RESEGMENTED_COLUMNS,
    RESEGMENTED_TABLE_NAME,
    check_identifier,
    create_result_schema,
    select_events_sql,
)


@dataclass(frozen=True)
class DuckDBWriteResult:
    table: str
    num_rows: int
    duration_ms: float


class DuckDBAdapter:
    """
    DuckDB adapter. Owns the connection; reads the source event table and
    writes the result tables into the same database.
    """

    def __init__(self, path: str, *, events_table: str = "events") -> None:
        self.path = path
        self.events_table = check_identifier(events_table)
        self._conn: duckdb.DuckDBPyConnection | None = None

    def open(self) -> None:
        if self._conn is not None:
            return
        if self.path != ":memory:" and not os.path.exists(self.path):
            raise FileNotFoundError(f"DuckDB database not found: {self.path}")
        self._conn = duckdb.connect(self.path)

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise RuntimeError("DuckDBAdapter not opened. Call open() first.")
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def read_events(self, *, limit: int | None = None) -> list[Event]:
        """
        Source events ordered by visitor, device timestamp, collector timestamp.
        """
        cur = self.conn.execute(select_events_sql(self.events_table, limit=limit))
        names = [d[0] for d in cur.description]
        return [Event.from_row(dict(zip(names, row))) for row in cur.fetchall()]

    def create_result_schema(self) -> None:
        create_result_schema(self.conn)

    def begin(self) -> None:
        self.conn.begin()

    def commit(self) -> None:
        self.conn.commit()

    def rollback(self) -> None:
        self.conn.rollback()

    def delete_run(self, run_id: str) -> None:
        for table in (RESEGMENTED_TABLE_NAME, ATTRIBUTED_TABLE_NAME):
            self.conn.execute(f"DELETE FROM {table} WHERE run_id = ?", [run_id])

    def write_resegmented(self, rows: Sequence[tuple]) -> DuckDBWriteResult:
        return self._write(RESEGMENTED_TABLE_NAME, RESEGMENTED_COLUMNS, rows)

    def write_attributed(self, rows: Sequence[tuple]) -> DuckDBWriteResult:
        return self._write(ATTRIBUTED_TABLE_NAME, ATTRIBUTED_COLUMNS, rows)

    def _write(
        self, table: str, columns: Sequence[str], rows: Sequence[tuple]
    ) -> DuckDBWriteResult:
        if not rows:
            return DuckDBWriteResult(table=table, num_rows=0, duration_ms=0.0)

        t0 = time.perf_counter()

        placeholders = ", ".join("?" for _ in columns)
        self.conn.executemany(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
            list(rows),
        )

        dt_ms = (time.perf_counter() - t0) * 1000.0
        return DuckDBWriteResult(table=table, num_rows=len(rows), duration_ms=dt_ms)

    def count_rows(self, table: str, run_id: str) -> int:
        """
        Convenience method for sanity checks/tests.
        """
        res = self.conn.execute(
            f"SELECT COUNT(*) FROM {check_identifier(table)} WHERE run_id = ?",
            [run_id],
        ).fetchone()
        return int(res[0]) if res else 0
