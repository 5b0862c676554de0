from __future__ import annotations

from reseg.core.logging import get_logger
from reseg.features.attribution.service import AttributedSession
from reseg.features.events.schema import naive_utc
from reseg.features.sessions.service import ResegmentedEvent

from .duckdb_adapter import DuckDBAdapter


class PersistenceService:
    """
    Buffered result sink + flush policy.
    - Hot: one in-memory buffer per result table
    - Cold: DuckDB
    Rows previously written under the same run_id are deleted on open();
    the delete and every flush share one transaction, committed on close()
    and rolled back by abort().
    """

    def __init__(
        self,
        *,
        adapter: DuckDBAdapter,
        run_id: str,
        every_n_rows: int,
        log_level: str = "INFO",
    ) -> None:
        self.adapter = adapter
        self.run_id = run_id
        self.every_n_rows = int(every_n_rows)

        self._reseg_buf: list[tuple] = []
        self._attr_buf: list[tuple] = []
        self._logger = get_logger(__name__, log_level)

        self._is_open = False

    def open(self) -> None:
        if self._is_open:
            return
        self.adapter.open()
        self.adapter.create_result_schema()
        self.adapter.begin()
        self.adapter.delete_run(self.run_id)
        self._is_open = True

    def emit_resegmented(self, r: ResegmentedEvent) -> None:
        self._require_open()
        self._reseg_buf.append(self._resegmented_to_row(self.run_id, r))
        if self.every_n_rows > 0 and len(self._reseg_buf) >= self.every_n_rows:
            self.flush(reason="count")

    def emit_attributed(self, a: AttributedSession) -> None:
        self._require_open()
        self._attr_buf.append(self._attributed_to_row(self.run_id, a))
        if self.every_n_rows > 0 and len(self._attr_buf) >= self.every_n_rows:
            self.flush(reason="count")

    def flush(self, *, reason: str) -> None:
        for buf, write in (
            (self._reseg_buf, self.adapter.write_resegmented),
            (self._attr_buf, self.adapter.write_attributed),
        ):
            if not buf:
                continue
            rows = list(buf)
            buf.clear()

            result = write(rows)

            self._logger.info(
                "flush",
                extra={
                    "run_id": self.run_id,
                    "reason": reason,
                    "table": result.table,
                    "num_rows": result.num_rows,
                    "duration_ms": result.duration_ms,
                },
            )

    def close(self) -> None:
        if self._is_open:
            # final flush
            self.flush(reason="shutdown")
            self.adapter.commit()
            self._is_open = False
        self.adapter.close()

    def abort(self) -> None:
        """
        Drop buffered rows and roll back the run, leaving earlier results intact.
        """
        if self._is_open:
            self._reseg_buf.clear()
            self._attr_buf.clear()
            self.adapter.rollback()
            self._is_open = False
            self._logger.warning("rollback", extra={"run_id": self.run_id})
        self.adapter.close()

    def _require_open(self) -> None:
        if not self._is_open:
            raise RuntimeError("PersistenceService not open. Call open() before emitting.")

    @staticmethod
    def _resegmented_to_row(run_id: str, r: ResegmentedEvent) -> tuple:
        e = r.event
        return (
            run_id,
            e.event_id,
            e.visitor_id,
            naive_utc(e.device_tstamp),
            naive_utc(e.collector_tstamp),
            e.original_session_index,
            int(r.session_index),
            int(r.referrer_partition),
            r.representative_referrer,
            bool(r.is_session_start),
        )

    @staticmethod
    def _attributed_to_row(run_id: str, a: AttributedSession) -> tuple:
        s = a.session
        return (
            run_id,
            s.visitor_id,
            int(s.session_index),
            naive_utc(s.device_tstamp),
            a.source,
            a.medium,
        )
