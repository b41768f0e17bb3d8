"""
SQLite report sink.

Stores one row per run id; publishing again updates the row in place
(INSERT ... ON CONFLICT DO UPDATE).
"""

from __future__ import annotations

import json
import sqlite3
import threading
from typing import TYPE_CHECKING, Any

from pipewright.errors import ReportNotFoundError
from pipewright.logging import get_logger
from pipewright.reporting.sink import ReportHandle, ReportSink, run_to_record

if TYPE_CHECKING:
    from pipewright.models.result import PipelineRun

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS pipeline_runs (
    run_id TEXT PRIMARY KEY,
    trigger TEXT NOT NULL,
    status TEXT NOT NULL,
    started_at REAL,
    finished_at REAL,
    record TEXT NOT NULL,
    published_at TEXT DEFAULT (datetime('now', 'utc'))
);

CREATE INDEX IF NOT EXISTS idx_pipeline_runs_status ON pipeline_runs(status);
"""


def _database_path(connection_string: str) -> str:
    """Accept a bare path or a sqlite:///path connection string."""
    prefix = "sqlite:///"
    if connection_string.startswith(prefix):
        return connection_string[len(prefix):] or ":memory:"
    return connection_string


class SqliteReportSink(ReportSink):
    """
    Run records in a SQLite table.

    A single connection is shared between threads and guarded by a lock,
    which also keeps ":memory:" databases alive for the sink's lifetime.
    """

    def __init__(self, connection_string: str) -> None:
        self.connection_string = connection_string
        self._conn = sqlite3.connect(_database_path(connection_string), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        with self._lock:
            self._conn.executescript(SCHEMA)
            self._conn.commit()

    def publish(self, run: PipelineRun) -> ReportHandle:
        record = run_to_record(run)
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO pipeline_runs (run_id, trigger, status, started_at, finished_at, record)
                VALUES (:run_id, :trigger, :status, :started_at, :finished_at, :record)
                ON CONFLICT(run_id) DO UPDATE SET
                    trigger = excluded.trigger,
                    status = excluded.status,
                    started_at = excluded.started_at,
                    finished_at = excluded.finished_at,
                    record = excluded.record,
                    published_at = datetime('now', 'utc')
                """,
                {
                    "run_id": run.id,
                    "trigger": run.trigger.value,
                    "status": str(run.status),
                    "started_at": run.started_at,
                    "finished_at": run.finished_at,
                    "record": json.dumps(record, sort_keys=True),
                },
            )
            self._conn.commit()
        logger.debug("report_written", run_id=run.id, database=self.connection_string)
        return ReportHandle(run_id=run.id, location=f"{self.connection_string}#{run.id}")

    def retrieve(self, run_id: str) -> dict[str, Any]:
        with self._lock:
            row = self._conn.execute(
                "SELECT record FROM pipeline_runs WHERE run_id = ?",
                (run_id,),
            ).fetchone()
        if row is None:
            raise ReportNotFoundError(run_id)
        record: dict[str, Any] = json.loads(row["record"])
        return record

    def list_runs(self) -> list[str]:
        with self._lock:
            rows = self._conn.execute("SELECT run_id FROM pipeline_runs ORDER BY run_id").fetchall()
        return [row["run_id"] for row in rows]

    def count(self, run_id: str | None = None) -> int:
        with self._lock:
            if run_id is None:
                row = self._conn.execute("SELECT COUNT(*) FROM pipeline_runs").fetchone()
            else:
                row = self._conn.execute(
                    "SELECT COUNT(*) FROM pipeline_runs WHERE run_id = ?", (run_id,)
                ).fetchone()
        return int(row[0])

    def close(self) -> None:
        with self._lock:
            self._conn.close()
