"""
In-memory report sink.

Useful for testing and single-process use.
"""

from __future__ import annotations

import copy
import threading
from typing import TYPE_CHECKING, Any

from pipewright.errors import ReportNotFoundError
from pipewright.reporting.sink import ReportHandle, ReportSink, run_to_record

if TYPE_CHECKING:
    from pipewright.models.result import PipelineRun


class InMemoryReportSink(ReportSink):
    """Thread-safe dictionary of run records keyed by run id."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def publish(self, run: PipelineRun) -> ReportHandle:
        record = run_to_record(run)
        with self._lock:
            # Re-publishing moves the run to the end, like a fresh write
            self._records.pop(run.id, None)
            self._records[run.id] = record
        return ReportHandle(run_id=run.id, location=f"memory://{run.id}")

    def retrieve(self, run_id: str) -> dict[str, Any]:
        with self._lock:
            if run_id not in self._records:
                raise ReportNotFoundError(run_id)
            # Deep copy to prevent external modifications
            return copy.deepcopy(self._records[run_id])

    def list_runs(self) -> list[str]:
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
