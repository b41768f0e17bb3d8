"""
Directory report sink.

Writes one <run_id>.json file per run. Files are replaced atomically so a
reader never sees a half-written record.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pipewright.errors import ReportError, ReportNotFoundError
from pipewright.logging import get_logger
from pipewright.reporting.sink import ReportHandle, ReportSink, run_to_record

if TYPE_CHECKING:
    from pipewright.models.result import PipelineRun

logger = get_logger(__name__)


class DirectoryReportSink(ReportSink):
    """Run records as JSON files in a directory."""

    SUFFIX = ".json"

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, run_id: str) -> Path:
        if not run_id or os.sep in run_id or run_id.startswith("."):
            raise ReportError(f"Invalid run id '{run_id}'")
        return self.directory / f"{run_id}{self.SUFFIX}"

    def publish(self, run: PipelineRun) -> ReportHandle:
        path = self._path(run.id)
        data = json.dumps(run_to_record(run), indent=2, sort_keys=True)
        with self._lock:
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{run.id}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(data)
                os.replace(tmp_name, path)
            except OSError as e:
                Path(tmp_name).unlink(missing_ok=True)
                raise ReportError(f"Failed to write report for run '{run.id}'", cause=e) from e
        logger.debug("report_written", run_id=run.id, path=str(path))
        return ReportHandle(run_id=run.id, location=str(path))

    def retrieve(self, run_id: str) -> dict[str, Any]:
        path = self._path(run_id)
        if not path.exists():
            raise ReportNotFoundError(run_id)
        with open(path, encoding="utf-8") as f:
            record: dict[str, Any] = json.load(f)
        return record

    def list_runs(self) -> list[str]:
        # ULID run ids sort chronologically
        return sorted(p.stem for p in self.directory.glob(f"*{self.SUFFIX}") if not p.name.startswith("."))
