"""
Report sink interface and run serialization.

A report sink persists one record per PipelineRun: stage statuses and
durations in completion order, warnings, and every artifact of kind
"report" (e.g. the vulnerability scan). Publishing is idempotent per run id.
"""

from __future__ import annotations

import base64
import hashlib
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pipewright.models.artifact import Artifact
    from pipewright.models.result import PipelineRun

RECORD_VERSION = 1


@dataclass(frozen=True)
class ReportHandle:
    """Where a run record was published."""

    run_id: str
    location: str


def artifact_to_record(artifact: Artifact) -> dict[str, Any]:
    """Embed a report artifact: parsed JSON when possible, else text, else base64."""
    record: dict[str, Any] = {
        "key": str(artifact.key),
        "stage_id": artifact.key.stage_id,
        "name": artifact.key.name,
        "kind": artifact.kind.value,
        "size": artifact.size,
        "sha256": hashlib.sha256(artifact.payload).hexdigest(),
        "metadata": artifact.meta(),
    }
    try:
        record["content"] = json.loads(artifact.payload)
        record["encoding"] = "json"
    except (UnicodeDecodeError, ValueError):
        try:
            record["content"] = artifact.payload.decode("utf-8")
            record["encoding"] = "text"
        except UnicodeDecodeError:
            record["content"] = base64.b64encode(artifact.payload).decode("ascii")
            record["encoding"] = "base64"
    return record


def run_to_record(run: PipelineRun) -> dict[str, Any]:
    """Serialize a PipelineRun into a JSON-compatible record."""
    return {
        "version": RECORD_VERSION,
        "run_id": run.id,
        "trigger": run.trigger.value,
        "targets": list(run.targets),
        "status": str(run.status),
        "started_at": run.started_at,
        "finished_at": run.finished_at,
        "duration": run.duration,
        "cancellation_reason": run.cancellation_reason,
        "stages": [result.to_dict() for result in run.results],
        "warnings": run.warnings,
        "reports": [artifact_to_record(artifact) for artifact in run.reports],
    }


class ReportSink(ABC):
    """
    Durable, retrievable storage for run records.

    Implementations must overwrite, not duplicate, when the same run id is
    published twice.
    """

    @abstractmethod
    def publish(self, run: PipelineRun) -> ReportHandle:
        """Persist the record of a run and return where it lives."""

    @abstractmethod
    def retrieve(self, run_id: str) -> dict[str, Any]:
        """
        Load a published record.

        Raises:
            ReportNotFoundError: Nothing was published for run_id
        """

    @abstractmethod
    def list_runs(self) -> list[str]:
        """Published run ids, oldest first."""
