"""
Execution results and pipeline runs.

An ExecutionResult is created when a stage completes or is skipped and is
never modified afterwards. A PipelineRun aggregates the results of one
end-to-end execution in the order stages completed.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from pipewright.models.artifact import Artifact, ArtifactKey
from pipewright.models.status import RunStatus, StageStatus


def _generate_run_id() -> str:
    """Generate a unique, time-ordered run ID using ULID."""
    import ulid

    return str(ulid.new())


class Trigger(Enum):
    """What started a run."""

    PUSH = "push"
    REVIEW = "review"
    MANUAL = "manual"

    @classmethod
    def parse(cls, value: str | Trigger) -> Trigger:
        if isinstance(value, Trigger):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown trigger '{value}'. Supported: {[t.value for t in cls]}") from None


@dataclass(frozen=True)
class ExecutionResult:
    """
    Outcome of one stage in one run.

    Attributes:
        stage_id: The stage this result belongs to
        status: SUCCEEDED, FAILED or SKIPPED
        exit_code: Exit code reported by the action (0 on success, None if unknown)
        duration: Wall-clock seconds spent on the stage, retries included
        artifacts: Keys committed to the artifact store
        error: Error message (secrets redacted, truncated)
        error_type: Exception class name that classified the failure
        warnings: Annotations (failed non-required upstream, dropped outputs, ...)
        attempts: Number of attempts made (0 when skipped)
        stdout: Captured standard output (redacted)
        stderr: Captured standard error (redacted)
    """

    stage_id: str
    status: StageStatus
    exit_code: int | None = None
    duration: float = 0.0
    artifacts: tuple[ArtifactKey, ...] = ()
    error: str | None = None
    error_type: str | None = None
    warnings: tuple[str, ...] = ()
    attempts: int = 0
    stdout: str = ""
    stderr: str = ""
    started_at: float | None = None
    finished_at: float | None = None

    @classmethod
    def skipped(cls, stage_id: str, reason: str, warnings: Iterable[str] = ()) -> ExecutionResult:
        return cls(
            stage_id=stage_id,
            status=StageStatus.SKIPPED,
            warnings=(*warnings, reason),
        )

    @property
    def succeeded(self) -> bool:
        return self.status.is_successful

    @property
    def failed(self) -> bool:
        return self.status.is_failure

    def to_dict(self) -> dict[str, object]:
        return {
            "stage_id": self.stage_id,
            "status": self.status.name,
            "exit_code": self.exit_code,
            "duration": round(self.duration, 6),
            "artifacts": [str(key) for key in self.artifacts],
            "error": self.error,
            "error_type": self.error_type,
            "warnings": list(self.warnings),
            "attempts": self.attempts,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


@dataclass
class PipelineRun:
    """
    One end-to-end execution instance.

    The orchestrator appends results as stages complete; the dependency order
    can always be reconstructed from stage ids with ordered_results().
    """

    id: str = field(default_factory=_generate_run_id)
    trigger: Trigger = Trigger.MANUAL
    targets: tuple[str, ...] = ()
    status: RunStatus = RunStatus.RUNNING
    results: list[ExecutionResult] = field(default_factory=list)
    reports: list[Artifact] = field(default_factory=list)
    started_at: float | None = None
    finished_at: float | None = None
    cancellation_reason: str | None = None
    report_location: str | None = None

    def result_for(self, stage_id: str) -> ExecutionResult | None:
        for result in self.results:
            if result.stage_id == stage_id:
                return result
        return None

    def status_of(self, stage_id: str) -> StageStatus:
        result = self.result_for(stage_id)
        return result.status if result else StageStatus.PENDING

    def ordered_results(self, order: Sequence[str]) -> list[ExecutionResult]:
        """Results rearranged into the given (planned) stage order."""
        by_id = {result.stage_id: result for result in self.results}
        return [by_id[stage_id] for stage_id in order if stage_id in by_id]

    @property
    def completion_order(self) -> list[str]:
        return [result.stage_id for result in self.results]

    @property
    def warnings(self) -> list[str]:
        return [f"{r.stage_id}: {w}" for r in self.results for w in r.warnings]

    @property
    def duration(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at
