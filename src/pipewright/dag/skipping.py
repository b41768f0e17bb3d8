"""
Skip propagation.

A stage is skipped when a required dependency failed, or when any dependency
was itself skipped. Dependents of a failed non-required stage still run and
carry a warning instead.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from pipewright.models.stage import Stage
from pipewright.models.status import StageStatus


@dataclass(frozen=True)
class Readiness:
    """Decision for one stage about to be dispatched."""

    skip_reason: str | None = None
    warnings: tuple[str, ...] = ()

    @property
    def should_skip(self) -> bool:
        return self.skip_reason is not None


def check_readiness(
    stage: Stage,
    statuses: Mapping[str, StageStatus],
    stages: Mapping[str, Stage],
) -> Readiness:
    """
    Decide whether a stage runs, given the final statuses of its dependencies.

    Args:
        stage: The stage to evaluate
        statuses: Final status per completed stage id
        stages: Stage definitions by id (to know which dependencies are required)
    """
    warnings: list[str] = []
    for dep in stage.dependencies:
        status = statuses.get(dep, StageStatus.PENDING)
        if status == StageStatus.SKIPPED:
            return Readiness(skip_reason=f"upstream stage '{dep}' was skipped")
        if status == StageStatus.FAILED:
            if stages[dep].required:
                return Readiness(skip_reason=f"required upstream stage '{dep}' failed")
            warnings.append(f"non-required upstream stage '{dep}' failed")
        elif not status.is_complete:
            # Batches guarantee completion; reaching this is a scheduling bug
            raise RuntimeError(f"Stage '{stage.id}' dispatched before '{dep}' completed")
    return Readiness(warnings=tuple(warnings))
