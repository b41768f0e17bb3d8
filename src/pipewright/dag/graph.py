"""
Pipeline graph planning.

Builds a DAG from declared stage dependencies and orders it into execution
batches with Kahn's algorithm. Stages in one batch have no dependency on each
other and may run concurrently; batches run strictly in order.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from pipewright.errors import CycleError, MalformedStageError
from pipewright.models.stage import Stage


@dataclass(frozen=True)
class ExecutionPlan:
    """
    Validated, ordered view of a pipeline.

    Attributes:
        stages: Planned stages in declaration order
        batches: Stage ids grouped into dependency layers
    """

    stages: tuple[Stage, ...]
    batches: tuple[tuple[str, ...], ...]
    _by_id: dict[str, Stage] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._by_id.update({stage.id: stage for stage in self.stages})

    @property
    def order(self) -> list[str]:
        """Flattened execution order."""
        return [stage_id for batch in self.batches for stage_id in batch]

    @property
    def stage_ids(self) -> list[str]:
        return [stage.id for stage in self.stages]

    def stage(self, stage_id: str) -> Stage:
        try:
            return self._by_id[stage_id]
        except KeyError:
            raise MalformedStageError(f"Stage '{stage_id}' is not part of this plan", stage_id=stage_id) from None

    def __contains__(self, stage_id: object) -> bool:
        return stage_id in self._by_id

    def __len__(self) -> int:
        return len(self.stages)

    def ancestors(self, stage_id: str) -> frozenset[str]:
        """All transitive dependencies of a stage."""
        result: set[str] = set()
        pending = list(self.stage(stage_id).dependencies)
        while pending:
            current = pending.pop()
            if current in result:
                continue
            result.add(current)
            pending.extend(self._by_id[current].dependencies)
        return frozenset(result)

    def descendants(self, stage_id: str) -> frozenset[str]:
        """All stages that transitively depend on a stage."""
        self.stage(stage_id)
        result: set[str] = set()
        frontier = {stage_id}
        while frontier:
            frontier = {
                stage.id
                for stage in self.stages
                if stage.id not in result and frontier.intersection(stage.dependencies)
            }
            result.update(frontier)
        return frozenset(result)

    def initial_stages(self) -> list[Stage]:
        return [stage for stage in self.stages if stage.is_initial()]

    def terminal_stages(self) -> list[Stage]:
        """Stages no other planned stage depends on."""
        depended_on = {dep for stage in self.stages for dep in stage.dependencies}
        return [stage for stage in self.stages if stage.id not in depended_on]


def validate_stages(stages: Sequence[Stage]) -> None:
    """
    Check stage definitions for structural errors.

    Raises:
        MalformedStageError: Duplicate ids, self or unknown dependencies,
            inputs naming unknown stages or undeclared outputs
    """
    by_id: dict[str, Stage] = {}
    for stage in stages:
        if stage.id in by_id:
            raise MalformedStageError(f"Duplicate stage id '{stage.id}'", stage_id=stage.id)
        by_id[stage.id] = stage

    for stage in stages:
        for dep in stage.dependencies:
            if dep == stage.id:
                raise MalformedStageError(f"Stage '{stage.id}' depends on itself", stage_id=stage.id)
            if dep not in by_id:
                raise MalformedStageError(
                    f"Stage '{stage.id}' depends on unknown stage '{dep}'", stage_id=stage.id
                )
        for key in stage.inputs:
            producer = by_id.get(key.stage_id)
            if producer is None:
                raise MalformedStageError(
                    f"Stage '{stage.id}' reads '{key}' from unknown stage '{key.stage_id}'",
                    stage_id=stage.id,
                )
            if producer.outputs and key.name not in producer.output_kinds:
                raise MalformedStageError(
                    f"Stage '{stage.id}' reads '{key}' but '{producer.id}' does not declare output '{key.name}'",
                    stage_id=stage.id,
                )


def select_stages(stages: Sequence[Stage], targets: Iterable[str]) -> list[Stage]:
    """
    Restrict a pipeline to targets and their transitive dependencies.

    Declaration order is preserved.
    """
    by_id = {stage.id: stage for stage in stages}
    wanted: set[str] = set()
    pending: list[str] = []
    for target in targets:
        if target not in by_id:
            raise MalformedStageError(f"Unknown target stage '{target}'", stage_id=target)
        pending.append(target)
    while pending:
        current = pending.pop()
        if current in wanted:
            continue
        wanted.add(current)
        pending.extend(by_id[current].dependencies)
    return [stage for stage in stages if stage.id in wanted]


def _find_cycle(remaining: dict[str, Stage]) -> list[str]:
    """Return one dependency cycle among stages that could not be ordered."""
    for start in remaining:
        path: list[str] = []
        on_path: set[str] = set()
        current = start
        while current not in on_path:
            path.append(current)
            on_path.add(current)
            current = next(dep for dep in remaining[current].dependencies if dep in remaining)
        return path[path.index(current):] + [current]
    return []


def compute_batches(stages: Sequence[Stage]) -> list[list[str]]:
    """
    Kahn's algorithm, grouped into layers.

    Ready stages are released in declaration order, so the plan is
    deterministic for a given pipeline definition.

    Raises:
        CycleError: If the dependency graph is not acyclic
    """
    position = {stage.id: index for index, stage in enumerate(stages)}
    in_degree = {stage.id: len(stage.dependencies) for stage in stages}
    dependents: dict[str, list[str]] = {stage.id: [] for stage in stages}
    for stage in stages:
        for dep in stage.dependencies:
            dependents[dep].append(stage.id)

    batches: list[list[str]] = []
    ready = [stage.id for stage in stages if in_degree[stage.id] == 0]
    placed = 0

    while ready:
        batch = sorted(ready, key=position.__getitem__)
        batches.append(batch)
        placed += len(batch)
        ready = []
        for stage_id in batch:
            for dependent in dependents[stage_id]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    ready.append(dependent)

    if placed != len(stages):
        remaining = {stage.id: stage for stage in stages if in_degree[stage.id] > 0}
        cycle = _find_cycle(remaining)
        raise CycleError(
            f"Dependency cycle detected: {' -> '.join(cycle)}",
            stage_ids=list(remaining),
        )

    return batches


def plan(stages: Sequence[Stage], targets: Iterable[str] | None = None) -> ExecutionPlan:
    """
    Validate stages and compute ordered execution batches.

    Args:
        stages: Stage definitions in declaration order
        targets: Optional subset to run; their transitive dependencies are included

    Returns:
        ExecutionPlan whose batches respect every dependency

    Raises:
        CycleError: The graph contains a cycle
        MalformedStageError: A stage definition is invalid

    Example:
        # compile -> [lint, unit-test] -> package
        plan(stages).batches
        # (("compile",), ("lint", "unit-test"), ("package",))
    """
    stages = list(stages)
    validate_stages(stages)
    # The whole graph must be acyclic, even when only targets run
    batches = compute_batches(stages)
    target_list = list(targets) if targets else []
    if target_list:
        stages = select_stages(stages, target_list)
        batches = compute_batches(stages)
    return ExecutionPlan(stages=tuple(stages), batches=tuple(tuple(batch) for batch in batches))
