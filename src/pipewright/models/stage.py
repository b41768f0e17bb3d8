"""
Stage model.

A stage is one discrete unit of pipeline work (compile, test, push, scan).
It declares:
- Which stages it depends on (DAG edges)
- Which credentials and input artifacts it needs
- Which artifacts it produces
- Whether its failure should skip its dependents (required)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pipewright.errors import MalformedStageError
from pipewright.models.artifact import ArtifactKey, ArtifactKind
from pipewright.models.credential import CredentialRef
from pipewright.models.retry import RetryPolicy

if TYPE_CHECKING:
    from pipewright.actions.interface import StageAction


def _unique(values: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return tuple(seen)


@dataclass(frozen=True)
class Stage:
    """
    A named unit of work with declared inputs, outputs and a run contract.

    Attributes:
        id: Unique stage id within a pipeline
        action: The StageAction invoked by the executor
        dependencies: Ids of stages that must complete first (declaration order kept)
        required: If True, a failure skips every transitive dependent
        timeout: Seconds before the action is canceled (None = configured default)
        credentials: Secrets resolved for the duration of one attempt
        inputs: Artifacts read from upstream stages
        outputs: Artifact names this stage commits, with their kinds
        retry: Optional caller-side retry policy
    """

    id: str
    action: StageAction = field(compare=False)
    dependencies: tuple[str, ...] = ()
    required: bool = True
    timeout: float | None = None
    credentials: tuple[CredentialRef, ...] = ()
    inputs: tuple[ArtifactKey, ...] = ()
    outputs: tuple[tuple[str, ArtifactKind], ...] = ()
    retry: RetryPolicy | None = None
    description: str = ""

    @classmethod
    def create(
        cls,
        id: str,
        action: StageAction,
        needs: Iterable[str] = (),
        required: bool = True,
        timeout: float | None = None,
        credentials: Iterable[str | CredentialRef] = (),
        inputs: Iterable[str | ArtifactKey] = (),
        outputs: Mapping[str, str | ArtifactKind] | None = None,
        retry: RetryPolicy | None = None,
        description: str = "",
    ) -> Stage:
        """
        Factory method with normalisation of loosely typed arguments.

        Example:
            Stage.create(
                "push",
                PushAction(registry),
                needs=["package"],
                credentials=["DOCKER_USERNAME", "DOCKER_PASSWORD"],
                inputs=["package/image"],
                outputs={"image": "image-reference"},
            )
        """
        if not id or not isinstance(id, str):
            raise MalformedStageError("Stage id must be a non-empty string")
        if "/" in id:
            raise MalformedStageError(f"Stage id '{id}' must not contain '/'", stage_id=id)
        if action is None:
            raise MalformedStageError(f"Stage '{id}' has no action", stage_id=id)
        if timeout is not None and timeout <= 0:
            raise MalformedStageError(f"Stage '{id}' timeout must be positive", stage_id=id)

        try:
            parsed_inputs = tuple(ArtifactKey.parse(key) for key in inputs)
            parsed_outputs = tuple(
                (name, ArtifactKind.parse(kind)) for name, kind in (outputs or {}).items()
            )
        except ValueError as e:
            raise MalformedStageError(f"Stage '{id}': {e}", stage_id=id) from e

        return cls(
            id=id,
            action=action,
            dependencies=_unique(needs),
            required=required,
            timeout=timeout,
            credentials=tuple(
                ref if isinstance(ref, CredentialRef) else CredentialRef(ref) for ref in credentials
            ),
            inputs=parsed_inputs,
            outputs=parsed_outputs,
            retry=retry,
            description=description,
        )

    @property
    def output_kinds(self) -> dict[str, ArtifactKind]:
        return dict(self.outputs)

    @property
    def credential_names(self) -> tuple[str, ...]:
        return tuple(ref.name for ref in self.credentials)

    def is_initial(self) -> bool:
        """Check if this stage has no dependencies."""
        return not self.dependencies

    def __repr__(self) -> str:
        return f"Stage(id={self.id!r}, dependencies={list(self.dependencies)!r}, required={self.required})"
