"""
Stage actions backed by the external collaborators.

These are the building blocks of a delivery pipeline:
compile/package (BuildAction), image build (ContainerizeAction),
registry push (PushAction) and vulnerability scan (ScanAction).
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from pipewright.actions.context import StageContext
from pipewright.actions.interface import StageAction
from pipewright.actions.result import ActionResult
from pipewright.errors import ArtifactAccessError
from pipewright.integrations.circuits import CollaboratorCircuitFactory
from pipewright.integrations.commands import count_vulnerabilities
from pipewright.integrations.interfaces import BuildRunner, Containerizer, RegistryClient, Scanner
from pipewright.models.artifact import ArtifactKind

T = TypeVar("T")

SEVERITIES = ("UNKNOWN", "LOW", "MEDIUM", "HIGH", "CRITICAL")


def _image_input(context: StageContext, key: str | None) -> str:
    """Image reference from an explicit input key or the first image-reference input."""
    if key:
        return context.input(key).text().strip()
    artifact = context.input_of_kind(ArtifactKind.IMAGE_REFERENCE)
    if artifact is None:
        raise ArtifactAccessError(f"Stage '{context.stage_id}' declares no image-reference input")
    return artifact.text().strip()


class _GuardedAction(StageAction):
    """Calls a collaborator through a per-run circuit breaker."""

    collaborator = "external"

    def __init__(self, circuits: CollaboratorCircuitFactory | None = None) -> None:
        self.circuits = circuits

    def guarded(self, context: StageContext, func: Callable[..., T], *args: Any) -> T:
        if self.circuits is None:
            return func(*args)
        return self.circuits.call(context.run_id, self.collaborator, func, *args)


class BuildAction(StageAction):
    """
    Build the project and emit a reference to the produced artifact.

    Outputs:
        build: Path of the built artifact (kind binary)
    """

    def __init__(self, runner: BuildRunner, workdir: str | None = None, output: str = "build") -> None:
        self.runner = runner
        self.workdir = workdir
        self.output = output

    def execute(self, context: StageContext) -> ActionResult:
        workdir = self.workdir or context.parameters.get("workdir", ".")
        outcome = self.runner.build(workdir)
        context.log(f"built {outcome.artifact_path}")
        return ActionResult.success(outputs={self.output: outcome.artifact_path}, stdout=outcome.log)


class ContainerizeAction(StageAction):
    """
    Build a container image.

    The tag may reference {run_id}; it is filled in per run.

    Outputs:
        image: The built image reference (kind image-reference)
    """

    def __init__(
        self,
        containerizer: Containerizer,
        image: str,
        context_dir: str | None = None,
        output: str = "image",
    ) -> None:
        self.containerizer = containerizer
        self.image = image
        self.context_dir = context_dir
        self.output = output

    def execute(self, context: StageContext) -> ActionResult:
        tag = self.image.format(run_id=context.run_id)
        context_dir = self.context_dir or context.parameters.get("workdir", ".")
        reference = self.containerizer.build_image(context_dir, tag)
        context.log(f"built image {reference}")
        return ActionResult.success(outputs={self.output: reference})


class PushAction(_GuardedAction):
    """
    Push an upstream image to a registry.

    Credentials are read from the stage's declared secrets (username and
    password names are configurable). The emitted reference is pinned to
    the pushed digest when the registry reports one, so later stages see
    exactly the pushed content even if the tag moves.

    Outputs:
        image: Digest-pinned reference (kind image-reference)
    """

    collaborator = "registry"

    def __init__(
        self,
        registry: RegistryClient,
        image_input: str | None = None,
        username_secret: str = "DOCKER_USERNAME",
        password_secret: str = "DOCKER_PASSWORD",
        output: str = "image",
        circuits: CollaboratorCircuitFactory | None = None,
    ) -> None:
        super().__init__(circuits)
        self.registry = registry
        self.image_input = image_input
        self.username_secret = username_secret
        self.password_secret = password_secret
        self.output = output

    def execute(self, context: StageContext) -> ActionResult:
        image = _image_input(context, self.image_input)
        outcome = self.guarded(
            context,
            self.registry.push,
            image,
            context.secret(self.username_secret),
            context.secret(self.password_secret),
        )
        context.log(f"pushed {outcome.pinned}")
        return ActionResult.success(outputs={self.output: outcome.pinned})


class ScanAction(_GuardedAction):
    """
    Scan an upstream image and emit the report.

    Args:
        fail_on: Fail the stage when a vulnerability at or above this
            severity is found (e.g. "CRITICAL"); None never fails

    Outputs:
        report: The scanner's report (kind report)
    """

    collaborator = "scanner"

    def __init__(
        self,
        scanner: Scanner,
        image_input: str | None = None,
        fail_on: str | None = None,
        output: str = "report",
        circuits: CollaboratorCircuitFactory | None = None,
    ) -> None:
        super().__init__(circuits)
        if fail_on is not None and fail_on.upper() not in SEVERITIES:
            raise ValueError(f"fail_on must be one of {', '.join(SEVERITIES)}")
        self.scanner = scanner
        self.image_input = image_input
        self.fail_on = fail_on.upper() if fail_on else None
        self.output = output

    def execute(self, context: StageContext) -> ActionResult:
        image = _image_input(context, self.image_input)
        report = self.guarded(context, self.scanner.scan, image)
        counts = count_vulnerabilities(report)
        context.log(f"scanned {image}: {counts or 'no vulnerabilities'}")

        if self.fail_on is not None:
            threshold = SEVERITIES.index(self.fail_on)
            blocking = {s: n for s, n in counts.items() if s in SEVERITIES and SEVERITIES.index(s) >= threshold}
            if blocking:
                return ActionResult.failure(
                    error=f"Vulnerabilities at or above {self.fail_on} found in {image}: {blocking}",
                    outputs={self.output: report},
                )
        return ActionResult.success(outputs={self.output: report})
