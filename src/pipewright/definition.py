"""
Pipeline definitions in YAML.

A definition lists stages in declaration order:

    workdir: .
    stages:
      - id: compile
        run: mvn -B clean package -DskipTests
        outputs:
          jar: {kind: binary, path: target/app.jar}
      - id: test
        needs: [compile]
        run: mvn -B test
      - id: package
        needs: [test]
        uses: containerize
        with: {image: "registry.example.com/app:{run_id}"}
        outputs: {image: image-reference}
      - id: push
        needs: [package]
        uses: push
        credentials: [DOCKER_USERNAME, DOCKER_PASSWORD]
        inputs: [package/image]
        outputs: {image: image-reference}
        retry: {max_attempts: 3, backoff: exponential, delay: 2}

`run:` builds a ShellAction; `uses:` names an action registered in an
ActionRegistry (build, containerize, push and scan by default).
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml

from pipewright.actions.interface import StageAction
from pipewright.actions.shell import STDOUT, ShellAction
from pipewright.errors import MalformedStageError
from pipewright.integrations import (
    BuildAction,
    CollaboratorCircuitFactory,
    CommandBuildRunner,
    CommandScanner,
    ContainerizeAction,
    DockerContainerizer,
    DockerRegistryClient,
    PushAction,
    ScanAction,
)
from pipewright.models.retry import Backoff, RetryPolicy
from pipewright.models.stage import Stage

# Factory taking the stage's `with:` parameters
ActionFactory = Callable[[Mapping[str, Any]], StageAction]

STAGE_KEYS = frozenset(
    {"id", "description", "needs", "required", "timeout", "run", "uses", "with", "env", "credentials", "inputs", "outputs", "retry"}
)


class ActionRegistry:
    """
    Named action factories available to `uses:`.

    Example:
        registry = ActionRegistry()
        registry.register("notify", lambda params: NotifyAction(params["channel"]))
        action = registry.create("notify", {"channel": "#deploys"})
    """

    def __init__(self) -> None:
        self._factories: dict[str, ActionFactory] = {}

    def register(self, name: str, factory: ActionFactory) -> None:
        self._factories[name] = factory

    def action(self, name: str) -> Callable[[ActionFactory], ActionFactory]:
        """Decorator form of register()."""

        def decorator(factory: ActionFactory) -> ActionFactory:
            self.register(name, factory)
            return factory

        return decorator

    def create(self, name: str, params: Mapping[str, Any] | None = None) -> StageAction:
        if name not in self._factories:
            raise MalformedStageError(f"Unknown action '{name}'. Registered: {', '.join(sorted(self._factories))}")
        try:
            return self._factories[name](params or {})
        except KeyError as e:
            raise MalformedStageError(f"Action '{name}' requires parameter {e}") from e
        except (TypeError, ValueError) as e:
            raise MalformedStageError(f"Action '{name}': {e}") from e

    def has(self, name: str) -> bool:
        return name in self._factories

    def names(self) -> list[str]:
        return sorted(self._factories)


def default_registry(circuits: CollaboratorCircuitFactory | None = None) -> ActionRegistry:
    """Registry with the build, containerize, push and scan actions."""
    registry = ActionRegistry()
    shared = circuits or CollaboratorCircuitFactory()

    @registry.action("build")
    def build(params: Mapping[str, Any]) -> StageAction:
        runner = CommandBuildRunner(
            command=params.get("command", "mvn -B clean package"),
            artifact_pattern=params.get("artifact", "target/*.jar"),
        )
        return BuildAction(runner, workdir=params.get("workdir"))

    @registry.action("containerize")
    def containerize(params: Mapping[str, Any]) -> StageAction:
        containerizer = DockerContainerizer(
            dockerfile=params.get("dockerfile"),
            build_args=params.get("build_args"),
        )
        return ContainerizeAction(containerizer, image=params["image"], context_dir=params.get("context"))

    @registry.action("push")
    def push(params: Mapping[str, Any]) -> StageAction:
        return PushAction(
            DockerRegistryClient(registry=params.get("registry")),
            image_input=params.get("image_input"),
            username_secret=params.get("username_secret", "DOCKER_USERNAME"),
            password_secret=params.get("password_secret", "DOCKER_PASSWORD"),
            circuits=shared,
        )

    @registry.action("scan")
    def scan(params: Mapping[str, Any]) -> StageAction:
        scanner = CommandScanner(command=params["command"]) if "command" in params else CommandScanner()
        return ScanAction(
            scanner,
            image_input=params.get("image_input"),
            fail_on=params.get("fail_on"),
            circuits=shared,
        )

    return registry


@dataclass
class PipelineDefinition:
    """A parsed definition: stages in declaration order plus run parameters."""

    stages: list[Stage]
    parameters: dict[str, Any] = field(default_factory=dict)
    name: str | None = None

    @property
    def stage_ids(self) -> list[str]:
        return [stage.id for stage in self.stages]


def _string_list(stage_id: str, field_name: str, value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return value
    raise MalformedStageError(f"Stage '{stage_id}': '{field_name}' must be a list of strings", stage_id=stage_id)


def _parse_outputs(stage_id: str, raw: Any) -> tuple[dict[str, str], dict[str, str]]:
    """Split `outputs:` into name -> kind and, for run stages, name -> source."""
    if raw is None:
        return {}, {}
    if not isinstance(raw, dict):
        raise MalformedStageError(f"Stage '{stage_id}': 'outputs' must be a mapping", stage_id=stage_id)
    kinds: dict[str, str] = {}
    sources: dict[str, str] = {}
    for name, spec in raw.items():
        if isinstance(spec, str):
            kinds[name] = spec
            sources[name] = STDOUT
        elif isinstance(spec, dict):
            kinds[name] = spec.get("kind", "text")
            sources[name] = spec.get("path", STDOUT)
        else:
            raise MalformedStageError(f"Stage '{stage_id}': output '{name}' must be a kind or a mapping", stage_id=stage_id)
    return kinds, sources


def _parse_retry(stage_id: str, raw: Any) -> RetryPolicy | None:
    if raw is None:
        return None
    if isinstance(raw, int) and not isinstance(raw, bool):
        raw = {"max_attempts": raw}
    if not isinstance(raw, dict):
        raise MalformedStageError(f"Stage '{stage_id}': 'retry' must be a mapping", stage_id=stage_id)
    try:
        return RetryPolicy(
            max_attempts=int(raw.get("max_attempts", 1)),
            backoff=Backoff(raw.get("backoff", "fixed")),
            delay_seconds=float(raw.get("delay", 1.0)),
            max_delay_seconds=float(raw.get("max_delay", 60.0)),
            jitter=float(raw.get("jitter", 0.0)),
        )
    except (TypeError, ValueError) as e:
        raise MalformedStageError(f"Stage '{stage_id}': invalid retry policy: {e}", stage_id=stage_id) from e


def parse_stage(raw: Any, registry: ActionRegistry) -> Stage:
    """Build a Stage from one entry of `stages:`."""
    if not isinstance(raw, dict):
        raise MalformedStageError("Each stage must be a mapping")
    stage_id = raw.get("id")
    if not isinstance(stage_id, str) or not stage_id:
        raise MalformedStageError("Stage is missing an 'id'")

    unknown = set(raw) - STAGE_KEYS
    if unknown:
        raise MalformedStageError(f"Stage '{stage_id}': unknown field(s) {', '.join(sorted(unknown))}", stage_id=stage_id)
    if ("run" in raw) == ("uses" in raw):
        raise MalformedStageError(f"Stage '{stage_id}' needs exactly one of 'run' or 'uses'", stage_id=stage_id)

    kinds, sources = _parse_outputs(stage_id, raw.get("outputs"))

    action: StageAction
    if "run" in raw:
        command = raw["run"]
        if not isinstance(command, str) or not command.strip():
            raise MalformedStageError(f"Stage '{stage_id}': 'run' must be a command string", stage_id=stage_id)
        env = raw.get("env") or {}
        if not isinstance(env, dict):
            raise MalformedStageError(f"Stage '{stage_id}': 'env' must be a mapping", stage_id=stage_id)
        action = ShellAction(command, outputs=sources, env={str(k): str(v) for k, v in env.items()})
    else:
        params = raw.get("with") or {}
        if not isinstance(params, dict):
            raise MalformedStageError(f"Stage '{stage_id}': 'with' must be a mapping", stage_id=stage_id)
        action = registry.create(str(raw["uses"]), params)

    timeout = raw.get("timeout")
    if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float))):
        raise MalformedStageError(f"Stage '{stage_id}': 'timeout' must be a number of seconds", stage_id=stage_id)
    required = raw.get("required", True)
    if not isinstance(required, bool):
        raise MalformedStageError(f"Stage '{stage_id}': 'required' must be true or false", stage_id=stage_id)

    return Stage.create(
        stage_id,
        action,
        needs=_string_list(stage_id, "needs", raw.get("needs")),
        required=required,
        timeout=timeout,
        credentials=_string_list(stage_id, "credentials", raw.get("credentials")),
        inputs=_string_list(stage_id, "inputs", raw.get("inputs")),
        outputs=kinds,
        retry=_parse_retry(stage_id, raw.get("retry")),
        description=str(raw.get("description", "")),
    )


def load_definition(document: Any, registry: ActionRegistry | None = None) -> PipelineDefinition:
    """Build a PipelineDefinition from an already-parsed YAML document."""
    if not isinstance(document, dict) or not isinstance(document.get("stages"), list):
        raise MalformedStageError("Pipeline definition must be a mapping with a 'stages' list")
    registry = registry or default_registry()
    stages = [parse_stage(raw, registry) for raw in document["stages"]]
    parameters = dict(document.get("parameters") or {})
    if "workdir" in document:
        parameters.setdefault("workdir", str(document["workdir"]))
    return PipelineDefinition(stages=stages, parameters=parameters, name=document.get("name"))


def loads(text: str, registry: ActionRegistry | None = None) -> PipelineDefinition:
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise MalformedStageError(f"Invalid pipeline YAML: {e}") from e
    return load_definition(document, registry)


def load(path: str | os.PathLike[str], registry: ActionRegistry | None = None) -> PipelineDefinition:
    """Load a pipeline definition file. Relative workdirs resolve against the file's directory."""
    with open(path, encoding="utf-8") as f:
        definition = loads(f.read(), registry)
    base = os.path.dirname(os.path.abspath(path))
    workdir = definition.parameters.get("workdir")
    if workdir is not None and not os.path.isabs(workdir):
        definition.parameters["workdir"] = os.path.normpath(os.path.join(base, workdir))
    return definition
