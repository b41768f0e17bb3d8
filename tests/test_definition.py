"""Tests for YAML pipeline definitions."""

from pathlib import Path

import pytest

from pipewright.actions import ActionResult, ShellAction, StageAction, StageContext
from pipewright.definition import ActionRegistry, default_registry, load, loads, parse_stage
from pipewright.errors import MalformedStageError
from pipewright.integrations import ContainerizeAction, PushAction, ScanAction
from pipewright.models.artifact import ArtifactKey, ArtifactKind
from pipewright.models.retry import Backoff

DELIVERY_PIPELINE = """
name: delivery
workdir: .
parameters:
  branch: main
stages:
  - id: compile
    run: mvn -B clean package -DskipTests
    outputs:
      jar: {kind: binary, path: target/app.jar}
  - id: test
    needs: [compile]
    run: mvn -B test
    timeout: 600
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
  - id: scan
    needs: [push]
    uses: scan
    required: false
    inputs: [push/image]
    with: {fail_on: critical}
    outputs: {report: report}
"""


class NotifyAction(StageAction):
    def __init__(self, channel: str) -> None:
        self.channel = channel

    def execute(self, context: StageContext) -> ActionResult:
        return ActionResult.success()


class TestLoads:
    """Parsing a full delivery pipeline."""

    def test_stages_in_declaration_order(self) -> None:
        definition = loads(DELIVERY_PIPELINE)

        assert definition.name == "delivery"
        assert definition.stage_ids == ["compile", "test", "package", "push", "scan"]
        assert definition.parameters == {"branch": "main", "workdir": "."}

    def test_run_stage_becomes_shell_action(self) -> None:
        compile_stage = loads(DELIVERY_PIPELINE).stages[0]

        assert isinstance(compile_stage.action, ShellAction)
        assert compile_stage.action.command == "mvn -B clean package -DskipTests"
        assert compile_stage.action.outputs == {"jar": "target/app.jar"}
        assert compile_stage.output_kinds == {"jar": ArtifactKind.BINARY}

    def test_uses_stage_fields(self) -> None:
        stages = {s.id: s for s in loads(DELIVERY_PIPELINE).stages}

        push = stages["push"]
        assert isinstance(push.action, PushAction)
        assert push.dependencies == ("package",)
        assert push.credential_names == ("DOCKER_USERNAME", "DOCKER_PASSWORD")
        assert push.inputs == (ArtifactKey("package", "image"),)
        assert push.retry is not None
        assert push.retry.max_attempts == 3
        assert push.retry.backoff == Backoff.EXPONENTIAL
        assert push.retry.delay_seconds == 2.0

        assert isinstance(stages["package"].action, ContainerizeAction)
        assert stages["test"].timeout == 600
        assert isinstance(stages["scan"].action, ScanAction)
        assert stages["scan"].action.fail_on == "CRITICAL"
        assert stages["scan"].required is False

    def test_integer_retry_shorthand(self) -> None:
        definition = loads("stages:\n  - id: push\n    run: ./push.sh\n    retry: 4\n")

        assert definition.stages[0].retry.max_attempts == 4

    def test_stdout_output(self) -> None:
        definition = loads("stages:\n  - id: version\n    run: git describe\n    outputs: {tag: text}\n")

        assert definition.stages[0].action.outputs == {"tag": "-"}


class TestMalformedDefinitions:
    """Rejected before anything runs."""

    @pytest.mark.parametrize(
        ("text", "message"),
        [
            ("stages:\n  - id: a\n    run: make\n    uses: build\n", "exactly one of 'run' or 'uses'"),
            ("stages:\n  - id: a\n", "exactly one of 'run' or 'uses'"),
            ("stages:\n  - id: a\n    run: make\n    depends: [b]\n", "unknown field"),
            ("stages:\n  - id: a\n    uses: deploy\n", "Unknown action 'deploy'"),
            ("stages:\n  - id: a\n    uses: containerize\n", "requires parameter 'image'"),
            ("stages:\n  - id: a\n    run: make\n    retry: {max_attempts: 0}\n", "invalid retry policy"),
            ("stages:\n  - id: a\n    run: make\n    timeout: soon\n", "'timeout' must be a number"),
            ("stages:\n  - id: a\n    run: make\n    required: maybe\n", "'required' must be true or false"),
            ("stages:\n  - id: a\n    run: make\n    env: [FOO=1]\n", "'env' must be a mapping"),
            ("stages:\n  - id: a\n    run: make\n    env: FOO=1\n", "'env' must be a mapping"),
            ("stages:\n  - id: a\n    uses: scan\n    with: [fail_on]\n", "'with' must be a mapping"),
            ("stages:\n  - run: make\n", "missing an 'id'"),
            ("stages: compile\n", "'stages' list"),
            ("stages: [unclosed\n", "Invalid pipeline YAML"),
        ],
    )
    def test_rejected(self, text: str, message: str) -> None:
        with pytest.raises(MalformedStageError, match=message):
            loads(text)

    def test_unknown_output_kind(self) -> None:
        with pytest.raises(MalformedStageError):
            loads("stages:\n  - id: a\n    run: make\n    outputs: {jar: tarball}\n")


class TestActionRegistry:
    def test_custom_action(self) -> None:
        registry = ActionRegistry()

        @registry.action("notify")
        def notify(params: dict) -> StageAction:
            return NotifyAction(params["channel"])

        stage = parse_stage({"id": "announce", "uses": "notify", "with": {"channel": "#deploys"}}, registry)

        assert isinstance(stage.action, NotifyAction)
        assert stage.action.channel == "#deploys"
        assert registry.has("notify")

    def test_default_actions(self) -> None:
        assert default_registry().names() == ["build", "containerize", "push", "scan"]

    def test_invalid_parameter_value(self) -> None:
        with pytest.raises(MalformedStageError, match="fail_on"):
            default_registry().create("scan", {"fail_on": "severe"})


class TestLoad:
    def test_relative_workdir_resolves_against_file(self, tmp_path: Path) -> None:
        project = tmp_path / "project"
        project.mkdir()
        path = project / "pipeline.yaml"
        path.write_text("workdir: app\nstages:\n  - id: compile\n    run: make\n")

        definition = load(path)

        assert definition.parameters["workdir"] == str(project / "app")

    def test_absolute_workdir_unchanged(self, tmp_path: Path) -> None:
        path = tmp_path / "pipeline.yaml"
        path.write_text(f"workdir: {tmp_path}\nstages:\n  - id: compile\n    run: make\n")

        assert load(path).parameters["workdir"] == str(tmp_path)
