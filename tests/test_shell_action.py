"""Tests for ShellAction."""

from pathlib import Path

from pipewright.actions import CancelToken, ShellAction, StageContext
from pipewright.credentials import CredentialResolver, SecretScope
from pipewright.models.artifact import Artifact, ArtifactKey
from pipewright.models.credential import CredentialRef
from tests.conftest import REGISTRY_PASSWORD


def make_context(**kwargs) -> StageContext:
    return StageContext(run_id="01HRUN", stage_id="package", **kwargs)


class TestShellAction:
    def test_stdout_output(self) -> None:
        result = ShellAction("echo app-1.4.2", outputs={"version": "-"}).execute(make_context())

        assert result.succeeded
        assert result.outputs == {"version": "app-1.4.2\n"}

    def test_file_output_relative_to_workdir(self, tmp_path: Path) -> None:
        action = ShellAction("mkdir -p target && printf 'PK' > target/app.jar", outputs={"jar": "target/app.jar"})

        result = action.execute(make_context(parameters={"workdir": str(tmp_path)}))

        assert result.succeeded
        assert result.outputs == {"jar": b"PK"}

    def test_missing_output_file(self, tmp_path: Path) -> None:
        result = ShellAction("true", outputs={"jar": "target/app.jar"}).execute(
            make_context(parameters={"workdir": str(tmp_path)})
        )

        assert not result.succeeded
        assert "file not found" in result.error

    def test_non_zero_exit(self) -> None:
        result = ShellAction("echo 'BUILD FAILURE' >&2; exit 4").execute(make_context())

        assert not result.succeeded
        assert result.exit_code == 4
        assert "BUILD FAILURE" in result.error

    def test_input_placeholder(self) -> None:
        image = Artifact.create("build", "image", "image-reference", "registry.example.com/app:1\n")
        context = make_context(inputs={ArtifactKey("build", "image"): image})

        result = ShellAction("echo pushing {input:build/image}", outputs={"log": "-"}).execute(context)

        assert result.outputs == {"log": "pushing registry.example.com/app:1\n"}

    def test_run_and_stage_ids_exported(self) -> None:
        result = ShellAction('echo "$PIPEWRIGHT_RUN_ID/$PIPEWRIGHT_STAGE_ID"', outputs={"ids": "-"}).execute(
            make_context()
        )

        assert result.outputs == {"ids": "01HRUN/package\n"}

    def test_declared_secret_in_environment(self) -> None:
        resolver = CredentialResolver({"DOCKER_PASSWORD": REGISTRY_PASSWORD})
        with SecretScope.acquire(resolver, [CredentialRef("DOCKER_PASSWORD")]) as scope:
            result = ShellAction('test "$DOCKER_PASSWORD" = "hunter2-registry-token"').execute(
                make_context(secrets=scope)
            )

        assert result.succeeded

    def test_cancellation_kills_process(self) -> None:
        token = CancelToken()
        token.cancel("canceled by operator")

        result = ShellAction("sleep 30", poll_interval=0.05).execute(make_context(token=token))

        assert not result.succeeded
        assert result.exit_code == -9
        assert "canceled by operator" in result.error
