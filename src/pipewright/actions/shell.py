"""
Built-in ShellAction for executing shell commands.

This action:
- Executes a shell command via subprocess
- Substitutes {input:stage/name} placeholders with upstream artifact text
- Exposes the stage's declared credentials as environment variables
- Kills the process when the stage is canceled or times out
- Returns stdout/stderr and, on success, the configured outputs
"""

from __future__ import annotations

import os
import re
import subprocess
from collections.abc import Mapping
from pathlib import Path

from pipewright.actions.context import StageContext
from pipewright.actions.interface import StageAction
from pipewright.actions.result import ActionResult

_INPUT_PLACEHOLDER = re.compile(r"\{input:([^}]+)\}")

STDOUT = "-"


class ShellAction(StageAction):
    """
    Execute a shell command.

    Args:
        command: Shell command, may contain {input:stage/name} placeholders
        outputs: Artifact name -> source, where source is "-" for stdout or a
            file path (relative to cwd) read after the command succeeds
        env: Extra environment variables
        cwd: Working directory (default: run parameter "workdir" or current dir)
        poll_interval: Seconds between cancellation checks

    Example:
        ShellAction("mvn -B clean package", outputs={"jar": "target/app.jar"})
        ShellAction("docker push {input:package/image}")
    """

    def __init__(
        self,
        command: str,
        outputs: Mapping[str, str] | None = None,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        poll_interval: float = 0.1,
    ) -> None:
        if not command or not command.strip():
            raise ValueError("ShellAction requires a command")
        self.command = command
        self.outputs = dict(outputs or {})
        self.env = dict(env or {})
        self.cwd = cwd
        self.poll_interval = poll_interval

    def render(self, context: StageContext) -> str:
        """Substitute {input:stage/name} placeholders with artifact text."""

        def replace(match: re.Match[str]) -> str:
            return context.input(match.group(1).strip()).text().strip()

        return _INPUT_PLACEHOLDER.sub(replace, self.command)

    def _environment(self, context: StageContext) -> dict[str, str]:
        env = dict(os.environ)
        env.update(self.env)
        env["PIPEWRIGHT_RUN_ID"] = context.run_id
        env["PIPEWRIGHT_STAGE_ID"] = context.stage_id
        for name in context.secret_names():
            env[name] = context.secret(name)
        return env

    def execute(self, context: StageContext) -> ActionResult:
        command = self.render(context)
        cwd = self.cwd or context.parameters.get("workdir")

        process = subprocess.Popen(
            command,
            shell=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            cwd=cwd,
            env=self._environment(context),
        )

        while True:
            try:
                stdout, stderr = process.communicate(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                if context.cancelled:
                    process.kill()
                    stdout, stderr = process.communicate()
                    return ActionResult.failure(
                        error=f"Command canceled: {context.token.reason or 'canceled'}",
                        exit_code=-9,
                        stdout=stdout,
                        stderr=stderr,
                    )

        if process.returncode != 0:
            return ActionResult.failure(
                error=f"Command failed with exit code {process.returncode}: {stderr.strip()}",
                exit_code=process.returncode,
                stdout=stdout,
                stderr=stderr,
            )

        outputs: dict[str, bytes | str] = {}
        for name, source in self.outputs.items():
            if source == STDOUT:
                outputs[name] = stdout
                continue
            path = Path(source)
            if not path.is_absolute() and cwd:
                path = Path(cwd) / path
            if not path.exists():
                return ActionResult.failure(
                    error=f"Output '{name}' file not found: {path}",
                    stdout=stdout,
                    stderr=stderr,
                )
            outputs[name] = path.read_bytes()

        return ActionResult.success(outputs=outputs, stdout=stdout, stderr=stderr)

    def __repr__(self) -> str:
        return f"ShellAction({self.command!r})"
