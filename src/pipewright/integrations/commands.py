"""
Command-backed collaborators.

Each implementation drives an external CLI through subprocess:
- CommandBuildRunner: a build tool such as Maven (mvn -B clean package)
- DockerContainerizer: docker build
- DockerRegistryClient: docker push with credentials in a throwaway client config
- CommandScanner: a scanner emitting JSON, such as trivy

Credentials never appear on a command line.
"""

from __future__ import annotations

import base64
import json
import os
import re
import shlex
import subprocess
import tempfile
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from pipewright.errors import ExecutionError, TransientError
from pipewright.integrations.interfaces import (
    BuildOutcome,
    BuildRunner,
    Containerizer,
    PushOutcome,
    RegistryClient,
    Scanner,
)
from pipewright.logging import get_logger

logger = get_logger(__name__)

DIGEST_PATTERN = re.compile(r"digest:\s*(sha256:[0-9a-f]{64})")

DOCKER_HUB_AUTH_KEY = "https://index.docker.io/v1/"

# Substrings of tool output that indicate a temporary outage
TRANSIENT_MARKERS = (
    "connection refused",
    "connection reset",
    "i/o timeout",
    "tls handshake timeout",
    "too many requests",
    "service unavailable",
    "503",
    "502 bad gateway",
    "temporarily unavailable",
)


def _as_command(command: str | Sequence[str]) -> list[str]:
    if isinstance(command, str):
        return shlex.split(command)
    return list(command)


def run_command(
    cmd: Sequence[str],
    *,
    timeout: float,
    cwd: str | None = None,
) -> subprocess.CompletedProcess[str]:
    """
    Run a command and return the completed process.

    Raises:
        ExecutionError: Tool missing or non-zero exit
        TransientError: Timed out, or the tool reported a temporary outage
    """
    display = " ".join(cmd[:2])
    logger.debug("command_started", command=display, cwd=cwd)
    try:
        completed = subprocess.run(
            list(cmd),
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
        )
    except FileNotFoundError as e:
        raise ExecutionError(f"{cmd[0]} is not available. Ensure it is installed and on PATH.", cause=e) from e
    except subprocess.TimeoutExpired as e:
        raise TransientError(f"{display} timed out after {timeout:g}s", cause=e) from e

    if completed.returncode != 0:
        stderr = (completed.stderr or "").strip()
        message = f"{display} failed with exit code {completed.returncode}: {stderr}"
        if any(marker in stderr.lower() for marker in TRANSIENT_MARKERS):
            raise TransientError(message)
        raise ExecutionError(
            message,
            exit_code=completed.returncode,
            details={"stdout": completed.stdout, "stderr": completed.stderr},
        )
    return completed


class CommandBuildRunner(BuildRunner):
    """
    Run a build command and locate the artifact it produced.

    Args:
        command: Build command (default: mvn -B clean package)
        artifact_pattern: Glob, relative to the workdir, matching the artifact
        timeout: Seconds before the build is abandoned
    """

    def __init__(
        self,
        command: str | Sequence[str] = "mvn -B clean package",
        artifact_pattern: str = "target/*.jar",
        timeout: float = 1800.0,
    ) -> None:
        self.command = _as_command(command)
        self.artifact_pattern = artifact_pattern
        self.timeout = timeout

    def build(self, workdir: str) -> BuildOutcome:
        completed = run_command(self.command, timeout=self.timeout, cwd=workdir)
        matches = sorted(
            p for p in Path(workdir).glob(self.artifact_pattern) if not p.name.endswith(("-sources.jar", "-javadoc.jar"))
        )
        if not matches:
            raise ExecutionError(f"Build succeeded but no artifact matches '{self.artifact_pattern}' in {workdir}")
        return BuildOutcome(artifact_path=str(matches[0]), log=completed.stdout)


class DockerContainerizer(Containerizer):
    """docker build."""

    def __init__(
        self,
        dockerfile: str | None = None,
        build_args: Mapping[str, str] | None = None,
        timeout: float = 1800.0,
        docker: str = "docker",
    ) -> None:
        self.dockerfile = dockerfile
        self.build_args = dict(build_args or {})
        self.timeout = timeout
        self.docker = docker

    def command(self, context_dir: str, tag: str) -> list[str]:
        cmd = [self.docker, "build", "-t", tag]
        if self.dockerfile:
            cmd.extend(["-f", self.dockerfile])
        for key, value in sorted(self.build_args.items()):
            cmd.extend(["--build-arg", f"{key}={value}"])
        cmd.append(context_dir)
        return cmd

    def build_image(self, context_dir: str, tag: str) -> str:
        run_command(self.command(context_dir, tag), timeout=self.timeout)
        return tag


def registry_of(image: str) -> str | None:
    """Registry host of an image reference (None for Docker Hub)."""
    if "/" not in image:
        return None
    first = image.split("/", 1)[0]
    if "." in first or ":" in first or first == "localhost":
        return first
    return None


def write_docker_auth(config_dir: str, registry: str, username: str, password: str) -> Path:
    """Write a docker client config.json authorising one registry."""
    token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    path = Path(config_dir) / "config.json"
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        json.dump({"auths": {registry: {"auth": token}}}, handle)
    return path


class DockerRegistryClient(RegistryClient):
    """
    docker push, reporting the pushed digest.

    Each push gets its own docker client config directory holding the
    registry auth; it is removed as soon as the push returns.
    """

    def __init__(self, registry: str | None = None, timeout: float = 600.0, docker: str = "docker") -> None:
        self.registry = registry
        self.timeout = timeout
        self.docker = docker

    def push(self, image: str, username: str, password: str) -> PushOutcome:
        registry = self.registry or registry_of(image) or DOCKER_HUB_AUTH_KEY
        with tempfile.TemporaryDirectory(prefix="pipewright-docker-") as config_dir:
            write_docker_auth(config_dir, registry, username, password)
            completed = run_command([self.docker, "--config", config_dir, "push", image], timeout=self.timeout)
        match = DIGEST_PATTERN.search(completed.stdout)
        digest = match.group(1) if match else None
        if digest is None:
            logger.warning("push_digest_missing", image=image)
        return PushOutcome(reference=image, digest=digest)


class CommandScanner(Scanner):
    """
    Run a scanner CLI that prints a JSON report to stdout.

    The default command is trivy's JSON image scan.
    """

    def __init__(
        self,
        command: str | Sequence[str] = ("trivy", "image", "--format", "json", "--quiet"),
        timeout: float = 900.0,
    ) -> None:
        self.command = _as_command(command)
        self.timeout = timeout

    def scan(self, image: str) -> dict[str, Any]:
        completed = run_command([*self.command, image], timeout=self.timeout)
        try:
            report = json.loads(completed.stdout)
        except ValueError as e:
            raise ExecutionError(f"Scanner produced invalid JSON for {image}", cause=e) from e
        if not isinstance(report, dict):
            return {"Results": report}
        return report


def count_vulnerabilities(report: Mapping[str, Any]) -> dict[str, int]:
    """Vulnerability counts per severity in a trivy-style report."""
    counts: dict[str, int] = {}
    for result in report.get("Results") or []:
        for vulnerability in result.get("Vulnerabilities") or []:
            severity = str(vulnerability.get("Severity", "UNKNOWN")).upper()
            counts[severity] = counts.get(severity, 0) + 1
    return counts
