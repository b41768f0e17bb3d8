"""
Stage context handed to actions.

The context is the action's whole view of the run: resolved input artifacts,
the secrets of the current attempt, a cancellation token and an output
buffer. Actions never see the artifact store or the resolver directly.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Mapping
from typing import Any

from pipewright.errors import ArtifactAccessError, UnknownSecretError
from pipewright.models.artifact import Artifact, ArtifactKey


class CancelToken:
    """
    Cooperative cancellation signal.

    A child token is canceled when it or any ancestor is canceled, so one
    pipeline-level cancel reaches every running stage.
    """

    def __init__(self, parent: CancelToken | None = None) -> None:
        self._event = threading.Event()
        self._parent = parent
        self.reason: str | None = None

    def cancel(self, reason: str = "canceled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent.is_cancelled if self._parent else False

    def child(self) -> CancelToken:
        return CancelToken(parent=self)

    def wait(self, timeout: float | None = None, poll_interval: float = 0.05) -> bool:
        """Block until canceled or timeout elapses; return True if canceled."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            if self.is_cancelled:
                return True
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            step = poll_interval if remaining is None else min(poll_interval, remaining)
            self._event.wait(step)


class OutputBuffer:
    """Thread-safe text accumulator for captured output."""

    def __init__(self) -> None:
        self._parts: list[str] = []
        self._lock = threading.Lock()

    def write(self, text: str) -> None:
        with self._lock:
            self._parts.append(text)

    def getvalue(self) -> str:
        with self._lock:
            return "".join(self._parts)


class StageContext:
    """
    Everything an action may use while it runs.

    Attributes:
        run_id: Id of the PipelineRun
        stage_id: Id of the running stage
        attempt: 1-based attempt number
        token: Cancellation token for this attempt
        stdout: Buffer for captured standard output
        stderr: Buffer for captured standard error
        parameters: Free-form run parameters (trigger payload, workdir, ...)
    """

    def __init__(
        self,
        run_id: str,
        stage_id: str,
        inputs: Mapping[ArtifactKey, Artifact] | None = None,
        secrets: Any = None,
        token: CancelToken | None = None,
        attempt: int = 1,
        parameters: Mapping[str, Any] | None = None,
        logger: Any = None,
    ) -> None:
        self.run_id = run_id
        self.stage_id = stage_id
        self.attempt = attempt
        self.token = token or CancelToken()
        self.stdout = OutputBuffer()
        self.stderr = OutputBuffer()
        self.parameters: dict[str, Any] = dict(parameters or {})
        self.logger = logger
        self._inputs: dict[ArtifactKey, Artifact] = dict(inputs or {})
        self._secrets = secrets

    # ========== Inputs ==========

    @property
    def inputs(self) -> dict[ArtifactKey, Artifact]:
        return dict(self._inputs)

    def input(self, key: ArtifactKey | str) -> Artifact:
        """Get a declared input artifact ("stage/name" or ArtifactKey)."""
        key = ArtifactKey.parse(key)
        try:
            return self._inputs[key]
        except KeyError:
            raise ArtifactAccessError(
                f"Stage '{self.stage_id}' did not declare input '{key}'", key=key
            ) from None

    def input_of_kind(self, kind: Any) -> Artifact | None:
        """First declared input of the given kind, in declaration order."""
        for artifact in self._inputs.values():
            if artifact.kind == kind:
                return artifact
        return None

    # ========== Secrets ==========

    def secret(self, name: str) -> str:
        """Value of a declared credential, valid only during this attempt."""
        if self._secrets is None:
            raise UnknownSecretError(name)
        return str(self._secrets.get(name))

    def secret_names(self) -> list[str]:
        return list(self._secrets.names) if self._secrets is not None else []

    # ========== Cancellation & output ==========

    @property
    def cancelled(self) -> bool:
        return self.token.is_cancelled

    def sleep(self, seconds: float) -> bool:
        """Sleep, waking early on cancellation. Returns True if canceled."""
        return self.token.wait(seconds)

    def log(self, line: str) -> None:
        self.stdout.write(line if line.endswith("\n") else line + "\n")
