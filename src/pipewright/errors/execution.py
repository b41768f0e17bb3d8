"""Stage execution errors."""

from __future__ import annotations

from typing import Any

from pipewright.errors.base import PipewrightError


class ExecutionError(PipewrightError):
    """Stage execution failed.

    Raised when a stage action fails:
    - The action raised an exception
    - The action reported a failure or a non-zero exit code
    - The stage exceeded its timeout

    Marks the stage FAILED. Required dependents are skipped, independent
    siblings keep running.
    """

    code: int = 200

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        cause: BaseException | None = None,
        stage_id: str | None = None,
        run_id: str | None = None,
        exit_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code=code, cause=cause)
        self.stage_id = stage_id
        self.run_id = run_id
        self.exit_code = exit_code
        self.details = details or {}


class StageTimeoutError(ExecutionError):
    """Stage exceeded its configured timeout.

    Treated like any other execution failure. Retried only when the stage
    declares a RetryPolicy.
    """

    code: int = 201


class SecretLeakError(ExecutionError):
    """A stage tried to commit an output containing a resolved secret value."""

    code: int = 202
