"""
ActionResult - result of running a stage action.

Encapsulates whether the action succeeded, its exit code, captured output,
and the outputs the executor should commit as artifacts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ActionResult:
    """
    Result of a stage action.

    Attributes:
        succeeded: Whether the action completed successfully
        exit_code: Process-style exit code (0 on success)
        outputs: Artifact name -> value (bytes, str or JSON-serializable data)
        error: Failure message
        stdout: Captured standard output
        stderr: Captured standard error
    """

    succeeded: bool
    exit_code: int = 0
    outputs: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    stdout: str = ""
    stderr: str = ""

    # ========== Factory Methods ==========

    @classmethod
    def success(
        cls,
        outputs: dict[str, Any] | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> ActionResult:
        """
        Create a successful result.

        Args:
            outputs: Values committed as the stage's declared artifacts
            stdout: Captured standard output
            stderr: Captured standard error
        """
        return cls(
            succeeded=True,
            exit_code=0,
            outputs=outputs or {},
            stdout=stdout,
            stderr=stderr,
        )

    @classmethod
    def failure(
        cls,
        error: str,
        exit_code: int = 1,
        stdout: str = "",
        stderr: str = "",
        outputs: dict[str, Any] | None = None,
    ) -> ActionResult:
        """
        Create a failed result.

        Only outputs declared with kind report are committed for a failed
        stage, once it has no retries left; anything else is discarded.

        Args:
            error: Error message
            exit_code: Non-zero exit code
            outputs: Values kept for inspection, such as a scan report
        """
        return cls(
            succeeded=False,
            exit_code=exit_code if exit_code != 0 else 1,
            outputs=outputs or {},
            error=error,
            stdout=stdout,
            stderr=stderr,
        )
