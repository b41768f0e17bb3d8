"""Base exception hierarchy for Pipewright.

Two-tier exception hierarchy:

1. PipewrightBaseException - Base for all errors, not caught by default handlers
2. PipewrightError - Standard errors that are caught and attached to results
"""

from __future__ import annotations


class PipewrightBaseException(Exception):  # noqa: N818 - intentional base exception name
    """Base exception for all Pipewright errors.

    Use this directly only for invariant violations that should crash the
    process instead of being recorded on a stage result.

    Attributes:
        code: Numeric error code for programmatic handling
        cause: Optional original exception that caused this error
    """

    code: int = 0

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.cause = cause

    @property
    def message(self) -> str:
        return super().__str__()

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.code:
            parts.append(f"(code={self.code})")
        if self.cause:
            parts.append(f"caused by: {self.cause}")
        return " ".join(parts)


class PipewrightError(PipewrightBaseException):
    """Standard Pipewright error.

    Caught by the executor and orchestrator; attached to the ExecutionResult
    of the affected stage.
    """

    code: int = 100
