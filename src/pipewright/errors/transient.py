"""Transient (retryable) errors."""

from __future__ import annotations

from pipewright.errors.base import PipewrightError


class TransientError(PipewrightError):
    """Retryable errors.

    These errors indicate temporary conditions that may resolve on retry:
    - Worker pool at capacity
    - Circuit breaker open for an external collaborator
    - Registry or scanner temporarily unavailable

    A stage with a RetryPolicy retries these with backoff.

    Example:
        raise TransientError("Registry unavailable", retry_after=30)
    """

    code: int = 101

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        cause: BaseException | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, code=code, cause=cause)
        self.retry_after = retry_after
