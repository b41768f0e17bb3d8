"""
Bulkhead for stage actions.

Runs every stage action through a BulkheadThreading instance from bulkman,
which bounds concurrent calls. The per-call timeout is enforced here and
counts only time spent running. Library exceptions are mapped to Pipewright's error types.
"""

from __future__ import annotations

import concurrent.futures
import threading
import time
from collections.abc import Callable
from typing import Any, TypeVar, cast

from bulkman.config import BulkheadConfig as BulkmanConfig
from bulkman.exceptions import BulkheadError, BulkheadFullError
from bulkman.threading import BulkheadThreading

from pipewright.errors import StageTimeoutError, TransientError
from pipewright.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_START_POLL_SECONDS = 0.05


def _original_error(error: BaseException) -> BaseException:
    """Bulkhead wraps action exceptions; surface the action's own error when kept."""
    if isinstance(error, BulkheadError) and error.__cause__ is not None:
        return error.__cause__
    return error


class StageBulkhead:
    """
    Bounded, timeout-enforcing executor for stage actions.

    Example:
        bulkhead = StageBulkhead(max_concurrent=4)
        result = bulkhead.call(action.execute, context, timeout=60.0, stage_id="compile")
    """

    def __init__(
        self,
        max_concurrent: int = 4,
        max_queue_size: int = 100,
        default_timeout: float = 3600.0,
        name: str = "pipewright_stages",
    ) -> None:
        self._bulkhead = BulkheadThreading(
            BulkmanConfig(
                name=name,
                max_concurrent_calls=max_concurrent,
                max_queue_size=max_queue_size,
                timeout_seconds=default_timeout,
                # Circuit breaking is per external collaborator, see integrations.circuits
                circuit_breaker_enabled=False,
            )
        )
        logger.debug("bulkhead_created", name=name, max_concurrent=max_concurrent)

    def call(
        self,
        func: Callable[..., T],
        *args: Any,
        timeout: float,
        stage_id: str | None = None,
        run_id: str | None = None,
    ) -> T:
        """
        Execute func(*args) with a timeout.

        The timeout is measured from the moment func starts on a worker
        thread; time spent waiting for a free slot is not counted.

        Raises:
            StageTimeoutError: The call exceeded timeout
            TransientError: The bulkhead is at capacity or no slot freed up
            Exception: Whatever func raised
        """
        started = threading.Event()
        started_at: list[float] = []

        def run(*call_args: Any) -> T:
            started_at.append(time.monotonic())
            started.set()
            return func(*call_args)

        try:
            future = self._bulkhead.execute(run, *args)
        except BulkheadFullError as e:
            logger.warning("bulkhead_full", stage_id=stage_id, error=str(e))
            raise TransientError(f"Stage worker pool is full: {e}", retry_after=5, cause=e) from e

        while not started.wait(_START_POLL_SECONDS) and not future.done():
            pass

        if not started_at:
            outcome = future.result()
            error = outcome.error
            logger.warning("bulkhead_slot_timeout", stage_id=stage_id, error=str(error))
            raise TransientError(
                f"No stage worker slot became available: {error}",
                retry_after=5,
                cause=error,
            )

        remaining = timeout - (time.monotonic() - started_at[0])
        try:
            outcome = future.result(timeout=max(remaining, 0.0))
        except concurrent.futures.TimeoutError as e:
            raise StageTimeoutError(
                f"Stage exceeded timeout of {timeout:g}s",
                stage_id=stage_id,
                run_id=run_id,
                cause=e,
            ) from e

        if outcome.success:
            return cast(T, outcome.result)

        error = outcome.error
        if error is None:
            raise RuntimeError(f"Stage '{stage_id}' failed without error details")
        raise _original_error(error)

    def stats(self) -> dict[str, Any]:
        return dict(self._bulkhead.get_stats())

    def shutdown(self, wait: bool = True, timeout: float | None = None) -> None:
        self._bulkhead.shutdown(wait=wait, timeout=timeout)
