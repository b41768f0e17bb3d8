"""Error utility functions."""

from __future__ import annotations

import errno
import socket

from pipewright.errors.artifact import ArtifactError
from pipewright.errors.configuration import ConfigurationError
from pipewright.errors.execution import ExecutionError, SecretLeakError
from pipewright.errors.transient import TransientError

_TRANSIENT_STDLIB_TYPES = (
    ConnectionError,
    socket.timeout,
    socket.gaierror,
)

_TRANSIENT_ERRNO_VALUES = frozenset(
    {
        errno.ECONNREFUSED,
        errno.ECONNRESET,
        errno.ECONNABORTED,
        errno.ETIMEDOUT,
        errno.EHOSTUNREACH,
        errno.ENETUNREACH,
    }
)


def is_transient(error: BaseException) -> bool:
    """Check if an error is transient and should be retried.

    Checks the error itself and its cause chain (__cause__), so errors
    wrapped by a library (e.g. a BulkheadError around a TransientError)
    are still recognised.

    Args:
        error: The exception to check

    Returns:
        True if the error is transient
    """
    if isinstance(error, TransientError):
        return True

    if isinstance(error, (ConfigurationError, ArtifactError)):
        return False

    if isinstance(error, _TRANSIENT_STDLIB_TYPES):
        return True

    if isinstance(error, OSError) and error.errno in _TRANSIENT_ERRNO_VALUES:
        return True

    cause = error.__cause__
    if cause is not None and cause is not error:
        return is_transient(cause)

    return False


def is_retryable(error: BaseException) -> bool:
    """Check if a failed stage attempt may be retried under a RetryPolicy.

    Execution failures (including timeouts) and transient errors are
    retryable. Configuration errors, artifact errors and secret leaks are not:
    another attempt would fail the same way.
    """
    if isinstance(error, SecretLeakError):
        return False
    if isinstance(error, (ConfigurationError, ArtifactError)):
        return False
    return isinstance(error, ExecutionError) or is_transient(error)


def truncate_error(message: str, max_bytes: int = 16_384) -> str:
    """Truncate error message to max_bytes, appending '[TRUNCATED]' marker.

    Keeps oversized tool output (compiler logs, scanner dumps) from bloating
    stage results and published reports.

    Args:
        message: The error message to truncate
        max_bytes: Maximum size in bytes (default: 16KB)

    Returns:
        Original message if within limit, otherwise truncated with marker.
    """
    if not message:
        return message

    encoded = message.encode("utf-8", errors="replace")

    if len(encoded) <= max_bytes:
        return message

    marker = " [TRUNCATED]"
    target_bytes = max_bytes - len(marker.encode("utf-8"))

    if target_bytes <= 0:
        return marker.strip()

    truncated = encoded[:target_bytes].decode("utf-8", errors="ignore")
    return truncated + marker
