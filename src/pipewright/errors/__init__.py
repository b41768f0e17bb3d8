"""Pipewright error hierarchy.

Taxonomy:
- ConfigurationError: cycle, malformed stage, unknown secret. Aborts the run
  before any stage executes.
- ExecutionError: stage action failure, non-zero exit, timeout. Fails the
  stage and skips its required dependents.
- ArtifactError: missing, duplicate or out-of-scope artifact. Fatal to the
  affected stage only.
- TransientError: retryable condition (pool full, circuit open).
"""

from pipewright.errors.artifact import (
    ArtifactAccessError,
    ArtifactError,
    DuplicateArtifactError,
    MissingArtifactError,
)
from pipewright.errors.base import PipewrightBaseException, PipewrightError
from pipewright.errors.configuration import (
    ConfigurationError,
    CycleError,
    MalformedStageError,
    UnknownSecretError,
)
from pipewright.errors.execution import ExecutionError, SecretLeakError, StageTimeoutError
from pipewright.errors.reporting import ReportError, ReportNotFoundError
from pipewright.errors.transient import TransientError
from pipewright.errors.utils import is_retryable, is_transient, truncate_error

__all__ = [
    "ArtifactAccessError",
    "ArtifactError",
    "ConfigurationError",
    "CycleError",
    "DuplicateArtifactError",
    "ExecutionError",
    "MalformedStageError",
    "MissingArtifactError",
    "PipewrightBaseException",
    "PipewrightError",
    "ReportError",
    "ReportNotFoundError",
    "SecretLeakError",
    "StageTimeoutError",
    "TransientError",
    "UnknownSecretError",
    "is_retryable",
    "is_transient",
    "truncate_error",
]
