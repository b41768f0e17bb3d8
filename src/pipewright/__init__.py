"""
Pipewright - pipeline orchestrator core.

This package runs delivery pipelines (compile, test, package, push, scan)
as a dependency graph of stages, with:
- Batched, concurrent execution of independent stages
- Skip propagation from failed required stages to their dependents
- A write-once artifact store shared between stages
- Scoped credentials that are masked in logs and refused in outputs
- Per-stage timeouts, retries and cooperative cancellation
- Durable run records (JSON directory or SQLite)
"""

__version__ = "0.1.0"

from pipewright.actions import ActionResult, CancelToken, FunctionAction, ShellAction, StageAction, StageContext
from pipewright.artifacts import ArtifactStore
from pipewright.config import PipelineConfig, get_config, reset_config
from pipewright.credentials import CredentialResolver, SecretScope
from pipewright.dag import ExecutionPlan, plan
from pipewright.errors import (
    ArtifactAccessError,
    ArtifactError,
    ConfigurationError,
    CycleError,
    DuplicateArtifactError,
    ExecutionError,
    MalformedStageError,
    MissingArtifactError,
    PipewrightError,
    ReportError,
    ReportNotFoundError,
    SecretLeakError,
    StageTimeoutError,
    TransientError,
    UnknownSecretError,
)
from pipewright.executor import DispatchContext, StageExecutor
from pipewright.models import (
    Artifact,
    ArtifactKey,
    ArtifactKind,
    Backoff,
    CredentialRef,
    ExecutionResult,
    PipelineRun,
    RetryPolicy,
    RunStatus,
    Secret,
    Stage,
    StageStatus,
    Trigger,
)
from pipewright.orchestrator import Orchestrator
from pipewright.reporting import (
    DirectoryReportSink,
    InMemoryReportSink,
    ReportHandle,
    ReportSink,
    SqliteReportSink,
)

__all__ = [
    "__version__",
    # Models
    "Artifact",
    "ArtifactKey",
    "ArtifactKind",
    "Backoff",
    "CredentialRef",
    "ExecutionResult",
    "PipelineRun",
    "RetryPolicy",
    "RunStatus",
    "Secret",
    "Stage",
    "StageStatus",
    "Trigger",
    # Actions
    "ActionResult",
    "CancelToken",
    "FunctionAction",
    "ShellAction",
    "StageAction",
    "StageContext",
    # Components
    "ArtifactStore",
    "CredentialResolver",
    "DispatchContext",
    "ExecutionPlan",
    "Orchestrator",
    "SecretScope",
    "StageExecutor",
    "plan",
    # Reporting
    "DirectoryReportSink",
    "InMemoryReportSink",
    "ReportHandle",
    "ReportSink",
    "SqliteReportSink",
    # Configuration
    "PipelineConfig",
    "get_config",
    "reset_config",
    # Errors
    "ArtifactAccessError",
    "ArtifactError",
    "ConfigurationError",
    "CycleError",
    "DuplicateArtifactError",
    "ExecutionError",
    "MalformedStageError",
    "MissingArtifactError",
    "PipewrightError",
    "ReportError",
    "ReportNotFoundError",
    "SecretLeakError",
    "StageTimeoutError",
    "TransientError",
    "UnknownSecretError",
]
