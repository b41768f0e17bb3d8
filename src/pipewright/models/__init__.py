"""Pipewright data model."""

from pipewright.models.artifact import Artifact, ArtifactKey, ArtifactKind, encode_payload
from pipewright.models.credential import CredentialRef, Secret
from pipewright.models.result import ExecutionResult, PipelineRun, Trigger
from pipewright.models.retry import Backoff, RetryPolicy
from pipewright.models.stage import Stage
from pipewright.models.status import RunStatus, StageStatus

__all__ = [
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
    "encode_payload",
]
