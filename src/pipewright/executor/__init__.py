"""Single-stage execution with timeouts, scoped secrets and atomic commits."""

from pipewright.executor.bulkhead import StageBulkhead
from pipewright.executor.executor import DispatchContext, StageExecutor

__all__ = ["DispatchContext", "StageBulkhead", "StageExecutor"]
