"""
DAG planning for pipeline stages.

- plan(): validation, Kahn ordering into batches, subset selection
- check_readiness(): skip propagation for a stage about to run
"""

from pipewright.dag.graph import (
    ExecutionPlan,
    compute_batches,
    plan,
    select_stages,
    validate_stages,
)
from pipewright.dag.skipping import Readiness, check_readiness

__all__ = [
    "ExecutionPlan",
    "Readiness",
    "check_readiness",
    "compute_batches",
    "plan",
    "select_stages",
    "validate_stages",
]
