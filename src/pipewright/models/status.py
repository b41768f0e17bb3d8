"""
Stage and run status enums.

A stage moves PENDING -> RUNNING -> {SUCCEEDED, FAILED, SKIPPED}.
Each stage status carries two booleans:
- complete: Whether the stage has finished (successfully or not)
- blocks: Whether required dependents must be skipped
"""

from enum import Enum


class StageStatus(Enum):
    """
    Stage status enum.

    Each value is a tuple of (name, complete, blocks).
    """

    # Planned but not dispatched yet
    PENDING = ("PENDING", False, False)

    # Action is executing
    RUNNING = ("RUNNING", False, False)

    # Action succeeded and its outputs were committed
    SUCCEEDED = ("SUCCEEDED", True, False)

    # Action failed, timed out, or its outputs could not be committed
    FAILED = ("FAILED", True, True)

    # Never ran: an upstream stage failed, was skipped, or the run was canceled
    SKIPPED = ("SKIPPED", True, True)

    def __init__(self, name: str, complete: bool, blocks: bool) -> None:
        self._name = name
        self._complete = complete
        self._blocks = blocks

    @property
    def is_complete(self) -> bool:
        """Returns True for SUCCEEDED, FAILED, SKIPPED."""
        return self._complete

    @property
    def blocks_dependents(self) -> bool:
        """
        Indicates dependents may be skipped because of this status.

        FAILED only blocks dependents when the failed stage is required;
        SKIPPED always does.
        """
        return self._blocks

    @property
    def is_successful(self) -> bool:
        return self == StageStatus.SUCCEEDED

    @property
    def is_failure(self) -> bool:
        return self == StageStatus.FAILED

    @property
    def is_skipped(self) -> bool:
        return self == StageStatus.SKIPPED

    def __str__(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"StageStatus.{self.name}"


class RunStatus(Enum):
    """Overall status of a PipelineRun."""

    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"

    @property
    def is_complete(self) -> bool:
        return self != RunStatus.RUNNING

    def __str__(self) -> str:
        return self.value


# Statuses that let a dependent run unconditionally
CONTINUABLE_STATUSES: frozenset[StageStatus] = frozenset({StageStatus.SUCCEEDED})

COMPLETED_STATUSES: frozenset[StageStatus] = frozenset(
    {
        StageStatus.SUCCEEDED,
        StageStatus.FAILED,
        StageStatus.SKIPPED,
    }
)
