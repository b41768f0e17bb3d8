"""Report sink errors."""

from __future__ import annotations

from pipewright.errors.base import PipewrightError


class ReportError(PipewrightError):
    """Report sink operation failed."""

    code: int = 700


class ReportNotFoundError(ReportError):
    """No report was published for the requested run id."""

    code: int = 701

    def __init__(self, run_id: str) -> None:
        super().__init__(f"No report published for run '{run_id}'")
        self.run_id = run_id
