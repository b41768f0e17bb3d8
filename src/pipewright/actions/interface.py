"""
Stage action interface.

Actions are the opaque run contract of a stage. The executor hands each
action a StageContext and classifies the returned ActionResult.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pipewright.actions.context import StageContext
    from pipewright.actions.result import ActionResult


class StageAction(ABC):
    """
    Base interface for all stage actions.

    Example:
        class PackageAction(StageAction):
            def execute(self, context: StageContext) -> ActionResult:
                jar = context.input("compile/jar")
                image = build_image(jar.payload)
                return ActionResult.success(outputs={"image": image})
    """

    @abstractmethod
    def execute(self, context: StageContext) -> ActionResult:
        """
        Run the action.

        Returns:
            ActionResult indicating success and any outputs

        Raises:
            Exception: Any exception is caught by the executor and fails the stage
        """

    def on_timeout(self, context: StageContext) -> None:
        """
        Called after the stage timed out and its cancel token was set.

        Override to release external resources (kill a build container, ...).
        """
        return None

    def on_cancel(self, context: StageContext) -> None:
        """Called when the pipeline was canceled while this action was running."""
        return None

    @property
    def name(self) -> str:
        return type(self).__name__
