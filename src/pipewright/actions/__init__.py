"""Stage actions: the run contract invoked by the executor."""

from pipewright.actions.context import CancelToken, StageContext
from pipewright.actions.function import FunctionAction
from pipewright.actions.interface import StageAction
from pipewright.actions.result import ActionResult
from pipewright.actions.shell import ShellAction

__all__ = [
    "ActionResult",
    "CancelToken",
    "FunctionAction",
    "ShellAction",
    "StageAction",
    "StageContext",
]
