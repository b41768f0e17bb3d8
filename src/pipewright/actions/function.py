"""Wrap a plain Python callable as a stage action."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from pipewright.actions.context import StageContext
from pipewright.actions.interface import StageAction
from pipewright.actions.result import ActionResult


class FunctionAction(StageAction):
    """
    Run a callable taking the StageContext.

    The return value is normalised:
    - ActionResult: used as-is
    - Mapping: success with the mapping as outputs
    - None or True: success without outputs
    - False: failure

    Example:
        def compile_sources(context: StageContext) -> dict[str, bytes]:
            return {"jar": build_jar()}

        Stage.create("compile", FunctionAction(compile_sources), outputs={"jar": "binary"})
    """

    def __init__(self, func: Callable[[StageContext], Any], name: str | None = None) -> None:
        self.func = func
        self._name = name or getattr(func, "__name__", type(func).__name__)

    @property
    def name(self) -> str:
        return self._name

    def execute(self, context: StageContext) -> ActionResult:
        value = self.func(context)
        if isinstance(value, ActionResult):
            return value
        if isinstance(value, Mapping):
            return ActionResult.success(outputs=dict(value))
        if value is None or value is True:
            return ActionResult.success()
        if value is False:
            return ActionResult.failure(f"{self._name} reported failure")
        raise TypeError(f"{self._name} returned unsupported value of type {type(value).__name__}")

    def __repr__(self) -> str:
        return f"FunctionAction({self._name})"
