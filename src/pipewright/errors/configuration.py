"""Configuration errors.

Every error in this module is fatal to the whole run and is raised before
any stage executes.
"""

from __future__ import annotations

from collections.abc import Sequence

from pipewright.errors.base import PipewrightError


class ConfigurationError(PipewrightError):
    """Invalid pipeline configuration.

    Raised while planning a run: dependency cycles, malformed stages and
    unknown secret names all abort the run before execution starts.
    """

    code: int = 104


class CycleError(ConfigurationError):
    """The stage dependency graph contains a cycle.

    Attributes:
        stage_ids: Ids of the stages that could not be ordered
    """

    code: int = 105

    def __init__(self, message: str, stage_ids: Sequence[str] | None = None) -> None:
        super().__init__(message)
        self.stage_ids = tuple(stage_ids or ())


class MalformedStageError(ConfigurationError):
    """A stage definition is invalid (duplicate id, unknown dependency, ...)."""

    code: int = 106

    def __init__(self, message: str, *, stage_id: str | None = None) -> None:
        super().__init__(message)
        self.stage_id = stage_id


class UnknownSecretError(ConfigurationError):
    """A credential name could not be resolved.

    Only the secret name is carried, never a value.
    """

    code: int = 107

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown secret '{name}'")
        self.name = name
