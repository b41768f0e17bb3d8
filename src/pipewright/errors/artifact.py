"""Artifact store errors.

These are fatal to the affected stage only.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pipewright.errors.base import PipewrightError

if TYPE_CHECKING:
    from pipewright.models.artifact import ArtifactKey


class ArtifactError(PipewrightError):
    """Artifact store error."""

    code: int = 600

    def __init__(self, message: str, *, key: ArtifactKey | None = None) -> None:
        super().__init__(message)
        self.key = key


class MissingArtifactError(ArtifactError):
    """The requested artifact was never committed."""

    code: int = 601


class DuplicateArtifactError(ArtifactError):
    """An artifact with the same key was already committed."""

    code: int = 602


class ArtifactAccessError(ArtifactError):
    """A stage requested an artifact produced by a stage it does not depend on."""

    code: int = 603
