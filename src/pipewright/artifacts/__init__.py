"""Artifact store."""

from pipewright.artifacts.store import ArtifactStore

__all__ = ["ArtifactStore"]
