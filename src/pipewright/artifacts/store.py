"""
In-memory artifact store.

Write-once registry of artifacts keyed by (stage id, artifact name). Shared
by all stages of a run; writes are serialized by a lock.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator

from pipewright.errors import DuplicateArtifactError, MissingArtifactError
from pipewright.logging import get_logger
from pipewright.models.artifact import Artifact, ArtifactKey, ArtifactKind

logger = get_logger(__name__)


class ArtifactStore:
    """
    Thread-safe, write-once artifact registry.

    A second put for the same key fails instead of silently overwriting an
    artifact another stage may already have read.
    """

    def __init__(self) -> None:
        self._artifacts: dict[ArtifactKey, Artifact] = {}
        self._lock = threading.Lock()

    def put(self, key: ArtifactKey | str, artifact: Artifact) -> None:
        """Commit one artifact."""
        key = ArtifactKey.parse(key)
        if artifact.key != key:
            raise ValueError(f"Artifact key mismatch: {artifact.key} stored under {key}")
        with self._lock:
            if key in self._artifacts:
                raise DuplicateArtifactError(f"Artifact '{key}' already committed", key=key)
            self._artifacts[key] = artifact
        logger.debug("artifact_committed", key=str(key), kind=artifact.kind.value, size=artifact.size)

    def put_all(self, artifacts: Iterable[Artifact]) -> list[ArtifactKey]:
        """
        Commit several artifacts atomically.

        Either every artifact is committed or none is: all keys are checked
        against the store and each other before anything is written.
        """
        batch = list(artifacts)
        keys = [artifact.key for artifact in batch]
        with self._lock:
            seen: set[ArtifactKey] = set()
            for key in keys:
                if key in self._artifacts or key in seen:
                    raise DuplicateArtifactError(f"Artifact '{key}' already committed", key=key)
                seen.add(key)
            for artifact in batch:
                self._artifacts[artifact.key] = artifact
        if batch:
            logger.debug("artifacts_committed", keys=[str(k) for k in keys])
        return keys

    def get(self, key: ArtifactKey | str) -> Artifact:
        key = ArtifactKey.parse(key)
        with self._lock:
            try:
                return self._artifacts[key]
            except KeyError:
                raise MissingArtifactError(f"Artifact '{key}' was not produced", key=key) from None

    def keys(self, stage_id: str | None = None) -> list[ArtifactKey]:
        with self._lock:
            return sorted(k for k in self._artifacts if stage_id is None or k.stage_id == stage_id)

    def by_kind(self, kind: ArtifactKind | str) -> list[Artifact]:
        kind = ArtifactKind.parse(kind)
        with self._lock:
            return [a for k, a in sorted(self._artifacts.items()) if a.kind == kind]

    def __contains__(self, key: object) -> bool:
        if isinstance(key, str):
            key = ArtifactKey.parse(key)
        with self._lock:
            return key in self._artifacts

    def __len__(self) -> int:
        with self._lock:
            return len(self._artifacts)

    def __iter__(self) -> Iterator[Artifact]:
        with self._lock:
            return iter(list(self._artifacts.values()))
