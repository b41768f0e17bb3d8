"""
Artifact model.

Artifacts are the only channel between stages: a stage commits its declared
outputs to the artifact store, and dependents read them back by key.
Artifacts are immutable once created.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ArtifactKind(Enum):
    """What an artifact payload represents."""

    BINARY = "binary"
    IMAGE_REFERENCE = "image-reference"
    REPORT = "report"
    TEXT = "text"

    @classmethod
    def parse(cls, value: str | ArtifactKind) -> ArtifactKind:
        if isinstance(value, ArtifactKind):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(
                f"Unknown artifact kind '{value}'. Supported: {sorted(k.value for k in cls)}"
            ) from None


@dataclass(frozen=True, order=True)
class ArtifactKey:
    """Artifacts are keyed by (producing stage id, artifact name)."""

    stage_id: str
    name: str

    @classmethod
    def parse(cls, value: str | ArtifactKey) -> ArtifactKey:
        """Parse "stage/name" into a key."""
        if isinstance(value, ArtifactKey):
            return value
        stage_id, sep, name = value.partition("/")
        if not sep or not stage_id or not name:
            raise ValueError(f"Artifact key must look like 'stage/name', got '{value}'")
        return cls(stage_id=stage_id, name=name)

    def __str__(self) -> str:
        return f"{self.stage_id}/{self.name}"


def encode_payload(value: Any) -> bytes:
    """
    Normalize an action output into artifact bytes.

    bytes are kept verbatim, str is UTF-8 encoded, anything else is
    serialized as canonical JSON.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    return json.dumps(value, sort_keys=True, separators=(",", ":")).encode("utf-8")


@dataclass(frozen=True)
class Artifact:
    """
    A typed, immutable output produced by a stage.

    Attributes:
        key: (stage id, artifact name)
        kind: binary, image-reference, report or text
        payload: Raw bytes as committed
        metadata: Small descriptive values (content type, digest, ...)
    """

    key: ArtifactKey
    kind: ArtifactKind
    payload: bytes
    metadata: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    @classmethod
    def create(
        cls,
        stage_id: str,
        name: str,
        kind: ArtifactKind | str,
        value: Any,
        metadata: dict[str, str] | None = None,
    ) -> Artifact:
        return cls(
            key=ArtifactKey(stage_id, name),
            kind=ArtifactKind.parse(kind),
            payload=encode_payload(value),
            metadata=tuple(sorted((metadata or {}).items())),
        )

    @property
    def producer(self) -> str:
        """Id of the stage that produced this artifact."""
        return self.key.stage_id

    @property
    def size(self) -> int:
        return len(self.payload)

    def text(self) -> str:
        return self.payload.decode("utf-8")

    def json(self) -> Any:
        return json.loads(self.payload)

    def meta(self) -> dict[str, str]:
        return dict(self.metadata)
