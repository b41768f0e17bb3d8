"""
Interfaces to the external collaborators of a delivery pipeline.

The orchestrator core never talks to a build tool, a container engine, a
registry or a scanner directly: stage actions call one of these interfaces,
and the command-backed implementations in pipewright.integrations.commands
drive the real tools.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class BuildOutcome:
    """Result of a build: the produced artifact and the build log."""

    artifact_path: str
    log: str = ""


@dataclass(frozen=True)
class PushOutcome:
    """
    Result of pushing an image.

    Attributes:
        reference: The reference that was pushed (repository:tag)
        digest: Content digest reported by the registry, if any
    """

    reference: str
    digest: str | None = None

    @property
    def repository(self) -> str:
        """Reference without tag or digest."""
        name = self.reference.split("@", 1)[0]
        last_slash = name.rfind("/")
        colon = name.rfind(":")
        if colon > last_slash:
            return name[:colon]
        return name

    @property
    def pinned(self) -> str:
        """Digest-pinned reference when a digest is known, else the pushed reference."""
        if self.digest:
            return f"{self.repository}@{self.digest}"
        return self.reference


class BuildRunner(ABC):
    """Compiles and packages sources (Maven, Gradle, make, ...)."""

    @abstractmethod
    def build(self, workdir: str) -> BuildOutcome:
        """Build the project in workdir and return the produced artifact."""


class Containerizer(ABC):
    """Builds container images."""

    @abstractmethod
    def build_image(self, context_dir: str, tag: str) -> str:
        """Build an image from context_dir, tag it and return the reference."""


class RegistryClient(ABC):
    """Pushes images to a registry."""

    @abstractmethod
    def push(self, image: str, username: str, password: str) -> PushOutcome:
        """Authenticate and push image."""


class Scanner(ABC):
    """Scans images for vulnerabilities."""

    @abstractmethod
    def scan(self, image: str) -> dict[str, Any]:
        """Scan image and return the structured report."""
