"""External collaborators: build tools, container engine, registry and scanner."""

from pipewright.integrations.actions import BuildAction, ContainerizeAction, PushAction, ScanAction
from pipewright.integrations.circuits import CollaboratorCircuitFactory
from pipewright.integrations.commands import (
    CommandBuildRunner,
    CommandScanner,
    DockerContainerizer,
    DockerRegistryClient,
    count_vulnerabilities,
    registry_of,
    run_command,
)
from pipewright.integrations.interfaces import (
    BuildOutcome,
    BuildRunner,
    Containerizer,
    PushOutcome,
    RegistryClient,
    Scanner,
)

__all__ = [
    "BuildAction",
    "BuildOutcome",
    "BuildRunner",
    "CollaboratorCircuitFactory",
    "CommandBuildRunner",
    "CommandScanner",
    "ContainerizeAction",
    "Containerizer",
    "DockerContainerizer",
    "DockerRegistryClient",
    "PushAction",
    "PushOutcome",
    "RegistryClient",
    "ScanAction",
    "Scanner",
    "count_vulnerabilities",
    "registry_of",
    "run_command",
]
