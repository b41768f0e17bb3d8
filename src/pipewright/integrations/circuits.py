"""
Circuit breaker management for external collaborators.

Provides per-run, per-collaborator circuit breakers using
CircuitProtectorPolicy from resilient_circuit, so a registry outage in one
run stops hammering the registry without affecting other runs.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Callable
from datetime import timedelta
from typing import TypeVar

from resilient_circuit import CircuitProtectorPolicy
from resilient_circuit.exceptions import ProtectedCallError
from resilient_circuit.storage import CircuitBreakerStorage, InMemoryStorage

from pipewright.config import PipelineConfig, get_config
from pipewright.errors import ArtifactError, ConfigurationError, TransientError
from pipewright.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _should_trip_circuit(error: Exception | None) -> bool:
    """Determine if an error should count towards the failure threshold.

    Caller mistakes (bad configuration, missing artifacts) say nothing about
    the health of the collaborator and do not trip the circuit.
    """
    if error is None:
        return True
    return not isinstance(error, (ConfigurationError, ArtifactError))


class CollaboratorCircuitFactory:
    """
    Creates per-run, per-collaborator circuit breakers.

    Circuit state lives in process memory (InMemoryStorage). At most
    cache_size circuits are kept; the least recently used is evicted first.

    Example:
        factory = CollaboratorCircuitFactory()
        result = factory.call("01ABC...", "registry", client.push, image, user, password)
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        storage: CircuitBreakerStorage | None = None,
        cache_size: int = 256,
    ) -> None:
        self.config = config or get_config()
        self.cache_size = cache_size
        self._storage = storage or InMemoryStorage()
        self._circuits: OrderedDict[tuple[str, str], CircuitProtectorPolicy] = OrderedDict()
        self._lock = threading.Lock()

    def get_circuit(self, run_id: str, collaborator: str) -> CircuitProtectorPolicy:
        """
        Get or create a circuit breaker for a run + collaborator.

        Args:
            run_id: The pipeline run ID (used as namespace)
            collaborator: "registry", "scanner", ... (used as resource_key)
        """
        key = (run_id, collaborator)

        with self._lock:
            if key in self._circuits:
                self._circuits.move_to_end(key)
                return self._circuits[key]

            if len(self._circuits) >= self.cache_size:
                self._circuits.popitem(last=False)

            circuit = CircuitProtectorPolicy(
                resource_key=collaborator,
                storage=self._storage,
                namespace=run_id,
                failure_limit=self.config.circuit_failure_threshold,
                cooldown=timedelta(seconds=self.config.circuit_cooldown_seconds),
                should_handle=_should_trip_circuit,
            )
            self._circuits[key] = circuit
        logger.debug("circuit_created", run_id=run_id, collaborator=collaborator)
        return circuit

    def call(self, run_id: str, collaborator: str, func: Callable[..., T], *args: object) -> T:
        """
        Call func through the collaborator's circuit.

        Raises:
            TransientError: The circuit is open
        """
        circuit = self.get_circuit(run_id, collaborator)

        @circuit
        def protected() -> T:
            return func(*args)

        try:
            return protected()
        except ProtectedCallError as e:
            logger.warning("circuit_open", run_id=run_id, collaborator=collaborator)
            raise TransientError(
                f"Circuit breaker open for {collaborator}",
                retry_after=self.config.circuit_cooldown_seconds,
                cause=e,
            ) from e

    def __len__(self) -> int:
        with self._lock:
            return len(self._circuits)
