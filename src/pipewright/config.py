"""
Runtime configuration for Pipewright.

Loaded from environment variables with defaults; a lazily created singleton
is shared by the CLI and the orchestrator.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from fractions import Fraction


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class PipelineConfig:
    """Orchestrator settings.

    Environment Variables:
        PIPEWRIGHT_PARALLELISM: Max stages running at once (default: 4)
        PIPEWRIGHT_DEFAULT_STAGE_TIMEOUT_S: Timeout for stages without one (default: 3600)
        PIPEWRIGHT_MAX_QUEUE_SIZE: Max stage calls waiting for a worker (default: 100)
        PIPEWRIGHT_REPORT_DIR: Directory for published run records (default: unset)
        PIPEWRIGHT_REPORT_DB: SQLite file for published run records (default: unset)
        PIPEWRIGHT_SECRET_PREFIX: Env prefix read into the credential resolver
            (default: PIPEWRIGHT_SECRET_)
        PIPEWRIGHT_LOG_JSON: Emit JSON logs (default: false)
        PIPEWRIGHT_CIRCUIT_FAILURE_THRESHOLD: Failure rate tripping a collaborator
            circuit (default: 0.5)
        PIPEWRIGHT_CIRCUIT_COOLDOWN_SECONDS: Circuit cooldown (default: 30)

    Attributes:
        parallelism: Worker pool size for stages within one batch
        default_stage_timeout_seconds: Applied when a stage declares no timeout
        max_queue_size: Bulkhead queue size for pending stage calls
        report_dir: Where DirectoryReportSink writes records
        report_db: Where SqliteReportSink writes records
        secret_prefix: Environment prefix for secrets
        log_json: JSON log output
        circuit_failure_threshold: Failure fraction to trip a circuit
        circuit_cooldown_seconds: Seconds before a tripped circuit is retried
    """

    parallelism: int = 4
    default_stage_timeout_seconds: float = 3600.0
    max_queue_size: int = 100
    report_dir: str | None = None
    report_db: str | None = None
    secret_prefix: str = "PIPEWRIGHT_SECRET_"
    log_json: bool = False
    circuit_failure_threshold: Fraction = Fraction(5, 10)
    circuit_cooldown_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.parallelism < 1:
            raise ValueError("parallelism must be at least 1")
        if self.default_stage_timeout_seconds <= 0:
            raise ValueError("default_stage_timeout_seconds must be positive")

    @classmethod
    def from_env(cls) -> PipelineConfig:
        """Load configuration from environment variables with defaults."""
        threshold_float = float(os.getenv("PIPEWRIGHT_CIRCUIT_FAILURE_THRESHOLD", "0.5"))
        return cls(
            parallelism=int(os.getenv("PIPEWRIGHT_PARALLELISM", "4")),
            default_stage_timeout_seconds=float(os.getenv("PIPEWRIGHT_DEFAULT_STAGE_TIMEOUT_S", "3600")),
            max_queue_size=int(os.getenv("PIPEWRIGHT_MAX_QUEUE_SIZE", "100")),
            report_dir=os.getenv("PIPEWRIGHT_REPORT_DIR") or None,
            report_db=os.getenv("PIPEWRIGHT_REPORT_DB") or None,
            secret_prefix=os.getenv("PIPEWRIGHT_SECRET_PREFIX", "PIPEWRIGHT_SECRET_"),
            log_json=_env_bool("PIPEWRIGHT_LOG_JSON", False),
            # e.g. 0.5 -> 5/10
            circuit_failure_threshold=Fraction(int(threshold_float * 10), 10),
            circuit_cooldown_seconds=float(os.getenv("PIPEWRIGHT_CIRCUIT_COOLDOWN_SECONDS", "30")),
        )


# Singleton for default config (loaded lazily)
_default_config: PipelineConfig | None = None


def get_config() -> PipelineConfig:
    """Get the default PipelineConfig, loading from environment on first call."""
    global _default_config
    if _default_config is None:
        _default_config = PipelineConfig.from_env()
    return _default_config


def reset_config() -> None:
    """Reset the config singleton. Useful for testing."""
    global _default_config
    _default_config = None
