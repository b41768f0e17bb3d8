"""Shared pytest fixtures and test actions."""

import threading
from collections.abc import Generator
from typing import Any

import pytest

from pipewright.actions import ActionResult, StageAction, StageContext
from pipewright.config import PipelineConfig, reset_config
from pipewright.credentials import CredentialResolver
from pipewright.models.stage import Stage
from pipewright.orchestrator import Orchestrator
from pipewright.redaction import get_redactor
from pipewright.reporting import InMemoryReportSink

REGISTRY_USER = "deployer"
REGISTRY_PASSWORD = "hunter2-registry-token"


@pytest.fixture(autouse=True)
def reset_globals() -> Generator[None, None, None]:
    """Reset the config singleton and the secret redactor between tests."""
    reset_config()
    get_redactor().clear()
    yield
    reset_config()
    get_redactor().clear()


# =============================================================================
# Shared Test Action Implementations
# =============================================================================


class SucceedAction(StageAction):
    """An action that always succeeds with fixed outputs."""

    def __init__(self, outputs: dict[str, Any] | None = None) -> None:
        self.outputs = outputs or {}

    def execute(self, context: StageContext) -> ActionResult:
        return ActionResult.success(outputs=dict(self.outputs))


class FailAction(StageAction):
    """An action that always reports failure."""

    def __init__(self, message: str = "Action failed intentionally", exit_code: int = 1) -> None:
        self.message = message
        self.exit_code = exit_code

    def execute(self, context: StageContext) -> ActionResult:
        return ActionResult.failure(self.message, exit_code=self.exit_code)


class RaiseAction(StageAction):
    """An action that raises."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or RuntimeError("boom")

    def execute(self, context: StageContext) -> ActionResult:
        raise self.error


class SleepAction(StageAction):
    """Sleeps cooperatively; fails if canceled before the sleep ends."""

    def __init__(self, seconds: float) -> None:
        self.seconds = seconds
        self.timed_out = threading.Event()

    def execute(self, context: StageContext) -> ActionResult:
        if context.sleep(self.seconds):
            return ActionResult.failure(f"interrupted: {context.token.reason}")
        return ActionResult.success()

    def on_timeout(self, context: StageContext) -> None:
        self.timed_out.set()


class FlakyAction(StageAction):
    """Fails the first `failures` attempts, then succeeds."""

    def __init__(self, failures: int, outputs: dict[str, Any] | None = None) -> None:
        self.failures = failures
        self.outputs = outputs or {}
        self.attempts: list[int] = []

    def execute(self, context: StageContext) -> ActionResult:
        self.attempts.append(context.attempt)
        if len(self.attempts) <= self.failures:
            return ActionResult.failure(f"attempt {context.attempt} failed")
        return ActionResult.success(outputs=dict(self.outputs))


class RecordingAction(StageAction):
    """Appends its stage id to a shared list, then succeeds."""

    def __init__(self, log: list[str], outputs: dict[str, Any] | None = None) -> None:
        self.log = log
        self.outputs = outputs or {}
        self._lock = threading.Lock()

    def execute(self, context: StageContext) -> ActionResult:
        with self._lock:
            self.log.append(context.stage_id)
        return ActionResult.success(outputs=dict(self.outputs))


def stage(stage_id: str, action: StageAction | None = None, **kwargs: Any) -> Stage:
    """Shorthand for Stage.create with a succeeding default action."""
    return Stage.create(stage_id, action or SucceedAction(), **kwargs)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def config() -> PipelineConfig:
    return PipelineConfig(parallelism=4, default_stage_timeout_seconds=10.0)


@pytest.fixture
def resolver() -> CredentialResolver:
    return CredentialResolver({"DOCKER_USERNAME": REGISTRY_USER, "DOCKER_PASSWORD": REGISTRY_PASSWORD})


@pytest.fixture
def report_sink() -> InMemoryReportSink:
    return InMemoryReportSink()


@pytest.fixture
def orchestrator(
    resolver: CredentialResolver,
    config: PipelineConfig,
    report_sink: InMemoryReportSink,
) -> Generator[Orchestrator, None, None]:
    orchestrator = Orchestrator(credentials=resolver, config=config, report_sink=report_sink)
    yield orchestrator
    orchestrator.shutdown()
