"""
Stage executor.

Runs a single stage:
1. Checks and resolves its input artifacts
2. Resolves its credentials into a SecretScope (just before invocation)
3. Invokes the action through the bulkhead under the stage timeout
4. Classifies the outcome and, on success, commits declared outputs atomically;
   a failed stage keeps only its report outputs
5. Discards the secrets

Retries follow the stage's RetryPolicy; every attempt is isolated.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from pipewright.actions.context import CancelToken, StageContext
from pipewright.actions.result import ActionResult
from pipewright.artifacts.store import ArtifactStore
from pipewright.config import PipelineConfig
from pipewright.credentials.resolver import CredentialResolver, SecretScope
from pipewright.errors import (
    ArtifactAccessError,
    ExecutionError,
    MissingArtifactError,
    PipewrightError,
    SecretLeakError,
    StageTimeoutError,
    is_retryable,
    truncate_error,
)
from pipewright.executor.bulkhead import StageBulkhead
from pipewright.logging import stage_logger
from pipewright.models.artifact import Artifact, ArtifactKey, ArtifactKind
from pipewright.models.result import ExecutionResult
from pipewright.models.stage import Stage
from pipewright.models.status import StageStatus
from pipewright.redaction import MIN_REDACTED_LENGTH, get_redactor


@dataclass(frozen=True)
class DispatchContext:
    """
    Run-level information the orchestrator passes with each stage.

    Attributes:
        run_id: Id of the PipelineRun
        ancestors: Transitive dependencies of the stage; only their artifacts may be read
        token: Run cancellation token
        warnings: Annotations decided at dispatch (failed non-required upstream)
        parameters: Run parameters exposed to actions
    """

    run_id: str
    ancestors: frozenset[str] = frozenset()
    token: CancelToken = field(default_factory=CancelToken)
    warnings: tuple[str, ...] = ()
    parameters: Mapping[str, Any] = field(default_factory=dict)


def _describe(error: BaseException) -> str:
    if isinstance(error, PipewrightError):
        return error.message
    return f"{type(error).__name__}: {error}"


def _contains_secret(artifact: Artifact, secret_values: list[str]) -> bool:
    return any(secret.encode("utf-8") in artifact.payload for secret in secret_values)


class StageExecutor:
    """
    Executes one stage at a time; safe to share between worker threads.

    Example:
        executor = StageExecutor(ArtifactStore(), CredentialResolver.from_env())
        result = executor.run(stage, DispatchContext(run_id="01H..."))
    """

    def __init__(
        self,
        artifacts: ArtifactStore,
        credentials: CredentialResolver,
        config: PipelineConfig | None = None,
        bulkhead: StageBulkhead | None = None,
    ) -> None:
        self.artifacts = artifacts
        self.credentials = credentials
        self.config = config or PipelineConfig()
        self.bulkhead = bulkhead or StageBulkhead(
            max_concurrent=self.config.parallelism,
            max_queue_size=self.config.max_queue_size,
            default_timeout=self.config.default_stage_timeout_seconds,
        )

    def timeout_for(self, stage: Stage) -> float:
        return stage.timeout if stage.timeout is not None else self.config.default_stage_timeout_seconds

    # ========== Public API ==========

    def run(self, stage: Stage, dispatch: DispatchContext) -> ExecutionResult:
        """Run a stage, retrying according to its RetryPolicy."""
        log = stage_logger(dispatch.run_id, stage.id)
        policy = stage.retry
        max_attempts = policy.max_attempts if policy else 1
        started = time.monotonic()
        first_started_at: float | None = None

        attempt = 1
        while True:
            result, error, reports = self._attempt(stage, dispatch, attempt)
            if first_started_at is None:
                first_started_at = result.started_at

            if (
                result.succeeded
                or error is None
                or policy is None
                or attempt >= max_attempts
                or not is_retryable(error)
                or dispatch.token.is_cancelled
            ):
                break

            delay = policy.delay_for(attempt)
            log.warning("stage_retry", attempt=attempt, delay=round(delay, 3), error=result.error)
            if dispatch.token.wait(delay):
                break
            attempt += 1

        if not result.succeeded and reports:
            keys = self.artifacts.put_all(reports)
            result = replace(result, artifacts=tuple(keys))

        return replace(
            result,
            attempts=attempt,
            duration=time.monotonic() - started,
            started_at=first_started_at,
        )

    # ========== One attempt ==========

    def _attempt(
        self,
        stage: Stage,
        dispatch: DispatchContext,
        attempt: int,
    ) -> tuple[ExecutionResult, BaseException | None, list[Artifact]]:
        log = stage_logger(dispatch.run_id, stage.id).bind(attempt=attempt)
        started_at = time.time()
        started = time.monotonic()
        warnings = list(dispatch.warnings)
        token = dispatch.token.child()
        scope: SecretScope | None = None
        secret_values: list[str] = []
        leak_values: list[str] = []
        reports: list[Artifact] = []
        context: StageContext | None = None
        action_result: ActionResult | None = None

        def outputs() -> tuple[str, str]:
            stdout = context.stdout.getvalue() if context else ""
            stderr = context.stderr.getvalue() if context else ""
            if action_result is not None:
                stdout += action_result.stdout
                stderr += action_result.stderr
            redactor = get_redactor()
            return (
                truncate_error(redactor.redact(stdout, extra=secret_values)),
                truncate_error(redactor.redact(stderr, extra=secret_values)),
            )

        def finish(
            status: StageStatus,
            error: BaseException | None = None,
            keys: tuple[ArtifactKey, ...] = (),
        ) -> tuple[ExecutionResult, BaseException | None, list[Artifact]]:
            stdout, stderr = outputs()
            message = None
            if error is not None:
                message = truncate_error(get_redactor().redact(_describe(error), extra=secret_values))
            exit_code: int | None = 0 if status.is_successful else None
            if isinstance(error, ExecutionError) and error.exit_code is not None:
                exit_code = error.exit_code
            result = ExecutionResult(
                stage_id=stage.id,
                status=status,
                exit_code=exit_code,
                duration=time.monotonic() - started,
                artifacts=keys,
                error=message,
                error_type=type(error).__name__ if error is not None else None,
                warnings=tuple(warnings),
                attempts=attempt,
                stdout=stdout,
                stderr=stderr,
                started_at=started_at,
                finished_at=time.time(),
            )
            if status.is_successful:
                log.info("stage_completed", status=str(status), duration=round(result.duration, 3))
            else:
                log.warning(
                    "stage_completed",
                    status=str(status),
                    error_type=result.error_type,
                    error=message,
                )
            return result, error, reports

        try:
            inputs = self._resolve_inputs(stage, dispatch)
            scope = SecretScope.acquire(self.credentials, stage.credentials)
            # Every value is checked for leaks; only longer ones are masked in text
            leak_values = [v for v in scope.values() if v]
            secret_values = [v for v in leak_values if len(v) >= MIN_REDACTED_LENGTH]
            context = StageContext(
                run_id=dispatch.run_id,
                stage_id=stage.id,
                inputs=inputs,
                secrets=scope,
                token=token,
                attempt=attempt,
                parameters=dispatch.parameters,
                logger=log,
            )
            log.info("stage_started", action=stage.action.name, inputs=[str(k) for k in inputs])

            action_result = self._invoke(stage, context, dispatch)

            if not action_result.succeeded or action_result.exit_code != 0:
                reports = self._collect_reports(stage, action_result, leak_values, warnings)
                raise ExecutionError(
                    action_result.error or f"Action exited with code {action_result.exit_code}",
                    stage_id=stage.id,
                    run_id=dispatch.run_id,
                    exit_code=action_result.exit_code,
                )

            artifacts = self._collect_outputs(stage, action_result, leak_values, warnings)
            keys = self.artifacts.put_all(artifacts)
            return finish(StageStatus.SUCCEEDED, keys=tuple(keys))

        except PipewrightError as e:
            return finish(StageStatus.FAILED, e)
        except Exception as e:
            error = ExecutionError(_describe(e), stage_id=stage.id, run_id=dispatch.run_id, cause=e)
            return finish(StageStatus.FAILED, error)
        finally:
            if scope is not None:
                scope.discard()
            secret_values = []
            leak_values = []

    def _resolve_inputs(self, stage: Stage, dispatch: DispatchContext) -> dict[ArtifactKey, Artifact]:
        inputs: dict[ArtifactKey, Artifact] = {}
        for key in stage.inputs:
            if key.stage_id not in dispatch.ancestors:
                raise ArtifactAccessError(
                    f"Stage '{stage.id}' may not read '{key}': '{key.stage_id}' is not an upstream stage",
                    key=key,
                )
            try:
                inputs[key] = self.artifacts.get(key)
            except MissingArtifactError as e:
                raise MissingArtifactError(
                    f"Stage '{stage.id}' needs '{key}' but stage '{key.stage_id}' produced none",
                    key=key,
                ) from e
        return inputs

    def _invoke(self, stage: Stage, context: StageContext, dispatch: DispatchContext) -> ActionResult:
        timeout = self.timeout_for(stage)
        try:
            result = self.bulkhead.call(
                stage.action.execute,
                context,
                timeout=timeout,
                stage_id=stage.id,
                run_id=dispatch.run_id,
            )
        except StageTimeoutError:
            context.token.cancel("timeout")
            self._hook(stage.action.on_timeout, context)
            raise StageTimeoutError(
                f"Stage '{stage.id}' exceeded timeout of {timeout:g}s",
                stage_id=stage.id,
                run_id=dispatch.run_id,
            ) from None

        if dispatch.token.is_cancelled:
            self._hook(stage.action.on_cancel, context)

        if not isinstance(result, ActionResult):
            raise ExecutionError(
                f"Action {stage.action.name} returned {type(result).__name__}, expected ActionResult",
                stage_id=stage.id,
                run_id=dispatch.run_id,
            )
        return result

    def _hook(self, hook: Any, context: StageContext) -> None:
        try:
            hook(context)
        except Exception as e:
            stage_logger(context.run_id, context.stage_id).warning(
                "action_hook_failed", hook=getattr(hook, "__name__", "hook"), error=str(e)
            )

    def _collect_outputs(
        self,
        stage: Stage,
        result: ActionResult,
        secret_values: list[str],
        warnings: list[str],
    ) -> list[Artifact]:
        declared = stage.output_kinds
        artifacts: list[Artifact] = []
        for name, value in result.outputs.items():
            if name not in declared:
                warnings.append(f"undeclared output '{name}' dropped")
                continue
            artifact = Artifact.create(stage.id, name, declared[name], value)
            if _contains_secret(artifact, secret_values):
                raise SecretLeakError(
                    f"Output '{name}' of stage '{stage.id}' contains a secret value",
                    stage_id=stage.id,
                )
            artifacts.append(artifact)

        missing = [name for name in declared if name not in result.outputs]
        if missing:
            raise MissingArtifactError(
                f"Stage '{stage.id}' did not produce declared output(s): {', '.join(missing)}",
                key=ArtifactKey(stage.id, missing[0]),
            )
        return artifacts

    def _collect_reports(
        self,
        stage: Stage,
        result: ActionResult,
        secret_values: list[str],
        warnings: list[str],
    ) -> list[Artifact]:
        """Report outputs of a failed action; other outputs are discarded."""
        declared = stage.output_kinds
        reports: list[Artifact] = []
        for name, value in result.outputs.items():
            if declared.get(name) != ArtifactKind.REPORT:
                continue
            artifact = Artifact.create(stage.id, name, ArtifactKind.REPORT, value)
            if _contains_secret(artifact, secret_values):
                warnings.append(f"report '{name}' withheld: contains a secret value")
                continue
            reports.append(artifact)
        return reports
