"""
Orchestrator - runs a pipeline end to end.

The orchestrator plans the stage graph, dispatches each batch of independent
stages to a bounded worker pool, propagates skips, and aggregates results
into a PipelineRun that is published to the report sink.

Example:
    orchestrator = Orchestrator(
        credentials=CredentialResolver.from_env(),
        report_sink=DirectoryReportSink("reports"),
    )
    run = orchestrator.run(stages, trigger="push")
    print(run.status)
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

from pipewright.actions.context import CancelToken
from pipewright.artifacts.store import ArtifactStore
from pipewright.config import PipelineConfig, get_config
from pipewright.credentials.resolver import CredentialResolver
from pipewright.dag import ExecutionPlan, check_readiness, plan
from pipewright.executor import DispatchContext, StageBulkhead, StageExecutor
from pipewright.logging import run_logger
from pipewright.models.artifact import ArtifactKind
from pipewright.models.result import ExecutionResult, PipelineRun, Trigger
from pipewright.models.stage import Stage
from pipewright.models.status import RunStatus, StageStatus
from pipewright.reporting.sink import ReportSink

OPERATOR_CANCEL = "canceled by operator"
FAIL_FAST_CANCEL = "required stage failed"


class Orchestrator:
    """
    Runs pipelines.

    One Orchestrator may run several pipelines over its lifetime; each run
    gets its own artifact store and cancellation token.
    """

    def __init__(
        self,
        credentials: CredentialResolver | None = None,
        config: PipelineConfig | None = None,
        report_sink: ReportSink | None = None,
    ) -> None:
        self.config = config or get_config()
        self.credentials = credentials or CredentialResolver.from_env(prefix=self.config.secret_prefix)
        self.report_sink = report_sink
        self.bulkhead = StageBulkhead(
            max_concurrent=self.config.parallelism,
            max_queue_size=self.config.max_queue_size,
            default_timeout=self.config.default_stage_timeout_seconds,
        )
        self._active: dict[str, tuple[CancelToken, list[str]]] = {}
        self._lock = threading.Lock()

    # ========== Planning ==========

    def plan(self, stages: Sequence[Stage], targets: Iterable[str] | None = None) -> ExecutionPlan:
        """
        Plan a run and verify every credential can be resolved.

        Raises:
            ConfigurationError: Cycle, malformed stage or unknown secret
        """
        execution_plan = plan(stages, targets)
        self.credentials.check(name for stage in execution_plan.stages for name in stage.credential_names)
        return execution_plan

    # ========== Running ==========

    def run(
        self,
        stages: Sequence[Stage],
        targets: Iterable[str] | None = None,
        trigger: Trigger | str = Trigger.MANUAL,
        fail_fast: bool = False,
        run_id: str | None = None,
        artifacts: ArtifactStore | None = None,
        parameters: Mapping[str, Any] | None = None,
    ) -> PipelineRun:
        """
        Execute a pipeline.

        Args:
            stages: Stage definitions in declaration order
            targets: Run only these stages and their transitive dependencies
            trigger: push, review or manual
            fail_fast: Cancel the run on the first required-stage failure
            run_id: Explicit run id (default: new ULID)
            artifacts: Artifact store to use (default: a fresh store for this run)
            parameters: Run parameters exposed to actions via StageContext.parameters

        Returns:
            The completed PipelineRun

        Raises:
            ConfigurationError: Before any stage executes
        """
        target_list = list(targets or ())
        execution_plan = self.plan(stages, target_list)

        pipeline_run = PipelineRun(trigger=Trigger.parse(trigger), targets=tuple(target_list))
        if run_id:
            pipeline_run.id = run_id
        store = artifacts if artifacts is not None else ArtifactStore()
        executor = StageExecutor(store, self.credentials, self.config, bulkhead=self.bulkhead)
        token = CancelToken()
        cancel_reasons: list[str] = []
        log = run_logger(pipeline_run.id)

        with self._lock:
            self._active[pipeline_run.id] = (token, cancel_reasons)

        pipeline_run.started_at = time.time()
        log.info(
            "run_started",
            trigger=pipeline_run.trigger.value,
            stages=execution_plan.order,
            batches=len(execution_plan.batches),
        )

        try:
            self._execute(execution_plan, pipeline_run, executor, token, cancel_reasons, fail_fast, parameters or {})
        finally:
            with self._lock:
                self._active.pop(pipeline_run.id, None)

        pipeline_run.reports = [
            artifact for artifact in store.by_kind(ArtifactKind.REPORT) if artifact.producer in execution_plan
        ]
        pipeline_run.status = self._final_status(execution_plan, pipeline_run, cancel_reasons)
        if pipeline_run.status == RunStatus.CANCELED:
            pipeline_run.cancellation_reason = cancel_reasons[0]
        pipeline_run.finished_at = time.time()

        log.info(
            "run_completed",
            status=str(pipeline_run.status),
            duration=round(pipeline_run.duration or 0.0, 3),
            failed=[r.stage_id for r in pipeline_run.results if r.failed],
            skipped=[r.stage_id for r in pipeline_run.results if r.status.is_skipped],
        )

        if self.report_sink is not None:
            handle = self.report_sink.publish(pipeline_run)
            pipeline_run.report_location = handle.location
            log.info("report_published", location=handle.location)

        return pipeline_run

    def cancel(self, run_id: str | None = None, reason: str = OPERATOR_CANCEL) -> bool:
        """
        Cancel a running pipeline (all active runs when run_id is None).

        Running stages see the signal through their StageContext; stages not
        yet started are recorded as SKIPPED.

        Returns:
            True if at least one run was canceled
        """
        with self._lock:
            targets = [
                entry for key, entry in self._active.items() if run_id is None or key == run_id
            ]
        for token, reasons in targets:
            reasons.append(reason)
            token.cancel(reason)
        return bool(targets)

    def shutdown(self) -> None:
        self.bulkhead.shutdown(wait=False)

    # ========== Internals ==========

    def _execute(
        self,
        execution_plan: ExecutionPlan,
        pipeline_run: PipelineRun,
        executor: StageExecutor,
        token: CancelToken,
        cancel_reasons: list[str],
        fail_fast: bool,
        parameters: Mapping[str, Any],
    ) -> None:
        log = run_logger(pipeline_run.id)
        by_id = {stage.id: stage for stage in execution_plan.stages}
        statuses: dict[str, StageStatus] = {}

        def record(result: ExecutionResult) -> None:
            pipeline_run.results.append(result)
            statuses[result.stage_id] = result.status

        with ThreadPoolExecutor(
            max_workers=self.config.parallelism,
            thread_name_prefix="pipewright-stage",
        ) as pool:
            for batch in execution_plan.batches:
                dispatched: dict[Any, Stage] = {}
                for stage_id in batch:
                    stage = by_id[stage_id]

                    if token.is_cancelled:
                        reason = f"pipeline canceled: {token.reason}"
                        log.info("stage_skipped", stage_id=stage_id, reason=reason)
                        record(ExecutionResult.skipped(stage_id, reason))
                        continue

                    readiness = check_readiness(stage, statuses, by_id)
                    if readiness.should_skip:
                        log.info("stage_skipped", stage_id=stage_id, reason=readiness.skip_reason)
                        record(ExecutionResult.skipped(stage_id, readiness.skip_reason or "skipped"))
                        continue

                    for warning in readiness.warnings:
                        log.warning("stage_warning", stage_id=stage_id, warning=warning)

                    dispatch = DispatchContext(
                        run_id=pipeline_run.id,
                        ancestors=execution_plan.ancestors(stage_id),
                        token=token,
                        warnings=readiness.warnings,
                        parameters=parameters,
                    )
                    dispatched[pool.submit(executor.run, stage, dispatch)] = stage

                # Results are recorded in completion order
                for future in as_completed(dispatched):
                    stage = dispatched[future]
                    result = future.result()
                    record(result)
                    if fail_fast and result.failed and stage.required and not token.is_cancelled:
                        cancel_reasons.append(FAIL_FAST_CANCEL)
                        token.cancel(f"{FAIL_FAST_CANCEL}: {stage.id}")

    def _final_status(
        self,
        execution_plan: ExecutionPlan,
        pipeline_run: PipelineRun,
        cancel_reasons: list[str],
    ) -> RunStatus:
        if cancel_reasons and cancel_reasons[0] != FAIL_FAST_CANCEL:
            return RunStatus.CANCELED
        for result in pipeline_run.results:
            if result.failed and execution_plan.stage(result.stage_id).required:
                return RunStatus.FAILED
        return RunStatus.SUCCEEDED
