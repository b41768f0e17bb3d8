"""End-to-end tests for the orchestrator."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from pipewright.actions import ActionResult, FunctionAction, StageAction, StageContext
from pipewright.artifacts import ArtifactStore
from pipewright.config import PipelineConfig
from pipewright.credentials import CredentialResolver
from pipewright.errors import CycleError, UnknownSecretError
from pipewright.integrations import ScanAction, Scanner
from pipewright.models.artifact import ArtifactKey
from pipewright.models.result import Trigger
from pipewright.models.status import RunStatus, StageStatus
from pipewright.orchestrator import Orchestrator
from pipewright.reporting import InMemoryReportSink
from tests.conftest import FailAction, RecordingAction, SleepAction, SucceedAction, stage


class BarrierAction(StageAction):
    """Succeeds only if `parties` stages reach the barrier at the same time."""

    def __init__(self, barrier: threading.Barrier) -> None:
        self.barrier = barrier

    def execute(self, context: StageContext) -> ActionResult:
        self.barrier.wait()
        return ActionResult.success()


class StartedAction(StageAction):
    """Signals when it starts, then sleeps cooperatively."""

    def __init__(self, seconds: float) -> None:
        self.started = threading.Event()
        self.seconds = seconds

    def execute(self, context: StageContext) -> ActionResult:
        self.started.set()
        if context.sleep(self.seconds):
            return ActionResult.failure(f"interrupted: {context.token.reason}")
        return ActionResult.success()


class TestLinearPipeline:
    """compile -> test -> package -> push -> scan"""

    def test_all_stages_succeed(self, orchestrator: Orchestrator, report_sink: InMemoryReportSink) -> None:
        log: list[str] = []
        stages = [
            stage("compile", RecordingAction(log)),
            stage("test", RecordingAction(log), needs=["compile"]),
            stage("package", RecordingAction(log), needs=["test"]),
            stage("push", RecordingAction(log), needs=["package"]),
            stage("scan", RecordingAction(log), needs=["push"]),
        ]

        run = orchestrator.run(stages, trigger="push")

        assert run.status == RunStatus.SUCCEEDED
        assert run.trigger == Trigger.PUSH
        assert log == ["compile", "test", "package", "push", "scan"]
        assert run.completion_order == log
        assert run.report_location == f"memory://{run.id}"
        assert report_sink.retrieve(run.id)["status"] == "SUCCEEDED"

    def test_failed_test_skips_downstream(self, orchestrator: Orchestrator) -> None:
        log: list[str] = []
        stages = [
            stage("compile", RecordingAction(log)),
            stage("test", FailAction("2 tests failed"), needs=["compile"]),
            stage("package", RecordingAction(log), needs=["test"]),
            stage("push", RecordingAction(log), needs=["package"]),
            stage("scan", RecordingAction(log), needs=["push"]),
        ]

        run = orchestrator.run(stages)

        assert run.status == RunStatus.FAILED
        assert run.status_of("compile") == StageStatus.SUCCEEDED
        assert run.status_of("test") == StageStatus.FAILED
        for stage_id in ("package", "push", "scan"):
            assert run.status_of(stage_id) == StageStatus.SKIPPED
        assert log == ["compile"]
        assert run.result_for("package").warnings == ("required upstream stage 'test' failed",)
        assert run.result_for("push").warnings == ("upstream stage 'package' was skipped",)

    def test_only_transitive_dependents_are_skipped(self, orchestrator: Orchestrator) -> None:
        """Siblings of a failed stage keep running."""
        stages = [
            stage("compile"),
            stage("unit-test", FailAction(), needs=["compile"]),
            stage("docs", needs=["compile"]),
            stage("package", needs=["unit-test"]),
            stage("publish-docs", needs=["docs"]),
        ]

        run = orchestrator.run(stages)

        skipped = {r.stage_id for r in run.results if r.status == StageStatus.SKIPPED}
        assert skipped == {"package"}
        assert run.status_of("publish-docs") == StageStatus.SUCCEEDED
        assert run.status == RunStatus.FAILED


class TestConcurrency:
    """Independent stages in one batch run at the same time."""

    def test_lint_and_unit_test_run_concurrently(self, orchestrator: Orchestrator) -> None:
        barrier = threading.Barrier(2, timeout=5)
        stages = [
            stage("compile"),
            stage("lint", BarrierAction(barrier), needs=["compile"]),
            stage("unit-test", BarrierAction(barrier), needs=["compile"]),
        ]

        run = orchestrator.run(stages)

        assert run.status == RunStatus.SUCCEEDED
        assert set(run.completion_order[1:]) == {"lint", "unit-test"}
        assert len(run.results) == 3

    def test_results_recorded_in_completion_order(self, orchestrator: Orchestrator) -> None:
        def slow(context: StageContext) -> None:
            time.sleep(0.3)

        stages = [
            stage("compile"),
            stage("lint", FunctionAction(slow), needs=["compile"]),
            stage("unit-test", needs=["compile"]),
        ]

        run = orchestrator.run(stages)

        assert run.completion_order == ["compile", "unit-test", "lint"]
        planned = [r.stage_id for r in run.ordered_results(["compile", "lint", "unit-test"])]
        assert planned == ["compile", "lint", "unit-test"]


class TestTimeouts:
    """Stage timeouts under a saturated worker pool."""

    def test_waiting_for_a_slot_does_not_count_against_timeout(
        self, resolver: CredentialResolver, report_sink: InMemoryReportSink
    ) -> None:
        """A stage queued behind a stuck action still gets its full timeout once it starts."""
        orchestrator = Orchestrator(
            credentials=resolver,
            config=PipelineConfig(parallelism=1, default_stage_timeout_seconds=10.0),
            report_sink=report_sink,
        )
        log: list[str] = []

        def stuck(context: StageContext) -> None:
            time.sleep(1.5)

        stages = [
            stage("hog", FunctionAction(stuck), timeout=0.2, required=False),
            stage("after", RecordingAction(log), needs=["hog"], timeout=0.5),
        ]

        try:
            run = orchestrator.run(stages)
        finally:
            orchestrator.shutdown()

        assert run.result_for("hog").error_type == "StageTimeoutError"
        assert run.status_of("after") == StageStatus.SUCCEEDED
        assert log == ["after"]


class TestRequiredFlag:
    """Non-required stages."""

    def test_non_required_failure_warns_dependents(self, orchestrator: Orchestrator) -> None:
        stages = [
            stage("compile"),
            stage("lint", FailAction("style violations"), needs=["compile"], required=False),
            stage("package", needs=["lint"]),
        ]

        run = orchestrator.run(stages)

        assert run.status == RunStatus.SUCCEEDED
        assert run.status_of("lint") == StageStatus.FAILED
        assert run.status_of("package") == StageStatus.SUCCEEDED
        assert "non-required upstream stage 'lint' failed" in run.result_for("package").warnings
        assert "package: non-required upstream stage 'lint' failed" in run.warnings


class TestArtifacts:
    """Artifacts flow between stages unchanged."""

    def test_artifact_is_byte_identical_downstream(self, orchestrator: Orchestrator) -> None:
        payload = bytes(range(256)) * 4
        received: list[bytes] = []

        def consume(context: StageContext) -> None:
            received.append(context.input("compile/jar").payload)

        stages = [
            stage("compile", SucceedAction({"jar": payload}), outputs={"jar": "binary"}),
            stage("test", FunctionAction(consume), needs=["compile"], inputs=["compile/jar"]),
        ]

        run = orchestrator.run(stages)

        assert run.status == RunStatus.SUCCEEDED
        assert received == [payload]

    def test_caller_supplied_store_keeps_artifacts(self, orchestrator: Orchestrator) -> None:
        store = ArtifactStore()
        stages = [stage("package", SucceedAction({"image": "app:1"}), outputs={"image": "image-reference"})]

        orchestrator.run(stages, artifacts=store)

        assert store.get("package/image").text() == "app:1"

    def test_report_artifacts_are_published(
        self,
        orchestrator: Orchestrator,
        report_sink: InMemoryReportSink,
    ) -> None:
        findings = {"Results": [{"Vulnerabilities": [{"Severity": "HIGH"}]}]}
        stages = [
            stage("compile", SucceedAction({"jar": b"jar"}), outputs={"jar": "binary"}),
            stage("scan", SucceedAction({"report": findings}), needs=["compile"], outputs={"report": "report"}),
        ]

        run = orchestrator.run(stages)

        assert [str(a.key) for a in run.reports] == ["scan/report"]
        record = report_sink.retrieve(run.id)
        assert record["reports"][0]["content"] == findings
        assert record["reports"][0]["encoding"] == "json"

    def test_failed_scan_still_publishes_its_report(
        self,
        orchestrator: Orchestrator,
        report_sink: InMemoryReportSink,
    ) -> None:
        findings = {"Results": [{"Vulnerabilities": [{"Severity": "CRITICAL"}]}]}
        scanner = MagicMock(spec=Scanner)
        scanner.scan.return_value = findings
        stages = [
            stage("push", SucceedAction({"image": "app@sha256:abc"}), outputs={"image": "image-reference"}),
            stage(
                "scan",
                ScanAction(scanner, fail_on="high"),
                needs=["push"],
                inputs=["push/image"],
                outputs={"report": "report"},
                required=False,
            ),
        ]

        run = orchestrator.run(stages)

        assert run.status_of("scan") == StageStatus.FAILED
        assert run.result_for("scan").artifacts == (ArtifactKey("scan", "report"),)
        record = report_sink.retrieve(run.id)
        assert [r["content"] for r in record["reports"]] == [findings]


class TestConfigurationErrors:
    """Nothing runs when the pipeline is misconfigured."""

    def test_cycle_aborts_before_execution(self, orchestrator: Orchestrator, report_sink: InMemoryReportSink) -> None:
        log: list[str] = []
        stages = [
            stage("compile", RecordingAction(log)),
            stage("a", RecordingAction(log), needs=["compile", "b"]),
            stage("b", RecordingAction(log), needs=["a"]),
        ]

        with pytest.raises(CycleError):
            orchestrator.run(stages)

        assert log == []
        assert report_sink.list_runs() == []

    def test_unknown_secret_aborts_before_execution(self, orchestrator: Orchestrator) -> None:
        log: list[str] = []
        stages = [
            stage("compile", RecordingAction(log)),
            stage("publish", RecordingAction(log), needs=["compile"], credentials=["NPM_TOKEN"]),
        ]

        with pytest.raises(UnknownSecretError):
            orchestrator.run(stages)

        assert log == []


class TestTargets:
    def test_run_subset(self, orchestrator: Orchestrator) -> None:
        log: list[str] = []
        stages = [
            stage("compile", RecordingAction(log)),
            stage("test", RecordingAction(log), needs=["compile"]),
            stage("package", RecordingAction(log), needs=["test"]),
            stage("push", RecordingAction(log), needs=["package"]),
        ]

        run = orchestrator.run(stages, targets=["test"])

        assert log == ["compile", "test"]
        assert run.targets == ("test",)
        assert run.result_for("push") is None


class TestCancellation:
    """Operator cancel and fail-fast."""

    def test_operator_cancel(self, orchestrator: Orchestrator) -> None:
        build = StartedAction(seconds=10.0)
        log: list[str] = []
        stages = [
            stage("compile", build),
            stage("test", RecordingAction(log), needs=["compile"]),
        ]
        runs = []

        worker = threading.Thread(target=lambda: runs.append(orchestrator.run(stages, run_id="run-cancel")))
        worker.start()
        assert build.started.wait(5)
        assert orchestrator.cancel("run-cancel")
        worker.join(10)

        run = runs[0]
        assert run.status == RunStatus.CANCELED
        assert run.cancellation_reason == "canceled by operator"
        assert run.status_of("compile") == StageStatus.FAILED
        assert run.status_of("test") == StageStatus.SKIPPED
        assert run.result_for("test").warnings == ("pipeline canceled: canceled by operator",)
        assert log == []

    def test_cancel_unknown_run(self, orchestrator: Orchestrator) -> None:
        assert not orchestrator.cancel("nope")

    def test_fail_fast_cancels_running_siblings(self, orchestrator: Orchestrator) -> None:
        slow = SleepAction(10.0)
        stages = [
            stage("unit-test", FailAction()),
            stage("integration-test", slow),
            stage("package", needs=["integration-test"]),
        ]

        started = time.monotonic()
        run = orchestrator.run(stages, fail_fast=True)

        assert time.monotonic() - started < 8.0
        assert run.status == RunStatus.FAILED
        assert run.status_of("integration-test") == StageStatus.FAILED
        assert run.status_of("package") == StageStatus.SKIPPED
        assert run.result_for("package").warnings[0].startswith("pipeline canceled: required stage failed")

    def test_without_fail_fast_siblings_finish(self, orchestrator: Orchestrator) -> None:
        stages = [
            stage("unit-test", FailAction()),
            stage("integration-test", SleepAction(0.2)),
        ]

        run = orchestrator.run(stages)

        assert run.status == RunStatus.FAILED
        assert run.status_of("integration-test") == StageStatus.SUCCEEDED
