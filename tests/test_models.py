"""Tests for retry policies, results and statuses."""

import pytest

from pipewright.models.result import ExecutionResult, PipelineRun, Trigger
from pipewright.models.retry import Backoff, RetryPolicy
from pipewright.models.status import StageStatus


class TestRetryPolicy:
    """Backoff calculation."""

    def test_fixed_delay(self) -> None:
        policy = RetryPolicy(max_attempts=3, delay_seconds=2.0)

        assert [policy.delay_for(n) for n in (1, 2, 3)] == [2.0, 2.0, 2.0]

    def test_exponential_delay_is_capped(self) -> None:
        policy = RetryPolicy(max_attempts=6, backoff=Backoff.EXPONENTIAL, delay_seconds=1.0, max_delay_seconds=5.0)

        assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]

    def test_jitter_stays_within_bounds(self) -> None:
        policy = RetryPolicy(max_attempts=3, delay_seconds=10.0, jitter=0.2)

        for _ in range(20):
            assert 8.0 <= policy.delay_for(1) <= 12.0

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_attempts": 0}, {"delay_seconds": -1}, {"jitter": 1.5}],
    )
    def test_invalid_policies(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)


class TestStageStatus:
    def test_completion(self) -> None:
        assert not StageStatus.PENDING.is_complete
        assert not StageStatus.RUNNING.is_complete
        assert StageStatus.SUCCEEDED.is_complete
        assert StageStatus.FAILED.is_complete
        assert StageStatus.SKIPPED.is_complete

    def test_str(self) -> None:
        assert str(StageStatus.SKIPPED) == "SKIPPED"


class TestPipelineRun:
    """Aggregated run results."""

    def test_run_ids_are_unique(self) -> None:
        assert PipelineRun().id != PipelineRun().id

    def test_ordered_results_reconstructs_plan_order(self) -> None:
        run = PipelineRun()
        run.results.extend(
            [
                ExecutionResult("unit-test", StageStatus.SUCCEEDED),
                ExecutionResult("lint", StageStatus.SUCCEEDED),
                ExecutionResult("compile", StageStatus.SUCCEEDED),
            ]
        )

        assert run.completion_order == ["unit-test", "lint", "compile"]
        assert [r.stage_id for r in run.ordered_results(["compile", "lint", "unit-test"])] == [
            "compile",
            "lint",
            "unit-test",
        ]

    def test_status_of_unrecorded_stage(self) -> None:
        assert PipelineRun().status_of("compile") == StageStatus.PENDING

    def test_skipped_result_carries_reason(self) -> None:
        result = ExecutionResult.skipped("push", "upstream stage 'package' was skipped")

        assert result.status == StageStatus.SKIPPED
        assert result.attempts == 0
        assert result.to_dict()["warnings"] == ["upstream stage 'package' was skipped"]

    def test_trigger_parse(self) -> None:
        assert Trigger.parse("push") == Trigger.PUSH
        with pytest.raises(ValueError):
            Trigger.parse("cron")
