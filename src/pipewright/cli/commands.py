"""CLI command implementations for Pipewright."""

from __future__ import annotations

import json
import signal
import sys
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from pipewright.config import PipelineConfig, get_config
from pipewright.definition import load
from pipewright.errors import ConfigurationError, ReportNotFoundError
from pipewright.models.result import PipelineRun
from pipewright.models.status import RunStatus
from pipewright.orchestrator import Orchestrator
from pipewright.reporting import DirectoryReportSink, ReportSink, SqliteReportSink


def make_sink(report_dir: str | None, report_db: str | None, config: PipelineConfig) -> ReportSink | None:
    """Report sink from CLI flags, falling back to configuration."""
    report_dir = report_dir or config.report_dir
    report_db = report_db or config.report_db
    if report_dir:
        return DirectoryReportSink(report_dir)
    if report_db:
        return SqliteReportSink(report_db)
    return None


@contextmanager
def cancel_on_signal(orchestrator: Orchestrator) -> Iterator[None]:
    """Turn SIGINT/SIGTERM into a pipeline cancellation while a run is active."""

    def handler(signum: int, frame: Any) -> None:
        orchestrator.cancel(reason=f"canceled by {signal.Signals(signum).name}")

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)


def print_run(run: PipelineRun) -> None:
    print(f"Run {run.id}: {run.status} (trigger={run.trigger.value}, {run.duration or 0.0:.1f}s)")
    print(f"{'Status':<10} {'Stage':<30} {'Duration':>9}  Detail")
    print("-" * 80)
    for result in run.results:
        detail = result.error or "; ".join(result.warnings)
        print(f"{str(result.status):<10} {result.stage_id:<30} {result.duration:>8.1f}s  {detail}")
    if run.cancellation_reason:
        print(f"Canceled: {run.cancellation_reason}")
    if run.report_location:
        print(f"Report: {run.report_location}")


def plan(path: str, targets: Sequence[str]) -> None:
    """Print the batches a run of the definition would execute."""
    orchestrator = Orchestrator(config=get_config())
    try:
        definition = load(path)
        execution_plan = orchestrator.plan(definition.stages, targets)
    except (ConfigurationError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        orchestrator.shutdown()

    for index, batch in enumerate(execution_plan.batches, start=1):
        print(f"{index:>3}. {', '.join(batch)}")


def run(
    path: str,
    targets: Sequence[str],
    trigger: str,
    report_dir: str | None,
    report_db: str | None,
    fail_fast: bool,
) -> None:
    """Run a pipeline definition; exit 0 on success, 1 otherwise."""
    config = get_config()
    try:
        definition = load(path)
        orchestrator = Orchestrator(config=config, report_sink=make_sink(report_dir, report_db, config))
    except (ConfigurationError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        with cancel_on_signal(orchestrator):
            pipeline_run = orchestrator.run(
                definition.stages,
                targets=targets,
                trigger=trigger,
                fail_fast=fail_fast,
                parameters=definition.parameters,
            )
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        orchestrator.shutdown()

    print_run(pipeline_run)
    sys.exit(0 if pipeline_run.status == RunStatus.SUCCEEDED else 1)


def show(run_id: str, report_dir: str | None, report_db: str | None) -> None:
    """Print a published run record."""
    sink = make_sink(report_dir, report_db, get_config())
    if sink is None:
        print("Error: No report location configured.", file=sys.stderr)
        print("Provide --report-dir/--report-db or set PIPEWRIGHT_REPORT_DIR", file=sys.stderr)
        sys.exit(1)
    try:
        record = sink.retrieve(run_id)
    except ReportNotFoundError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(record, indent=2, sort_keys=True))


def runs(report_dir: str | None, report_db: str | None) -> None:
    """List published run ids."""
    sink = make_sink(report_dir, report_db, get_config())
    if sink is None:
        print("Error: No report location configured.", file=sys.stderr)
        sys.exit(1)
    for run_id in sink.list_runs():
        print(run_id)
