#!/usr/bin/env python3
"""
Python Example - Demonstrates a pipeline built from Python callables.

This example shows how to:
1. Wrap plain functions as stage actions
2. Pass artifacts from one stage to the next
3. Let a non-required stage fail without stopping the pipeline
4. Read the published run record back

Run with:
    python examples/python-example.py
"""

import hashlib
import json
import logging

from pipewright import (
    ActionResult,
    FunctionAction,
    InMemoryReportSink,
    Orchestrator,
    Stage,
    StageContext,
)
from pipewright.logging import configure_logging

configure_logging(level=logging.WARNING)


def compile_sources(context: StageContext) -> dict:
    context.log("compiling 42 sources")
    return {"jar": b"PK\x03\x04" + b"\x00" * 60}


def lint(context: StageContext) -> ActionResult:
    return ActionResult.failure("3 style violations")


def unit_test(context: StageContext) -> dict:
    jar = context.input("compile/jar")
    context.log(f"testing {jar.size} byte jar")
    return {"junit": {"tests": 118, "failures": 0}}


def package(context: StageContext) -> dict:
    digest = hashlib.sha256(context.input("compile/jar").payload).hexdigest()
    return {"image": f"registry.example.com/app@sha256:{digest}"}


def main() -> None:
    stages = [
        Stage.create("compile", FunctionAction(compile_sources), outputs={"jar": "binary"}),
        Stage.create("lint", FunctionAction(lint), needs=["compile"], required=False),
        Stage.create(
            "unit-test",
            FunctionAction(unit_test),
            needs=["compile"],
            inputs=["compile/jar"],
            outputs={"junit": "report"},
        ),
        Stage.create(
            "package",
            FunctionAction(package),
            needs=["lint", "unit-test"],
            inputs=["compile/jar"],
            outputs={"image": "image-reference"},
        ),
    ]

    sink = InMemoryReportSink()
    orchestrator = Orchestrator(report_sink=sink)
    try:
        print("Batches:", orchestrator.plan(stages).batches)
        run = orchestrator.run(stages, trigger="manual")
    finally:
        orchestrator.shutdown()

    print(f"\nRun {run.id}: {run.status}")
    for result in run.results:
        print(f"  {result.stage_id:<10} {result.status!s:<10} {result.error or ''}")
    for warning in run.warnings:
        print(f"  warning: {warning}")

    record = sink.retrieve(run.id)
    print("\nPublished reports:")
    print(json.dumps(record["reports"], indent=2))


if __name__ == "__main__":
    main()
