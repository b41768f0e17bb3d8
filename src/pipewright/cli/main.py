"""Main CLI entry point for Pipewright."""

from __future__ import annotations

import argparse
import logging
import sys

from pipewright.cli.commands import plan, run, runs, show
from pipewright.config import get_config
from pipewright.logging import configure_logging


def _add_report_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--report-dir",
        help="Directory of published run records (default: PIPEWRIGHT_REPORT_DIR)",
    )
    parser.add_argument(
        "--report-db",
        help="SQLite file of published run records (default: PIPEWRIGHT_REPORT_DB)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pipewright",
        description="Pipewright - Pipeline Orchestrator CLI",
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON logs (default: PIPEWRIGHT_LOG_JSON)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # plan command
    plan_parser = subparsers.add_parser("plan", help="Print the execution batches of a pipeline")
    plan_parser.add_argument("file", help="Pipeline definition (YAML)")
    plan_parser.add_argument(
        "--target",
        action="append",
        default=[],
        help="Only plan this stage and its dependencies (repeatable)",
    )

    # run command
    run_parser = subparsers.add_parser("run", help="Run a pipeline")
    run_parser.add_argument("file", help="Pipeline definition (YAML)")
    run_parser.add_argument(
        "--target",
        action="append",
        default=[],
        help="Only run this stage and its dependencies (repeatable)",
    )
    run_parser.add_argument(
        "--trigger",
        choices=["push", "review", "manual"],
        default="manual",
        help="What started the run (default: manual)",
    )
    run_parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Cancel remaining stages after the first required-stage failure",
    )
    _add_report_args(run_parser)

    # show command
    show_parser = subparsers.add_parser("show", help="Print a published run record")
    show_parser.add_argument("run_id", help="Run id")
    _add_report_args(show_parser)

    # runs command
    runs_parser = subparsers.add_parser("runs", help="List published run ids")
    _add_report_args(runs_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        json_format=args.json_logs or get_config().log_json,
        level=logging.DEBUG if args.verbose else logging.INFO,
    )

    if args.command == "plan":
        plan(args.file, args.target)
    elif args.command == "run":
        run(args.file, args.target, args.trigger, args.report_dir, args.report_db, args.fail_fast)
    elif args.command == "show":
        show(args.run_id, args.report_dir, args.report_db)
    elif args.command == "runs":
        runs(args.report_dir, args.report_db)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
