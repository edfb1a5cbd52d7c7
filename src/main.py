# src/main.py — v1
"""CLI entry point.

Usage:
    enliterator ingest <name> <source>... [options]
    enliterator start <batch_id> [--manual]
    enliterator run <name> <source>...
    enliterator status (<run_id> | --batch <batch_id>) [--json]
    enliterator resume <run_id>
    enliterator advance <run_id> [--note TEXT]
    enliterator pause <run_id>
    enliterator cancel <run_id>
    enliterator approve <batch_id> --stage <stage> [--item ID ...]
    enliterator watch [<run_id>] [--max-polls N]
    enliterator runs [--batch <batch_id>]
    enliterator reconcile <batch_id>

Exit codes: 0 success, 1 failed stage or invalid target, 2 needs review,
3 conflicting active run.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from enliterator.version import __version__
from enliterator.config.settings import ConfigurationError, Settings
from enliterator.core.errors import InvalidResumeTarget, NotFoundError, RunConflictError
from enliterator.core.models import RunStatus
from enliterator.core.stages import STAGE_ORDER
from enliterator.logging.logger import setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_NEEDS_REVIEW = 2
EXIT_CONFLICT = 3


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_FAILED

    try:
        settings = _load_settings(args)
    except (ConfigurationError, ValueError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_FAILED

    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    args.settings = settings

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except RunConflictError as exc:
        print(f"Conflict: {exc}", file=sys.stderr)
        return EXIT_CONFLICT
    except (InvalidResumeTarget, NotFoundError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILED
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return EXIT_FAILED


def _load_settings(args: argparse.Namespace) -> Settings:
    if args.env_file is not None:
        return Settings(_env_file=args.env_file)  # type: ignore[call-arg]
    return Settings()


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="enliterator",
        description=f"enliterator v{__version__}: rights-aware knowledge pipeline",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--env-file", type=Path, default=None, help="Settings file (default: .env)")

    subparsers = parser.add_subparsers(dest="command")

    # --- ingest / run ---
    for name, func, help_text in (
        ("ingest", _cmd_ingest, "Create a batch from files and directories"),
        ("run", _cmd_run, "Create a batch and start a run"),
    ):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("name", help="Batch name")
        p.add_argument("sources", nargs="+", type=Path, help="Files or directories")
        p.add_argument("--source-type", default="mixed", help="upload, api, scrape or mixed")
        p.add_argument("--no-recursive", action="store_true", help="Disable recursive scanning")
        p.add_argument("--json", action="store_true", help="Print JSON")
        p.set_defaults(func=func)

    p_start = subparsers.add_parser("start", help="Start a pipeline run for a batch")
    p_start.add_argument("batch_id")
    p_start.add_argument("--manual", action="store_true", help="Pause after every stage")
    p_start.add_argument("--json", action="store_true", help="Print JSON")
    p_start.set_defaults(func=_cmd_start)

    p_status = subparsers.add_parser("status", help="Show run status")
    p_status.add_argument("run_id", nargs="?")
    p_status.add_argument("--batch", dest="batch_id", default=None, help="Latest run of a batch")
    p_status.add_argument("--json", action="store_true", help="Print JSON")
    p_status.set_defaults(func=_cmd_status)

    p_resume = subparsers.add_parser("resume", help="Resume a paused, failed or stale run")
    p_resume.add_argument("run_id")
    p_resume.add_argument("--json", action="store_true", help="Print JSON")
    p_resume.set_defaults(func=_cmd_resume)

    p_advance = subparsers.add_parser("advance", help="Force a needs_review stage forward")
    p_advance.add_argument("run_id")
    p_advance.add_argument("--note", default="", help="Reason recorded with the override")
    p_advance.add_argument("--json", action="store_true", help="Print JSON")
    p_advance.set_defaults(func=_cmd_advance)

    p_pause = subparsers.add_parser("pause", help="Pause a run after its current stage")
    p_pause.add_argument("run_id")
    p_pause.set_defaults(func=_cmd_pause)

    p_cancel = subparsers.add_parser("cancel", help="Cancel a run")
    p_cancel.add_argument("run_id")
    p_cancel.set_defaults(func=_cmd_cancel)

    p_approve = subparsers.add_parser("approve", help="Approve quarantined items")
    p_approve.add_argument("batch_id")
    p_approve.add_argument("--stage", required=True, choices=[s.value for s in STAGE_ORDER])
    p_approve.add_argument("--item", dest="items", action="append", default=None,
                           help="Item id (repeatable; default: all quarantined)")
    p_approve.add_argument("--note", default="", help="Reviewer note")
    p_approve.set_defaults(func=_cmd_approve)

    p_watch = subparsers.add_parser("watch", help="Flag runs that stopped progressing")
    p_watch.add_argument("run_id", nargs="?")
    p_watch.add_argument("--max-polls", type=int, default=None)
    p_watch.set_defaults(func=_cmd_watch)

    p_runs = subparsers.add_parser("runs", help="List pipeline runs")
    p_runs.add_argument("--batch", dest="batch_id", default=None)
    p_runs.set_defaults(func=_cmd_runs)

    p_reconcile = subparsers.add_parser("reconcile", help="Check batch state against item statuses")
    p_reconcile.add_argument("batch_id")
    p_reconcile.set_defaults(func=_cmd_reconcile)

    return parser


@asynccontextmanager
async def _orchestrator(args: argparse.Namespace) -> AsyncIterator:
    from enliterator.api.facade import build_orchestrator, close_services

    orchestrator = build_orchestrator(args.settings)
    try:
        yield orchestrator
        await orchestrator.executor.join()
    finally:
        close_services(orchestrator.services)


# --- Commands ---


async def _cmd_ingest(args: argparse.Namespace) -> int:
    async with _orchestrator(args) as orch:
        batch = await orch.create_batch(
            args.name, args.sources, source_type=args.source_type, recursive=not args.no_recursive
        )
        items = await orch.store.list_items(batch.id)
    if args.json:
        print(json.dumps({"batch_id": batch.id, "items": len(items)}))
    else:
        print(f"Batch {batch.id} created with {len(items)} items")
    return EXIT_OK


async def _cmd_run(args: argparse.Namespace) -> int:
    async with _orchestrator(args) as orch:
        batch = await orch.create_batch(
            args.name, args.sources, source_type=args.source_type, recursive=not args.no_recursive
        )
        run = await orch.start_run(batch.id)
        await orch.executor.join()
        report = await orch.status(run.id)
    return _report(report, args.json)


async def _cmd_start(args: argparse.Namespace) -> int:
    async with _orchestrator(args) as orch:
        run = await orch.start_run(args.batch_id, auto_advance=False if args.manual else None)
        await orch.executor.join()
        report = await orch.status(run.id)
    return _report(report, args.json)


async def _cmd_status(args: argparse.Namespace) -> int:
    if not args.run_id and not args.batch_id:
        print("status needs a run id or --batch", file=sys.stderr)
        return EXIT_FAILED
    async with _orchestrator(args) as orch:
        run_id = args.run_id or (await orch.latest_run(args.batch_id)).id
        report = await orch.status(run_id)
    return _report(report, args.json)


async def _cmd_resume(args: argparse.Namespace) -> int:
    async with _orchestrator(args) as orch:
        await orch.resume(args.run_id)
        await orch.executor.join()
        report = await orch.status(args.run_id)
    return _report(report, args.json)


async def _cmd_advance(args: argparse.Namespace) -> int:
    async with _orchestrator(args) as orch:
        await orch.force_advance(args.run_id, note=args.note)
        await orch.executor.join()
        report = await orch.status(args.run_id)
    return _report(report, args.json)


async def _cmd_pause(args: argparse.Namespace) -> int:
    async with _orchestrator(args) as orch:
        run = await orch.pause(args.run_id)
    print(f"Pause requested for run {run.id} ({run.status.value})")
    return EXIT_OK


async def _cmd_cancel(args: argparse.Namespace) -> int:
    async with _orchestrator(args) as orch:
        run = await orch.cancel(args.run_id)
    print(f"Run {run.id} cancelled")
    return EXIT_OK


async def _cmd_approve(args: argparse.Namespace) -> int:
    async with _orchestrator(args) as orch:
        approved = await orch.approve_quarantined(
            args.batch_id, args.stage, item_ids=args.items, note=args.note
        )
        batch = await orch.store.get_batch(args.batch_id)
    print(f"Approved {len(approved)} items at {args.stage}; batch is {batch.status}")
    return EXIT_OK


async def _cmd_watch(args: argparse.Namespace) -> int:
    from enliterator.api.facade import build_watchdog

    async with _orchestrator(args) as orch:
        watchdog = build_watchdog(orch)
        if args.run_id:
            found = await watchdog.watch(args.run_id, max_polls=args.max_polls)
            diagnostics = [found] if found else []
        else:
            diagnostics = await watchdog.check_all()
    for diagnostic in diagnostics:
        print(json.dumps(diagnostic.to_dict()))
    return EXIT_FAILED if diagnostics else EXIT_OK


async def _cmd_runs(args: argparse.Namespace) -> int:
    async with _orchestrator(args) as orch:
        runs = await orch.store.list_runs(args.batch_id)
    for run in runs:
        stage = run.current_stage.value if run.current_stage else "-"
        print(f"{run.id}  {run.batch_id}  {run.status.value:<10} {stage:<13} {run.created_at:%Y-%m-%d %H:%M}")
    return EXIT_OK


async def _cmd_reconcile(args: argparse.Namespace) -> int:
    from enliterator.pipeline.reconcile import reconcile_batch

    async with _orchestrator(args) as orch:
        batch = await orch.store.get_batch(args.batch_id)
        items = await orch.store.list_items(args.batch_id)
        run = await orch.store.active_run(args.batch_id)
        discrepancies = reconcile_batch(batch, items, orch.policy, run)
    if not discrepancies:
        print(f"Batch {batch.id} is consistent ({batch.status})")
        return EXIT_OK
    for d in discrepancies:
        print(str(d))
    return EXIT_FAILED


# --- Output ---


def exit_code_for(report) -> int:
    """Map a status report onto the CLI exit codes."""
    if report.run_status == RunStatus.FAILED:
        return EXIT_FAILED
    if report.stage is not None and report.stage_statuses.get(report.stage.value) == "needs_review":
        return EXIT_NEEDS_REVIEW
    return EXIT_OK


def _report(report, as_json: bool) -> int:
    if as_json:
        print(report.model_dump_json(indent=2))
        return exit_code_for(report)

    stage = report.stage.value if report.stage else "-"
    print(f"\nRun {report.run_id} ({report.batch_name}):")
    print(f"  Run status:    {report.run_status.value}")
    print(f"  Batch status:  {report.batch_status}")
    print(f"  Stage:         {report.stage_ordinal}/{len(STAGE_ORDER)} {stage}")
    print(f"  Progress:      {report.progress_pct}% in {report.duration_s:.2f}s")
    for name, counts in report.metrics.items():
        print(
            f"    {name:<13} total={counts['total']} ok={counts['succeeded']} "
            f"quarantined={counts['quarantined']} failed={counts['failed']} "
            f"skipped={counts['skipped']} ({counts['duration_s']:.2f}s)"
        )
    if report.literacy_score is not None:
        print(f"  Literacy:      {report.literacy_score:.2f}")
    if report.error_summary:
        print(f"  Error:         {report.error_summary}")
    if report.stale_since:
        print(f"  Stale since:   {report.stale_since:%Y-%m-%d %H:%M:%S}")
    if report.activity:
        print("  Recent activity:")
        for entry in report.activity:
            print(f"    {entry.render()}")
    if report.recommended_command:
        print(f"  Next:          {report.recommended_command}")
    return exit_code_for(report)


if __name__ == "__main__":
    sys.exit(main())
