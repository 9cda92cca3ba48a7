# src/main.py - v2
"""CLI entry point - run, inspect, validate commands.

Usage:
    runarchive run <input_list> [options]
    runarchive inspect <archive>
    runarchive validate <archive> [options]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path

from runarchive.version import __version__

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INTERRUPTED = 130


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_FAILED

    from pydantic import ValidationError

    from runarchive.batch.input_list import InputListError
    from runarchive.config.settings import ConfigurationError

    try:
        settings = _load_settings(args)
    except (ConfigurationError, ValidationError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_FAILED

    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except InputListError as exc:
        logger.error("%s", exc)
        return EXIT_FAILED
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return EXIT_FAILED


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="runarchive",
        description=f"runarchive v{__version__} - run archive validation and staged extraction",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- run ---
    p_run = subparsers.add_parser(
        "run", help="Validate and extract every archive in an input list",
    )
    p_run.add_argument(
        "input_list", type=Path, nargs="?", default=None,
        help="File with one archive location per line (default: INPUT_LIST)",
    )
    _add_output_option(p_run)
    p_run.add_argument(
        "--validation-concurrency", type=int, default=None,
        help="Archives validated at once (default: 1)",
    )
    p_run.add_argument(
        "--tool-concurrency", type=int, default=None,
        help="External tool invocations at once (default: 1)",
    )
    p_run.add_argument(
        "--tool-command", default=None,
        help="Downstream tool command template (default: no tool stage)",
    )
    p_run.add_argument(
        "--fail-policy", choices=["complete", "fail_fast"], default=None,
        help="Keep validating after a metadata failure (complete) or stop (fail_fast)",
    )
    p_run.add_argument(
        "--summary", type=Path, default=None,
        help="Write the batch summary as JSON to this path",
    )
    p_run.set_defaults(func=_cmd_run)

    # --- inspect ---
    p_inspect = subparsers.add_parser(
        "inspect", help="List an archive's members, depth and assay id",
    )
    p_inspect.add_argument("archive", type=Path, help="Path to run archive")
    p_inspect.set_defaults(func=_cmd_inspect)

    # --- validate ---
    p_validate = subparsers.add_parser(
        "validate", help="Validate one archive and publish its metadata",
    )
    p_validate.add_argument("archive", type=Path, help="Path to run archive")
    _add_output_option(p_validate)
    p_validate.add_argument(
        "--fail-policy", choices=["complete", "fail_fast"], default=None,
        help="Keep validating after a metadata failure (complete) or stop (fail_fast)",
    )
    p_validate.set_defaults(func=_cmd_validate)

    return parser


def _add_output_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Output root (default: OUTPUT_ROOT or ./output)",
    )


def _load_settings(args: argparse.Namespace):
    """Settings from .env, overridden by whichever CLI flags were given."""
    from runarchive.config.settings import load_settings

    flag_map = {
        "output": "output_root",
        "validation_concurrency": "validation_concurrency",
        "tool_concurrency": "tool_concurrency",
        "tool_command": "tool_command",
        "fail_policy": "fail_policy",
    }
    overrides = {
        field: getattr(args, flag)
        for flag, field in flag_map.items()
        if getattr(args, flag, None) is not None
    }
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    return load_settings(**overrides)


async def _cmd_run(args: argparse.Namespace, settings) -> int:
    """Execute the full pipeline over an input list."""
    from runarchive.pipeline.orchestrator import PipelineOrchestrator
    from runarchive.tools.invoker_factory import create_invoker

    input_list: Path | None = args.input_list or settings.input_list
    if input_list is None:
        logger.error("No input list given (argument or INPUT_LIST)")
        return EXIT_FAILED
    if not input_list.is_file():
        logger.error("Input list not found: %s", input_list)
        return EXIT_FAILED

    orchestrator = PipelineOrchestrator(settings, invoker=create_invoker(settings))
    _install_cancel_handler(orchestrator)

    summary = await orchestrator.run_input_list(input_list)
    _print_summary(summary)
    if args.summary is not None:
        args.summary.parent.mkdir(parents=True, exist_ok=True)
        args.summary.write_text(summary.model_dump_json(indent=2), encoding="utf-8")
        logger.info("Summary written to %s", args.summary)

    if summary.cancelled:
        return EXIT_INTERRUPTED
    return EXIT_OK if summary.ok else EXIT_FAILED


async def _cmd_inspect(args: argparse.Namespace, settings) -> int:
    """Print the structure of one archive."""
    from runarchive.archive.inspector import ArchiveInspector

    handle = await asyncio.to_thread(ArchiveInspector(settings).inspect, args.archive)
    print(json.dumps(handle.model_dump(mode="json"), indent=2))
    return EXIT_OK


async def _cmd_validate(args: argparse.Namespace, settings) -> int:
    """Validate a single archive; no tool stage."""
    from runarchive.batch.input_list import derive_run_id
    from runarchive.core.models import RunItem
    from runarchive.pipeline.orchestrator import PipelineOrchestrator

    archive: Path = args.archive
    item = RunItem(
        run_id=derive_run_id(str(archive), settings.archive_suffix_pattern) or archive.name,
        location=str(archive),
    )
    summary = await PipelineOrchestrator(settings).run([item])
    outcome = summary.outcomes[0]
    if outcome.report is not None:
        for record in outcome.report.records:
            print(f"  {record.status:8s} {record.category:9s} {record.member}")
    _print_summary(summary)
    return EXIT_OK if outcome.validated else EXIT_FAILED


def _install_cancel_handler(orchestrator) -> None:
    """Route SIGINT/SIGTERM to a graceful cancel (second SIGINT aborts)."""
    loop = asyncio.get_running_loop()

    def _on_signal() -> None:
        if orchestrator.cancelled:
            raise KeyboardInterrupt
        orchestrator.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support.
            pass


def _print_summary(summary) -> None:
    """Print a human-readable summary of a BatchSummary."""
    print("\nBatch complete:" if not summary.cancelled else "\nBatch cancelled:")
    print(f"  Items:        {summary.total}")
    print(f"  Validated:    {summary.validated}")
    print(f"  Failed:       {summary.failed}")
    print(f"  Pending:      {summary.pending}")
    print(f"  Handed off:   {summary.handed_off}")
    if summary.tool_succeeded or summary.tool_failed:
        print(f"  Tool ok:      {summary.tool_succeeded}")
        print(f"  Tool failed:  {summary.tool_failed}")
    print(f"  Duration:     {summary.duration_seconds:.1f}s")
    for outcome in summary.outcomes:
        for reason in outcome.reasons():
            member = f" [{reason.member}]" if reason.member else ""
            print(f"  ! {outcome.run_id}: {reason.kind}{member} {reason.message}")


def _setup_logging(settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from runarchive.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
