"""Command-line interface for card catalog builder."""

from __future__ import annotations

import argparse
import logging
import os
import shlex
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from .clients import HeaderRotation
from .model import StepStatus
from .pipelines.context import PipelineContext
from .pipelines.enrich_pipeline import reset_steps
from .pipelines.export_pipeline import export_catalog_csv
from .pipelines.pipeline import PipelineOptions, check_step_name, log_summary, run_pipeline
from .schema import STEP_NAMES
from .utils import RunPaths, SettingsError, load_settings

DEFAULT_RUN_DIR = Path("data")
SETTINGS_FILENAME = "settings.yaml"


def setup_logging(log_file: Path) -> None:
    """Configure logging to both console and file."""
    log_file.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(
        "%(asctime)s.%(msecs)03d - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    # File handler
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)

    # Root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Silence verbose HTTP debug logs by default
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)

    logging.info(f"Logging to file: {log_file}")


def _prepare_run_paths(args: argparse.Namespace) -> RunPaths:
    """
    Resolve the run dir (default `./data`) and derive output/logs dirs from it.
    """
    run_paths = RunPaths.from_run_dir(args.run_dir or DEFAULT_RUN_DIR)
    logs_dir = getattr(args, "logs_dir", None)
    if logs_dir is not None:
        run_paths = replace(run_paths, logs_dir=logs_dir.resolve())
    run_paths.ensure()
    return run_paths


def _default_log_file(*, command_name: str, logs_dir: Path) -> Path:
    logs_dir.mkdir(parents=True, exist_ok=True)

    now = datetime.now()
    stamp = now.strftime("%Y%m%d-%H%M%S") + f".{now.microsecond // 1000:03d}"
    candidate = logs_dir / f"log-{stamp}-{command_name}.log"
    if not candidate.exists():
        return candidate

    for i in range(2, 1000):
        p = logs_dir / f"log-{stamp}-{command_name}-{i}.log"
        if not p.exists():
            return p
    return logs_dir / f"log-{stamp}-{command_name}-{os.getpid()}.log"


def _setup_logging_from_args(run_paths: RunPaths, args: argparse.Namespace) -> None:
    setup_logging(
        args.log_file or _default_log_file(command_name=args.command, logs_dir=run_paths.logs_dir)
    )
    if args.debug:
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)
        for handler in root_logger.handlers:
            handler.setLevel(logging.DEBUG)
        logging.getLogger("urllib3").setLevel(logging.DEBUG)

    argv = " ".join(shlex.quote(a) for a in sys.argv)
    logging.info(f"Invocation: {argv}")


def _build_context(args: argparse.Namespace) -> PipelineContext:
    run_paths = _prepare_run_paths(args)
    _setup_logging_from_args(run_paths, args)
    if args.settings is not None and not args.settings.exists():
        raise SystemExit(f"Settings file not found: {args.settings}")
    settings_path = args.settings or (run_paths.run_dir / SETTINGS_FILENAME)
    try:
        settings = load_settings(settings_path)
    except SettingsError as e:
        raise SystemExit(str(e)) from e
    if settings_path.exists():
        logging.info(f"Settings: {settings_path}")
    return PipelineContext(run_paths=run_paths, settings=settings, headers=HeaderRotation())


def _command_run(args: argparse.Namespace) -> None:
    try:
        if args.only_step is not None:
            check_step_name(args.only_step)
        ctx = _build_context(args)
        settings = ctx.settings.with_steam_target(args.steam_count)
    except ValueError as e:
        raise SystemExit(str(e)) from e
    ctx = replace(ctx, settings=settings)
    run_pipeline(
        ctx,
        PipelineOptions(
            skip_discovery=args.skip_discovery,
            skip_enrich=args.skip_enrich,
            skip_export=args.skip_export,
            only_step=args.only_step,
        ),
    )


def _command_export(args: argparse.Namespace) -> None:
    ctx = _build_context(args)
    store = ctx.load_store()
    export_catalog_csv(
        store,
        args.out or ctx.export_path,
        export=ctx.settings.export,
        primary_step=ctx.settings.pipeline.primary_step,
    )


def _command_reset(args: argparse.Namespace) -> None:
    try:
        check_step_name(args.step)
    except ValueError as e:
        raise SystemExit(str(e)) from e
    ctx = _build_context(args)
    store = ctx.load_store()
    statuses = [StepStatus(s) for s in (args.status or [StepStatus.FAILED.value])]
    n = reset_steps(store, args.step, statuses)
    store.save()
    logging.info(
        f"✔ Reset {n} '{args.step}' results ({', '.join(s.value for s in statuses)}) to pending"
    )


def _command_summary(args: argparse.Namespace) -> None:
    ctx = _build_context(args)
    log_summary(ctx.load_store())


def main(argv: list[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        raise SystemExit(
            "Missing command. Use one of: run, export, reset, summary. "
            "Run `python run.py --help` for usage."
        )

    parser = argparse.ArgumentParser(
        description="Build a catalog of card and turn-based games from Steam and curated lists"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_common = argparse.ArgumentParser(add_help=False)
    p_common.add_argument(
        "--run-dir",
        type=Path,
        help="Run directory containing output/logs (default: ./data)",
    )
    p_common.add_argument(
        "--logs-dir",
        type=Path,
        help="Override logs directory (default: <run-dir>/logs)",
    )
    p_common.add_argument(
        "--log-file",
        type=Path,
        help="Log file path (default: <run-dir>/logs/log-<timestamp>-<command>.log)",
    )
    p_common.add_argument(
        "--settings",
        type=Path,
        help=f"YAML settings overrides (default: <run-dir>/{SETTINGS_FILENAME} if present)",
    )
    p_common.add_argument("--debug", action="store_true", help="Enable DEBUG logging (default: INFO)")

    p_run = sub.add_parser(
        "run",
        help="Discover, enrich and export (each phase can be skipped)",
        parents=[p_common],
    )
    p_run.add_argument("--skip-discovery", action="store_true", help="Do not search for new games")
    p_run.add_argument("--skip-enrich", action="store_true", help="Do not run enrichment steps")
    p_run.add_argument("--skip-export", action="store_true", help="Do not write the CSV export")
    p_run.add_argument(
        "--only-step",
        type=str,
        default=None,
        help=f"Run a single enrichment step ({', '.join(STEP_NAMES)})",
    )
    p_run.add_argument(
        "--steam-count",
        type=int,
        default=None,
        help="Target number of new games per Steam search (default: per search settings)",
    )
    p_run.set_defaults(_fn=_command_run)

    p_export = sub.add_parser(
        "export",
        help="Write the catalog CSV from the current snapshot",
        parents=[p_common],
    )
    p_export.add_argument(
        "--out", type=Path, default=None, help="Output CSV (default: <run-dir>/output/games.csv)"
    )
    p_export.set_defaults(_fn=_command_export)

    p_reset = sub.add_parser(
        "reset",
        help="Reset failed (or skipped) step results to pending so the next run retries them",
        parents=[p_common],
    )
    p_reset.add_argument("--step", required=True, help=f"Step name ({', '.join(STEP_NAMES)})")
    p_reset.add_argument(
        "--status",
        action="append",
        choices=[StepStatus.FAILED.value, StepStatus.SKIPPED.value],
        help="Result status to reset (repeatable; default: failed)",
    )
    p_reset.set_defaults(_fn=_command_reset)

    p_summary = sub.add_parser(
        "summary",
        help="Log totals and per-step status counts for the current snapshot",
        parents=[p_common],
    )
    p_summary.set_defaults(_fn=_command_summary)

    ns = parser.parse_args(argv)
    ns._fn(ns)
    return


if __name__ == "__main__":
    main()
