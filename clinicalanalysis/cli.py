"""Command-line interface for clinicalanalysis."""

import argparse
import asyncio
import datetime
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from .config import load_config
from .observability import Notification, ObservabilitySink
from .pipeline_core import CancellationToken, PipelineOutcome, PipelineRunner, PipelineView
from .pipelines import PIPELINES, ServiceClients, build_run_context, create_runner
from .results import ScreeningResponse, aggregate_results_by_gene
from .run_context import DEFAULT_MODULES
from .stages.analysis_stages import PHENOTYPE_STAGE, SCREENING_STAGE
from .stages.stage_registry import CLINICAL_PIPELINE, get_registry
from .version import __version__

logger = logging.getLogger("clinicalanalysis")

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


def create_parser() -> argparse.ArgumentParser:
    """Create and return the argument parser for the clinicalanalysis CLI."""
    parser = argparse.ArgumentParser(
        description="clinicalanalysis: Run staged clinical analysis pipelines for a session."
    )

    # General Options
    general_group = parser.add_argument_group("General Options")
    general_group.add_argument(
        "--version",
        action="version",
        version=f"clinicalanalysis {__version__}",
        help="Show the current version and exit",
    )
    general_group.add_argument(
        "--log-level",
        choices=list(LOG_LEVEL_MAP),
        default="INFO",
        help="Set the logging level",
    )
    general_group.add_argument(
        "--log-file", help="Path to a file to write logs to (in addition to stderr)."
    )
    general_group.add_argument(
        "-c",
        "--config",
        help="Path to configuration file",
        default=None,
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a pipeline for one analysis session")
    run_parser.add_argument("-s", "--session-id", required=True, help="Analysis session id")
    run_parser.add_argument(
        "-p",
        "--profile",
        help="Clinical profile JSON file (demographics, phenotype, sample info)",
    )
    run_parser.add_argument(
        "--pipeline",
        choices=sorted(PIPELINES),
        default=CLINICAL_PIPELINE,
        help="Pipeline to run",
    )
    run_parser.add_argument(
        "--modules",
        help=f"Comma-separated analysis modules to enable (default: {','.join(sorted(DEFAULT_MODULES))})",
    )
    run_parser.add_argument("--vcf-file", help="VCF path on the backend (processing pipeline)")
    run_parser.add_argument("--screening-mode", help="Override screening.mode from the config")
    run_parser.add_argument(
        "--filtering-preset", help="Override processing.filtering_preset from the config"
    )
    run_parser.add_argument(
        "--literature-limit", type=int, help="Override literature.limit from the config"
    )
    run_parser.add_argument(
        "--top-genes",
        type=int,
        default=10,
        help="Number of phenotype-ranked genes to print after a clinical run",
    )

    stages_parser = subparsers.add_parser("stages", help="List the stages of each pipeline")
    stages_parser.add_argument("--pipeline", choices=sorted(PIPELINES), help="Only this pipeline")

    return parser


def parse_args(args_list: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Parameters
    ----------
    args_list : List[str], optional
        Arguments to parse; defaults to ``sys.argv[1:]``

    Returns
    -------
    argparse.Namespace
        Parsed arguments
    """
    parser = create_parser()
    return parser.parse_args(args_list)


def apply_cli_overrides(cfg: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """Write CLI overrides into the loaded configuration."""
    if args.screening_mode:
        cfg.setdefault("screening", {})["mode"] = args.screening_mode
    if args.filtering_preset:
        cfg.setdefault("processing", {})["filtering_preset"] = args.filtering_preset
    if args.literature_limit is not None:
        cfg.setdefault("literature", {})["limit"] = args.literature_limit
    return cfg


def load_profile(path: Optional[str]) -> Dict[str, Any]:
    """Read a clinical profile JSON file; no path means an empty profile."""
    if not path:
        return {}
    profile_path = Path(path)
    if not profile_path.exists():
        raise FileNotFoundError(f"Profile file '{path}' not found.")
    with open(profile_path, "r", encoding="utf-8") as f:
        try:
            profile = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Error parsing profile JSON: {e}")
    if not isinstance(profile, dict):
        raise ValueError("Profile file must contain a JSON object")
    return profile


def _log_notification(notification: Notification) -> None:
    level = logging.ERROR if notification.level == "error" else logging.INFO
    if notification.level == "warning":
        level = logging.WARNING
    message = notification.title
    if notification.description:
        message = f"{message}: {notification.description}"
    logger.log(level, message)


def _progress_logger():
    last = {"progress": -1}

    def listener(view: PipelineView) -> None:
        if view.progress != last["progress"]:
            last["progress"] = view.progress
            stage = f" ({view.current_stage})" if view.current_stage else ""
            logger.info(f"Progress: {view.progress}%{stage}")

    return listener


async def run_pipeline(
    runner: PipelineRunner, run_context, token: Optional[CancellationToken] = None
) -> PipelineOutcome:
    """Run ``runner`` to completion, cancelling it on SIGINT/SIGTERM."""
    token = token or CancellationToken()
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, token.cancel, f"received {sig.name}")
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            logger.debug(f"Cannot install a handler for {sig.name} on this platform")
    progress_listener = _progress_logger()
    runner.add_listener(progress_listener)
    try:
        return await runner.start(run_context, token)
    finally:
        runner.remove_listener(progress_listener)
        for sig in installed:
            loop.remove_signal_handler(sig)


async def _execute(args: argparse.Namespace, cfg: Dict[str, Any]) -> int:
    profile = load_profile(args.profile)
    if args.vcf_file:
        profile["vcf_file_path"] = args.vcf_file
    modules = [m.strip() for m in args.modules.split(",") if m.strip()] if args.modules else None
    run_context = build_run_context(args.session_id, profile, cfg, modules)

    sink = ObservabilitySink(notifier=_log_notification)
    async with httpx.AsyncClient() as http:
        clients = ServiceClients.from_config(http, cfg)
        runner = create_runner(args.pipeline, clients, cfg, sink=sink)
        outcome = await run_pipeline(runner, run_context)

    print_summary(runner, args.top_genes)
    return 0 if outcome.success else 1


def print_summary(runner: PipelineRunner, top_genes: int = 10) -> None:
    """Print the stage status table and, for clinical runs, the top genes."""
    print(f"\n{runner.pipeline_name} pipeline: {runner.outcome}")
    for stage in runner.stages:
        print(f"  {stage.display_name:24s} {runner.stage_statuses[stage.name].value}")

    context = runner.context
    if context is None:
        return

    screening = context.get_result(SCREENING_STAGE)
    if isinstance(screening, ScreeningResponse):
        counts = ", ".join(f"{tier}: {n}" for tier, n in screening.tier_counts().items())
        print(f"\nScreening results: {screening.total_results} ({counts})")

    matches = context.get_result(PHENOTYPE_STAGE)
    if matches:
        table = aggregate_results_by_gene(matches)
        print(f"\nTop {min(top_genes, len(table))} genes by clinical priority:")
        print(table.head(top_genes).to_string(index=False))


def main(argv: Optional[List[str]] = None) -> int:
    """Run main entry point for the clinicalanalysis CLI.

    Steps:
        1. Parse arguments.
        2. Configure logging and load config.
        3. Apply CLI overrides to the configuration.
        4. Build the run context from the clinical profile.
        5. Run the pipeline and print its summary.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    args = parse_args(argv)

    logger.setLevel(LOG_LEVEL_MAP[args.log_level])

    # If a log file is specified, add a file handler
    if args.log_file:
        log_file_path = Path(args.log_file)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        fh = logging.FileHandler(args.log_file)
        fh.setLevel(LOG_LEVEL_MAP[args.log_level])
        fh.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )
        )
        logger.addHandler(fh)
        logger.debug(f"Logging to file enabled: {args.log_file}")

    logger.debug(f"CLI arguments: {args}")

    if args.command == "stages":
        print(get_registry().get_stage_summary(args.pipeline))
        return 0

    start_time = datetime.datetime.now()
    logger.info(f"Run started at {start_time.isoformat()}")

    try:
        cfg = load_config(args.config)
        logger.debug(f"Configuration loaded: {cfg}")
        apply_cli_overrides(cfg, args)
        return asyncio.run(_execute(args, cfg))
    except (FileNotFoundError, ValueError, KeyError) as e:
        logger.error(f"Invalid input: {e}")
        return 1
    except Exception as e:
        logger.error(f"Pipeline failed: {e}")
        return 1
    finally:
        logger.info(f"Run finished after {datetime.datetime.now() - start_time}")


if __name__ == "__main__":
    sys.exit(main())
