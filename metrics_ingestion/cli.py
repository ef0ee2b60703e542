"""
Metrics Ingestion - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line driver for a metrics collector.

- Loads configuration from CLI, environment and .env
- Runs one gather cycle or loops on an interval
- Emits records through the logging sink

============================================================
USAGE
============================================================
python -m metrics_ingestion.cli --single-cycle
python -m metrics_ingestion.cli --preset youtube --playlist-id PL... --interval 900
python -m metrics_ingestion.cli --env-file prod.env --log-format text

============================================================
"""

import argparse
import asyncio
import dataclasses
import json
import logging
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv

from metrics_ingestion.collector import create_collector
from metrics_ingestion.config import load_config_from_env, require_valid
from metrics_ingestion.exceptions import ConfigurationError
from metrics_ingestion.sink import LoggingSink, MetricSink
from metrics_ingestion.types import CollectorConfig, GatherStatus


logger = logging.getLogger("metrics_ingestion.cli")


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(level: str = "INFO", log_format: str = "json") -> None:
    """
    Set up structured logging on stdout.

    Args:
        level: Log level
        log_format: Output format (json or text)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="metrics-ingestion",
        description="Collect per-item metrics from a paginated REST API",
    )

    source_group = parser.add_argument_group("Source Options")
    source_group.add_argument(
        "--env-file",
        type=str,
        metavar="PATH",
        help="Read METRICS_* settings from this .env file",
    )
    source_group.add_argument(
        "--preset",
        type=str,
        choices=["youtube"],
        help="Start from a built-in preset",
    )
    source_group.add_argument(
        "--playlist-id",
        type=str,
        help="Playlist id for the youtube preset",
    )

    execution_group = parser.add_argument_group("Execution Options")
    execution_group.add_argument(
        "--interval",
        type=int,
        metavar="SECONDS",
        help="Seconds between gather cycles (default: from config)",
    )
    execution_group.add_argument(
        "--single-cycle",
        action="store_true",
        help="Run a single gather cycle and exit",
    )
    execution_group.add_argument(
        "--max-concurrency",
        type=int,
        metavar="N",
        help="Detail fetches in flight (default: from config)",
    )

    logging_group = parser.add_argument_group("Logging Options")
    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default="json",
        help="Logging format (default: json)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    return parser


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def build_config(args: argparse.Namespace) -> CollectorConfig:
    """
    Build collector configuration from environment and CLI arguments.

    Raises:
        ConfigurationError: On missing or invalid settings
    """
    load_dotenv(args.env_file)

    env = dict(os.environ)
    if args.preset:
        env["METRICS_PRESET"] = args.preset
    if args.playlist_id:
        env["METRICS_PLAYLIST_ID"] = args.playlist_id

    config = load_config_from_env(env=env)

    overrides = {}
    if args.interval is not None:
        overrides["interval_seconds"] = args.interval
    if args.max_concurrency is not None:
        overrides["max_concurrency"] = args.max_concurrency
    if overrides:
        config = require_valid(dataclasses.replace(config, **overrides))
    return config


# ============================================================
# RUNNER
# ============================================================

async def run_cycles(
    config: CollectorConfig,
    sink: MetricSink,
    single_cycle: bool = False,
) -> int:
    """
    Run gather cycles until interrupted.

    Returns:
        Exit code of the last cycle (0 success/partial, 1 failed)
    """
    exit_code = 0
    async with create_collector(config) as collector:
        while True:
            result = await collector.gather(sink)
            exit_code = 1 if result.status == GatherStatus.FAILED else 0

            if single_cycle:
                return exit_code

            logger.debug(f"Waiting {config.interval_seconds}s until next cycle")
            await asyncio.sleep(config.interval_seconds)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level, args.log_format)

    try:
        config = build_config(args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        return asyncio.run(run_cycles(config, LoggingSink(), single_cycle=args.single_cycle))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
