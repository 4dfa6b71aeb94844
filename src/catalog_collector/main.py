"""Main application entry point."""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from .config.loader import ConfigLoader, ConfigurationError
from .config.settings import JobSettings
from .core.job import ResolverJob
from .scheduler.job_scheduler import JobScheduler
from .utils.logging import get_logger, setup_logging


EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_INCOMPLETE = 3


def build_parser() -> argparse.ArgumentParser:
    """Create the command line parser."""
    parser = argparse.ArgumentParser(
        prog="catalog-collector",
        description="Mirror the catalog feed into resolver blobs, resuming from the stored cursor."
    )
    parser.add_argument("--config", help="YAML or JSON file with job arguments")
    parser.add_argument("--once", action="store_true", help="Run a single time even if an interval is configured")
    parser.add_argument("--interval-minutes", type=int, help="Run periodically with this many minutes between runs")
    parser.add_argument("--dont-store-cursor", action="store_true", default=None, help="Never write the checkpoint")
    parser.add_argument("--log-level", help="Logging level")
    parser.add_argument("--log-format", choices=["json", "console"], help="Logging output format")
    return parser


def load_settings(args: argparse.Namespace) -> JobSettings:
    """Load settings from the config file or environment, applying command line overrides."""
    overrides = {}
    if args.dont_store_cursor:
        overrides["dont_store_cursor"] = True
    if args.interval_minutes is not None:
        overrides["interval_minutes"] = args.interval_minutes

    loader = ConfigLoader()
    if args.config:
        return loader.load_from_file(args.config, **overrides)
    return loader.load_from_env(**overrides)


async def run_once(settings: JobSettings) -> int:
    """Run the job a single time and map its outcome to an exit code."""
    job = ResolverJob(settings)
    if await job.run():
        return EXIT_SUCCESS
    return EXIT_INCOMPLETE


async def run_periodically(settings: JobSettings) -> int:
    """Run the job on an interval until interrupted or a fatal error occurs."""
    logger = get_logger("main")
    job = ResolverJob(settings)
    scheduler = JobScheduler(job.run, interval_minutes=settings.interval_minutes)

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, lambda: asyncio.ensure_future(scheduler.stop()))
        except NotImplementedError:
            pass

    await scheduler.start()
    try:
        await scheduler.wait()
    finally:
        await scheduler.stop()

    logger.info("Collector stopped", runs=scheduler.runs, failed_runs=scheduler.failed_runs)
    return EXIT_SUCCESS


async def run(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, configure logging and run the job."""
    args = build_parser().parse_args(argv)
    setup_logging(log_level=args.log_level, log_format=args.log_format)
    logger = get_logger("main")

    try:
        settings = load_settings(args)
    except ConfigurationError as e:
        logger.error("Invalid configuration", error=str(e))
        return EXIT_FATAL

    if settings.interval_minutes and not args.once:
        return await run_periodically(settings)
    return await run_once(settings)


def main(argv: Optional[List[str]] = None) -> int:
    """Console script entry point."""
    logger = get_logger("main")
    try:
        return asyncio.run(run(argv))
    except KeyboardInterrupt:
        return EXIT_INCOMPLETE
    except Exception as e:
        logger.critical("Collector failed", error=str(e), exc_info=True)
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
