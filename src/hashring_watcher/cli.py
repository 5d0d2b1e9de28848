#!/usr/bin/env python3
"""CLI for the hashring watcher."""

import argparse
import asyncio
import json
import logging
import signal
import sys
from dataclasses import fields
from typing import Optional

import httpx
from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from hashring_watcher import __version__
from hashring_watcher.config import WatcherConfig
from hashring_watcher.discovery import build_file_list
from hashring_watcher.errors import ConfigurationError
from hashring_watcher.run import FileStatus, RunReport, run_reconciliation
from hashring_watcher.scheduler import Scheduler, create_scheduler

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger("hashring-watcher")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(verbose: bool = False) -> None:
    """Configure the root logger once for the process."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)
    # httpx logs every request at INFO, httpcore every connection step at DEBUG
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def print_report(report: RunReport, format_type: str = "text") -> None:
    """Print a reconciliation run summary."""
    if format_type == "json":
        print(json.dumps(report.to_dict(), indent=2))
        return

    table = Table(title="Hashring Reconciliation", box=box.ROUNDED)
    table.add_column("Source", style="cyan")
    table.add_column("Status")
    table.add_column("Ready", justify="right")
    table.add_column("Fingerprint", style="dim")
    table.add_column("Error", style="red")

    status_style = {
        FileStatus.WRITTEN: "green",
        FileStatus.UNCHANGED: "blue",
        FileStatus.FAILED: "red",
    }
    for outcome in report.outcomes:
        ready = (
            f"{outcome.ready_endpoints}/{outcome.total_endpoints}"
            if outcome.status != FileStatus.FAILED
            else "-"
        )
        table.add_row(
            Text(outcome.source),
            Text(outcome.status.value, style=status_style[outcome.status]),
            ready,
            (outcome.fingerprint or "")[:12],
            Text(outcome.error or ""),
        )

    console.print(table)
    console.print(
        f"Written: {len(report.written)}  Unchanged: {len(report.unchanged)}  "
        f"Failed: {len(report.failed)}  ({report.duration_ms:.0f} ms)"
    )


def load_config(args: argparse.Namespace) -> WatcherConfig:
    """Layer defaults, environment, config file and flags, then validate."""
    config = WatcherConfig.from_env()
    if args.config:
        config = config.merge_yaml(args.config)

    flags = {f.name: getattr(args, f.name, None) for f in fields(WatcherConfig)}
    config = config.merge(flags)
    config.validate()
    return config


async def run_once(
    config: WatcherConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> RunReport:
    """Discover files and run a single reconciliation pass."""
    files = build_file_list(config, logger)
    return await run_reconciliation(files, config, transport=transport, logger=logger)


async def watch(
    config: WatcherConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Scheduler:
    """Run the scheduler until SIGINT or SIGTERM."""
    scheduler = create_scheduler(config, transport=transport, logger=logger)
    loop = asyncio.get_running_loop()

    def on_signal(sig: signal.Signals) -> None:
        logger.info("Caught %s", sig.name)
        scheduler.stop()

    handled = (signal.SIGINT, signal.SIGTERM)
    for sig in handled:
        loop.add_signal_handler(sig, on_signal, sig)
    try:
        await scheduler.run()
    finally:
        for sig in handled:
            loop.remove_signal_handler(sig)
    return scheduler


def build_parser() -> argparse.ArgumentParser:
    """Command-line parser. Unset flags stay None so lower layers apply."""
    parser = argparse.ArgumentParser(
        prog="hashring-watcher",
        description="Keep generated hashring files limited to ready endpoints",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  hashring-watcher --file hashrings.json                  # Reconcile once
  hashring-watcher --directory /etc/thanos --schedule     # Reconcile every interval
  hashring-watcher --file hashrings.json --format json    # Machine-readable summary
        """,
    )
    source = parser.add_argument_group("source")
    source.add_argument(
        "--file",
        help="Hashring filepath to watch. (mutually exclusive with '--directory')",
    )
    source.add_argument(
        "--directory",
        help="Directory path to watch hashring files. (mutually exclusive with '--file')",
    )
    parser.add_argument(
        "--owner",
        help="Set owner on generated hashring files, empty to skip (default: thanos)",
    )
    parser.add_argument(
        "--endpoint-scheme",
        choices=["http", "https"],
        help="Endpoint scheme to perform readiness requests (default: http)",
    )
    parser.add_argument(
        "--endpoint-timeout",
        type=float,
        help="Endpoint timeout in seconds to perform readiness requests (default: 5)",
    )
    parser.add_argument(
        "--endpoint-port-offset",
        type=int,
        help="Endpoint port offset to perform readiness requests (default: 1)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        help="Watcher scheduler interval in seconds (default: 10)",
    )
    parser.add_argument(
        "--schedule",
        action="store_true",
        default=None,
        help="Enable hashring files watcher scheduler",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=None,
        help="Enable verbose mode",
    )
    parser.add_argument(
        "--config",
        "-c",
        help="YAML file with settings (keys match the long flag names)",
    )
    parser.add_argument(
        "--format",
        "-f",
        choices=["text", "json"],
        default="text",
        help="Summary output format for single runs",
    )
    parser.add_argument("--version", action="version", version=__version__)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except ConfigurationError as e:
        err_console.print(f"FATAL: {e}", style="red", markup=False, soft_wrap=True)
        return 2

    configure_logging(config.verbose)

    if not config.schedule:
        report = asyncio.run(run_once(config))
        print_report(report, args.format)
        return 1 if report.failed else 0

    asyncio.run(watch(config))
    return 0


if __name__ == "__main__":
    sys.exit(main())
