#!/usr/bin/env python3
"""
Relaunch Command Runner Script.

Runs a command and restarts it whenever the watched paths change.
Requires Python 3.11+.

Usage:
    python scripts/run_watch.py --watch src --watch config.yaml -- python app.py
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from runner.command import command_task_factory
from runner.supervisor import watch
from utils.config import get_settings
from utils.logger import configure_logging, get_logger
from watcher.errors import WatcherError


logger = get_logger("run_watch")


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        description="Run a command and restart it when watched files change"
    )
    parser.add_argument(
        "--watch",
        "-w",
        dest="paths",
        type=Path,
        action="append",
        default=None,
        help="File or directory to watch, non-recursively (repeatable, default: .)",
    )
    parser.add_argument(
        "--cancel-on-change",
        action="store_true",
        default=None,
        help="Stop the running command when a change is detected",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Command to run, after --",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        parser.error("a command to run is required")

    settings = get_settings()
    configure_logging(args.log_level)

    cancel_on_change = settings.watcher.cancel_on_change
    if args.cancel_on_change is not None:
        cancel_on_change = args.cancel_on_change

    paths = args.paths or [Path.cwd()]
    logger.info(
        "run_watch_starting",
        command=command,
        paths=[str(p) for p in paths],
        quiet_window=settings.watcher.quiet_window,
        cancel_on_change=cancel_on_change,
    )

    try:
        asyncio.run(
            watch(
                paths,
                command_task_factory(command),
                quiet_window=settings.watcher.quiet_window,
                cancel_on_change=cancel_on_change,
                capacity=settings.watcher.queue_size,
            )
        )
    except KeyboardInterrupt:
        logger.info("run_watch_stopped")
    except WatcherError as e:
        logger.error("watch_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    main()
