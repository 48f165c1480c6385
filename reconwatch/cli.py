"""Command-line entry point for the periodic command monitor."""

from __future__ import annotations

import argparse
import logging
import os
import re
import sys
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from reconwatch.monitor import DEFAULT_INTERVAL, DEFAULT_MODE, Monitor, MonitorOptions

_MICROSECONDS_PER_UNIT = {
    "ns": Decimal("0.001"),
    "us": Decimal(1),
    "µs": Decimal(1),
    "μs": Decimal(1),
    "ms": Decimal(1000),
    "s": Decimal(10**6),
    "m": Decimal(60 * 10**6),
    "h": Decimal(3600 * 10**6),
}
_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``30m``, ``1h30m`` or ``1.5s``."""
    original = text
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration {original!r}")

    total = Decimal(0)
    pos = 0
    while pos < len(text):
        match = _PART.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration {original!r}")
        try:
            amount = Decimal(match.group(1))
        except InvalidOperation as exc:
            raise ValueError(f"invalid duration {original!r}") from exc
        total += amount * _MICROSECONDS_PER_UNIT[match.group(2)]
        pos = match.end()
    return timedelta(microseconds=float(sign * total))


def _duration_arg(text: str) -> timedelta:
    try:
        return parse_duration(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the command."""
    parser = argparse.ArgumentParser(
        prog="watchtower",
        description=(
            "Runs reconnaissance commands at regular intervals, monitors their "
            "output for changes, and sends alerts when changes are detected."
        ),
    )
    parser.add_argument("--ffuf-cmds", default="", help="Path to file containing ffuf commands")
    parser.add_argument("--x8-cmds", default="", help="Path to file containing x8 commands")
    parser.add_argument(
        "--discord-webhook", default="", help="Discord webhook URL for notifications"
    )
    parser.add_argument(
        "--interval",
        type=_duration_arg,
        default=DEFAULT_INTERVAL,
        help="Interval between command executions",
    )
    parser.add_argument(
        "--mode",
        default=DEFAULT_MODE,
        help="Operating mode (currently only MR mode is supported)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--monitoring",
        action="store_true",
        help="Open separate terminal windows for each command's execution details",
    )
    return parser


def _init_logger(verbose: bool) -> logging.Logger:
    logger = logging.getLogger("reconwatch")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )
    )
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False
    return logger


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, then monitor the given commands until interrupted."""
    args = build_parser().parse_args(argv)
    logger = _init_logger(args.verbose)
    logger.info("Running with maximum parallelism: %d OS threads", os.cpu_count() or 1)

    if not args.ffuf_cmds and not args.x8_cmds:
        logger.critical("At least one command file (--ffuf-cmds or --x8-cmds) must be provided")
        return 1

    options = MonitorOptions(
        ffuf_commands_file=args.ffuf_cmds,
        x8_commands_file=args.x8_cmds,
        discord_webhook=args.discord_webhook,
        interval=args.interval,
        mode=args.mode,
        monitoring=args.monitoring,
    )
    try:
        monitor = Monitor(options, logger)
    except OSError as exc:
        logger.critical("Failed to initialize monitor: %s", exc)
        return 1

    try:
        monitor.start()
    except ValueError as exc:
        logger.critical("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())