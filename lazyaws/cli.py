"""Command-line front door for lazyaws.

Parses options, resolves config and log locations, then runs the
interactive session until the user quits.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace

from .config import load_app_config, load_auth_config
from .input import read_key, route_key
from .log_utils import build_log_config, configure_logging, log_event
from .paths import config_dir, sso_cache_dir
from .render import paint
from .runtime import (
    HandoffController,
    RuntimeLoopCallbacks,
    TaskDispatcher,
    TerminalController,
    run_session,
)
from .runtime.services import AwsServices

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lazyaws",
        description="Browse and manage EC2, S3 and EKS from a vim-style terminal UI.",
    )
    parser.add_argument("--region", default=None, help="AWS region to start in (default: config or AWS_REGION).")
    parser.add_argument(
        "--page-size",
        type=_positive_int,
        default=None,
        help="Rows moved by Ctrl+B/Ctrl+F (default: config or 20).",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Log level for the lazyaws log file.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run lazyaws; returns the process exit code.

    Failing to resolve the home or config directories exits non-zero through
    ``SystemExit`` before the terminal is touched.
    """
    args = build_parser().parse_args(argv)

    try:
        config_path = config_dir()
        sso_path = sso_cache_dir()
        configure_logging(build_log_config(level_name=args.log_level))
    except (RuntimeError, OSError, KeyError) as exc:
        raise SystemExit(f"lazyaws: cannot prepare config directories: {exc}") from exc

    config = load_app_config(config_path)
    if args.region:
        regions = config.regions if args.region in config.regions else (args.region, *config.regions)
        config = replace(config, region=args.region, regions=regions)
    if args.page_size is not None:
        config = replace(config, page_size=args.page_size)
    auth = load_auth_config(config_path)

    if not sys.stdin.isatty() or not sys.stdout.isatty():
        raise SystemExit("lazyaws: an interactive terminal is required")

    log_event(logger, "session.start", region=config.region, auth=auth.method if auth else "unset")
    services = AwsServices(config_path, sso_path)
    terminal = TerminalController(sys.stdin.fileno(), sys.stdout.fileno())
    dispatcher = TaskDispatcher(services)
    handoff = HandoffController(terminal, services, auth=auth)
    callbacks = RuntimeLoopCallbacks(
        read_key=read_key,
        route_key=route_key,
        paint=lambda state, width, height, frame: paint(terminal, state, width, height, frame),
    )
    try:
        return run_session(config, auth, terminal, dispatcher, handoff, callbacks)
    finally:
        dispatcher.shutdown()


if __name__ == "__main__":
    sys.exit(main())
