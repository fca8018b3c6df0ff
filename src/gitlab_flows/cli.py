"""Command-line argument parsing for the GitLab reporting flows."""

from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _log_level(value: str) -> str:
    """Parse and validate a logging level name.

    Raises:
        argparse.ArgumentTypeError: If value is not a known level.
    """
    level = value.upper()
    if level not in _LOG_LEVELS:
        raise argparse.ArgumentTypeError(f"must be one of {', '.join(_LOG_LEVELS)}")
    return level


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitlab-flows",
        description=(
            "Run a GitLab reporting flow: 'pulse.weekly' for the weekly group digest "
            "or 'gitlab.mr_reviewer <merge request URL>' for a merge request review."
        ),
    )
    parser.add_argument(
        "--log-level",
        type=_log_level,
        default="INFO",
        help="Logging level (default: INFO).",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List registered flows and exit.",
    )
    parser.add_argument(
        "flow",
        nargs="?",
        help="Name of the flow to run.",
    )
    parser.add_argument(
        "flow_args",
        nargs=argparse.REMAINDER,
        help="Arguments passed through to the flow.",
    )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Namespace with ``log_level``, ``list``, ``flow`` and ``flow_args``.
    """
    return build_parser().parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
