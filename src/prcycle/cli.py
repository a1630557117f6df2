"""Command-line argument parsing for the PR cycle-time analyzer."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

OUTPUT_FORMATS = ("json", "report")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for snapshot analysis.

    Returns:
        Parsed CLI arguments containing snapshot paths, output format and
        log level.
    """
    parser = argparse.ArgumentParser(
        prog="pr-cycle-time",
        description=(
            "Build pull request timelines, business-hour cycle-time metrics and "
            "workflow validation issues from pull request snapshot JSON files."
        ),
    )

    parser.add_argument(
        "snapshots",
        nargs="+",
        metavar="SNAPSHOT",
        help="Path to a JSON file holding one pull request snapshot or a list of them.",
    )
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=OUTPUT_FORMATS,
        default="json",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "--title",
        default=None,
        help="Title used in the report header (default: the snapshot paths).",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default="WARNING",
        help="Logging verbosity (default: WARNING).",
    )

    return parser.parse_args(argv)
