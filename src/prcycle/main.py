"""Application entry point for the PR cycle-time analyzer."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional, Sequence

from .analyzer import analyze_batch
from .cli import parse_args
from .config import load_config
from .errors import ConfigurationError, SnapshotError
from .models import PullRequestSnapshot
from .snapshot import parse_snapshot
from .stats import generate_report

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_UNEXPECTED_ERROR = 1
EXIT_CONFIGURATION_ERROR = 2
EXIT_INPUT_ERROR = 3


def read_payloads(path: Path) -> List[Any]:
    """Read one snapshot payload, or a list of them, from a JSON file.

    Raises:
        SnapshotError: If the file cannot be read or is not valid JSON.
    """
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except OSError as exc:
        raise SnapshotError(f"Cannot read snapshot file '{path}': {exc}") from exc
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"Snapshot file '{path}' is not valid JSON: {exc}") from exc

    return data if isinstance(data, list) else [data]


def load_snapshots(paths: Sequence[str]) -> List[PullRequestSnapshot]:
    """Load and normalize all snapshots, skipping payloads that fail validation.

    Raises:
        SnapshotError: If a file is unreadable or no snapshot could be loaded.
    """
    snapshots: List[PullRequestSnapshot] = []
    for raw_path in paths:
        for payload in read_payloads(Path(raw_path)):
            try:
                snapshots.append(parse_snapshot(payload))
            except SnapshotError as exc:
                logger.error("Skipping invalid snapshot in %s: %s", raw_path, exc)
            except Exception:
                logger.exception("Skipping unreadable snapshot in %s", raw_path)

    if not snapshots:
        raise SnapshotError("No valid pull request snapshots were loaded.")
    return snapshots


def orchestrate_analysis(argv: Optional[Sequence[str]] = None) -> int:
    """Run snapshot analysis and print the result.

    Returns:
        ``0`` on success, ``2`` for configuration errors, ``3`` for input
        errors and ``1`` for any unexpected failure.
    """
    try:
        args = parse_args(argv)
        logging.basicConfig(
            level=getattr(logging, args.log_level),
            format="%(levelname)s %(name)s: %(message)s",
        )

        config = load_config()
        snapshots = load_snapshots(args.snapshots)
        result = analyze_batch(snapshots, config)

        if args.output_format == "report":
            print(generate_report(args.title or ", ".join(args.snapshots), result.analyses))
        else:
            print(json.dumps([analysis.to_dict() for analysis in result.analyses], indent=2, ensure_ascii=False))

        for number, message in result.failures:
            print(f"WARNING: PR #{number} could not be analyzed: {message}", file=sys.stderr)

        return EXIT_SUCCESS
    except ConfigurationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    except SnapshotError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_INPUT_ERROR
    except Exception as exc:
        logger.exception("Unexpected failure")
        print(f"ERROR: Unexpected failure: {exc}", file=sys.stderr)
        return EXIT_UNEXPECTED_ERROR


def main(argv: Optional[Sequence[str]] = None) -> int:
    return orchestrate_analysis(argv)


if __name__ == "__main__":
    raise SystemExit(main())
