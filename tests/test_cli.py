"""Tests for command-line argument parsing."""

import sys
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from prcycle.cli import parse_args


def test_parse_args_with_defaults(monkeypatch):
    """Verify CLI parsing applies defaults when only snapshot paths are given."""
    monkeypatch.setattr(sys, "argv", ["pr-cycle-time", "pr-1.json", "pr-2.json"])

    args = parse_args()

    assert args.snapshots == ["pr-1.json", "pr-2.json"]
    assert args.output_format == "json"
    assert args.title is None
    assert args.log_level == "WARNING"


def test_parse_args_with_all_options():
    """Verify CLI parsing accepts explicit format, title and log level."""
    args = parse_args(["prs.json", "--format", "report", "--title", "octo/repo", "--log-level", "debug"])

    assert args.output_format == "report"
    assert args.title == "octo/repo"
    assert args.log_level == "DEBUG"


def test_parse_args_without_snapshots_fails(monkeypatch):
    """Verify CLI parsing exits with an error when no snapshot path is given."""
    monkeypatch.setattr(sys, "argv", ["pr-cycle-time"])

    with pytest.raises(SystemExit):
        parse_args()


def test_parse_args_with_unknown_format_fails():
    """Verify CLI parsing rejects unsupported output formats."""
    with pytest.raises(SystemExit):
        parse_args(["prs.json", "--format", "xml"])
