"""Tests for pull request status derivation."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from prcycle.models import PullRequestSnapshot
from prcycle.status import derive_status

MERGED_AT = datetime(2024, 1, 2, 12, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("state", "draft", "merged_at", "expected"),
    [
        ("closed", False, MERGED_AT, "Merged"),
        ("open", True, MERGED_AT, "Merged"),
        ("open", True, None, "Draft"),
        ("CLOSED", False, None, "Closed"),
        ("Open", False, None, "Open"),
        ("locked", False, None, "locked"),
        (None, False, None, "Unknown"),
    ],
)
def test_derive_status(state, draft, merged_at, expected):
    """Verify merge time wins over the draft flag, which wins over the raw state."""
    snapshot = PullRequestSnapshot(number=1, state=state, draft=draft, merged_at=merged_at)

    assert derive_status(snapshot) == expected
