"""Pull request status derivation shared by metrics and validation."""

from __future__ import annotations

from .models import PullRequestSnapshot

STATUS_MERGED = "Merged"
STATUS_DRAFT = "Draft"
STATUS_CLOSED = "Closed"
STATUS_OPEN = "Open"
STATUS_UNKNOWN = "Unknown"


def derive_status(snapshot: PullRequestSnapshot) -> str:
    """Return ``Merged``, ``Draft``, ``Closed``, ``Open`` or the raw state.

    ``merged_at`` wins over the draft flag, which wins over the raw state.
    Unrecognised states are returned verbatim; a missing state is ``Unknown``.
    """
    if snapshot.merged_at is not None:
        return STATUS_MERGED
    if snapshot.draft:
        return STATUS_DRAFT

    state = (snapshot.state or "").lower()
    if state == "closed":
        return STATUS_CLOSED
    if state == "open":
        return STATUS_OPEN
    return snapshot.state or STATUS_UNKNOWN
