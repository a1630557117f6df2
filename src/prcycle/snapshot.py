"""Normalization of GitHub-shaped pull request payloads into snapshots.

Payloads use the REST field names (``html_url``, ``submitted_at``,
``in_reply_to_id``, ...) with the timeline events under ``events`` (or the
legacy ``_events`` key). A few GraphQL spellings (``isMinimized``,
``replyTo``, ``previousRefName``) are accepted as well. All repairs of missing
data happen here, once, so the engine can rely on the snapshot's types.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional, Tuple

from .errors import SnapshotError
from .models import (
    EVENT_KINDS,
    Commit,
    IssueComment,
    Label,
    LifecycleEvent,
    PullRequestSnapshot,
    Review,
    ReviewThreadComment,
)
from .timestamps import parse_datetime, utc_now

logger = logging.getLogger(__name__)


def _login(value: Any) -> Optional[str]:
    """Extract ``login`` from a GitHub user object."""
    if isinstance(value, Mapping):
        login = value.get("login")
        return str(login) if login else None
    return None


def _optional_int(value: Any) -> Optional[int]:
    """Return ``value`` as an int, or ``None`` when it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _timestamp(value: Any, field_name: str, number: int) -> Optional[datetime]:
    if value is None or value == "":
        return None
    try:
        return parse_datetime(str(value))
    except ValueError as exc:
        raise SnapshotError(
            f"Pull request #{number} has an invalid '{field_name}' timestamp: {value!r}"
        ) from exc


def _list(payload: Mapping[str, Any], *keys: str) -> List[Any]:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, Mapping) and isinstance(value.get("nodes"), list):
            return list(value["nodes"])
        if isinstance(value, list):
            return value
    return []


def _records(payload: Mapping[str, Any], *keys: str) -> List[Mapping[str, Any]]:
    return [item for item in _list(payload, *keys) if isinstance(item, Mapping)]


def _mapping(value: Any, field_name: str, number: int) -> Mapping[str, Any]:
    """Return a nested object, treating a missing one as empty.

    Raises:
        SnapshotError: If the value is present but is not an object.
    """
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise SnapshotError(
            f"Pull request #{number} has a malformed '{field_name}': expected an object, "
            f"got {type(value).__name__}"
        )
    return value


def _parse_labels(items: List[Any]) -> Tuple[Label, ...]:
    labels: List[Label] = []
    for item in items:
        if isinstance(item, str):
            labels.append(Label(name=item))
        elif isinstance(item, Mapping) and item.get("name"):
            color = item.get("color")
            labels.append(Label(name=str(item["name"]), color=str(color) if color else None))
    return tuple(labels)


def _parse_commit(item: Mapping[str, Any], number: int) -> Commit:
    details = _mapping(item.get("commit"), "commit", number)
    committer = _mapping(details.get("committer"), "commit.committer", number)
    author = _mapping(details.get("author"), "commit.author", number)

    sha = str(item.get("sha") or item.get("oid") or "")
    committed_date = _timestamp(
        committer.get("date") or details.get("committedDate") or item.get("committedDate"),
        "commit.committer.date",
        number,
    )
    authored_date = _timestamp(author.get("date"), "commit.author.date", number)

    if committed_date is None:
        committed_date = authored_date
    if committed_date is None:
        committed_date = utc_now()
        logger.warning(
            "Commit %s has no committer or author date, using current timestamp",
            sha or "<unknown>",
            extra={"pr_number": number, "sha": sha},
        )

    parents = tuple(
        str(parent.get("sha") or parent.get("oid"))
        for parent in _list(item, "parents")
        if isinstance(parent, Mapping) and (parent.get("sha") or parent.get("oid"))
    )

    return Commit(
        sha=sha,
        committed_date=committed_date,
        message=str(details.get("message") or item.get("message") or ""),
        parents=parents,
        authored_date=authored_date,
        committer_login=_login(committer.get("user")) or _login(item.get("committer")),
        committer_name=committer.get("name") or None,
    )


def _parse_review(item: Mapping[str, Any], number: int) -> Review:
    return Review(
        id=_optional_int(item.get("id")),
        state=str(item.get("state") or "").upper(),
        submitted_at=_timestamp(item.get("submitted_at"), "review.submitted_at", number),
        body=item.get("body"),
        url=item.get("html_url") or item.get("url"),
        author=_login(item.get("user") or item.get("author")),
    )


def _parse_issue_comment(item: Mapping[str, Any], number: int) -> IssueComment:
    return IssueComment(
        id=_optional_int(item.get("id")),
        created_at=_timestamp(item.get("created_at"), "comment.created_at", number),
        body=item.get("body"),
        url=item.get("html_url") or item.get("url"),
        author=_login(item.get("user") or item.get("author")),
    )


def _parse_review_comment(item: Mapping[str, Any], number: int) -> ReviewThreadComment:
    reply_to = item.get("in_reply_to_id")
    if reply_to is None and isinstance(item.get("replyTo"), Mapping):
        reply_to = item["replyTo"].get("id")

    return ReviewThreadComment(
        id=_optional_int(item.get("id")),
        created_at=_timestamp(item.get("created_at"), "review_comment.created_at", number),
        body=item.get("body"),
        url=item.get("html_url") or item.get("url"),
        author=_login(item.get("user") or item.get("author")),
        reply_to_id=_optional_int(reply_to),
        is_minimized=bool(item.get("is_minimized", item.get("isMinimized", False))),
    )


def _parse_event(item: Mapping[str, Any], number: int) -> Optional[LifecycleEvent]:
    kind = item.get("event")
    if kind not in EVENT_KINDS:
        logger.debug(
            "Ignoring unsupported timeline event",
            extra={"pr_number": number, "event": kind},
        )
        return None

    created_at = _timestamp(item.get("created_at"), f"{kind}.created_at", number)
    if created_at is None:
        created_at = utc_now()
        logger.warning(
            "Event %s missing created_at, using current timestamp",
            kind,
            extra={"pr_number": number, "event_id": item.get("id")},
        )

    ref = item.get("ref")
    if isinstance(ref, Mapping):
        ref = ref.get("name")

    return LifecycleEvent(
        event=str(kind),
        created_at=created_at,
        id=_optional_int(item.get("id")),
        actor=_login(item.get("actor")),
        before_sha=item.get("before") or None,
        after_sha=item.get("after") or item.get("commit_id") or None,
        ref=ref or None,
        previous_ref_name=item.get("previousRefName") or item.get("previous_ref_name") or None,
        current_ref_name=item.get("currentRefName") or item.get("current_ref_name") or None,
    )


def parse_snapshot(payload: Mapping[str, Any]) -> PullRequestSnapshot:
    """Normalize a GitHub-shaped pull request payload into a snapshot.

    Args:
        payload: Pull request details including ``commits``, ``reviews``,
            ``comments``, ``review_comments`` and ``events`` collections.

    Returns:
        The validated ``PullRequestSnapshot``.

    Raises:
        SnapshotError: If the payload or one of its nested objects is not a
            mapping, the PR number is unusable, or a timestamp is unparseable.
    """
    if not isinstance(payload, Mapping):
        raise SnapshotError(f"Pull request payload must be a mapping, got {type(payload).__name__}")

    number = _optional_int(payload.get("number"))
    if number is None:
        raise SnapshotError(f"Pull request payload is missing a numeric 'number': keys={sorted(payload)}")

    base = _mapping(payload.get("base"), "base", number)
    head = _mapping(payload.get("head"), "head", number)
    base_repo = _mapping(base.get("repo"), "base.repo", number)

    events = [
        event
        for event in (_parse_event(item, number) for item in _records(payload, "events", "_events"))
        if event is not None
    ]

    snapshot = PullRequestSnapshot(
        number=number,
        title=str(payload.get("title") or ""),
        author=_login(payload.get("user")),
        url=str(payload.get("html_url") or payload.get("url") or ""),
        state=payload.get("state"),
        draft=bool(payload.get("draft", False)),
        created_at=_timestamp(payload.get("created_at"), "created_at", number),
        updated_at=_timestamp(payload.get("updated_at"), "updated_at", number),
        merged_at=_timestamp(payload.get("merged_at"), "merged_at", number),
        merge_commit_sha=payload.get("merge_commit_sha") or None,
        merged_by=_login(payload.get("merged_by")),
        base_ref=base.get("ref") or None,
        head_ref=head.get("ref") or None,
        repo_owner=_login(base_repo.get("owner")),
        repo_name=base_repo.get("name") or None,
        labels=_parse_labels(_list(payload, "labels")),
        changed_files=_optional_int(payload.get("changed_files")),
        additions=_optional_int(payload.get("additions")),
        deletions=_optional_int(payload.get("deletions")),
        commits=tuple(_parse_commit(item, number) for item in _records(payload, "commits")),
        reviews=tuple(_parse_review(item, number) for item in _records(payload, "reviews")),
        issue_comments=tuple(_parse_issue_comment(item, number) for item in _records(payload, "comments")),
        review_comments=tuple(
            _parse_review_comment(item, number) for item in _records(payload, "review_comments")
        ),
        events=tuple(events),
    )

    logger.debug(
        "Parsed pull request snapshot",
        extra={
            "pr_number": number,
            "commits": len(snapshot.commits),
            "reviews": len(snapshot.reviews),
            "review_comments": len(snapshot.review_comments),
            "events": len(snapshot.events),
        },
    )
    return snapshot
