"""Workflow validation over a built pull request timeline.

Two independent passes report anomalies as ``ValidationIssue`` values:
missing workflow steps and steps observed in the wrong order. Validation never
raises for malformed timelines; a check whose inputs are absent is skipped.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Sequence, Tuple, Union

from .commits import is_work_started_message
from .models import (
    ISSUE_MISSING_STEP,
    ISSUE_WRONG_ORDER,
    ITEM_APPROVED,
    ITEM_COMMENT,
    ITEM_COMMIT,
    ITEM_MERGED,
    ITEM_READY_FOR_REVIEW,
    ITEM_REVIEW_COMMENT,
    ITEM_REVIEW_REQUESTED,
    SEVERITY_ERROR,
    SEVERITY_WARNING,
    TimelineItem,
    ValidationIssue,
)
from .status import STATUS_DRAFT, STATUS_MERGED
from .timestamps import coerce_datetime, format_datetime

logger = logging.getLogger(__name__)

_COMMENT_TYPES = (ITEM_COMMENT, ITEM_REVIEW_COMMENT)


def _safe_time(value: Union[str, datetime, None]) -> Optional[datetime]:
    try:
        return coerce_datetime(value)
    except (TypeError, ValueError):
        return None


def _timed(timeline: Sequence[TimelineItem], *types: str) -> List[Tuple[datetime, TimelineItem]]:
    """Items of the given types with parseable times, in chronological order."""
    timed = []
    for item in timeline:
        if item.type not in types:
            continue
        moment = _safe_time(item.time)
        if moment is None:
            logger.debug("Skipping timeline item with unparseable time", extra={"time": item.time})
            continue
        timed.append((moment, item))
    timed.sort(key=lambda pair: pair[0])
    return timed


def check_missing_steps(timeline: Sequence[TimelineItem], status: str) -> List[ValidationIssue]:
    """Report workflow steps that never happened."""
    issues: List[ValidationIssue] = []
    types = {item.type for item in timeline}

    if ITEM_COMMIT not in types:
        issues.append(
            ValidationIssue(
                type=ISSUE_MISSING_STEP,
                severity=SEVERITY_ERROR,
                message="Missing first commit step - Workflow is incorrect",
            )
        )
    else:
        commit_titles = [item.title for item in timeline if item.type == ITEM_COMMIT]
        if not any(is_work_started_message(title) for title in commit_titles):
            issues.append(
                ValidationIssue(
                    type=ISSUE_MISSING_STEP,
                    severity=SEVERITY_ERROR,
                    message='Missing "Work has started on the" commit - Workflow is incorrect',
                    details={"commitTitles": commit_titles},
                )
            )

    if ITEM_COMMENT not in types and ITEM_REVIEW_COMMENT not in types:
        issues.append(
            ValidationIssue(
                type=ISSUE_MISSING_STEP,
                severity=SEVERITY_WARNING,
                message="Missing review comment step",
            )
        )

    if ITEM_APPROVED not in types:
        issues.append(
            ValidationIssue(
                type=ISSUE_MISSING_STEP,
                severity=SEVERITY_WARNING,
                message="Missing approval step",
            )
        )

    if status == STATUS_MERGED and ITEM_MERGED not in types:
        issues.append(
            ValidationIssue(
                type=ISSUE_MISSING_STEP,
                severity=SEVERITY_ERROR,
                message="PR is merged but missing merge step in timeline",
            )
        )

    return issues


def check_wrong_order(
    timeline: Sequence[TimelineItem],
    created_at: Union[str, datetime, None],
) -> List[ValidationIssue]:
    """Report steps that happened out of the expected order."""
    issues: List[ValidationIssue] = []

    opened_at = _safe_time(created_at)
    if opened_at is not None:
        opened_label = created_at if isinstance(created_at, str) else format_datetime(opened_at)
        for moment, item in _timed(timeline, ITEM_REVIEW_REQUESTED):
            if moment < opened_at:
                issues.append(
                    ValidationIssue(
                        type=ISSUE_WRONG_ORDER,
                        severity=SEVERITY_ERROR,
                        message=f"Review requested ({item.time}) appears before PR was opened ({opened_label})",
                        details={
                            "itemType": item.type,
                            "itemTime": item.time,
                            "prOpenedTime": opened_label,
                        },
                    )
                )

    ready_items = _timed(timeline, ITEM_READY_FOR_REVIEW)
    comment_items = _timed(timeline, *_COMMENT_TYPES)

    if ready_items and comment_items:
        last_ready_at, last_ready = ready_items[-1]
        first_comment_at, first_comment = comment_items[0]
        if first_comment_at < last_ready_at:
            issues.append(
                ValidationIssue(
                    type=ISSUE_WRONG_ORDER,
                    severity=SEVERITY_WARNING,
                    message=(
                        f"Comment ({first_comment.time}) appears before "
                        f"ready for review ({last_ready.time})"
                    ),
                    details={
                        "commentTime": first_comment.time,
                        "readyForReviewTime": last_ready.time,
                    },
                )
            )

    approved_items = _timed(timeline, ITEM_APPROVED)
    if approved_items and comment_items:
        first_approved_at, first_approved = approved_items[0]
        last_comment_at, last_comment = comment_items[-1]
        if first_approved_at < last_comment_at:
            issues.append(
                ValidationIssue(
                    type=ISSUE_WRONG_ORDER,
                    severity=SEVERITY_ERROR,
                    message=(
                        f"Approved ({first_approved.time}) appears before "
                        f"review comment ({last_comment.time})"
                    ),
                    details={
                        "approvedTime": first_approved.time,
                        "commentTime": last_comment.time,
                    },
                )
            )

    return issues


def validate_workflow(
    status: str,
    created_at: Union[str, datetime, None],
    timeline: Sequence[TimelineItem],
) -> List[ValidationIssue]:
    """Validate a pull request timeline against the expected review workflow.

    Draft pull requests are not validated. Otherwise missing-step issues are
    followed by wrong-order issues.

    Args:
        status: Derived PR status (``Merged``, ``Draft``, ``Open``, ...).
        created_at: PR creation time, as datetime or ISO8601 string.
        timeline: Items produced by the timeline builder.

    Returns:
        The list of issues, empty when the workflow looks correct.
    """
    if status == STATUS_DRAFT:
        return []

    timeline = list(timeline or [])
    issues = check_missing_steps(timeline, status)
    issues.extend(check_wrong_order(timeline, created_at))
    return issues
