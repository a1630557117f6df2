"""Cycle-time computation for pull request review phases.

This module computes four business-hour durations per pull request:
- commit to open (first work commit until the PR became reviewable)
- open to review (reviewable until the first review comment)
- review to approval (first review until the last approval)
- approval to merge (last approval until merge)

Every phase yields ``0`` when its precondition is not met; draft pull
requests are excluded from cycle-time accounting entirely.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from .business_calendar import business_hours
from .commits import has_work_started_commit, select_first_commit
from .config import DEFAULT_CONFIG, EngineConfig
from .models import (
    EVENT_OPENED,
    EVENT_READY_FOR_REVIEW,
    EVENT_REOPENED,
    REVIEW_APPROVED,
    REVIEW_COMMENTED,
    CycleTimeMetrics,
    PullRequestSnapshot,
    Review,
)
from .status import STATUS_DRAFT, derive_status

logger = logging.getLogger(__name__)


def _rounded_hours(start: datetime, end: datetime) -> float:
    return round(business_hours(start, end), 2)


def _require_snapshot(snapshot: PullRequestSnapshot) -> None:
    if snapshot is None:
        raise TypeError("A PullRequestSnapshot is required, got None")


def ready_for_review_at(snapshot: PullRequestSnapshot) -> Optional[datetime]:
    """Resolve the instant the pull request became eligible for review.

    The earliest ``ready_for_review`` event wins; otherwise the most recent
    ``opened``/``reopened`` event; otherwise the PR creation time.
    """
    ready_events = [event for event in snapshot.events if event.event == EVENT_READY_FOR_REVIEW]
    if ready_events:
        return min(event.created_at for event in ready_events)

    opened_events = [
        event for event in snapshot.events if event.event in (EVENT_OPENED, EVENT_REOPENED)
    ]
    if opened_events:
        return max(event.created_at for event in opened_events)

    return snapshot.created_at


def _submitted_reviews(snapshot: PullRequestSnapshot) -> List[Review]:
    return [review for review in snapshot.reviews if review.submitted_at is not None]


def _latest_approval_at(snapshot: PullRequestSnapshot) -> Optional[datetime]:
    approvals = [
        review.submitted_at
        for review in _submitted_reviews(snapshot)
        if review.state == REVIEW_APPROVED
    ]
    return max(approvals) if approvals else None


def calculate_commit_to_open(snapshot: PullRequestSnapshot) -> float:
    """Business hours from the first work commit until the PR was ready for review."""
    _require_snapshot(snapshot)
    first_commit = select_first_commit(snapshot.commits)
    if first_commit is None:
        return 0.0

    if not has_work_started_commit(snapshot.commits):
        logger.warning(
            "PR #%s: no 'Work has started on the' commit found, using first non-merge commit",
            snapshot.number,
            extra={"pr_number": snapshot.number, "sha": first_commit.sha},
        )

    ready_at = ready_for_review_at(snapshot)
    if ready_at is None:
        return 0.0

    return _rounded_hours(first_commit.committed_date, ready_at)


def review_comment_times(
    snapshot: PullRequestSnapshot,
    include_minimized: bool = True,
) -> List[datetime]:
    """Collect the timestamps that count as review comments.

    Business logic:
    - ``COMMENTED`` reviews with a non-blank body and a submission time.
    - Inline review comments with a creation time; minimized comments only
      when ``include_minimized`` is set.
    """
    times = [
        review.submitted_at
        for review in _submitted_reviews(snapshot)
        if review.state == REVIEW_COMMENTED and review.body and review.body.strip()
    ]
    times.extend(
        comment.created_at
        for comment in snapshot.review_comments
        if comment.created_at is not None and (include_minimized or not comment.is_minimized)
    )
    return times


def calculate_open_to_review(
    snapshot: PullRequestSnapshot,
    include_minimized: bool = True,
) -> float:
    """Business hours from ready-for-review until the first review comment after it.

    Review comments made before the ready-for-review instant do not count;
    the result is ``0`` when none remain.
    """
    _require_snapshot(snapshot)
    ready_at = ready_for_review_at(snapshot)
    if ready_at is None:
        return 0.0

    candidates = [
        moment
        for moment in review_comment_times(snapshot, include_minimized=include_minimized)
        if moment >= ready_at
    ]
    if not candidates:
        return 0.0

    first_review_at = min(candidates)
    if first_review_at <= ready_at:
        return 0.0

    return _rounded_hours(ready_at, first_review_at)


def calculate_review_to_approval(snapshot: PullRequestSnapshot) -> float:
    """Business hours from the earliest submitted review until the last approval."""
    _require_snapshot(snapshot)
    reviews = _submitted_reviews(snapshot)
    if not reviews:
        return 0.0

    last_approval_at = _latest_approval_at(snapshot)
    if last_approval_at is None:
        return 0.0

    first_review_at = min(review.submitted_at for review in reviews)
    return _rounded_hours(first_review_at, last_approval_at)


def calculate_approval_to_merge(snapshot: PullRequestSnapshot) -> float:
    """Business hours from the last approval until merge; ``0`` when not merged."""
    _require_snapshot(snapshot)
    last_approval_at = _latest_approval_at(snapshot)
    if last_approval_at is None or snapshot.merged_at is None:
        return 0.0

    return _rounded_hours(last_approval_at, snapshot.merged_at)


def calculate_cycle_time(
    snapshot: PullRequestSnapshot,
    config: EngineConfig = DEFAULT_CONFIG,
) -> CycleTimeMetrics:
    """Compute all four phase durations for one pull request.

    Draft pull requests always yield zero for every phase.
    """
    _require_snapshot(snapshot)
    if derive_status(snapshot) == STATUS_DRAFT:
        logger.debug("Skipping cycle time for draft PR", extra={"pr_number": snapshot.number})
        return CycleTimeMetrics()

    metrics = CycleTimeMetrics(
        commit_to_open=calculate_commit_to_open(snapshot),
        open_to_review=calculate_open_to_review(
            snapshot,
            include_minimized=config.minimized.include_in_metrics,
        ),
        review_to_approval=calculate_review_to_approval(snapshot),
        approval_to_merge=calculate_approval_to_merge(snapshot),
    )

    logger.debug(
        "Computed cycle time",
        extra={
            "pr_number": snapshot.number,
            "commit_to_open": metrics.commit_to_open,
            "open_to_review": metrics.open_to_review,
            "review_to_approval": metrics.review_to_approval,
            "approval_to_merge": metrics.approval_to_merge,
        },
    )
    return metrics
