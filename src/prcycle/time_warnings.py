"""Phase time-limit checks for pull request cycle time."""

from __future__ import annotations

from typing import Dict, List, Sequence

from .config import PhaseLimits
from .models import (
    ISSUE_ABNORMAL_TIME,
    SEVERITY_WARNING,
    CycleTimeMetrics,
    PullRequestSnapshot,
    TimeWarning,
    ValidationIssue,
)

PHASE_COMMIT_TO_OPEN = "commitToOpen"
PHASE_OPEN_TO_REVIEW = "openToReview"
PHASE_REVIEW_TO_APPROVAL = "reviewToApproval"
PHASE_APPROVAL_TO_MERGE = "approvalToMerge"

PHASE_LABELS: Dict[str, str] = {
    PHASE_COMMIT_TO_OPEN: "Commit → Open",
    PHASE_OPEN_TO_REVIEW: "Open → Review",
    PHASE_REVIEW_TO_APPROVAL: "Review → Approve",
    PHASE_APPROVAL_TO_MERGE: "Approve → Merge",
}

_MAX_REASONS = 4


def suggest_reasons(phase: str, snapshot: PullRequestSnapshot) -> List[str]:
    """Suggest likely causes of a slow phase from the PR's size and timing."""
    reasons: List[str] = []
    changed_files = snapshot.changed_files or 0
    additions = snapshot.additions or 0
    deletions = snapshot.deletions or 0
    total_loc = additions + deletions

    if changed_files > 20:
        reasons.append(f"PR changes many files ({changed_files} files)")
    if total_loc > 500:
        reasons.append(f"PR changes many lines (+{additions}/-{deletions} LOC)")
    if snapshot.created_at is not None and snapshot.created_at.weekday() >= 5:
        reasons.append("PR was created on a weekend")

    if phase == PHASE_COMMIT_TO_OPEN:
        if changed_files > 10:
            reasons.append("Large PR needed more preparation time")
    elif phase == PHASE_OPEN_TO_REVIEW:
        reasons.append("No reviewer may have been assigned yet")
        reasons.append("Reviewers may be busy with other tasks")
    elif phase == PHASE_REVIEW_TO_APPROVAL:
        reasons.append("Several review rounds may have been needed")
        if total_loc > 300:
            reasons.append("Large PR needs a more thorough review")
    elif phase == PHASE_APPROVAL_TO_MERGE:
        reasons.append("May be waiting for CI/CD to finish")
        reasons.append("May be waiting for a merge window")

    if not reasons:
        reasons.append("No specific reason identified")

    return list(dict.fromkeys(reasons))[:_MAX_REASONS]


def check_time_warnings(
    metrics: CycleTimeMetrics,
    snapshot: PullRequestSnapshot,
    limits: PhaseLimits = PhaseLimits(),
) -> List[TimeWarning]:
    """Return one warning per phase whose duration exceeds its limit.

    The approval-to-merge limit is not enforced for PRs targeting one of
    ``limits.merge_exempt_base_branches``.
    """
    checks = [
        (PHASE_COMMIT_TO_OPEN, metrics.commit_to_open, limits.commit_to_open),
        (PHASE_OPEN_TO_REVIEW, metrics.open_to_review, limits.open_to_review),
        (PHASE_REVIEW_TO_APPROVAL, metrics.review_to_approval, limits.review_to_approval),
    ]
    if snapshot.base_ref not in limits.merge_exempt_base_branches:
        checks.append((PHASE_APPROVAL_TO_MERGE, metrics.approval_to_merge, limits.approval_to_merge))

    return [
        TimeWarning(
            phase=phase,
            label=PHASE_LABELS[phase],
            limit=limit,
            actual=round(actual, 2),
            suggested_reasons=tuple(suggest_reasons(phase, snapshot)),
        )
        for phase, actual, limit in checks
        if actual > limit
    ]


def time_warning_issues(warnings: Sequence[TimeWarning]) -> List[ValidationIssue]:
    """Express time warnings as ``abnormal_time`` validation issues."""
    return [
        ValidationIssue(
            type=ISSUE_ABNORMAL_TIME,
            severity=SEVERITY_WARNING,
            message=f"{warning.label} took {warning.actual}h (limit {warning.limit:g}h)",
            details={
                "phase": warning.phase,
                "limit": warning.limit,
                "actual": warning.actual,
                "suggestedReasons": list(warning.suggested_reasons),
            },
        )
        for warning in warnings
    ]
