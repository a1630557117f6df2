"""Per-pull-request analysis and batch processing.

This module ties the engine together for one snapshot:
- status derivation
- timeline construction
- cycle-time metrics
- workflow validation and phase time warnings

Batch analysis isolates failures so one PR's anomalous data does not abort
the rest of the batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .config import DEFAULT_CONFIG, EngineConfig
from .cycle_time import calculate_cycle_time
from .models import (
    EVENT_HEAD_REF_FORCE_PUSHED,
    EVENT_READY_FOR_REVIEW,
    SEVERITY_ERROR,
    PullRequestMetrics,
    PullRequestSnapshot,
    TimelineItem,
    ValidationIssue,
)
from .status import STATUS_DRAFT, derive_status
from .time_warnings import check_time_warnings, time_warning_issues
from .timeline import build_timeline
from .timestamps import format_datetime
from .validation import validate_workflow

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PullRequestAnalysis:
    """Everything derived from one pull request snapshot."""

    pull_request: PullRequestMetrics
    timeline: Tuple[TimelineItem, ...] = ()
    issues: Tuple[ValidationIssue, ...] = ()

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == SEVERITY_ERROR for issue in self.issues)

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.pull_request.to_dict(),
            "timeline": [item.to_dict() for item in self.timeline],
            "validationIssues": [issue.to_dict() for issue in self.issues],
        }


@dataclass
class BatchResult:
    """Outcome of analysing many pull requests."""

    analyses: List[PullRequestAnalysis] = field(default_factory=list)
    failures: List[Tuple[Optional[int], str]] = field(default_factory=list)


def analyze_pull_request(
    snapshot: PullRequestSnapshot,
    config: EngineConfig = DEFAULT_CONFIG,
) -> PullRequestAnalysis:
    """Analyze one pull request snapshot.

    Business logic:
    - Draft PRs get zero metrics, no validation issues and no time warnings,
      but still get a timeline.
    - Validation issues come first, followed by ``abnormal_time`` issues for
      phases that exceeded their limits.
    """
    if snapshot is None:
        raise TypeError("A PullRequestSnapshot is required, got None")

    status = derive_status(snapshot)
    timeline = build_timeline(snapshot, config)
    metrics = calculate_cycle_time(snapshot, config)

    if status == STATUS_DRAFT:
        warnings = []
        issues: List[ValidationIssue] = []
    else:
        warnings = check_time_warnings(metrics, snapshot, config.limits)
        issues = validate_workflow(status, snapshot.created_at, timeline)
        issues.extend(time_warning_issues(warnings))

    event_kinds = {event.event for event in snapshot.events}
    record = PullRequestMetrics(
        number=snapshot.number,
        title=snapshot.title or f"PR #{snapshot.number}",
        author=snapshot.author or "Unknown",
        url=snapshot.url,
        status=status,
        metrics=metrics,
        created_at=format_datetime(snapshot.created_at) if snapshot.created_at else None,
        updated_at=format_datetime(snapshot.updated_at) if snapshot.updated_at else None,
        labels=snapshot.labels,
        has_force_pushed=EVENT_HEAD_REF_FORCE_PUSHED in event_kinds,
        is_draft=snapshot.draft,
        was_created_as_draft=EVENT_READY_FOR_REVIEW in event_kinds,
        base_branch=snapshot.base_ref,
        head_branch=snapshot.head_ref,
        time_warnings=tuple(warnings),
    )

    logger.info(
        "Analyzed pull request",
        extra={
            "pr_number": snapshot.number,
            "status": status,
            "timeline_items": len(timeline),
            "issues": len(issues),
            "time_warnings": len(warnings),
        },
    )

    return PullRequestAnalysis(pull_request=record, timeline=tuple(timeline), issues=tuple(issues))


def analyze_batch(
    snapshots: Iterable[PullRequestSnapshot],
    config: EngineConfig = DEFAULT_CONFIG,
) -> BatchResult:
    """Analyze many pull requests, recording per-PR failures and continuing."""
    result = BatchResult()

    for snapshot in snapshots:
        number = getattr(snapshot, "number", None)
        try:
            result.analyses.append(analyze_pull_request(snapshot, config))
        except Exception as exc:
            logger.exception("Error analyzing PR %s", number, extra={"pr_number": number})
            result.failures.append((number, str(exc)))

    logger.info(
        "Analyzed pull request batch",
        extra={"analyzed": len(result.analyses), "failed": len(result.failures)},
    )
    return result
