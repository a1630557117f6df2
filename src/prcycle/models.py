"""Domain models for pull request cycle-time analysis.

Input models describe an already-fetched pull request snapshot. Output models
are plain value objects; ``to_dict`` renders the camelCase JSON shape consumed
by dashboards, omitting unset optional fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

# Lifecycle event kinds.
EVENT_READY_FOR_REVIEW = "ready_for_review"
EVENT_REVIEW_REQUESTED = "review_requested"
EVENT_HEAD_REF_FORCE_PUSHED = "head_ref_force_pushed"
EVENT_BASE_REF_CHANGED = "base_ref_changed"
EVENT_OPENED = "opened"
EVENT_REOPENED = "reopened"

EVENT_KINDS = frozenset(
    {
        EVENT_READY_FOR_REVIEW,
        EVENT_REVIEW_REQUESTED,
        EVENT_HEAD_REF_FORCE_PUSHED,
        EVENT_BASE_REF_CHANGED,
        EVENT_OPENED,
        EVENT_REOPENED,
    }
)

# Review states.
REVIEW_APPROVED = "APPROVED"
REVIEW_COMMENTED = "COMMENTED"
REVIEW_CHANGES_REQUESTED = "CHANGES_REQUESTED"

# Timeline item types.
ITEM_COMMIT = "commit"
ITEM_READY_FOR_REVIEW = "ready_for_review"
ITEM_COMMENT = "comment"
ITEM_REVIEW_REQUESTED = "review_requested"
ITEM_REVIEW_COMMENT = "review_comment"
ITEM_APPROVED = "approved"
ITEM_FORCE_PUSHED = "force_pushed"
ITEM_BASE_REF_CHANGED = "base_ref_changed"
ITEM_MERGED = "merged"

# Validation issue types and severities.
ISSUE_MISSING_STEP = "missing_step"
ISSUE_WRONG_ORDER = "wrong_order"
ISSUE_ABNORMAL_TIME = "abnormal_time"
SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"


def _compact(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


@dataclass(frozen=True, slots=True)
class Label:
    """Represents a pull request label."""

    name: str
    color: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Commit:
    """Represents one commit of the pull request branch."""

    sha: str
    committed_date: datetime
    message: str
    parents: Tuple[str, ...] = ()
    authored_date: Optional[datetime] = None
    committer_login: Optional[str] = None
    committer_name: Optional[str] = None


@dataclass(frozen=True, slots=True)
class LifecycleEvent:
    """Represents a pull request lifecycle event discriminated by ``event``."""

    event: str
    created_at: datetime
    id: Optional[int] = None
    actor: Optional[str] = None
    before_sha: Optional[str] = None
    after_sha: Optional[str] = None
    ref: Optional[str] = None
    previous_ref_name: Optional[str] = None
    current_ref_name: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Review:
    """Represents a submitted (or pending, without ``submitted_at``) review."""

    id: Optional[int]
    state: str
    submitted_at: Optional[datetime]
    body: Optional[str] = None
    url: Optional[str] = None
    author: Optional[str] = None


@dataclass(frozen=True, slots=True)
class IssueComment:
    """Represents a top-level conversation comment on the pull request."""

    id: Optional[int]
    created_at: Optional[datetime]
    body: Optional[str] = None
    url: Optional[str] = None
    author: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ReviewThreadComment:
    """Represents an inline review comment, optionally replying to another one."""

    id: Optional[int]
    created_at: Optional[datetime]
    body: Optional[str] = None
    url: Optional[str] = None
    author: Optional[str] = None
    reply_to_id: Optional[int] = None
    is_minimized: bool = False


@dataclass(frozen=True, slots=True)
class PullRequestSnapshot:
    """Immutable, fully materialized view of one pull request."""

    number: int
    title: str = ""
    author: Optional[str] = None
    url: str = ""
    state: Optional[str] = None
    draft: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None
    merge_commit_sha: Optional[str] = None
    merged_by: Optional[str] = None
    base_ref: Optional[str] = None
    head_ref: Optional[str] = None
    repo_owner: Optional[str] = None
    repo_name: Optional[str] = None
    labels: Tuple[Label, ...] = ()
    changed_files: Optional[int] = None
    additions: Optional[int] = None
    deletions: Optional[int] = None
    commits: Tuple[Commit, ...] = ()
    reviews: Tuple[Review, ...] = ()
    issue_comments: Tuple[IssueComment, ...] = ()
    review_comments: Tuple[ReviewThreadComment, ...] = ()
    events: Tuple[LifecycleEvent, ...] = ()


@dataclass(frozen=True, slots=True)
class TimelineItem:
    """One human-meaningful entry of a pull request timeline."""

    type: str
    title: str
    time: str
    actor: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    parent_id: Optional[int] = None
    indent_level: Optional[int] = None
    comment_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "type": self.type,
                "title": self.title,
                "time": self.time,
                "actor": self.actor,
                "url": self.url,
                "description": self.description,
                "parentId": self.parent_id,
                "indentLevel": self.indent_level,
                "commentId": self.comment_id,
            }
        )


@dataclass(frozen=True, slots=True)
class CycleTimeMetrics:
    """Business-hour durations of the four review phases, rounded to 2 dp."""

    commit_to_open: float = 0.0
    open_to_review: float = 0.0
    review_to_approval: float = 0.0
    approval_to_merge: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "commitToOpen": self.commit_to_open,
            "openToReview": self.open_to_review,
            "reviewToApproval": self.review_to_approval,
            "approvalToMerge": self.approval_to_merge,
        }


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """An anomaly found in the observed pull request workflow."""

    type: str
    severity: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "type": self.type,
                "severity": self.severity,
                "message": self.message,
                "details": self.details,
            }
        )


@dataclass(frozen=True, slots=True)
class TimeWarning:
    """A cycle-time phase that exceeded its configured limit."""

    phase: str
    label: str
    limit: float
    actual: float
    suggested_reasons: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.phase,
            "label": self.label,
            "limit": self.limit,
            "actual": self.actual,
            "exceeded": True,
            "suggestedReasons": list(self.suggested_reasons),
        }


@dataclass(frozen=True, slots=True)
class PullRequestMetrics:
    """Dashboard row for one pull request."""

    number: int
    title: str
    author: str
    url: str
    status: str
    metrics: CycleTimeMetrics
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    labels: Tuple[Label, ...] = ()
    has_force_pushed: bool = False
    is_draft: bool = False
    was_created_as_draft: bool = False
    base_branch: Optional[str] = None
    head_branch: Optional[str] = None
    time_warnings: Tuple[TimeWarning, ...] = field(default_factory=tuple)

    @property
    def has_time_warning(self) -> bool:
        return bool(self.time_warnings)

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "prNumber": self.number,
                "title": self.title,
                "author": self.author,
                "url": self.url,
                "status": self.status,
                **self.metrics.to_dict(),
                "createdAt": self.created_at,
                "updatedAt": self.updated_at,
                "labels": [_compact({"name": label.name, "color": label.color}) for label in self.labels],
                "hasForcePushed": self.has_force_pushed,
                "isDraft": self.is_draft,
                "wasCreatedAsDraft": self.was_created_as_draft,
                "baseBranch": self.base_branch,
                "headBranch": self.head_branch,
                "hasTimeWarning": self.has_time_warning,
                "timeWarnings": [warning.to_dict() for warning in self.time_warnings],
            }
        )
