"""Timeline construction for a single pull request.

The builder produces independent groups of items (first commit, readiness,
first comment, review requests, force pushes, base changes, reviews, threaded
inline comments, merge) and merges them chronologically. Inline review
comments are emitted as threads: a reply always follows its parent, ahead of
any unrelated item that happened in between.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit

from .commits import build_commit_url, commit_headline, has_work_started_commit, select_first_commit
from .config import DEFAULT_CONFIG, EngineConfig
from .models import (
    EVENT_BASE_REF_CHANGED,
    EVENT_HEAD_REF_FORCE_PUSHED,
    EVENT_READY_FOR_REVIEW,
    EVENT_REVIEW_REQUESTED,
    ITEM_APPROVED,
    ITEM_BASE_REF_CHANGED,
    ITEM_COMMENT,
    ITEM_COMMIT,
    ITEM_FORCE_PUSHED,
    ITEM_MERGED,
    ITEM_READY_FOR_REVIEW,
    ITEM_REVIEW_COMMENT,
    ITEM_REVIEW_REQUESTED,
    REVIEW_APPROVED,
    REVIEW_COMMENTED,
    LifecycleEvent,
    PullRequestSnapshot,
    ReviewThreadComment,
    TimelineItem,
)
from .timestamps import format_datetime, utc_now

logger = logging.getLogger(__name__)

_DISCUSSION_ANCHOR = re.compile(r"#discussion_r(\d+)")
_SHORT_SHA_LENGTH = 7


def extract_discussion_id(url: Optional[str]) -> Optional[int]:
    """Return the ``#discussion_r<id>`` number embedded in a comment URL."""
    if not url:
        return None
    match = _DISCUSSION_ANCHOR.search(url)
    return int(match.group(1)) if match else None


def review_comment_url(pr_url: str, comment_id: int, html_url: Optional[str] = None) -> Optional[str]:
    """Normalize an inline comment URL to its ``#discussion_r<id>`` anchor form.

    An existing discussion anchor is kept; otherwise the anchor is rebuilt on
    the comment's own page URL, falling back to the PR URL.
    """
    if html_url:
        if _DISCUSSION_ANCHOR.search(html_url):
            return html_url
        parts = urlsplit(html_url)
        if parts.scheme and parts.netloc:
            return f"{parts.scheme}://{parts.netloc}{parts.path}#discussion_r{comment_id}"
    if pr_url:
        return f"{pr_url}#discussion_r{comment_id}"
    return None


def _short_sha(sha: str) -> str:
    return sha[:_SHORT_SHA_LENGTH]


@dataclass
class FirstReviewCommentTracker:
    """Shared marker for the first review comment across reviews and inline comments.

    ``first_at`` is the earliest review-comment instant; the first caller
    presenting exactly that instant claims the marker.
    """

    first_at: Optional[datetime] = None
    claimed: bool = False

    def claim(self, moment: datetime) -> bool:
        if self.claimed or self.first_at is None or moment != self.first_at:
            return False
        self.claimed = True
        return True


@dataclass
class _CommentNode:
    id: int
    created_at: datetime
    comment: ReviewThreadComment
    children: List[int] = field(default_factory=list)


@dataclass
class _Entry:
    """A chronologically placed unit of the final timeline (one item or one thread)."""

    moment: datetime
    items: List[TimelineItem]


class TimelineBuilder:
    """Builds the ordered, thread-aware timeline of one pull request."""

    def __init__(self, snapshot: PullRequestSnapshot, config: EngineConfig = DEFAULT_CONFIG) -> None:
        if snapshot is None:
            raise TypeError("A PullRequestSnapshot is required, got None")

        self._snapshot = snapshot
        self._config = config
        self._pr_url = snapshot.url or ""
        self._events = sorted(snapshot.events, key=lambda event: event.created_at)
        self._review_comments = [
            comment
            for comment in snapshot.review_comments
            if config.minimized.include_in_timeline or not comment.is_minimized
        ]

    def _item(self, moment: datetime, **fields) -> _Entry:
        return _Entry(moment=moment, items=[TimelineItem(time=format_datetime(moment), **fields)])

    def _event_url(self, event_id: Optional[int]) -> Optional[str]:
        if not self._pr_url:
            return None
        return f"{self._pr_url}#event-{event_id}" if event_id else self._pr_url

    def _review_url(self, review_id: Optional[int], html_url: Optional[str]) -> Optional[str]:
        if html_url:
            return html_url
        if self._pr_url and review_id:
            return f"{self._pr_url}#pullrequestreview-{review_id}"
        return None

    def _issue_comment_url(self, comment_id: Optional[int], html_url: Optional[str]) -> Optional[str]:
        if html_url:
            return html_url
        if self._pr_url and comment_id:
            return f"{self._pr_url}#issuecomment-{comment_id}"
        return None

    def _commit_url(self, sha: Optional[str]) -> Optional[str]:
        return build_commit_url(self._snapshot.repo_owner, self._snapshot.repo_name, sha)

    def _events_of(self, kind: str) -> List[LifecycleEvent]:
        return [event for event in self._events if event.event == kind]

    def first_commit(self) -> List[_Entry]:
        commits = self._snapshot.commits
        commit = select_first_commit(commits)
        if commit is None:
            return []

        if not has_work_started_commit(commits):
            logger.warning(
                "PR #%s: no 'Work has started on the' commit found",
                self._snapshot.number,
                extra={"pr_number": self._snapshot.number, "sha": commit.sha},
            )

        return [
            self._item(
                commit.committed_date,
                type=ITEM_COMMIT,
                title=commit_headline(commit) or "First commit",
                actor=commit.committer_login or commit.committer_name,
                url=self._commit_url(commit.sha),
            )
        ]

    def ready_for_review(self) -> List[_Entry]:
        events = self._events_of(EVENT_READY_FOR_REVIEW)
        if not events:
            return []

        event = events[0]
        return [
            self._item(
                event.created_at,
                type=ITEM_READY_FOR_REVIEW,
                title="Marked this pull request as ready for review",
                actor=event.actor,
                url=self._event_url(event.id),
            )
        ]

    def first_comment(self) -> List[_Entry]:
        """Earliest issue comment that is not automation-generated."""
        candidates = []
        for comment in self._snapshot.issue_comments:
            if comment.created_at is None or not comment.body:
                logger.debug(
                    "Skipping issue comment without timestamp or body",
                    extra={"pr_number": self._snapshot.number, "comment_id": comment.id},
                )
                continue
            if self._config.automation.is_automation_comment(comment.body):
                continue
            candidates.append(comment)

        if not candidates:
            return []

        comment = min(candidates, key=lambda candidate: candidate.created_at)
        return [
            self._item(
                comment.created_at,
                type=ITEM_COMMENT,
                title="First comment",
                actor=comment.author,
                url=self._issue_comment_url(comment.id, comment.url),
            )
        ]

    def automation_review_requests(self) -> List[_Entry]:
        """Reviews and issue comments that requested an automated review."""
        if not self._config.automation_review_requests:
            return []

        policy = self._config.automation
        entries: List[_Entry] = []
        for review in self._snapshot.reviews:
            if review.submitted_at is None or not policy.is_automation_comment(review.body):
                continue
            entries.append(
                self._item(
                    review.submitted_at,
                    type=ITEM_REVIEW_REQUESTED,
                    title="Requested an automated review",
                    actor=review.author,
                    url=self._review_url(review.id, review.url),
                )
            )
        for comment in self._snapshot.issue_comments:
            if comment.created_at is None or not policy.is_automation_comment(comment.body):
                continue
            entries.append(
                self._item(
                    comment.created_at,
                    type=ITEM_REVIEW_REQUESTED,
                    title="Requested an automated review",
                    actor=comment.author,
                    url=self._issue_comment_url(comment.id, comment.url),
                )
            )

        entries.sort(key=lambda entry: entry.moment)
        return entries

    def review_requests(self) -> List[_Entry]:
        return [
            self._item(
                event.created_at,
                type=ITEM_REVIEW_REQUESTED,
                title="Requested a review",
                actor=event.actor,
                url=self._event_url(event.id),
            )
            for event in self._events_of(EVENT_REVIEW_REQUESTED)
        ]

    def force_pushes(self) -> List[_Entry]:
        events = self._events_of(EVENT_HEAD_REF_FORCE_PUSHED)
        entries: List[_Entry] = []

        for index, event in enumerate(events):
            after_sha = event.after_sha
            if after_sha:
                title = f"Force pushed to {_short_sha(after_sha)}"
            elif len(events) > 1:
                title = f"Force pushed ({index + 1})"
            else:
                title = "Force pushed"

            description = None
            if after_sha:
                details = []
                if event.before_sha:
                    details.append(f"Before: {_short_sha(event.before_sha)}")
                details.append(f"After: {_short_sha(after_sha)}")
                if event.ref:
                    details.append(f"Branch: {event.ref}")
                description = " • ".join(details)

            url = self._commit_url(after_sha) or self._event_url(event.id)
            entries.append(
                self._item(
                    event.created_at,
                    type=ITEM_FORCE_PUSHED,
                    title=title,
                    actor=event.actor,
                    url=url,
                    description=description,
                )
            )

        return entries

    def base_ref_changes(self) -> List[_Entry]:
        entries: List[_Entry] = []
        for event in self._events_of(EVENT_BASE_REF_CHANGED):
            previous_ref = event.previous_ref_name or "unknown"
            current_ref = event.current_ref_name or "unknown"
            entries.append(
                self._item(
                    event.created_at,
                    type=ITEM_BASE_REF_CHANGED,
                    title=f"Base branch changed from {previous_ref} to {current_ref}",
                    actor=event.actor,
                    url=self._event_url(event.id),
                    description=f"Previous: {previous_ref} → Current: {current_ref}",
                )
            )
        return entries

    def first_review_comment_at(self) -> Optional[datetime]:
        """Earliest instant among commented reviews and inline comments."""
        moments = [
            review.submitted_at
            for review in self._snapshot.reviews
            if review.state == REVIEW_COMMENTED
            and review.submitted_at is not None
            and review.body
            and review.body.strip()
        ]
        moments.extend(
            comment.created_at for comment in self._review_comments if comment.created_at is not None
        )
        return min(moments) if moments else None

    def reviews(self, tracker: FirstReviewCommentTracker) -> List[_Entry]:
        """Approvals and commented reviews, labelling first and automated ones."""
        policy = self._config.automation
        submitted = sorted(
            (review for review in self._snapshot.reviews if review.submitted_at is not None),
            key=lambda review: review.submitted_at,
        )

        entries: List[_Entry] = []
        has_first_approval = False
        for review in submitted:
            is_automation = policy.is_automation_actor(review.author)
            url = self._review_url(review.id, review.url)

            if review.state == REVIEW_APPROVED:
                if not has_first_approval:
                    title = "First approval"
                elif is_automation:
                    title = "Automated approval"
                else:
                    title = "Approved"
                has_first_approval = True
                entries.append(
                    self._item(review.submitted_at, type=ITEM_APPROVED, title=title, actor=review.author, url=url)
                )
            elif review.state == REVIEW_COMMENTED and review.body and review.body.strip():
                title = self._review_comment_title(tracker.claim(review.submitted_at), is_automation)
                entries.append(
                    self._item(
                        review.submitted_at,
                        type=ITEM_REVIEW_COMMENT,
                        title=title,
                        actor=review.author,
                        url=url,
                    )
                )

        return entries

    @staticmethod
    def _review_comment_title(is_first: bool, is_automation: bool) -> str:
        if is_first:
            return "First review comment"
        if is_automation:
            return "Automated review comment"
        return "Review comment"

    def _comment_id(self, comment: ReviewThreadComment) -> int:
        if comment.id is not None:
            return comment.id

        digits = ""
        discussion_id = extract_discussion_id(comment.url)
        if discussion_id is not None:
            digits = str(discussion_id)
        elif comment.url:
            digits = re.sub(r"\D", "", comment.url.rstrip("/").rsplit("/", 1)[-1])

        synthetic_id = int(digits) if digits else int(utc_now().timestamp() * 1000)
        logger.warning(
            "Comment has missing ID, using generated ID %s from URL: %s",
            synthetic_id,
            comment.url,
            extra={"pr_number": self._snapshot.number},
        )
        return synthetic_id

    def _index_comments(self) -> Tuple[Dict[int, _CommentNode], Dict[int, int], Dict[int, Optional[int]]]:
        """Index inline comments by id and by the discussion they open.

        Returns the node arena, the discussion-id to root-comment-id map and
        each node's raw ``reply_to_id``.
        """
        nodes: Dict[int, _CommentNode] = {}
        discussions: Dict[int, int] = {}
        reply_to: Dict[int, Optional[int]] = {}

        for comment in self._review_comments:
            comment_id = self._comment_id(comment)
            if comment.id is None:
                while comment_id in nodes:
                    comment_id += 1
            elif comment_id in nodes:
                logger.warning(
                    "Duplicate review comment %s ignored",
                    comment_id,
                    extra={"pr_number": self._snapshot.number},
                )
                continue

            created_at = comment.created_at
            if created_at is None:
                created_at = utc_now()
                logger.warning(
                    "Comment %s missing created_at, using current timestamp",
                    comment_id,
                    extra={"pr_number": self._snapshot.number},
                )

            nodes[comment_id] = _CommentNode(id=comment_id, created_at=created_at, comment=comment)
            reply_to[comment_id] = comment.reply_to_id

        # A discussion is rooted at its earliest non-reply comment.
        for node in sorted(nodes.values(), key=lambda candidate: candidate.created_at):
            discussion_id = extract_discussion_id(node.comment.url)
            if discussion_id is not None and reply_to[node.id] is None:
                discussions.setdefault(discussion_id, node.id)

        return nodes, discussions, reply_to

    @staticmethod
    def _link_comments(
        nodes: Dict[int, _CommentNode],
        discussions: Dict[int, int],
        reply_to: Dict[int, Optional[int]],
    ) -> Dict[int, int]:
        """Resolve each reply's parent: the replied-to comment, else the discussion root."""
        parents: Dict[int, int] = {}

        for node in nodes.values():
            target = reply_to.get(node.id)
            if not target or target == node.id:
                continue

            if target in nodes:
                parent_id = target
            elif target in discussions and discussions[target] != node.id:
                parent_id = discussions[target]
            else:
                continue

            nodes[parent_id].children.append(node.id)
            parents[node.id] = parent_id

        return parents

    def review_threads(self, tracker: FirstReviewCommentTracker) -> List[_Entry]:
        """Inline review comments as depth-first flattened threads, one entry per root."""
        if not self._review_comments:
            return []

        nodes, discussions, reply_to = self._index_comments()
        parents = self._link_comments(nodes, discussions, reply_to)

        def by_time(node_id: int) -> datetime:
            return nodes[node_id].created_at

        for node in nodes.values():
            node.children.sort(key=by_time)
        roots = sorted((node_id for node_id in nodes if node_id not in parents), key=by_time)

        policy = self._config.automation
        visited = set()

        def walk(start_id: int, items: List[TimelineItem]) -> None:
            stack = [(start_id, 0)]
            while stack:
                node_id, depth = stack.pop()
                if node_id in visited:
                    continue
                visited.add(node_id)
                node = nodes[node_id]
                is_first = depth == 0 and tracker.claim(node.created_at)
                is_automation = policy.is_automation_actor(node.comment.author)
                items.append(
                    TimelineItem(
                        type=ITEM_REVIEW_COMMENT,
                        title=self._review_comment_title(is_first, is_automation),
                        time=format_datetime(node.created_at),
                        actor=node.comment.author,
                        url=review_comment_url(self._pr_url, node.id, node.comment.url),
                        parent_id=parents.get(node.id) if depth > 0 else None,
                        indent_level=depth,
                        comment_id=node.id,
                    )
                )
                stack.extend((child_id, depth + 1) for child_id in reversed(node.children))

        entries: List[_Entry] = []
        for root_id in roots:
            items: List[TimelineItem] = []
            walk(root_id, items)
            entries.append(_Entry(moment=nodes[root_id].created_at, items=items))

        # Reply cycles have no root; break them at their earliest comment.
        for node_id in sorted(nodes, key=by_time):
            if node_id in visited:
                continue
            logger.warning(
                "Review comment %s is part of a reply cycle, emitting as root",
                node_id,
                extra={"pr_number": self._snapshot.number},
            )
            items = []
            walk(node_id, items)
            entries.append(_Entry(moment=nodes[node_id].created_at, items=items))

        return entries

    def merge(self) -> List[_Entry]:
        snapshot = self._snapshot
        if snapshot.merged_at is None:
            return []

        url = self._commit_url(snapshot.merge_commit_sha) or self._pr_url or None
        return [
            self._item(
                snapshot.merged_at,
                type=ITEM_MERGED,
                title="Merged",
                actor=snapshot.merged_by,
                url=url,
            )
        ]

    def build(self) -> List[TimelineItem]:
        """Generate all item groups and merge them into one ordered timeline."""
        tracker = FirstReviewCommentTracker(first_at=self.first_review_comment_at())

        entries: List[_Entry] = []
        entries.extend(self.first_commit())
        entries.extend(self.ready_for_review())
        entries.extend(self.first_comment())
        entries.extend(self.automation_review_requests())
        entries.extend(self.review_requests())
        entries.extend(self.force_pushes())
        entries.extend(self.base_ref_changes())
        entries.extend(self.reviews(tracker))
        entries.extend(self.review_threads(tracker))
        entries.extend(self.merge())

        return merge_entries(entries)


def merge_entries(entries: Sequence[_Entry]) -> List[TimelineItem]:
    """Order entries by time (stable on ties) and flatten threads in place."""
    timeline: List[TimelineItem] = []
    for entry in sorted(entries, key=lambda candidate: candidate.moment):
        timeline.extend(entry.items)
    return timeline


def build_timeline(
    snapshot: PullRequestSnapshot,
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[TimelineItem]:
    """Build the chronologically ordered, thread-aware timeline of a pull request."""
    timeline = TimelineBuilder(snapshot, config).build()
    logger.debug(
        "Built timeline",
        extra={"pr_number": snapshot.number, "items": len(timeline)},
    )
    return timeline
