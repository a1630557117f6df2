"""Tests for thread-aware timeline construction."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from prcycle.config import EngineConfig, MinimizedCommentPolicy
from prcycle.models import (
    Commit,
    IssueComment,
    LifecycleEvent,
    PullRequestSnapshot,
    Review,
    ReviewThreadComment,
)
from prcycle.timeline import (
    FirstReviewCommentTracker,
    build_timeline,
    extract_discussion_id,
    review_comment_url,
)

PR_URL = "https://github.com/octo/repo/pull/7"


def _utc(day: int, hour: int = 0, minute: int = 0) -> datetime:
    # January 2024: the 1st is a Monday.
    return datetime(2024, 1, day, hour, minute, tzinfo=timezone.utc)


def _snapshot(**overrides) -> PullRequestSnapshot:
    fields = dict(number=7, title="Add feature", url=PR_URL, state="open", created_at=_utc(1, 8))
    fields.update(overrides)
    return PullRequestSnapshot(**fields)


def _inline(comment_id, hour, reply_to=None, **fields) -> ReviewThreadComment:
    return ReviewThreadComment(
        id=comment_id,
        created_at=_utc(2, hour),
        body=fields.pop("body", "nit"),
        url=fields.pop("url", f"{PR_URL}#discussion_r{comment_id}"),
        author=fields.pop("author", "reviewer"),
        reply_to_id=reply_to,
        **fields,
    )


def test_extract_discussion_id():
    """Verify discussion anchors are parsed from comment URLs."""
    assert extract_discussion_id(f"{PR_URL}#discussion_r123") == 123
    assert extract_discussion_id(f"{PR_URL}/files") is None
    assert extract_discussion_id(None) is None


def test_review_comment_url_normalizes_to_discussion_anchor():
    """Verify inline comment URLs always point at a discussion anchor."""
    assert review_comment_url(PR_URL, 5, f"{PR_URL}#discussion_r5") == f"{PR_URL}#discussion_r5"
    assert review_comment_url(PR_URL, 5, f"{PR_URL}/files?x=1") == f"{PR_URL}/files#discussion_r5"
    assert review_comment_url(PR_URL, 5) == f"{PR_URL}#discussion_r5"
    assert review_comment_url("", 5) is None


def test_first_review_comment_tracker_claims_once():
    """Verify only the first caller at the earliest instant gets the marker."""
    tracker = FirstReviewCommentTracker(first_at=_utc(2, 9))

    assert tracker.claim(_utc(2, 10)) is False
    assert tracker.claim(_utc(2, 9)) is True
    assert tracker.claim(_utc(2, 9)) is False
    assert FirstReviewCommentTracker().claim(_utc(2, 9)) is False


def test_build_timeline_end_to_end_scenario():
    """Verify the timeline of a simple merged PR."""
    snapshot = _snapshot(
        state="closed",
        commits=(Commit(sha="c1", committed_date=_utc(1, 9), message="Implement feature"),),
        events=(LifecycleEvent(event="ready_for_review", created_at=_utc(1, 17), id=11),),
        reviews=(
            Review(id=1, state="COMMENTED", submitted_at=_utc(2, 9), body="Please rename"),
            Review(id=2, state="APPROVED", submitted_at=_utc(2, 10)),
        ),
        merged_at=_utc(2, 12),
    )

    timeline = build_timeline(snapshot)

    assert [item.type for item in timeline] == [
        "commit",
        "ready_for_review",
        "review_comment",
        "approved",
        "merged",
    ]
    assert [item.title for item in timeline] == [
        "Implement feature",
        "Marked this pull request as ready for review",
        "First review comment",
        "First approval",
        "Merged",
    ]
    assert timeline[0].time == "2024-01-01T09:00:00Z"
    assert timeline[1].url == f"{PR_URL}#event-11"
    assert timeline[2].url == f"{PR_URL}#pullrequestreview-1"
    assert timeline[4].url == PR_URL


def test_build_timeline_empty_snapshot():
    """Verify a PR without activity has an empty timeline."""
    assert build_timeline(_snapshot()) == []


def test_build_timeline_keeps_replies_with_their_thread():
    """Verify a reply follows its parent even when other items happened in between."""
    snapshot = _snapshot(
        reviews=(Review(id=1, state="APPROVED", submitted_at=_utc(2, 11)),),
        review_comments=(_inline(200, 12, reply_to=100), _inline(100, 10)),
    )

    timeline = build_timeline(snapshot)

    assert [(item.type, item.comment_id) for item in timeline] == [
        ("review_comment", 100),
        ("review_comment", 200),
        ("approved", None),
    ]
    root, reply = timeline[0], timeline[1]
    assert root.indent_level == 0
    assert root.parent_id is None
    assert reply.indent_level == 1
    assert reply.parent_id == 100


def test_build_timeline_nested_replies_are_depth_first():
    """Verify nested replies are flattened depth-first, siblings by time."""
    snapshot = _snapshot(
        review_comments=(
            _inline(1, 9),
            _inline(2, 10, reply_to=1),
            _inline(3, 11, reply_to=1),
            _inline(4, 12, reply_to=2),
        )
    )

    timeline = build_timeline(snapshot)

    assert [(item.comment_id, item.indent_level) for item in timeline] == [(1, 0), (2, 1), (4, 2), (3, 1)]
    assert [item.parent_id for item in timeline] == [None, 1, 2, 1]


def test_build_timeline_resolves_reply_through_discussion_id():
    """Verify a reply targeting a discussion id attaches to that discussion's root."""
    snapshot = _snapshot(
        review_comments=(
            _inline(100, 9, url=f"{PR_URL}#discussion_r555"),
            _inline(101, 10, reply_to=555),
        )
    )

    timeline = build_timeline(snapshot)

    assert [item.comment_id for item in timeline] == [100, 101]
    assert timeline[1].parent_id == 100
    assert timeline[1].indent_level == 1


def test_build_timeline_orphan_reply_becomes_root():
    """Verify a reply to an unknown comment is emitted as its own root."""
    snapshot = _snapshot(review_comments=(_inline(5, 9), _inline(6, 10, reply_to=999)))

    timeline = build_timeline(snapshot)

    assert [(item.comment_id, item.indent_level, item.parent_id) for item in timeline] == [
        (5, 0, None),
        (6, 0, None),
    ]


def test_build_timeline_breaks_reply_cycles(caplog):
    """Verify mutually replying comments are emitted once each and logged."""
    snapshot = _snapshot(review_comments=(_inline(1, 9, reply_to=2), _inline(2, 10, reply_to=1)))

    with caplog.at_level("WARNING"):
        timeline = build_timeline(snapshot)

    assert [(item.comment_id, item.indent_level) for item in timeline] == [(1, 0), (2, 1)]
    assert "reply cycle" in caplog.text


def test_build_timeline_labels_first_review_comment_across_sources():
    """Verify the first review comment label goes to the earliest one, inline or review."""
    snapshot = _snapshot(
        reviews=(Review(id=1, state="COMMENTED", submitted_at=_utc(2, 10), body="General remarks"),),
        review_comments=(_inline(7, 9), _inline(8, 11)),
    )

    titles = [(item.time, item.title) for item in build_timeline(snapshot)]

    assert titles == [
        ("2024-01-02T09:00:00Z", "First review comment"),
        ("2024-01-02T10:00:00Z", "Review comment"),
        ("2024-01-02T11:00:00Z", "Review comment"),
    ]


def test_build_timeline_skips_blank_commented_reviews():
    """Verify COMMENTED reviews without a body do not appear."""
    snapshot = _snapshot(reviews=(Review(id=1, state="COMMENTED", submitted_at=_utc(2, 10), body="  "),))

    assert build_timeline(snapshot) == []


def test_build_timeline_labels_automated_reviews():
    """Verify later approvals and review comments from bots are labelled as automated."""
    snapshot = _snapshot(
        reviews=(
            Review(id=1, state="APPROVED", submitted_at=_utc(2, 9), author="github-actions[bot]"),
            Review(id=2, state="APPROVED", submitted_at=_utc(2, 10), author="github-actions[bot]"),
            Review(id=3, state="APPROVED", submitted_at=_utc(2, 11), author="alice"),
            Review(id=4, state="COMMENTED", submitted_at=_utc(2, 8), body="first", author="bob"),
            Review(id=5, state="COMMENTED", submitted_at=_utc(2, 12), body="scan", author="copilot-reviewer"),
        )
    )

    titles = [item.title for item in build_timeline(snapshot)]

    assert titles == [
        "First review comment",
        "First approval",
        "Automated approval",
        "Approved",
        "Automated review comment",
    ]


def test_build_timeline_first_comment_skips_automation_markers():
    """Verify the first conversation comment ignores automation requests."""
    snapshot = _snapshot(
        issue_comments=(
            IssueComment(id=1, created_at=_utc(2, 8), body="Devin Review please", author="alice"),
            IssueComment(id=2, created_at=_utc(2, 9), body="Looks promising", author="bob"),
            IssueComment(id=3, created_at=_utc(2, 10), body="Another one", author="carol"),
        )
    )

    timeline = build_timeline(snapshot)

    assert len(timeline) == 1
    assert timeline[0].type == "comment"
    assert timeline[0].title == "First comment"
    assert timeline[0].actor == "bob"
    assert timeline[0].url == f"{PR_URL}#issuecomment-2"


def test_build_timeline_automation_review_requests_are_opt_in():
    """Verify automation requests become review_requested items only when enabled."""
    snapshot = _snapshot(
        issue_comments=(IssueComment(id=1, created_at=_utc(2, 8), body="devin review", author="alice"),),
    )

    assert build_timeline(snapshot) == []

    timeline = build_timeline(snapshot, EngineConfig(automation_review_requests=True))

    assert [(item.type, item.title) for item in timeline] == [
        ("review_requested", "Requested an automated review"),
    ]


def test_build_timeline_lifecycle_events():
    """Verify review requests, force pushes and base branch changes."""
    snapshot = _snapshot(
        repo_owner="octo",
        repo_name="repo",
        events=(
            LifecycleEvent(event="review_requested", created_at=_utc(2, 9), id=21, actor="alice"),
            LifecycleEvent(
                event="head_ref_force_pushed",
                created_at=_utc(2, 10),
                before_sha="1111111aaaa",
                after_sha="abcdef1234",
                ref="feature",
            ),
            LifecycleEvent(
                event="base_ref_changed",
                created_at=_utc(2, 11),
                previous_ref_name="main",
                current_ref_name="release",
            ),
        ),
    )

    timeline = build_timeline(snapshot)

    assert [item.title for item in timeline] == [
        "Requested a review",
        "Force pushed to abcdef1",
        "Base branch changed from main to release",
    ]
    assert timeline[0].url == f"{PR_URL}#event-21"
    assert timeline[1].description == "Before: 1111111 • After: abcdef1 • Branch: feature"
    assert timeline[1].url == "https://github.com/octo/repo/commit/abcdef1234"
    assert timeline[2].description == "Previous: main → Current: release"


def test_build_timeline_numbers_force_pushes_without_sha():
    """Verify several force pushes without commit info are numbered."""
    snapshot = _snapshot(
        events=(
            LifecycleEvent(event="head_ref_force_pushed", created_at=_utc(2, 10)),
            LifecycleEvent(event="head_ref_force_pushed", created_at=_utc(2, 11)),
        )
    )

    assert [item.title for item in build_timeline(snapshot)] == ["Force pushed (1)", "Force pushed (2)"]

    single = _snapshot(events=(LifecycleEvent(event="head_ref_force_pushed", created_at=_utc(2, 10)),))
    assert [item.title for item in build_timeline(single)] == ["Force pushed"]


def test_build_timeline_minimized_comment_inclusion():
    """Verify minimized inline comments are hidden by default and shown when configured."""
    snapshot = _snapshot(review_comments=(_inline(1, 9, is_minimized=True), _inline(2, 10)))

    hidden = build_timeline(snapshot)
    shown = build_timeline(snapshot, EngineConfig(minimized=MinimizedCommentPolicy(include_in_timeline=True)))

    assert [item.comment_id for item in hidden] == [2]
    assert hidden[0].title == "First review comment"
    assert [item.comment_id for item in shown] == [1, 2]
    assert shown[0].title == "First review comment"


def test_build_timeline_synthesizes_missing_comment_ids(caplog):
    """Verify comments without ids get one from their URL and a warning is logged."""
    snapshot = _snapshot(
        review_comments=(
            ReviewThreadComment(id=None, created_at=_utc(2, 9), url=f"{PR_URL}#discussion_r42"),
            ReviewThreadComment(id=None, created_at=_utc(2, 10), url=f"{PR_URL}#discussion_r42"),
        )
    )

    with caplog.at_level("WARNING"):
        timeline = build_timeline(snapshot)

    assert [item.comment_id for item in timeline] == [42, 43]
    assert "missing ID" in caplog.text


def test_build_timeline_ignores_duplicate_comment_ids(caplog):
    """Verify a repeated comment id is reported and emitted once."""
    snapshot = _snapshot(review_comments=(_inline(1, 9), _inline(1, 10)))

    with caplog.at_level("WARNING"):
        timeline = build_timeline(snapshot)

    assert [item.comment_id for item in timeline] == [1]
    assert "Duplicate review comment" in caplog.text


def test_build_timeline_repairs_missing_comment_timestamp(caplog):
    """Verify an inline comment without a timestamp is still emitted."""
    snapshot = _snapshot(
        review_comments=(ReviewThreadComment(id=9, created_at=None, url=f"{PR_URL}#discussion_r9"),)
    )

    with caplog.at_level("WARNING"):
        timeline = build_timeline(snapshot)

    assert [item.comment_id for item in timeline] == [9]
    assert "missing created_at" in caplog.text


def test_build_timeline_merge_links_merge_commit():
    """Verify the merged item links the merge commit when the repository is known."""
    snapshot = _snapshot(
        repo_owner="octo",
        repo_name="repo",
        merged_at=_utc(3, 9),
        merge_commit_sha="feedbeef",
        merged_by="maintainer",
    )

    timeline = build_timeline(snapshot)

    assert len(timeline) == 1
    assert timeline[0].actor == "maintainer"
    assert timeline[0].url == "https://github.com/octo/repo/commit/feedbeef"


def test_build_timeline_is_chronological_outside_threads():
    """Verify root-level items are ordered by time."""
    snapshot = _snapshot(
        commits=(Commit(sha="c1", committed_date=_utc(1, 9), message="Work has started on the task"),),
        events=(
            LifecycleEvent(event="review_requested", created_at=_utc(1, 10)),
            LifecycleEvent(event="ready_for_review", created_at=_utc(1, 9, 30)),
        ),
        issue_comments=(IssueComment(id=1, created_at=_utc(1, 11), body="hi"),),
        review_comments=(_inline(1, 9), _inline(2, 15, reply_to=1)),
        reviews=(Review(id=3, state="APPROVED", submitted_at=_utc(2, 12)),),
        merged_at=_utc(2, 16),
    )

    timeline = build_timeline(snapshot)
    root_times = [item.time for item in timeline if not item.indent_level]

    assert root_times == sorted(root_times)
    assert timeline[-1].type == "merged"


def test_build_timeline_links_discussion_replies_to_earliest_root():
    """Verify a reply by discussion id attaches to the discussion's earliest comment."""
    anchor = f"{PR_URL}#discussion_r555"
    snapshot = _snapshot(
        review_comments=(
            _inline(301, 11, url=anchor),
            _inline(300, 9, url=anchor),
            _inline(302, 12, reply_to=555),
        )
    )

    timeline = build_timeline(snapshot)

    assert [(item.comment_id, item.parent_id) for item in timeline] == [
        (300, None),
        (302, 300),
        (301, None),
    ]


def test_build_timeline_handles_very_deep_reply_chains():
    """Verify reply chains deeper than the recursion limit are flattened in order."""
    depth = sys.getrecursionlimit() + 200
    start = _utc(2, 9)
    comments = tuple(
        ReviewThreadComment(
            id=index + 1,
            created_at=start + timedelta(seconds=index),
            url=f"{PR_URL}#discussion_r{index + 1}",
            reply_to_id=index if index else None,
        )
        for index in range(depth)
    )

    timeline = build_timeline(_snapshot(review_comments=comments))

    assert len(timeline) == depth
    assert [item.indent_level for item in timeline[:3]] == [0, 1, 2]
    assert timeline[-1].indent_level == depth - 1
    assert timeline[-1].parent_id == depth - 1
