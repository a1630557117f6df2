"""Selection of the commit that marks the start of work on a pull request."""

from __future__ import annotations

from typing import List, Optional, Sequence

from .models import Commit

WORK_STARTED_PREFIX = "work has started on the"
_MERGE_PREFIXES = ("merge pull request", "merge branch", "merge ")
_MAX_HEADLINE_LENGTH = 100


def is_merge_commit(commit: Commit) -> bool:
    """Return whether a commit is a merge by message convention or parent count."""
    message = commit.message.lower()
    return message.startswith(_MERGE_PREFIXES) or len(commit.parents) > 1


def is_work_started_message(message: Optional[str]) -> bool:
    """Return whether a message carries the work-started marker."""
    return bool(message) and message.lower().startswith(WORK_STARTED_PREFIX)


def sort_commits_by_date(commits: Sequence[Commit]) -> List[Commit]:
    """Sort commits by committer date, earliest first."""
    return sorted(commits, key=lambda commit: commit.committed_date)


def filter_non_merge_commits(commits: Sequence[Commit]) -> List[Commit]:
    return [commit for commit in commits if not is_merge_commit(commit)]


def find_work_started_commit(commits: Sequence[Commit]) -> Optional[Commit]:
    """Return the first commit whose message starts with the work-started marker."""
    for commit in commits:
        if is_work_started_message(commit.message):
            return commit
    return None


def has_work_started_commit(commits: Sequence[Commit]) -> bool:
    return find_work_started_commit(filter_non_merge_commits(sort_commits_by_date(commits))) is not None


def select_first_commit(commits: Sequence[Commit]) -> Optional[Commit]:
    """Select the commit that anchors the start of work.

    Priority:
    1. Earliest non-merge commit whose message starts with
       "work has started on the".
    2. Earliest non-merge commit.
    3. Earliest commit, when every commit is a merge commit.

    Returns ``None`` for an empty list. Callers log a warning when the
    work-started commit is missing; that is not an error here.
    """
    if not commits:
        return None

    sorted_commits = sort_commits_by_date(commits)
    non_merge_commits = filter_non_merge_commits(sorted_commits)

    work_started = find_work_started_commit(non_merge_commits)
    if work_started is not None:
        return work_started

    return non_merge_commits[0] if non_merge_commits else sorted_commits[0]


def commit_headline(commit: Commit) -> str:
    """First line of the commit message, trimmed to 100 characters."""
    return commit.message.split("\n", 1)[0].strip()[:_MAX_HEADLINE_LENGTH]


def build_commit_url(owner: Optional[str], repo: Optional[str], sha: Optional[str]) -> Optional[str]:
    if not (owner and repo and sha):
        return None
    return f"https://github.com/{owner}/{repo}/commit/{sha}"
