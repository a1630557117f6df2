"""Pull request timeline, cycle-time and workflow analysis."""

from .analyzer import BatchResult, PullRequestAnalysis, analyze_batch, analyze_pull_request
from .business_calendar import business_hours
from .commits import select_first_commit
from .config import EngineConfig, load_config
from .cycle_time import (
    calculate_approval_to_merge,
    calculate_commit_to_open,
    calculate_cycle_time,
    calculate_open_to_review,
    calculate_review_to_approval,
)
from .snapshot import parse_snapshot
from .status import derive_status
from .timeline import build_timeline
from .validation import validate_workflow

__version__ = "0.1.0"

__all__ = [
    "BatchResult",
    "EngineConfig",
    "PullRequestAnalysis",
    "analyze_batch",
    "analyze_pull_request",
    "build_timeline",
    "business_hours",
    "calculate_approval_to_merge",
    "calculate_commit_to_open",
    "calculate_cycle_time",
    "calculate_open_to_review",
    "calculate_review_to_approval",
    "derive_status",
    "load_config",
    "parse_snapshot",
    "select_first_commit",
    "validate_workflow",
]
