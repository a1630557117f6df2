"""Statistics and formatting helpers for cycle-time reporting.

This module provides utilities for:
- Computing linear-interpolation percentiles from pre-sorted samples.
- Aggregating phase summary statistics (P50, P75, P90, count) across PRs.
- Building a human-readable cycle-time report for a batch of analyses.
"""

from __future__ import annotations

import math
from typing import Dict, List, Optional, Sequence, cast

from .analyzer import PullRequestAnalysis
from .business_calendar import format_hours
from .models import SEVERITY_ERROR
from .status import STATUS_DRAFT

PHASES = (
    ("commit_to_open", "Commit → Open"),
    ("open_to_review", "Open → Review"),
    ("review_to_approval", "Review → Approval"),
    ("approval_to_merge", "Approval → Merge"),
)


def calculate_percentile(sorted_values: List[float], p: float) -> Optional[float]:
    """Linearly interpolated percentile of ascending ``sorted_values``.

    Returns ``None`` for an empty sample.

    Raises:
        ValueError: If ``p`` is outside ``[0, 100]``.
    """
    if not 0 <= p <= 100:
        raise ValueError("Percentile 'p' must be in the range [0, 100].")

    if not sorted_values:
        return None

    if p <= 0:
        return sorted_values[0]

    if p >= 100:
        return sorted_values[-1]

    rank = (len(sorted_values) - 1) * p / 100.0
    below = math.floor(rank)
    above = math.ceil(rank)
    if below == above:
        return sorted_values[below]

    fraction = rank - below
    return sorted_values[below] * (1 - fraction) + sorted_values[above] * fraction


def compute_statistics(samples: Sequence[Optional[float]]) -> Dict[str, Optional[float]]:
    """Compute P50, P75, P90, and sample count for business-hour samples.

    ``None``, NaN and negative values are ignored. Percentiles are ``None``
    when no valid samples exist.
    """
    clean_samples = sorted(
        sample
        for sample in samples
        if sample is not None and not math.isnan(sample) and sample >= 0
    )

    return {
        "p50": calculate_percentile(clean_samples, 50),
        "p75": calculate_percentile(clean_samples, 75),
        "p90": calculate_percentile(clean_samples, 90),
        "count": cast(Optional[float], len(clean_samples)),
    }


def phase_samples(analyses: Sequence[PullRequestAnalysis]) -> Dict[str, List[float]]:
    """Collect per-phase hour samples from non-draft analyses."""
    samples: Dict[str, List[float]] = {name: [] for name, _ in PHASES}
    for analysis in analyses:
        record = analysis.pull_request
        if record.status == STATUS_DRAFT:
            continue
        for name, _ in PHASES:
            samples[name].append(getattr(record.metrics, name))
    return samples


def _format_optional_hours(hours: Optional[float]) -> str:
    return "n/a" if hours is None else format_hours(hours)


def generate_report(title: str, analyses: Sequence[PullRequestAnalysis]) -> str:
    """Generate a human-readable cycle-time report for a batch of pull requests.

    The report includes the number of analyzed PRs, sample counts and
    P50/P75/P90 values per phase, and the PRs with workflow errors.
    """
    samples = phase_samples(analyses)

    lines = [
        f"Source: {title}",
        "PR Cycle Time Report",
        f"Pull requests analyzed: {len(analyses)}",
    ]

    for index, (name, label) in enumerate(PHASES, start=1):
        stats = compute_statistics(samples[name])
        lines.extend(
            [
                "",
                f"{index}) {label}",
                f"   Samples: {int(cast(float, stats['count']))}",
                f"   P50: {_format_optional_hours(stats['p50'])}",
                f"   P75: {_format_optional_hours(stats['p75'])}",
                f"   P90: {_format_optional_hours(stats['p90'])}",
            ]
        )

    flagged = [analysis for analysis in analyses if analysis.has_errors]
    lines.extend(["", f"Workflow errors: {len(flagged)}"])
    for analysis in flagged:
        record = analysis.pull_request
        error_count = sum(1 for issue in analysis.issues if issue.severity == SEVERITY_ERROR)
        lines.append(f"   #{record.number} {record.title} ({error_count} errors)")

    return "\n".join(lines)
