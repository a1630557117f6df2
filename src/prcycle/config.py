"""Configuration parsing and validation for the PR cycle-time analyzer."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional, Tuple

from .errors import ConfigurationError

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class AutomationPolicy:
    """Decides which comments and actors belong to review automation.

    The built-in matching uses case-insensitive body markers and bot logins.
    Supplying ``comment_predicate`` or ``actor_predicate`` replaces the
    corresponding built-in check.
    """

    comment_markers: Tuple[str, ...] = ("devin review",)
    bot_logins: Tuple[str, ...] = ("github-actions[bot]",)
    bot_login_fragments: Tuple[str, ...] = ("copilot",)
    comment_predicate: Optional[Callable[[str], bool]] = None
    actor_predicate: Optional[Callable[[str], bool]] = None

    def is_automation_comment(self, body: Optional[str]) -> bool:
        """Return whether a comment body carries an automation marker."""
        if not body:
            return False
        if self.comment_predicate is not None:
            return self.comment_predicate(body)

        normalized = body.strip().lower()
        return any(marker.lower() in normalized for marker in self.comment_markers if marker)

    def is_automation_actor(self, login: Optional[str]) -> bool:
        """Return whether a login belongs to a review bot."""
        if not login:
            return False
        if self.actor_predicate is not None:
            return self.actor_predicate(login)

        normalized = login.lower()
        if normalized in (bot.lower() for bot in self.bot_logins):
            return True
        return any(fragment.lower() in normalized for fragment in self.bot_login_fragments if fragment)


@dataclass(frozen=True)
class MinimizedCommentPolicy:
    """Where minimized inline review comments are taken into account."""

    include_in_timeline: bool = False
    include_in_metrics: bool = True


@dataclass(frozen=True)
class PhaseLimits:
    """Business-hour limits per cycle-time phase."""

    commit_to_open: float = 96.0
    open_to_review: float = 5.0
    review_to_approval: float = 24.0
    approval_to_merge: float = 8.0
    merge_exempt_base_branches: Tuple[str, ...] = ()


@dataclass(frozen=True)
class EngineConfig:
    """Validated settings shared by the timeline, metrics and validation passes."""

    automation: AutomationPolicy = field(default_factory=AutomationPolicy)
    minimized: MinimizedCommentPolicy = field(default_factory=MinimizedCommentPolicy)
    limits: PhaseLimits = field(default_factory=PhaseLimits)
    automation_review_requests: bool = False


DEFAULT_CONFIG = EngineConfig()


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"Invalid value for '{name}': expected one of "
        f"{sorted(_TRUE_VALUES | _FALSE_VALUES)}, got '{raw}'."
    )


def _parse_list(raw: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def load_config(environ: Optional[Mapping[str, str]] = None) -> EngineConfig:
    """Build and validate engine configuration from environment overrides.

    Args:
        environ: Mapping to read overrides from; defaults to ``os.environ``.

    Returns:
        A validated ``EngineConfig`` instance.

    Raises:
        ConfigurationError: If a boolean override is not recognised or a list
            override is present but empty.
    """
    env = os.environ if environ is None else environ
    defaults = EngineConfig()

    automation = defaults.automation
    markers = env.get("PRCYCLE_AUTOMATION_MARKERS")
    bot_logins = env.get("PRCYCLE_BOT_LOGINS")
    if markers is not None:
        parsed_markers = _parse_list(markers)
        if not parsed_markers:
            raise ConfigurationError(
                "Invalid value for 'PRCYCLE_AUTOMATION_MARKERS': expected at least one marker."
            )
        automation = AutomationPolicy(
            comment_markers=parsed_markers,
            bot_logins=automation.bot_logins,
            bot_login_fragments=automation.bot_login_fragments,
        )
    if bot_logins is not None:
        automation = AutomationPolicy(
            comment_markers=automation.comment_markers,
            bot_logins=_parse_list(bot_logins),
            bot_login_fragments=automation.bot_login_fragments,
        )

    minimized = defaults.minimized
    in_timeline = env.get("PRCYCLE_MINIMIZED_IN_TIMELINE")
    in_metrics = env.get("PRCYCLE_MINIMIZED_IN_METRICS")
    minimized = MinimizedCommentPolicy(
        include_in_timeline=(
            _parse_bool("PRCYCLE_MINIMIZED_IN_TIMELINE", in_timeline)
            if in_timeline is not None
            else minimized.include_in_timeline
        ),
        include_in_metrics=(
            _parse_bool("PRCYCLE_MINIMIZED_IN_METRICS", in_metrics)
            if in_metrics is not None
            else minimized.include_in_metrics
        ),
    )

    limits = defaults.limits
    exempt = env.get("PRCYCLE_MERGE_EXEMPT_BRANCHES")
    if exempt is not None:
        limits = PhaseLimits(merge_exempt_base_branches=_parse_list(exempt))

    review_requests = env.get("PRCYCLE_AUTOMATION_REVIEW_REQUESTS")

    return EngineConfig(
        automation=automation,
        minimized=minimized,
        limits=limits,
        automation_review_requests=(
            _parse_bool("PRCYCLE_AUTOMATION_REVIEW_REQUESTS", review_requests)
            if review_requests is not None
            else defaults.automation_review_requests
        ),
    )
