"""Data models used across the channel lifecycle tooling."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Sequence

from .utils import parse_slack_timestamp

NO_HISTORY = datetime.fromtimestamp(0, tz=timezone.utc)

DEFAULT_EXCLUDED_NAMES = frozenset({"general", "random", "announcements", "hr", "security"})
DEFAULT_EXCLUDED_PREFIXES = ("admin", "hr", "security", "general")


@dataclass(slots=True)
class Channel:
    """Subset of the Slack conversation payload used by the sweep."""

    id: str
    name: str
    created: datetime
    latest_ts: str | None = None
    purpose: str = ""
    creator: str = ""
    member_count: int = 0
    is_archived: bool = False
    is_private: bool = False
    is_member: bool = False


@dataclass(slots=True)
class RawMessage:
    """Single history entry as delivered by ``conversations.history``."""

    ts: str
    user: str = ""
    text: str = ""
    subtype: str | None = None
    has_attachments: bool = False

    @property
    def timestamp(self) -> datetime | None:
        return parse_slack_timestamp(self.ts)


@dataclass(slots=True)
class ClassifiedActivity:
    """Activity facts derived from one channel's recent history."""

    last_activity: datetime
    has_warning: bool = False
    warning_time: datetime | None = None
    source: str = "empty"
    messages_scanned: int = 0

    @property
    def has_history(self) -> bool:
        return self.last_activity != NO_HISTORY

    @property
    def warning_is_open(self) -> bool:
        """A warning stays open until a user posts after it."""

        if not self.has_warning or self.warning_time is None:
            return False
        return self.last_activity <= self.warning_time


class DecisionKind(enum.Enum):
    NO_ACTION = "no_action"
    WARN = "warn"
    ARCHIVE = "archive"


@dataclass(slots=True)
class LifecycleDecision:
    """Outcome for a single channel handed back to the caller."""

    kind: DecisionKind
    channel: Channel
    activity: ClassifiedActivity
    reason: str = ""


@dataclass(slots=True)
class LifecycleThresholds:
    """Inactivity window before warning and grace period before archival."""

    warn_after: float
    archive_after: float


@dataclass(slots=True)
class ExclusionOptions:
    """Channel names and name prefixes never touched by the sweep."""

    names: frozenset[str] = DEFAULT_EXCLUDED_NAMES
    prefixes: tuple[str, ...] = DEFAULT_EXCLUDED_PREFIXES

    @classmethod
    def from_lists(
        cls,
        names: Sequence[str] | None = None,
        prefixes: Sequence[str] | None = None,
    ) -> "ExclusionOptions":
        """Build options from caller lists, keeping defaults when none are given."""

        cleaned_names = {name.strip().lstrip("#") for name in names or () if name.strip()}
        cleaned_prefixes = tuple(prefix.strip() for prefix in prefixes or () if prefix.strip())
        if not cleaned_names and not cleaned_prefixes:
            return cls()
        return cls(names=frozenset(cleaned_names), prefixes=cleaned_prefixes)


@dataclass(slots=True)
class RuntimeOptions:
    """Tunable behaviour of remote access and history scanning."""

    min_interval: float = 1.0
    max_backoff: float = 300.0
    max_attempts: int = 3
    request_timeout: float = 15.0
    shallow_window: int = 10
    deep_window: int = 50


@dataclass(slots=True)
class AuthInfo:
    """Identity returned by ``auth.test``."""

    user: str
    user_id: str
    team: str
    team_id: str


@dataclass(slots=True)
class User:
    """Workspace member used to render human readable creator names."""

    id: str
    name: str = ""
    real_name: str = ""
    display_name: str = ""

    @property
    def label(self) -> str:
        return self.real_name or self.name or self.display_name or self.id


@dataclass(slots=True)
class SkippedChannel:
    """Channel left out of a sweep together with the reason."""

    channel: Channel
    reason: str


@dataclass(slots=True)
class SweepResult:
    """Warn and archive lists produced by one sweep, possibly partial."""

    to_warn: list[LifecycleDecision] = field(default_factory=list)
    to_archive: list[LifecycleDecision] = field(default_factory=list)
    skipped: list[SkippedChannel] = field(default_factory=list)
    joined: int = 0
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
