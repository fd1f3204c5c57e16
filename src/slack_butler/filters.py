"""Cheap pre-filtering of channels before any history call."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from .models import Channel, ExclusionOptions
from .utils import parse_slack_timestamp

_METADATA_TS_RE = re.compile(r"\d+\.\d{6}")


@dataclass(slots=True)
class FilterDecision:
    """Result of evaluating one channel."""

    skip: bool
    reason: str = "candidate"


class ChannelPreFilter:
    """Split channels into lifecycle candidates and channels to leave alone."""

    def __init__(self, exclusions: ExclusionOptions | None = None):
        self._exclusions = exclusions or ExclusionOptions()

    @property
    def exclusions(self) -> ExclusionOptions:
        return self._exclusions

    def evaluate(self, channel: Channel, warn_cutoff: datetime) -> FilterDecision:
        if channel.is_archived:
            return FilterDecision(True, "archived")
        if channel.created > warn_cutoff:
            return FilterDecision(True, "too_new")
        if channel.name in self._exclusions.names:
            return FilterDecision(True, "excluded_name")
        if _has_excluded_prefix(channel.name, self._exclusions.prefixes):
            return FilterDecision(True, "excluded_prefix")
        if seems_active_from_metadata(channel.latest_ts, warn_cutoff):
            return FilterDecision(True, "metadata_active")
        return FilterDecision(False)

    def partition(
        self, channels: Iterable[Channel], warn_cutoff: datetime
    ) -> tuple[list[Channel], list[tuple[Channel, str]]]:
        candidates: list[Channel] = []
        skipped: list[tuple[Channel, str]] = []
        for channel in channels:
            decision = self.evaluate(channel, warn_cutoff)
            if decision.skip:
                skipped.append((channel, decision.reason))
            else:
                candidates.append(channel)
        return candidates, skipped


def seems_active_from_metadata(latest_ts: str | None, warn_cutoff: datetime) -> bool:
    """Return ``True`` only for a well formed hint strictly newer than the cutoff.

    Missing or malformed hints are never treated as activity so that such
    channels still get a history check.
    """

    if not latest_ts or not _METADATA_TS_RE.fullmatch(latest_ts):
        return False
    moment = parse_slack_timestamp(latest_ts)
    if moment is None:
        return False
    return moment > warn_cutoff


def _has_excluded_prefix(name: str, prefixes: Iterable[str]) -> bool:
    return any(prefix and name.startswith(prefix) for prefix in prefixes)
