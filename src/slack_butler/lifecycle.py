"""Warn/archive decision rules for a single channel."""

from __future__ import annotations

from datetime import datetime, timedelta

from .formatting import format_duration
from .models import (
    Channel,
    ClassifiedActivity,
    DecisionKind,
    LifecycleDecision,
    LifecycleThresholds,
)


class LifecycleDecisionEngine:
    """Map classified activity onto Active -> Warned -> Archived transitions.

    A warning is open while no user activity follows it. Channels with an open
    warning are archived once the warning is strictly older than the grace
    period; other channels are warned when their last user activity is unknown
    or older than the warn threshold. Channels younger than the warn threshold
    are never touched.
    """

    def __init__(self, thresholds: LifecycleThresholds):
        self._thresholds = thresholds
        self._warn_after = timedelta(seconds=thresholds.warn_after)
        self._archive_after = timedelta(seconds=thresholds.archive_after)

    @property
    def thresholds(self) -> LifecycleThresholds:
        return self._thresholds

    def warn_cutoff(self, now: datetime) -> datetime:
        return now - self._warn_after

    def decide(
        self, channel: Channel, activity: ClassifiedActivity, now: datetime
    ) -> LifecycleDecision:
        cutoff = self.warn_cutoff(now)
        if channel.created > cutoff:
            return LifecycleDecision(DecisionKind.NO_ACTION, channel, activity, "too new")

        if activity.warning_is_open and activity.warning_time is not None:
            age = now - activity.warning_time
            if age > self._archive_after:
                return LifecycleDecision(
                    DecisionKind.ARCHIVE,
                    channel,
                    activity,
                    f"warned {format_duration(age.total_seconds())} ago without new activity",
                )
            return LifecycleDecision(
                DecisionKind.NO_ACTION, channel, activity, "warning grace period running"
            )

        if not activity.has_history:
            return LifecycleDecision(DecisionKind.WARN, channel, activity, "no message history")
        if activity.last_activity < cutoff:
            idle = (now - activity.last_activity).total_seconds()
            return LifecycleDecision(
                DecisionKind.WARN,
                channel,
                activity,
                f"inactive for {format_duration(idle)}",
            )
        return LifecycleDecision(DecisionKind.NO_ACTION, channel, activity, "active")
