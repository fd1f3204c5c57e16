"""One lifecycle sweep over every channel of the workspace."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from .activity import ActivityClassifier
from .errors import FatalSweepError, RateLimitExhausted, SlackAPIError
from .filters import ChannelPreFilter
from .lifecycle import LifecycleDecisionEngine
from .membership import JoinOutcome, MembershipEnsurer
from .models import Channel, DecisionKind, SkippedChannel, SweepResult
from .retry import RetryExecutor
from .slack import SlackAPIProtocol

logger = logging.getLogger(__name__)


class LifecycleOrchestrator:
    """Sequence listing, filtering, joining, classification and decisions.

    The sweep runs channel by channel. Fatal problems (missing scopes, a bad
    token, exhausted rate limit retries) end the sweep early; the returned
    ``SweepResult`` then carries the error together with every decision made
    so far. Other per-channel failures are recorded as skipped channels.
    """

    def __init__(
        self,
        api: SlackAPIProtocol,
        retry: RetryExecutor,
        classifier: ActivityClassifier,
        prefilter: ChannelPreFilter,
        ensurer: MembershipEnsurer,
        engine: LifecycleDecisionEngine,
    ):
        self._api = api
        self._retry = retry
        self._classifier = classifier
        self._prefilter = prefilter
        self._ensurer = ensurer
        self._engine = engine

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        now = now or datetime.now(timezone.utc)
        result = SweepResult()

        try:
            channels = await self._retry.run_pages(
                "list_channels", self._api.list_channels_page
            )
        except SlackAPIError as exc:
            result.error = FatalSweepError(exc, context="failed to list channels")
            return result

        cutoff = self._engine.warn_cutoff(now)
        candidates, filtered = self._prefilter.partition(channels, cutoff)
        for channel, reason in filtered:
            logger.debug("Skipping #%s: %s", channel.name, reason)
            result.skipped.append(SkippedChannel(channel, reason))
        logger.info(
            "Sweep: %d channels listed, %d candidates after pre-filter",
            len(channels),
            len(candidates),
        )

        members: list[Channel] = []
        for channel in candidates:
            membership = await self._ensurer.ensure(channel)
            if membership.outcome is JoinOutcome.FATAL:
                result.error = membership.error
                logger.error("Sweep stopped while joining #%s", channel.name)
                return result
            if membership.outcome is JoinOutcome.SKIPPED:
                result.skipped.append(SkippedChannel(channel, membership.reason))
                continue
            if membership.outcome is JoinOutcome.JOINED:
                result.joined += 1
            members.append(channel)

        for channel in members:
            try:
                activity = await self._classifier.inspect(channel.id)
            except RateLimitExhausted as exc:
                result.error = FatalSweepError(
                    exc, context=f"rate limited while reading history of #{channel.name}"
                )
                logger.error("Sweep stopped at #%s: rate limit retries exhausted", channel.name)
                return result
            except SlackAPIError as exc:
                if exc.kind.is_fatal:
                    result.error = FatalSweepError(
                        exc, context=f"failed to read history of #{channel.name}"
                    )
                    return result
                reason = exc.kind.value if exc.kind.is_skippable else f"history failed: {exc}"
                logger.warning("Skipping #%s: %s", channel.name, reason)
                result.skipped.append(SkippedChannel(channel, reason))
                continue

            decision = self._engine.decide(channel, activity, now)
            logger.debug(
                "#%s: %s (%s)", channel.name, decision.kind.value, decision.reason
            )
            if decision.kind is DecisionKind.WARN:
                result.to_warn.append(decision)
            elif decision.kind is DecisionKind.ARCHIVE:
                result.to_archive.append(decision)

        logger.info(
            "Sweep finished: %d to warn, %d to archive, %d skipped",
            len(result.to_warn),
            len(result.to_archive),
            len(result.skipped),
        )
        return result
