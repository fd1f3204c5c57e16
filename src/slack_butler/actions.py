"""Write actions applied to channels selected by a sweep."""

from __future__ import annotations

import logging

from .errors import ErrorKind, FatalSweepError, RateLimitExhausted, SlackAPIError
from .formatting import format_archival_notice, format_inactive_warning
from .membership import JoinOutcome, MembershipEnsurer
from .models import LifecycleDecision, LifecycleThresholds
from .retry import RetryExecutor
from .slack import SlackAPIProtocol

logger = logging.getLogger(__name__)


class ChannelActions:
    """Post warnings and archive channels.

    Both actions return ``True`` on success and ``False`` when the channel had
    to be left alone. Fatal problems raise ``FatalSweepError``.
    """

    def __init__(
        self,
        api: SlackAPIProtocol,
        retry: RetryExecutor,
        ensurer: MembershipEnsurer,
        thresholds: LifecycleThresholds,
    ):
        self._api = api
        self._retry = retry
        self._ensurer = ensurer
        self._thresholds = thresholds

    async def warn(self, decision: LifecycleDecision) -> bool:
        channel = decision.channel
        membership = await self._ensurer.ensure(channel)
        if membership.outcome is JoinOutcome.FATAL and membership.error is not None:
            raise membership.error
        if not membership.is_member:
            logger.warning("Cannot warn #%s: %s", channel.name, membership.reason)
            return False

        text = format_inactive_warning(
            channel, self._thresholds.warn_after, self._thresholds.archive_after
        )
        try:
            await self._retry.run(
                "post_message",
                lambda: self._api.post_message(channel.id, text),
                channel=channel.id,
            )
        except SlackAPIError as exc:
            if isinstance(exc, RateLimitExhausted) or exc.kind.is_fatal:
                raise FatalSweepError(exc, context=f"failed to warn #{channel.name}") from exc
            logger.warning("Failed to post warning to #%s: %s", channel.name, exc)
            return False
        logger.info("Warned #%s", channel.name)
        return True

    async def archive(self, decision: LifecycleDecision) -> bool:
        channel = decision.channel
        await self._post_notice(decision)

        try:
            await self._retry.run(
                "archive_channel",
                lambda: self._api.archive_channel(channel.id),
                channel=channel.id,
            )
        except SlackAPIError as exc:
            if exc.kind is ErrorKind.ALREADY_ARCHIVED:
                logger.info("#%s was already archived", channel.name)
                return True
            if exc.kind is ErrorKind.MISSING_SCOPE:
                raise FatalSweepError(
                    exc, context="missing required permission to archive channels"
                ) from exc
            if isinstance(exc, RateLimitExhausted) or exc.kind.is_fatal:
                raise FatalSweepError(exc, context=f"failed to archive #{channel.name}") from exc
            logger.warning("Failed to archive #%s: %s", channel.name, exc)
            return False
        logger.info("Archived #%s", channel.name)
        return True

    async def _post_notice(self, decision: LifecycleDecision) -> None:
        """Best effort: a failed join or post never blocks the archival."""

        channel = decision.channel
        membership = await self._ensurer.ensure(channel)
        if not membership.is_member:
            logger.warning(
                "Archiving #%s without notice: %s",
                channel.name,
                membership.reason or membership.outcome.value,
            )
            return
        text = format_archival_notice(
            channel, self._thresholds.warn_after, self._thresholds.archive_after
        )
        try:
            await self._retry.run(
                "post_message",
                lambda: self._api.post_message(channel.id, text),
                channel=channel.id,
            )
        except SlackAPIError as exc:
            logger.warning("Failed to post archival notice to #%s: %s", channel.name, exc)
