"""Make sure the bot is a member of the channels it has to inspect."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from .errors import ErrorKind, FatalSweepError, RateLimitExhausted, SlackAPIError
from .models import Channel
from .retry import RetryExecutor
from .slack import SlackAPIProtocol

logger = logging.getLogger(__name__)


class JoinOutcome(enum.Enum):
    JOINED = "joined"
    ALREADY_MEMBER = "already_member"
    SKIPPED = "skipped"
    FATAL = "fatal"


@dataclass(slots=True)
class MembershipResult:
    outcome: JoinOutcome
    reason: str = ""
    error: FatalSweepError | None = None

    @property
    def is_member(self) -> bool:
        return self.outcome in (JoinOutcome.JOINED, JoinOutcome.ALREADY_MEMBER)


class MembershipEnsurer:
    """Join public channels, classifying join failures for the sweep."""

    def __init__(self, api: SlackAPIProtocol, retry: RetryExecutor):
        self._api = api
        self._retry = retry

    async def ensure(self, channel: Channel) -> MembershipResult:
        if channel.is_private:
            return MembershipResult(JoinOutcome.SKIPPED, "private channel")
        if channel.is_member:
            return MembershipResult(JoinOutcome.ALREADY_MEMBER)

        try:
            await self._retry.run(
                "join_channel",
                lambda: self._api.join_channel(channel.id),
                channel=channel.id,
            )
        except RateLimitExhausted as exc:
            return MembershipResult(
                JoinOutcome.FATAL,
                "rate limited during auto-join",
                FatalSweepError(exc, context=f"rate limited during auto-join of #{channel.name}"),
            )
        except SlackAPIError as exc:
            if exc.kind.is_satisfied:
                channel.is_member = True
                return MembershipResult(JoinOutcome.ALREADY_MEMBER)
            if exc.kind.is_fatal:
                return MembershipResult(
                    JoinOutcome.FATAL,
                    exc.kind.value,
                    FatalSweepError(exc, context=_fatal_context(exc, channel)),
                )
            if exc.kind.is_skippable:
                logger.info("Skipping #%s: cannot join (%s)", channel.name, exc.kind.value)
                return MembershipResult(JoinOutcome.SKIPPED, exc.kind.value)
            logger.warning("Failed to join #%s: %s", channel.name, exc)
            return MembershipResult(JoinOutcome.SKIPPED, f"join failed: {exc}")

        channel.is_member = True
        logger.info("Joined #%s", channel.name)
        return MembershipResult(JoinOutcome.JOINED)


def _fatal_context(exc: SlackAPIError, channel: Channel) -> str:
    if exc.kind is ErrorKind.INVALID_AUTH:
        return f"invalid authentication token while joining #{channel.name}"
    return f"missing channels:join permission while joining #{channel.name}"
