"""Discovery and announcement of newly created channels."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Iterable, Mapping, Sequence

from .errors import ConfigurationError
from .formatting import format_new_channel_announcement, split_message
from .membership import JoinOutcome, MembershipEnsurer
from .models import Channel, RawMessage, User
from .retry import RetryExecutor
from .slack import SlackAPIProtocol
from .utils import validate_channel_name

logger = logging.getLogger(__name__)

ANNOUNCEMENT_HISTORY_LIMIT = 100

_CHANNEL_ID_RE = re.compile(r"[CG][A-Z0-9]{6,}")


def find_new_channels(channels: Iterable[Channel], since: datetime) -> list[Channel]:
    """Channels created after ``since``, oldest first."""

    found = [channel for channel in channels if not channel.is_archived and channel.created > since]
    return sorted(found, key=lambda channel: (channel.created, channel.id))


def find_announced_channels(
    messages: Sequence[RawMessage],
    bot_id: str,
    names: Iterable[str],
    name_to_id: Mapping[str, str] | None = None,
) -> set[str]:
    """Return the subset of ``names`` the bot already mentioned in ``messages``.

    A channel counts as announced when a bot message links it as ``<#ID>`` or
    ``<#ID|name>`` or mentions it as plain ``#name``.
    """

    ids = dict(name_to_id or {})
    bot_texts = [message.text for message in messages if bot_id and message.user == bot_id]
    if not bot_texts:
        return set()

    announced: set[str] = set()
    for name in names:
        patterns = [re.compile(rf"#{re.escape(name)}(?![\w-])")]
        channel_id = ids.get(name)
        if channel_id:
            patterns.append(re.compile(rf"<#{re.escape(channel_id)}(?:\|[^>]*)?>"))
        if any(pattern.search(text) for text in bot_texts for pattern in patterns):
            announced.add(name)
    return announced


def build_user_map(users: Iterable[User]) -> dict[str, str]:
    return {user.id: user.label for user in users if user.id}


class NewChannelDetector:
    """List, de-duplicate and announce new channels."""

    def __init__(
        self,
        api: SlackAPIProtocol,
        retry: RetryExecutor,
        bot_id: str,
        *,
        ensurer: MembershipEnsurer | None = None,
    ):
        self._api = api
        self._retry = retry
        self._bot_id = bot_id
        self._ensurer = ensurer
        self._channels: list[Channel] = []

    async def find(self, since: datetime) -> list[Channel]:
        self._channels = await self._retry.run_pages("list_channels", self._api.list_channels_page)
        found = find_new_channels(self._channels, since)
        logger.info("Found %d new channels since %s", len(found), since.isoformat())
        return found

    def resolve_channel(self, channel_ref: str) -> Channel:
        """Look up ``#name``, ``name`` or a channel ID among listed channels."""

        ref = channel_ref.strip()
        for channel in self._channels:
            if channel.id == ref:
                return channel
        if _CHANNEL_ID_RE.fullmatch(ref):
            raise ConfigurationError(f"channel {ref} not found")
        name = validate_channel_name(ref)
        for channel in self._channels:
            if channel.name == name:
                return channel
        raise ConfigurationError(f"channel #{name} not found")

    async def filter_announced(
        self, channels: Sequence[Channel], announce_to: str
    ) -> list[Channel]:
        if not channels:
            return []
        target = self.resolve_channel(announce_to)
        await self._ensure_member(target)
        history = await self._retry.run(
            "get_history",
            lambda: self._api.get_history(target.id, ANNOUNCEMENT_HISTORY_LIMIT),
            channel=target.id,
        )
        announced = find_announced_channels(
            history,
            self._bot_id,
            [channel.name for channel in channels],
            {channel.name: channel.id for channel in channels},
        )
        if announced:
            logger.info("Skipping %d already announced channels", len(announced))
        return [channel for channel in channels if channel.name not in announced]

    async def announce(
        self,
        channels: Sequence[Channel],
        announce_to: str,
        user_map: Mapping[str, str] | None = None,
    ) -> str:
        target = self.resolve_channel(announce_to)
        await self._ensure_member(target)
        text = format_new_channel_announcement(channels, user_map)
        for chunk in split_message(text):
            await self._retry.run(
                "post_message",
                lambda chunk=chunk: self._api.post_message(target.id, chunk),
                channel=target.id,
            )
        logger.info("Announced %d channels to #%s", len(channels), target.name)
        return text

    async def _ensure_member(self, channel: Channel) -> None:
        if self._ensurer is None or channel.is_private:
            return
        membership = await self._ensurer.ensure(channel)
        if membership.outcome is JoinOutcome.FATAL and membership.error is not None:
            raise membership.error
