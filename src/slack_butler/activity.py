"""Derive last user activity and warning state from channel history."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Sequence

from .models import NO_HISTORY, ClassifiedActivity, RawMessage
from .retry import RetryExecutor
from .slack import SlackAPIProtocol

logger = logging.getLogger(__name__)

WARNING_MARKER = "inactive channel warning"

SYSTEM_SUBTYPES = frozenset(
    {
        "channel_join",
        "channel_leave",
        "channel_topic",
        "channel_purpose",
        "channel_name",
        "channel_archive",
        "channel_unarchive",
        "group_join",
        "group_leave",
        "group_topic",
        "group_purpose",
        "group_name",
        "group_archive",
        "group_unarchive",
        "bot_add",
        "bot_remove",
        "pinned_item",
        "unpinned_item",
    }
)

SYSTEM_PHRASES = (
    "has joined the channel",
    "has left the channel",
    "has joined the group",
    "has left the group",
    "set the channel topic:",
    "set the channel purpose:",
    "renamed the channel from",
    "archived this channel",
    "unarchived this channel",
    "pinned a message to this channel",
    "unpinned a message from this channel",
)


def is_real_message(message: RawMessage) -> bool:
    """Return ``True`` for content a person or bot actually posted.

    Join/leave notices, topic changes, pins and similar housekeeping entries
    are not real activity, neither are empty bodies without attachments.
    """

    if message.subtype and message.subtype in SYSTEM_SUBTYPES:
        return False
    text = message.text.strip()
    lowered = text.lower()
    if any(phrase in lowered for phrase in SYSTEM_PHRASES):
        return False
    return bool(text) or message.has_attachments


def is_warning_marker(message: RawMessage, bot_id: str) -> bool:
    if not bot_id or message.user != bot_id:
        return False
    return WARNING_MARKER in message.text.lower()


def _is_user_message(message: RawMessage, bot_id: str) -> bool:
    return bool(message.user) and message.user != bot_id and is_real_message(message)


def classify_messages(messages: Sequence[RawMessage], bot_id: str) -> ClassifiedActivity:
    """Classify a page of history without any remote calls.

    Tracks the newest user-authored real message and the newest warning
    marker posted by ``bot_id``. Without user activity the oldest message
    timestamp is reported instead; an empty history yields ``NO_HISTORY``.
    """

    last_user: datetime | None = None
    warning_time: datetime | None = None
    oldest: datetime | None = None

    for message in messages:
        moment = message.timestamp
        if moment is None:
            continue
        if oldest is None or moment < oldest:
            oldest = moment
        if is_warning_marker(message, bot_id):
            if warning_time is None or moment > warning_time:
                warning_time = moment
            continue
        if _is_user_message(message, bot_id) and (last_user is None or moment > last_user):
            last_user = moment

    if last_user is not None:
        last_activity, source = last_user, "user"
    elif oldest is not None:
        last_activity, source = oldest, "fallback"
    else:
        last_activity, source = NO_HISTORY, "empty"

    return ClassifiedActivity(
        last_activity=last_activity,
        has_warning=warning_time is not None,
        warning_time=warning_time,
        source=source,
        messages_scanned=len(messages),
    )


class ActivityClassifier:
    """Two-stage history inspection that keeps remote calls to a minimum."""

    def __init__(
        self,
        api: SlackAPIProtocol,
        retry: RetryExecutor,
        bot_id: str,
        *,
        shallow: int = 10,
        deep: int = 50,
    ):
        self._api = api
        self._retry = retry
        self._bot_id = bot_id
        self._shallow = max(1, shallow)
        self._deep = max(self._shallow, deep)

    async def inspect(self, channel_id: str) -> ClassifiedActivity:
        recent = await self._fetch(channel_id, self._shallow)
        for message in recent:
            if not is_real_message(message):
                continue
            moment = message.timestamp
            if moment is not None and _is_user_message(message, self._bot_id):
                return ClassifiedActivity(
                    last_activity=moment,
                    source="user",
                    messages_scanned=len(recent),
                )
            break

        if len(recent) < self._shallow:
            history = recent
        else:
            logger.debug("Escalating to deep history scan for %s", channel_id)
            history = await self._fetch(channel_id, self._deep)
        return classify_messages(history, self._bot_id)

    async def _fetch(self, channel_id: str, limit: int) -> list[RawMessage]:
        return await self._retry.run(
            "get_history",
            lambda: self._api.get_history(channel_id, limit),
            channel=channel_id,
        )
