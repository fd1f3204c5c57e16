"""Slack Web API client."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol, Sequence

import aiohttp

from .errors import SlackAPIError
from .models import AuthInfo, Channel, RawMessage, User
from .utils import sanitize_for_logging

_API_BASE = "https://slack.com/api"
_PAGE_SIZE = 200
_DEFAULT_CHANNEL_TYPES = ("public_channel", "private_channel")

# Web API method -> operation name used in error hints.
_OPERATIONS = {
    "auth.test": "auth_test",
    "conversations.list": "list_channels",
    "conversations.history": "get_history",
    "conversations.join": "join_channel",
    "conversations.archive": "archive_channel",
    "chat.postMessage": "post_message",
    "users.list": "list_users",
}

logger = logging.getLogger(__name__)


class SlackAPIProtocol(Protocol):
    async def auth_test(self) -> AuthInfo: ...

    async def list_channels_page(
        self,
        cursor: str = "",
        *,
        types: Sequence[str] = _DEFAULT_CHANNEL_TYPES,
        exclude_archived: bool = True,
    ) -> tuple[list[Channel], str]: ...

    async def get_history(self, channel_id: str, limit: int) -> list[RawMessage]: ...

    async def post_message(self, channel_id: str, text: str) -> str: ...

    async def join_channel(self, channel_id: str) -> None: ...

    async def archive_channel(self, channel_id: str) -> None: ...

    async def list_users_page(self, cursor: str = "") -> tuple[list[User], str]: ...


class SlackClient:
    """Thin asynchronous wrapper around the Slack Web API.

    Every failure surfaces as ``SlackAPIError`` whose text carries the Slack
    error code, so that callers can classify it without inspecting HTTP
    details.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        token: str,
        *,
        base_url: str = _API_BASE,
        timeout: float = 15.0,
    ):
        self._session = session
        self._token = token.strip()
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def auth_test(self) -> AuthInfo:
        data = await self._call("auth.test", http_method="POST")
        return AuthInfo(
            user=str(data.get("user") or ""),
            user_id=str(data.get("user_id") or ""),
            team=str(data.get("team") or ""),
            team_id=str(data.get("team_id") or ""),
        )

    async def list_channels_page(
        self,
        cursor: str = "",
        *,
        types: Sequence[str] = _DEFAULT_CHANNEL_TYPES,
        exclude_archived: bool = True,
    ) -> tuple[list[Channel], str]:
        """Fetch one page of ``conversations.list``; an empty cursor means the last page."""

        params = {
            "types": ",".join(types),
            "exclude_archived": "true" if exclude_archived else "false",
            "limit": str(_PAGE_SIZE),
        }
        if cursor:
            params["cursor"] = cursor
        data = await self._call("conversations.list", params=params)
        channels = [
            _parse_channel(entry)
            for entry in data.get("channels") or []
            if isinstance(entry, Mapping)
        ]
        logger.debug("Listed %d channels", len(channels))
        return channels, _next_cursor(data)

    async def get_history(self, channel_id: str, limit: int) -> list[RawMessage]:
        params = {"channel": channel_id, "limit": str(max(1, min(limit, 1000)))}
        data = await self._call("conversations.history", params=params, channel=channel_id)
        return [
            _parse_message(entry)
            for entry in data.get("messages") or []
            if isinstance(entry, Mapping)
        ]

    async def post_message(self, channel_id: str, text: str) -> str:
        data = await self._call(
            "chat.postMessage",
            http_method="POST",
            payload={"channel": channel_id, "text": text},
            channel=channel_id,
        )
        return str(data.get("ts") or "")

    async def join_channel(self, channel_id: str) -> None:
        await self._call(
            "conversations.join",
            http_method="POST",
            payload={"channel": channel_id},
            channel=channel_id,
        )

    async def archive_channel(self, channel_id: str) -> None:
        await self._call(
            "conversations.archive",
            http_method="POST",
            payload={"channel": channel_id},
            channel=channel_id,
        )

    async def list_users_page(self, cursor: str = "") -> tuple[list[User], str]:
        params = {"limit": str(_PAGE_SIZE)}
        if cursor:
            params["cursor"] = cursor
        data = await self._call("users.list", params=params)
        users = [
            _parse_user(entry) for entry in data.get("members") or [] if isinstance(entry, Mapping)
        ]
        return users, _next_cursor(data)

    async def _call(
        self,
        method: str,
        *,
        http_method: str = "GET",
        params: Mapping[str, str] | None = None,
        payload: Mapping[str, Any] | None = None,
        channel: str | None = None,
    ) -> Mapping[str, Any]:
        url = f"{self._base_url}/{method}"
        operation = _OPERATIONS.get(method, method)
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/json",
        }
        try:
            timeout_cfg = aiohttp.ClientTimeout(total=self._timeout)
            async with self._session.request(
                http_method,
                url,
                headers=headers,
                params=params,
                json=payload if http_method == "POST" else None,
                timeout=timeout_cfg,
            ) as resp:
                if resp.status == 429:
                    await resp.read()
                    retry_after = resp.headers.get("Retry-After", "").strip()
                    message = "rate_limited"
                    if retry_after.isdigit():
                        message = f"rate_limited, retry after {retry_after}s"
                    raise SlackAPIError(message, operation=operation, channel=channel)
                if resp.status >= 400:
                    await resp.read()
                    raise SlackAPIError(
                        f"http_error: status {resp.status}", operation=operation, channel=channel
                    )
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            detail = sanitize_for_logging(str(exc) or exc.__class__.__name__)
            logger.debug("Slack request %s failed: %s", method, detail)
            raise SlackAPIError(
                f"request_failed: {detail}", operation=operation, channel=channel
            ) from exc

        if not isinstance(data, Mapping):
            raise SlackAPIError("invalid_response", operation=operation, channel=channel)
        if not data.get("ok"):
            error = str(data.get("error") or "unknown_error")
            needed = data.get("needed")
            if error == "missing_scope" and needed:
                error = f"{error} (needed: {needed})"
            raise SlackAPIError(error, operation=operation, channel=channel)
        return data


def _next_cursor(data: Mapping[str, Any]) -> str:
    metadata = data.get("response_metadata")
    if not isinstance(metadata, Mapping):
        return ""
    return str(metadata.get("next_cursor") or "").strip()


def _parse_channel(payload: Mapping[str, Any]) -> Channel:
    try:
        created_raw = int(payload.get("created") or 0)
    except (TypeError, ValueError):
        created_raw = 0
    purpose = payload.get("purpose")
    purpose_text = str(purpose.get("value") or "") if isinstance(purpose, Mapping) else ""
    latest = payload.get("latest")
    if isinstance(latest, Mapping):
        latest_ts = str(latest.get("ts") or "") or None
    elif latest:
        latest_ts = str(latest)
    else:
        latest_ts = None
    try:
        member_count = int(payload.get("num_members") or 0)
    except (TypeError, ValueError):
        member_count = 0
    return Channel(
        id=str(payload.get("id") or ""),
        name=str(payload.get("name") or ""),
        created=datetime.fromtimestamp(created_raw, tz=timezone.utc),
        latest_ts=latest_ts,
        purpose=purpose_text,
        creator=str(payload.get("creator") or ""),
        member_count=member_count,
        is_archived=bool(payload.get("is_archived")),
        is_private=bool(payload.get("is_private")),
        is_member=bool(payload.get("is_member")),
    )


def _parse_message(payload: Mapping[str, Any]) -> RawMessage:
    subtype = payload.get("subtype")
    return RawMessage(
        ts=str(payload.get("ts") or ""),
        user=str(payload.get("user") or ""),
        text=str(payload.get("text") or ""),
        subtype=str(subtype) if subtype else None,
        has_attachments=bool(payload.get("attachments") or payload.get("files")),
    )


def _parse_user(payload: Mapping[str, Any]) -> User:
    profile = payload.get("profile")
    if not isinstance(profile, Mapping):
        profile = {}
    return User(
        id=str(payload.get("id") or ""),
        name=str(payload.get("name") or ""),
        real_name=str(payload.get("real_name") or profile.get("real_name") or ""),
        display_name=str(profile.get("display_name") or ""),
    )
