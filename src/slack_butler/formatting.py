"""Slack message texts posted by the butler."""

from __future__ import annotations

from datetime import datetime
from typing import Mapping, Sequence

from .models import Channel

WARNING_COMMENT = "<!-- inactive channel warning -->"

_UNITS = (
    (86400, "day"),
    (3600, "hour"),
    (60, "minute"),
)


def format_duration(seconds: float) -> str:
    """Render seconds using the largest whole unit (``"2 hours"``, ``"1 day"``)."""

    total = max(0, int(seconds))
    for size, unit in _UNITS:
        if total >= size:
            return _plural(total // size, unit)
    return _plural(total, "second")


def _plural(value: int, unit: str) -> str:
    return f"{value} {unit}" if value == 1 else f"{value} {unit}s"


def format_date(moment: datetime) -> str:
    return f"{moment:%B} {moment.day}, {moment.year}"


def format_inactive_warning(channel: Channel, warn_seconds: float, archive_seconds: float) -> str:
    warn = format_duration(warn_seconds)
    grace = format_duration(archive_seconds)
    lines = [
        "🚨 **Inactive Channel Warning** 🚨",
        "",
        f"This channel has been inactive for more than {warn}. "
        f"It will be archived in {grace} unless there is new activity.",
        "",
        "**To keep this channel active:**",
        "• Post a message in this channel",
        "• Reply to any recent message",
        "",
        f"If no one posts within {grace}, #{channel.name} will be archived automatically.",
        "",
        WARNING_COMMENT,
    ]
    return "\n".join(lines)


def format_archival_notice(channel: Channel, warn_seconds: float, archive_seconds: float) -> str:
    warn = format_duration(warn_seconds)
    grace = format_duration(archive_seconds)
    lines = [
        "📋 **Channel Archival Notice**",
        "",
        f"This channel is being archived because it has been inactive for more than {warn} "
        f"and nobody posted within {grace} of the last reminder.",
        "",
        f"A workspace admin can unarchive #{channel.name} if it is needed again.",
        "",
        "_This action was performed automatically by the slack-butler bot._",
    ]
    return "\n".join(lines)


def format_new_channel_announcement(
    channels: Sequence[Channel],
    user_map: Mapping[str, str] | None = None,
) -> str:
    if len(channels) == 1:
        header = "New channel alert!"
    else:
        header = f"{len(channels)} new channels created!"

    blocks: list[str] = []
    for channel in channels:
        line = f"• <#{channel.id}> - created {format_date(channel.created)}"
        if channel.creator:
            name = (user_map or {}).get(channel.creator)
            line += f" by {name}" if name else f" by <@{channel.creator}>"
        if channel.purpose:
            line += f"\n  Purpose: {channel.purpose}"
        blocks.append(line)
    return header + "\n\n" + "\n\n".join(blocks) + "\n"


def split_message(text: str, limit: int = 3500) -> list[str]:
    """Split long text on paragraph boundaries so each chunk fits ``limit``."""

    if len(text) <= limit:
        return [text]

    chunks: list[str] = []
    current = ""
    for paragraph in text.split("\n\n"):
        for piece in _split_single_paragraph(paragraph, limit):
            candidate = f"{current}\n\n{piece}" if current else piece
            if current and len(candidate) > limit:
                chunks.append(current)
                current = piece
            else:
                current = candidate
    if current:
        chunks.append(current)
    return chunks or [""]


def _split_single_paragraph(text: str, limit: int) -> list[str]:
    if len(text) <= limit:
        return [text]
    parts: list[str] = []
    remaining = text
    while remaining:
        if len(remaining) <= limit:
            parts.append(remaining)
            break
        split = remaining.rfind("\n", 0, limit)
        if split == -1 or split < limit // 2:
            split = remaining.rfind(" ", 0, limit)
        if split == -1 or split < limit // 2:
            split = limit
        parts.append(remaining[:split].rstrip())
        remaining = remaining[split:].lstrip()
    return parts
