from __future__ import annotations

import asyncio

import pytest

from fakes import BOT_ID, FakeSlackAPI, ago, bot_message, make_channel, make_retry, user_message
from slack_butler.detection import (
    NewChannelDetector,
    build_user_map,
    find_announced_channels,
    find_new_channels,
)
from slack_butler.errors import ConfigurationError
from slack_butler.membership import MembershipEnsurer
from slack_butler.models import User


def _detector(api: FakeSlackAPI) -> NewChannelDetector:
    retry = make_retry()
    return NewChannelDetector(api, retry, BOT_ID, ensurer=MembershipEnsurer(api, retry))


def test_find_new_channels_sorts_oldest_first_and_drops_archived() -> None:
    since = ago(days=1)
    channels = [
        make_channel("later", created=ago(hours=2)),
        make_channel("old", created=ago(days=3)),
        make_channel("earlier", created=ago(hours=20)),
        make_channel("gone", created=ago(hours=5), is_archived=True),
        make_channel("boundary", created=since),
    ]

    found = find_new_channels(channels, since)

    assert [channel.name for channel in found] == ["earlier", "later"]


def test_find_announced_channels_matches_names_and_links() -> None:
    messages = [
        bot_message(ago(hours=3), "• #alpha - created today"),
        bot_message(ago(hours=2), "• <#CBETA|beta> - created today"),
        bot_message(ago(hours=1), "• <#CGAMMA> - created today"),
        user_message(ago(hours=1), "what about #delta?"),
        bot_message(ago(minutes=5), "see #epsilon-2"),
    ]

    announced = find_announced_channels(
        messages,
        BOT_ID,
        ["alpha", "beta", "gamma", "delta", "epsilon"],
        {"beta": "CBETA", "gamma": "CGAMMA"},
    )

    assert announced == {"alpha", "beta", "gamma"}


def test_find_announced_channels_without_bot_id() -> None:
    messages = [bot_message(ago(hours=1), "#alpha")]

    assert find_announced_channels(messages, "", ["alpha"]) == set()


def test_build_user_map_prefers_real_name() -> None:
    users = [
        User("U1", name="jdoe", real_name="Jane Doe"),
        User("U2", name="bob"),
        User("U3", display_name="Ghost"),
        User(""),
    ]

    assert build_user_map(users) == {"U1": "Jane Doe", "U2": "bob", "U3": "Ghost"}


def test_detector_finds_and_resolves_channels() -> None:
    api = FakeSlackAPI(
        [
            make_channel("announcements", id="CANNOUNCE"),
            make_channel("fresh", id="CFRESH", created=ago(hours=3)),
        ]
    )
    detector = _detector(api)

    found = asyncio.run(detector.find(ago(days=1)))

    assert [channel.id for channel in found] == ["CFRESH"]
    assert detector.resolve_channel("#announcements").id == "CANNOUNCE"
    assert detector.resolve_channel("announcements").id == "CANNOUNCE"
    assert detector.resolve_channel("CFRESH").name == "fresh"
    with pytest.raises(ConfigurationError):
        detector.resolve_channel("#missing")
    with pytest.raises(ConfigurationError, match="channel CNOTHERE1 not found"):
        detector.resolve_channel("CNOTHERE1")


def test_resolve_channel_matches_short_ids_exactly() -> None:
    api = FakeSlackAPI([make_channel("ops", id="C42"), make_channel("c42", id="C0000042")])
    detector = _detector(api)
    asyncio.run(detector.find(ago(days=1)))

    assert detector.resolve_channel("C42").name == "ops"
    assert detector.resolve_channel(" C0000042 ").name == "c42"
    assert detector.resolve_channel("c42").id == "C0000042"


def test_filter_announced_reads_target_history() -> None:
    api = FakeSlackAPI(
        [
            make_channel("announcements", id="CANNOUNCE"),
            make_channel("fresh", id="CFRESH", created=ago(hours=3)),
            make_channel("newer", id="CNEWER", created=ago(hours=1)),
        ],
        {"CANNOUNCE": [bot_message(ago(hours=2), "New channel alert!\n\n• <#CFRESH>")]},
    )
    detector = _detector(api)

    async def scenario():
        found = await detector.find(ago(days=1))
        return await detector.filter_announced(found, "#announcements")

    remaining = asyncio.run(scenario())

    assert [channel.name for channel in remaining] == ["newer"]
    assert api.joined == ["CANNOUNCE"]
    assert api.history_limits == [("CANNOUNCE", 100)]


def test_announce_posts_formatted_text() -> None:
    api = FakeSlackAPI(
        [
            make_channel("announcements", id="CANNOUNCE", is_member=True),
            make_channel(
                "fresh", id="CFRESH", created=ago(hours=3), creator="U1", purpose="Launch prep"
            ),
        ]
    )
    detector = _detector(api)

    async def scenario():
        found = await detector.find(ago(days=1))
        return await detector.announce(found, "announcements", {"U1": "Jane Doe"})

    text = asyncio.run(scenario())

    assert api.posted == [("CANNOUNCE", text)]
    assert text.startswith("New channel alert!")
    assert "<#CFRESH>" in text
    assert "by Jane Doe" in text
    assert "Purpose: Launch prep" in text
    assert api.joined == []
