from __future__ import annotations

import asyncio

import pytest

from fakes import (
    BOT_ID,
    FakeSlackAPI,
    ago,
    bot_message,
    join_message,
    make_retry,
    ts,
    user_message,
    warning_message,
)
from slack_butler.activity import (
    ActivityClassifier,
    classify_messages,
    is_real_message,
    is_warning_marker,
)
from slack_butler.models import NO_HISTORY, RawMessage


@pytest.mark.parametrize(
    "message",
    [
        RawMessage(ts="1.000000", user="U1", text="joined", subtype="channel_join"),
        RawMessage(ts="1.000000", user="U1", text="x", subtype="group_purpose"),
        RawMessage(ts="1.000000", user="U1", text="x", subtype="pinned_item"),
        RawMessage(ts="1.000000", user="U1", text="x", subtype="bot_remove"),
        RawMessage(ts="1.000000", user="U1", text="<@U1> has joined the channel"),
        RawMessage(ts="1.000000", user="U1", text="<@U1> set the channel topic: snacks"),
        RawMessage(ts="1.000000", user="U1", text="renamed the channel from x to y"),
        RawMessage(ts="1.000000", user="U1", text="   \n\t "),
        RawMessage(ts="1.000000", user="U1", text=""),
    ],
)
def test_system_and_empty_messages_are_not_real(message: RawMessage) -> None:
    assert is_real_message(message) is False


def test_real_messages() -> None:
    assert is_real_message(RawMessage(ts="1.0", user="U1", text="lunch?"))
    assert is_real_message(RawMessage(ts="1.0", user="U1", text="", has_attachments=True))
    assert is_real_message(RawMessage(ts="1.0", user=BOT_ID, text="deploy finished"))
    assert is_real_message(
        RawMessage(ts="1.0", user="U1", text="thanks", subtype="thread_broadcast")
    )


def test_warning_marker_requires_bot_author() -> None:
    moment = ago(days=1)
    assert is_warning_marker(warning_message(moment), BOT_ID)
    assert is_warning_marker(bot_message(moment, "INACTIVE CHANNEL WARNING"), BOT_ID)
    assert not is_warning_marker(user_message(moment, "inactive channel warning"), BOT_ID)
    assert not is_warning_marker(bot_message(moment, "all good"), BOT_ID)
    assert not is_warning_marker(warning_message(moment), "")


def test_classify_empty_history_returns_sentinel() -> None:
    activity = classify_messages([], BOT_ID)

    assert activity.last_activity == NO_HISTORY
    assert activity.has_history is False
    assert activity.has_warning is False
    assert activity.source == "empty"


def test_classify_system_only_history_falls_back_to_oldest_message() -> None:
    newest, oldest = ago(days=2), ago(days=9)
    messages = [join_message(newest), join_message(ago(days=5)), join_message(oldest)]

    activity = classify_messages(messages, BOT_ID)

    assert activity.has_warning is False
    assert activity.last_activity == oldest
    assert activity.has_history is True
    assert activity.source == "fallback"


def test_classify_tracks_latest_user_activity_and_warning() -> None:
    user_time, warn_time = ago(days=40), ago(days=10)
    messages = [
        bot_message(ago(days=1), "weekly digest"),
        warning_message(warn_time),
        warning_message(ago(days=20)),
        join_message(ago(days=30)),
        user_message(user_time),
        user_message(ago(days=60)),
    ]

    activity = classify_messages(messages, BOT_ID)

    assert activity.last_activity == user_time
    assert activity.has_warning is True
    assert activity.warning_time == warn_time
    assert activity.warning_is_open is True
    assert activity.source == "user"
    assert activity.messages_scanned == 6


def test_user_post_after_warning_closes_it() -> None:
    messages = [user_message(ago(days=1)), warning_message(ago(days=3))]

    activity = classify_messages(messages, BOT_ID)

    assert activity.has_warning is True
    assert activity.warning_is_open is False


def test_bot_only_history_is_not_user_activity() -> None:
    oldest = ago(days=12)
    messages = [bot_message(ago(days=1)), bot_message(oldest)]

    activity = classify_messages(messages, BOT_ID)

    assert activity.source == "fallback"
    assert activity.last_activity == oldest


def test_warning_only_history_leaves_warning_open() -> None:
    warn_time = ago(hours=2)

    activity = classify_messages([warning_message(warn_time)], BOT_ID)

    assert activity.last_activity == warn_time
    assert activity.warning_is_open is True


def test_unparsable_timestamps_are_ignored() -> None:
    messages = [RawMessage(ts="garbage", user="U1", text="hi"), user_message(ago(days=3))]

    activity = classify_messages(messages, BOT_ID)

    assert activity.last_activity == ago(days=3)


def _history(newest_first: list[RawMessage], filler: int) -> list[RawMessage]:
    older = [user_message(ago(days=100 + index)) for index in range(filler)]
    return newest_first + older


def test_inspect_stops_after_shallow_scan_when_user_posted_last() -> None:
    latest = ago(days=2)
    api = FakeSlackAPI(
        histories={"C1": _history([join_message(ago(days=1)), user_message(latest)], 20)}
    )
    classifier = ActivityClassifier(api, make_retry(), BOT_ID)

    activity = asyncio.run(classifier.inspect("C1"))

    assert activity.last_activity == latest
    assert activity.source == "user"
    assert api.history_limits == [("C1", 10)]


def test_inspect_escalates_when_bot_posted_last() -> None:
    warn_time = ago(days=35)
    api = FakeSlackAPI(
        histories={"C1": _history([warning_message(warn_time), join_message(ago(days=36))], 20)}
    )
    classifier = ActivityClassifier(api, make_retry(), BOT_ID)

    activity = asyncio.run(classifier.inspect("C1"))

    assert api.history_limits == [("C1", 10), ("C1", 50)]
    assert activity.has_warning is True
    assert activity.warning_time == warn_time
    assert activity.last_activity == ago(days=100)
    assert activity.warning_is_open is True


def test_inspect_reuses_short_history() -> None:
    oldest = ago(days=8)
    api = FakeSlackAPI(histories={"C1": [bot_message(ago(days=1)), join_message(oldest)]})
    classifier = ActivityClassifier(api, make_retry(), BOT_ID)

    activity = asyncio.run(classifier.inspect("C1"))

    assert api.history_limits == [("C1", 10)]
    assert activity.source == "fallback"
    assert activity.last_activity == oldest


def test_inspect_empty_channel() -> None:
    api = FakeSlackAPI()
    classifier = ActivityClassifier(api, make_retry(), BOT_ID)

    activity = asyncio.run(classifier.inspect("C404"))

    assert activity.last_activity == NO_HISTORY
    assert api.history_limits == [("C404", 10)]


def test_inspect_timestamps_round_trip() -> None:
    moment = ago(minutes=5)
    api = FakeSlackAPI(histories={"C1": [RawMessage(ts=ts(moment), user="U7", text="hey")]})

    activity = asyncio.run(ActivityClassifier(api, make_retry(), BOT_ID).inspect("C1"))

    assert activity.last_activity == moment
