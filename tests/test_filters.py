from __future__ import annotations

from datetime import timedelta

from fakes import NOW, ago, make_channel, ts
from slack_butler.filters import ChannelPreFilter, seems_active_from_metadata
from slack_butler.models import ExclusionOptions

CUTOFF = NOW - timedelta(days=30)


def test_prefilter_reasons() -> None:
    prefilter = ChannelPreFilter(ExclusionOptions.from_lists([], []))

    def reason(**kwargs: object) -> str:
        name = str(kwargs.pop("name", "project-x"))
        return prefilter.evaluate(make_channel(name, **kwargs), CUTOFF).reason

    assert reason(is_archived=True) == "archived"
    assert reason(created=ago(days=2)) == "too_new"
    assert reason(name="general") == "excluded_name"
    assert reason(name="random") == "excluded_name"
    assert reason(name="admin-ops") == "excluded_prefix"
    assert reason(latest_ts=ts(ago(days=1))) == "metadata_active"
    assert reason() == "candidate"
    assert reason(latest_ts=ts(ago(days=45))) == "candidate"


def test_candidate_decision_is_not_skipped() -> None:
    decision = ChannelPreFilter().evaluate(make_channel("project-x"), CUTOFF)

    assert decision.skip is False
    assert decision.reason == "candidate"


def test_metadata_hint_must_be_strict_and_newer_than_cutoff() -> None:
    assert seems_active_from_metadata(ts(ago(days=1)), CUTOFF) is True
    assert seems_active_from_metadata(ts(CUTOFF), CUTOFF) is False
    assert seems_active_from_metadata(ts(CUTOFF + timedelta(seconds=1)), CUTOFF) is True
    assert seems_active_from_metadata(str(int(ago(days=1).timestamp())), CUTOFF) is False
    assert seems_active_from_metadata("1717200000.12345", CUTOFF) is False
    assert seems_active_from_metadata("abc", CUTOFF) is False
    assert seems_active_from_metadata("", CUTOFF) is False
    assert seems_active_from_metadata(None, CUTOFF) is False


def test_channel_created_exactly_at_cutoff_is_not_too_new() -> None:
    decision = ChannelPreFilter().evaluate(make_channel("edge", created=CUTOFF), CUTOFF)

    assert decision.reason == "candidate"


def test_custom_exclusions_replace_defaults() -> None:
    exclusions = ExclusionOptions.from_lists(["#ops", " "], ["temp-"])
    prefilter = ChannelPreFilter(exclusions)

    assert prefilter.evaluate(make_channel("ops"), CUTOFF).reason == "excluded_name"
    assert prefilter.evaluate(make_channel("temp-launch"), CUTOFF).reason == "excluded_prefix"
    assert prefilter.evaluate(make_channel("general"), CUTOFF).reason == "candidate"
    assert prefilter.evaluate(make_channel("admin-ops"), CUTOFF).reason == "candidate"


def test_partition_keeps_listing_order() -> None:
    channels = [
        make_channel("b-project"),
        make_channel("general"),
        make_channel("a-project"),
        make_channel("fresh", created=ago(days=1)),
    ]

    candidates, skipped = ChannelPreFilter().partition(channels, CUTOFF)

    assert [channel.name for channel in candidates] == ["b-project", "a-project"]
    assert [(channel.name, reason) for channel, reason in skipped] == [
        ("general", "excluded_name"),
        ("fresh", "too_new"),
    ]


def test_default_exclusions_protect_workspace_channels() -> None:
    prefilter = ChannelPreFilter(ExclusionOptions.from_lists())
    protected = [
        "general",
        "random",
        "announcements",
        "admin",
        "hr",
        "security",
        "general-discussion",
        "admin-only",
        "hr-private",
        "security-alerts",
    ]

    for name in protected:
        assert prefilter.evaluate(make_channel(name), CUTOFF).skip, name
    assert prefilter.evaluate(make_channel("regular-channel"), CUTOFF).reason == "candidate"
