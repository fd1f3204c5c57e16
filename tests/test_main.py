from __future__ import annotations

import pytest

from slack_butler.__main__ import build_parser, main


def test_archive_defaults() -> None:
    args = build_parser().parse_args(["channels", "archive"])

    assert args.command == "channels"
    assert args.channels_command == "archive"
    assert args.warn_days == 30.0
    assert args.archive_days == 30.0
    assert args.commit is False


def test_detect_options() -> None:
    args = build_parser().parse_args(
        ["--token", "xoxb-x", "channels", "detect", "--since", "7", "--announce-to", "#general"]
    )

    assert args.token == "xoxb-x"
    assert args.since == 7.0
    assert args.announce_to == "#general"


@pytest.mark.parametrize(
    "argv",
    [
        ["channels", "archive", "--warn-days", "0"],
        ["channels", "archive", "--archive-days", "soon"],
        ["channels", "detect", "--since", "-1"],
        ["channels"],
        [],
    ],
)
def test_invalid_arguments_exit(argv: list[str]) -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(argv)


def test_zero_days_is_allowed_for_detect() -> None:
    assert build_parser().parse_args(["channels", "detect", "--since", "0"]).since == 0.0


def test_missing_token_returns_error(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.delenv("SLACK_TOKEN", raising=False)

    code = main(["channels", "archive"])

    assert code == 1
    assert "slack token is required" in capsys.readouterr().err


def test_invalid_token_returns_error(capsys: pytest.CaptureFixture[str]) -> None:
    code = main(["--token", "not-a-token", "channels", "detect"])

    assert code == 1
    assert "xoxb-" in capsys.readouterr().err


@pytest.mark.parametrize(
    ("argv", "message"),
    [
        (["channels", "detect", "--since", "-1"], "days must be zero or positive, got -1"),
        (["channels", "archive", "--warn-days", "0"], "days must be positive, got 0"),
        (["channels", "archive", "--archive-days", "x"], "invalid days format 'x'"),
    ],
)
def test_days_errors_describe_the_accepted_range(
    argv: list[str], message: str, capsys: pytest.CaptureFixture[str]
) -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(argv)

    assert message in capsys.readouterr().err
