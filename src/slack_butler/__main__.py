"""Command line entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from importlib import metadata

from .app import ButlerApp
from .config import load_settings
from .errors import SlackButlerError
from .utils import parse_list


def _version() -> str:
    try:
        return metadata.version("slack-butler")
    except metadata.PackageNotFoundError:
        return "unknown"


def _days(*, allow_zero: bool):
    def parse(value: str) -> float:
        try:
            days = float(value)
        except ValueError:
            raise argparse.ArgumentTypeError(
                f"invalid days format '{value}': must be a number (e.g., 1, 7, 30)"
            ) from None
        if days < 0 or (days == 0 and not allow_zero):
            qualifier = "zero or positive" if allow_zero else "positive"
            raise argparse.ArgumentTypeError(f"days must be {qualifier}, got {value}")
        return days

    return parse


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slack-butler", description="Keep a Slack workspace tidy"
    )
    parser.add_argument("--token", help="Slack bot token. Can also be set via SLACK_TOKEN")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {_version()}")
    commands = parser.add_subparsers(dest="command", required=True)

    channels = commands.add_parser("channels", help="Manage channels in your Slack workspace")
    channel_commands = channels.add_subparsers(dest="channels_command", required=True)

    detect = channel_commands.add_parser(
        "detect", help="Detect new channels created in a time period"
    )
    detect.add_argument(
        "--since",
        type=_days(allow_zero=True),
        default=1.0,
        help="Number of days to look back (e.g., 1, 7, 30)",
    )
    detect.add_argument("--announce-to", help="Channel to announce new channels to")
    detect.add_argument(
        "--commit", action="store_true", help="Post the announcement instead of previewing it"
    )

    archive = channel_commands.add_parser(
        "archive", help="Warn inactive channels and archive channels that stayed inactive"
    )
    archive.add_argument(
        "--warn-days",
        type=_days(allow_zero=False),
        default=30.0,
        help="Days without activity before a channel is warned",
    )
    archive.add_argument(
        "--archive-days",
        type=_days(allow_zero=False),
        default=30.0,
        help="Days after a warning before the channel is archived",
    )
    archive.add_argument(
        "--exclude-channels", default="", help="Comma separated channel names to leave alone"
    )
    archive.add_argument(
        "--exclude-prefixes",
        default="",
        help="Comma separated channel name prefixes to leave alone",
    )
    archive.add_argument(
        "--commit", action="store_true", help="Post warnings and archive instead of previewing"
    )

    health = commands.add_parser("health", help="Check configuration and connectivity")
    health.add_argument("-v", "--verbose", action="store_true", help="Show details for each check")
    return parser


async def _dispatch(app: ButlerApp, args: argparse.Namespace) -> int:
    if args.command == "health":
        return 0 if await app.run_health(verbose=args.verbose) else 1
    if args.channels_command == "detect":
        await app.run_detect(
            since_days=args.since,
            announce_to=args.announce_to,
            commit=args.commit,
        )
        return 0
    await app.run_archive(
        warn_days=args.warn_days,
        archive_days=args.archive_days,
        exclude_names=parse_list(args.exclude_channels),
        exclude_prefixes=parse_list(args.exclude_prefixes),
        commit=args.commit,
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings(token=args.token, debug=True if args.debug else None)
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(level=log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    app = ButlerApp(settings)
    try:
        return asyncio.run(_dispatch(app, args))
    except SlackButlerError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Stopped by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
