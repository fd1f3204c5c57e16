"""Application bootstrap for slack-butler commands."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator, Callable, Sequence
from datetime import datetime, timedelta, timezone

import aiohttp

from .actions import ChannelActions
from .activity import ActivityClassifier
from .config import Settings
from .detection import NewChannelDetector, build_user_map
from .errors import FatalSweepError, SlackAPIError
from .filters import ChannelPreFilter
from .formatting import format_duration, format_new_channel_announcement
from .health import HealthChecker, health_icon
from .lifecycle import LifecycleDecisionEngine
from .membership import MembershipEnsurer
from .models import (
    AuthInfo,
    Channel,
    ExclusionOptions,
    LifecycleDecision,
    LifecycleThresholds,
    SweepResult,
)
from .orchestrator import LifecycleOrchestrator
from .retry import RetryExecutor
from .slack import SlackAPIProtocol, SlackClient
from .utils import RateLimiter, sanitize_for_logging, validate_token

logger = logging.getLogger(__name__)

_DAY = 86400.0


class ButlerApp:
    """High level coordinator tying settings, the Slack client and the engines together."""

    def __init__(
        self,
        settings: Settings,
        *,
        api: SlackAPIProtocol | None = None,
        output: Callable[[str], None] = print,
    ):
        self._settings = settings
        self._api = api
        self._out = output

    @contextlib.asynccontextmanager
    async def _connect(self, token: str) -> AsyncIterator[SlackAPIProtocol]:
        if self._api is not None:
            yield self._api
            return
        async with aiohttp.ClientSession() as session:
            yield SlackClient(session, token, timeout=self._settings.runtime.request_timeout)

    def _build_retry(self) -> RetryExecutor:
        runtime = self._settings.runtime
        limiter = RateLimiter(runtime.min_interval, runtime.max_backoff)
        return RetryExecutor(limiter, max_attempts=runtime.max_attempts)

    async def _authenticate(self, api: SlackAPIProtocol, retry: RetryExecutor) -> AuthInfo:
        try:
            auth = await retry.run("auth_test", api.auth_test)
        except SlackAPIError as exc:
            raise FatalSweepError(exc, context="failed to authenticate") from exc
        logger.info("Authenticated as %s in %s", auth.user, auth.team)
        return auth

    async def _load_user_map(self, api: SlackAPIProtocol, retry: RetryExecutor) -> dict[str, str]:
        try:
            users = await retry.run_pages("list_users", api.list_users_page)
        except SlackAPIError as exc:
            logger.warning(
                "Could not load user names, creators will be shown as IDs: %s",
                sanitize_for_logging(str(exc)),
            )
            return {}
        return build_user_map(users)

    async def run_archive(
        self,
        *,
        warn_days: float,
        archive_days: float,
        exclude_names: Sequence[str] = (),
        exclude_prefixes: Sequence[str] = (),
        commit: bool = False,
        now: datetime | None = None,
    ) -> SweepResult:
        token = validate_token(self._settings.require_token())
        thresholds = LifecycleThresholds(
            warn_after=warn_days * _DAY, archive_after=archive_days * _DAY
        )
        exclusions = ExclusionOptions.from_lists(exclude_names, exclude_prefixes)
        runtime = self._settings.runtime

        async with self._connect(token) as api:
            retry = self._build_retry()
            auth = await self._authenticate(api, retry)
            user_map = await self._load_user_map(api, retry)

            ensurer = MembershipEnsurer(api, retry)
            orchestrator = LifecycleOrchestrator(
                api,
                retry,
                ActivityClassifier(
                    api,
                    retry,
                    auth.user_id,
                    shallow=runtime.shallow_window,
                    deep=runtime.deep_window,
                ),
                ChannelPreFilter(exclusions),
                ensurer,
                LifecycleDecisionEngine(thresholds),
            )
            result = await orchestrator.sweep(now)
            self._report_sweep(result, thresholds, user_map, now or datetime.now(timezone.utc))

            if commit and result.error is None:
                actions = ChannelActions(api, retry, ensurer, thresholds)
                for decision in result.to_warn:
                    await actions.warn(decision)
                for decision in result.to_archive:
                    await actions.archive(decision)
            elif not commit and (result.to_warn or result.to_archive):
                self._out("\nPreview only. Run again with --commit to warn and archive.")

        if result.error is not None:
            raise result.error
        return result

    def _report_sweep(
        self,
        result: SweepResult,
        thresholds: LifecycleThresholds,
        user_map: dict[str, str],
        now: datetime,
    ) -> None:
        self._out(
            f"Inactive after {format_duration(thresholds.warn_after)}, "
            f"archived {format_duration(thresholds.archive_after)} after a warning."
        )
        self._out(f"Channels to warn ({len(result.to_warn)}):")
        for decision in result.to_warn:
            self._out(_decision_line(decision, user_map, now))
        self._out(f"Channels to archive ({len(result.to_archive)}):")
        for decision in result.to_archive:
            self._out(_decision_line(decision, user_map, now))
        if result.error is not None:
            self._out("Sweep stopped early; the lists above are partial.")

    async def run_detect(
        self,
        *,
        since_days: float,
        announce_to: str | None = None,
        commit: bool = False,
        now: datetime | None = None,
    ) -> list[Channel]:
        token = validate_token(self._settings.require_token())
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=since_days)

        async with self._connect(token) as api:
            retry = self._build_retry()
            auth = await self._authenticate(api, retry)
            detector = NewChannelDetector(
                api, retry, auth.user_id, ensurer=MembershipEnsurer(api, retry)
            )
            channels = await detector.find(cutoff)
            if announce_to:
                channels = await detector.filter_announced(channels, announce_to)

            if not channels:
                self._out(f"No new channels since {cutoff:%Y-%m-%d %H:%M:%S}")
                return []

            self._out(f"New channels found ({len(channels)}):")
            for channel in channels:
                self._out(f"  #{channel.name} (created: {channel.created:%Y-%m-%d %H:%M:%S})")

            if announce_to:
                user_map = await self._load_user_map(api, retry)
                if commit:
                    await detector.announce(channels, announce_to, user_map)
                    self._out(f"Announcement posted to {announce_to}")
                else:
                    self._out("\n--- PREVIEW ---")
                    self._out(f"Would announce to channel: {announce_to}")
                    self._out(format_new_channel_announcement(channels, user_map))
                    self._out("--- END PREVIEW ---")
        return channels

    async def run_health(self, *, verbose: bool = False) -> bool:
        token = self._settings.token
        self._out("Running health checks...")
        async with self._connect(token or "") as api:
            checker = HealthChecker(api, self._build_retry())
            updates = await checker.run(token)

        for update in updates:
            self._out(f"{health_icon(update.status)} {update.label}")
            if update.message and (verbose or not update.ok or update.status == "warning"):
                self._out(f"    {update.message}")

        healthy = all(update.ok for update in updates)
        if healthy and checker.auth is not None:
            auth = checker.auth
            self._out(f"Health check completed: connected as {auth.user} ({auth.team})")
        return healthy


def _decision_line(decision: LifecycleDecision, user_map: dict[str, str], now: datetime) -> str:
    channel = decision.channel
    line = f"  #{channel.name}: {decision.reason}"
    if channel.creator:
        line += f", created by {user_map.get(channel.creator, channel.creator)}"
    if decision.activity.has_history:
        idle = (now - decision.activity.last_activity).total_seconds()
        line += f", last activity {format_duration(idle)} ago"
    return line
