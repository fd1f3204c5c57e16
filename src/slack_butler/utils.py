"""Miscellaneous helpers."""

from __future__ import annotations

import asyncio
import logging
import re
import threading
import time
from datetime import datetime, timezone

from .errors import ConfigurationError, RateLimiterTimeout

logger = logging.getLogger(__name__)

MAX_BACKOFF_COUNT = 6
RETRY_AFTER_BUFFER = 1.0

_RETRY_AFTER_DIRECTIVE = "retry after "
_DURATION_PART_RE = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_DURATION_RE = re.compile(r"(?:(?:\d+\.?\d*|\.\d+)(?:ns|us|µs|μs|ms|s|m|h))+")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_SLACK_TS_RE = re.compile(r"-?\d+(?:\.\d+)?")
_CHANNEL_NAME_RE = re.compile(r"[a-z0-9_-]+")
_BOT_TOKEN_RE = re.compile(r"xoxb-\d+-\d+-[a-zA-Z0-9]+")
_SECRET_PATTERNS = (
    re.compile(r"xox[abposr]-[a-zA-Z0-9-]+"),
    re.compile(r"MOCK-[A-Z0-9-]+"),
)


class RateLimiter:
    """Admit one outbound call at a time with exponential backoff.

    The effective spacing between two admitted calls is
    ``min(min_interval * 2 ** backoff_count, max_backoff)``. The backoff
    counter grows on provider rate-limit signals (saturating at
    ``MAX_BACKOFF_COUNT``) and drops back to zero on the first success.

    Counter and timestamp are guarded by a thread lock so the bookkeeping
    methods may be called from any thread; admission itself is serialized by
    an ``asyncio.Lock`` which is held while sleeping.
    """

    def __init__(self, min_interval: float = 1.0, max_backoff: float = 300.0):
        self._min_interval = max(0.0, min_interval)
        self._max_backoff = max(self._min_interval, max_backoff)
        self._backoff_count = 0
        self._last_request: float | None = None
        self._state_lock = threading.Lock()
        self._admission = asyncio.Lock()

    @property
    def min_interval(self) -> float:
        return self._min_interval

    @property
    def backoff_count(self) -> int:
        with self._state_lock:
            return self._backoff_count

    @property
    def current_interval(self) -> float:
        with self._state_lock:
            return self._interval_locked()

    def _interval_locked(self) -> float:
        if self._backoff_count <= 0:
            return self._min_interval
        return min(self._min_interval * (1 << self._backoff_count), self._max_backoff)

    async def wait(self, timeout: float | None = None) -> None:
        """Block until the next call may be issued.

        Raises:
            RateLimiterTimeout: when ``timeout`` seconds pass before admission.
        """

        deadline = None if timeout is None else time.monotonic() + timeout
        if deadline is None:
            await self._admission.acquire()
        elif timeout is not None and timeout <= 0:
            if self._admission.locked():
                raise RateLimiterTimeout("rate limiter is busy and no wait was allowed")
            await self._admission.acquire()
        else:
            try:
                await asyncio.wait_for(self._admission.acquire(), max(0.0, timeout or 0.0))
            except asyncio.TimeoutError as exc:
                raise RateLimiterTimeout(
                    f"rate limiter wait exceeded {timeout:.2f}s deadline"
                ) from exc
        try:
            with self._state_lock:
                interval = self._interval_locked()
                last = self._last_request
                backoff = self._backoff_count
            delay = 0.0 if last is None else interval - (time.monotonic() - last)
            if delay > 0:
                if deadline is not None and time.monotonic() + delay > deadline:
                    raise RateLimiterTimeout(
                        f"rate limiter needs {delay:.2f}s which exceeds the deadline"
                    )
                logger.debug(
                    "Rate limiting: sleeping %.2fs before API request (backoff %d)",
                    delay,
                    backoff,
                )
                await asyncio.sleep(delay)
            with self._state_lock:
                self._last_request = time.monotonic()
        finally:
            self._admission.release()

    def on_success(self) -> None:
        with self._state_lock:
            if self._backoff_count:
                logger.debug(
                    "Rate limiting: resetting backoff %d after success", self._backoff_count
                )
            self._backoff_count = 0

    def on_rate_limit_error(self) -> None:
        with self._state_lock:
            self._backoff_count = min(self._backoff_count + 1, MAX_BACKOFF_COUNT)
            count = self._backoff_count
        logger.warning("Rate limiting: increasing backoff to %d after rate limit error", count)


def parse_duration(value: str | None) -> float | None:
    """Parse a Go style duration (``500ms``, ``30s``, ``1m30s``) into seconds."""

    if value is None:
        return None
    text = value.strip()
    if text == "0":
        return 0.0
    if not text or not _DURATION_RE.fullmatch(text):
        return None
    total = 0.0
    for amount, unit in _DURATION_PART_RE.findall(text):
        total += float(amount) * _DURATION_UNITS[unit]
    return total


def parse_retry_after(text: str | None) -> float:
    """Return the provider suggested wait plus a safety buffer, or 0 when unknown.

    Only the first ``retry after <duration>`` directive is considered.
    """

    if not text:
        return 0.0
    index = text.lower().find(_RETRY_AFTER_DIRECTIVE)
    if index < 0:
        return 0.0
    remainder = text[index + len(_RETRY_AFTER_DIRECTIVE) :].split()
    if not remainder:
        return 0.0
    seconds = parse_duration(remainder[0].rstrip(",;"))
    if seconds is None:
        return 0.0
    return seconds + RETRY_AFTER_BUFFER


def parse_slack_timestamp(value: str | None) -> datetime | None:
    """Convert a Slack ``ts`` string (``1234567890.123456``) to an aware datetime."""

    if not value:
        return None
    text = value.strip()
    if not _SLACK_TS_RE.fullmatch(text):
        return None
    try:
        return datetime.fromtimestamp(float(text), tz=timezone.utc)
    except (OverflowError, ValueError, OSError):
        return None


def parse_delay_setting(value: str | None, default: float = 0.0) -> float:
    if value is None:
        return default
    stripped = value.strip()
    if not stripped:
        return default
    try:
        parsed = float(stripped)
    except ValueError:
        return default
    return max(0.0, parsed)


def parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse textual boolean configuration values.

    Supported truthy values: ``on``, ``true``, ``yes``, ``1`` (case-insensitive).
    Supported falsy values: ``off``, ``false``, ``no``, ``0``.
    Any other value returns ``default``.
    """

    if value is None:
        return default
    normalized = value.strip().lower()
    if not normalized:
        return default
    if normalized in {"on", "true", "yes", "1"}:
        return True
    if normalized in {"off", "false", "no", "0"}:
        return False
    return default


def parse_list(value: str | None) -> list[str]:
    """Split a comma separated option into trimmed, non-empty entries."""

    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def validate_token(token: str | None) -> str:
    """Return the stripped token or raise when it is not a usable bot token."""

    candidate = (token or "").strip()
    if not candidate:
        raise ConfigurationError("token cannot be empty")
    if candidate.startswith("MOCK-") or "TESTING-ONLY" in candidate:
        return candidate
    if not candidate.startswith("xoxb-"):
        raise ConfigurationError("invalid token format: bot tokens must start with 'xoxb-'")
    if not _BOT_TOKEN_RE.fullmatch(candidate):
        raise ConfigurationError(
            "invalid token format: token does not match expected Slack bot token pattern"
        )
    if len(candidate) < 50:
        raise ConfigurationError("invalid token: token appears too short")
    return candidate


def validate_channel_name(name: str | None) -> str:
    """Return the channel name without ``#`` or raise for malformed names."""

    candidate = (name or "").strip().removeprefix("#")
    if not candidate:
        raise ConfigurationError("channel name cannot be empty")
    if not _CHANNEL_NAME_RE.fullmatch(candidate):
        raise ConfigurationError(
            "invalid channel name: must contain only lowercase letters, numbers, "
            "hyphens, and underscores"
        )
    if len(candidate) > 80:
        raise ConfigurationError("invalid channel name: too long (max 80 characters)")
    return candidate


def sanitize_for_logging(text: str) -> str:
    """Replace token-like substrings with ``[REDACTED]``."""

    result = text
    for pattern in _SECRET_PATTERNS:
        result = pattern.sub("[REDACTED]", result)
    return result
