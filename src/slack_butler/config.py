"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from .errors import ConfigurationError
from .models import RuntimeOptions
from .utils import parse_bool, parse_delay_setting

_TOKEN_ENV = "SLACK_TOKEN"
_DEBUG_ENV = "SLACK_DEBUG"
_MIN_INTERVAL_ENV = "SLACK_MIN_INTERVAL"
_MAX_BACKOFF_ENV = "SLACK_MAX_BACKOFF"
_MAX_ATTEMPTS_ENV = "SLACK_MAX_ATTEMPTS"


@dataclass(slots=True)
class Settings:
    token: str | None = None
    debug: bool = False
    runtime: RuntimeOptions = field(default_factory=RuntimeOptions)

    def require_token(self) -> str:
        token = (self.token or "").strip()
        if not token:
            raise ConfigurationError(
                "slack token is required. Set SLACK_TOKEN environment variable or use --token flag"
            )
        return token


def load_settings(
    env: Mapping[str, str] | None = None,
    *,
    token: str | None = None,
    debug: bool | None = None,
) -> Settings:
    """Build settings from ``env`` (``os.environ`` by default); arguments win."""

    source = os.environ if env is None else env
    defaults = RuntimeOptions()
    runtime = RuntimeOptions(
        min_interval=parse_delay_setting(source.get(_MIN_INTERVAL_ENV), defaults.min_interval),
        max_backoff=parse_delay_setting(source.get(_MAX_BACKOFF_ENV), defaults.max_backoff),
        max_attempts=_parse_attempts(source.get(_MAX_ATTEMPTS_ENV), defaults.max_attempts),
    )
    env_token = (source.get(_TOKEN_ENV) or "").strip() or None
    return Settings(
        token=(token or "").strip() or env_token,
        debug=debug if debug is not None else parse_bool(source.get(_DEBUG_ENV)),
        runtime=runtime,
    )


def _parse_attempts(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return max(1, parsed)
