"""Configuration, connectivity and permission checks."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import ConfigurationError, ErrorKind, SlackAPIError
from .models import AuthInfo
from .retry import RetryExecutor
from .slack import SlackAPIProtocol
from .utils import validate_token

logger = logging.getLogger(__name__)

REQUIRED_SCOPES = ("channels:read", "channels:join", "chat:write", "channels:manage", "users:read")

_HEALTH_ICONS = {
    "ok": "✅",
    "error": "❌",
    "warning": "⚠️",
    "unknown": "❔",
}


@dataclass(slots=True)
class HealthUpdate:
    """Single check result produced by the checker."""

    key: str
    status: str
    message: str | None
    label: str

    @property
    def ok(self) -> bool:
        return self.status != "error"


def health_icon(status: str) -> str:
    return _HEALTH_ICONS.get(status, "❔")


def check_configuration(token: str | None) -> HealthUpdate:
    if not (token or "").strip():
        return HealthUpdate(
            "configuration",
            "error",
            "No Slack token configured. Set SLACK_TOKEN or use --token.",
            "Configuration validation",
        )
    return HealthUpdate("configuration", "ok", None, "Configuration validation")


def check_token_format(token: str | None) -> HealthUpdate:
    try:
        validate_token(token)
    except ConfigurationError as exc:
        return HealthUpdate("token_format", "error", str(exc), "Token format validation")
    return HealthUpdate("token_format", "ok", None, "Token format validation")


class HealthChecker:
    """Remote checks that need a working API client."""

    def __init__(self, api: SlackAPIProtocol, retry: RetryExecutor):
        self._api = api
        self._retry = retry
        self.auth: AuthInfo | None = None

    async def check_connectivity(self) -> HealthUpdate:
        try:
            self.auth = await self._retry.run("auth_test", self._api.auth_test)
        except SlackAPIError as exc:
            return HealthUpdate(
                "connectivity",
                "error",
                f"{exc}. Verify your token is valid and has not been revoked.",
                "Slack API connectivity",
            )
        return HealthUpdate(
            "connectivity",
            "ok",
            f"Connected as {self.auth.user} (team: {self.auth.team})",
            "Slack API connectivity",
        )

    async def check_scopes(self) -> dict[str, bool | None]:
        """Probe scopes that can be tested without side effects.

        ``None`` marks scopes that can only be verified by a real write.
        """

        scopes: dict[str, bool | None] = {scope: None for scope in REQUIRED_SCOPES}
        scopes["channels:read"] = await self._probe(
            "list_channels",
            lambda: self._api.list_channels_page(types=("public_channel",)),
        )
        scopes["users:read"] = await self._probe("list_users", self._api.list_users_page)
        return scopes

    async def check_permissions(self) -> HealthUpdate:
        scopes = await self.check_scopes()
        missing = [scope for scope, granted in scopes.items() if granted is False]
        untested = [scope for scope, granted in scopes.items() if granted is None]
        if "channels:read" in missing:
            return HealthUpdate(
                "permissions",
                "error",
                "Missing scope: channels:read (required to list public channels)",
                "Required permissions",
            )
        if missing:
            return HealthUpdate(
                "permissions",
                "warning",
                "Missing optional scopes: " + ", ".join(missing),
                "Required permissions",
            )
        return HealthUpdate(
            "permissions",
            "ok",
            "Not verifiable without side effects: " + ", ".join(untested) if untested else None,
            "Required permissions",
        )

    async def _probe(self, operation: str, call) -> bool | None:
        try:
            await self._retry.run(operation, call)
        except SlackAPIError as exc:
            if exc.kind is ErrorKind.MISSING_SCOPE:
                return False
            logger.warning("Scope probe %s failed: %s", operation, exc)
            return None
        return True

    async def run(self, token: str | None) -> list[HealthUpdate]:
        """Run every check in order, stopping at the first failure."""

        updates = [check_configuration(token)]
        if not updates[-1].ok:
            return updates
        updates.append(check_token_format(token))
        if not updates[-1].ok:
            return updates
        updates.append(await self.check_connectivity())
        if not updates[-1].ok:
            return updates
        updates.append(await self.check_permissions())
        return updates
