"""
Domain specific exception hierarchy and Slack error classification.

Slack reports every failure as a short error code inside free text
(``rate_limited``, ``missing_scope`` ...). The text is translated into an
``ErrorKind`` exactly once, in ``classify_error``; callers branch on the kind.
"""

from __future__ import annotations

import enum


class ErrorKind(enum.Enum):
    RATE_LIMITED = "rate_limited"
    MISSING_SCOPE = "missing_scope"
    INVALID_AUTH = "invalid_auth"
    CHANNEL_NOT_FOUND = "channel_not_found"
    NOT_IN_CHANNEL = "not_in_channel"
    ALREADY_IN_CHANNEL = "already_in_channel"
    ALREADY_ARCHIVED = "already_archived"
    IS_ARCHIVED = "is_archived"
    INVITE_ONLY = "invite_only"
    OTHER = "other"

    @property
    def is_fatal(self) -> bool:
        return self in _FATAL_KINDS

    @property
    def is_skippable(self) -> bool:
        return self in _SKIPPABLE_KINDS

    @property
    def is_satisfied(self) -> bool:
        return self in _SATISFIED_KINDS


_FATAL_KINDS = frozenset({ErrorKind.MISSING_SCOPE, ErrorKind.INVALID_AUTH})
_SKIPPABLE_KINDS = frozenset(
    {
        ErrorKind.CHANNEL_NOT_FOUND,
        ErrorKind.NOT_IN_CHANNEL,
        ErrorKind.IS_ARCHIVED,
        ErrorKind.INVITE_ONLY,
    }
)
_SATISFIED_KINDS = frozenset({ErrorKind.ALREADY_IN_CHANNEL, ErrorKind.ALREADY_ARCHIVED})

# First match wins; rate limiting is checked before everything else.
_ERROR_SIGNATURES: tuple[tuple[ErrorKind, tuple[str, ...]], ...] = (
    (ErrorKind.RATE_LIMITED, ("rate_limited", "ratelimited", "rate limit")),
    (ErrorKind.MISSING_SCOPE, ("missing_scope",)),
    (
        ErrorKind.INVALID_AUTH,
        ("invalid_auth", "not_authed", "token_revoked", "token_expired", "account_inactive"),
    ),
    (ErrorKind.ALREADY_IN_CHANNEL, ("already_in_channel",)),
    (ErrorKind.ALREADY_ARCHIVED, ("already_archived",)),
    (ErrorKind.CHANNEL_NOT_FOUND, ("channel_not_found",)),
    (ErrorKind.NOT_IN_CHANNEL, ("not_in_channel",)),
    (ErrorKind.IS_ARCHIVED, ("is_archived",)),
    (ErrorKind.INVITE_ONLY, ("invite_only",)),
)

_SCOPE_HINTS = {
    "list_channels": (
        "channels:read (public channels, required) and groups:read (private channels, optional)"
    ),
    "get_history": "channels:history (public channels) and groups:history (private channels)",
    "join_channel": "channels:join",
    "post_message": "chat:write",
    "archive_channel": "channels:manage",
    "list_users": "users:read",
}


def classify_error(text: str | None) -> ErrorKind:
    """Translate a Slack error string into an ``ErrorKind``."""

    lowered = (text or "").lower()
    if not lowered:
        return ErrorKind.OTHER
    for kind, needles in _ERROR_SIGNATURES:
        if any(needle in lowered for needle in needles):
            return kind
    return ErrorKind.OTHER


def remediation_hint(kind: ErrorKind, operation: str | None = None) -> str:
    """Human readable guidance for fatal errors."""

    if kind is ErrorKind.INVALID_AUTH:
        return "Invalid token. Please check your SLACK_TOKEN or --token value."
    if kind is ErrorKind.MISSING_SCOPE:
        scope = _SCOPE_HINTS.get(operation or "", "the OAuth scope required by this operation")
        return (
            f"Missing required OAuth scope: {scope}.\n"
            "Please add the scope in your Slack app settings at https://api.slack.com/apps "
            "and reinstall the app."
        )
    if kind is ErrorKind.RATE_LIMITED:
        return "Slack kept rate limiting the requests. Wait a few minutes and run again."
    return "Unexpected Slack API error."


class SlackButlerError(Exception):
    """Base exception for all library errors."""


class ConfigurationError(SlackButlerError):
    """Raised when required configuration or credentials are missing."""


class RateLimiterTimeout(SlackButlerError):
    """Raised when a rate limiter wait would outlast its deadline."""


class SlackAPIError(SlackButlerError):
    """Raised when the Slack Web API reports an error."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        channel: str | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.channel = channel
        self.kind = classify_error(message)


class RateLimitExhausted(SlackAPIError):
    """Raised when an operation is still rate limited after every attempt."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        channel: str | None = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message, operation=operation, channel=channel)
        self.kind = ErrorKind.RATE_LIMITED
        self.attempts = attempts


class FatalSweepError(SlackButlerError):
    """Raised when a sweep cannot continue for any channel."""

    def __init__(self, cause: SlackAPIError, *, context: str | None = None) -> None:
        hint = remediation_hint(cause.kind, cause.operation)
        prefix = f"{context}: " if context else ""
        super().__init__(f"{prefix}{cause}\n{hint}")
        self.cause = cause
        self.kind = cause.kind
        self.hint = hint
