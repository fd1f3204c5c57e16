"""Rate-limit aware retry of remote operations."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Collection, TypeVar

from .errors import ErrorKind, RateLimitExhausted, SlackAPIError
from .utils import RateLimiter, parse_retry_after

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

_DEFAULT_RETRY_ON = frozenset({ErrorKind.RATE_LIMITED})


class RetryExecutor:
    """Run remote calls through the shared limiter and retry on rate limiting.

    Each attempt first waits for admission. Errors whose kind is outside
    ``retry_on`` propagate immediately. Rate-limit errors grow the limiter
    backoff, sleep for the provider suggested delay when one is given and try
    again until ``max_attempts`` is reached.
    """

    def __init__(
        self,
        limiter: RateLimiter,
        *,
        max_attempts: int = 3,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ):
        self._limiter = limiter
        self._max_attempts = max(1, max_attempts)
        self._sleep = sleep

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def run(
        self,
        operation: str,
        call: Callable[[], Awaitable[_T]],
        *,
        channel: str | None = None,
        retry_on: Collection[ErrorKind] = _DEFAULT_RETRY_ON,
    ) -> _T:
        last_error: SlackAPIError | None = None
        for attempt in range(1, self._max_attempts + 1):
            await self._limiter.wait()
            try:
                result = await call()
            except SlackAPIError as exc:
                if exc.kind not in retry_on:
                    raise
                last_error = exc
                if exc.kind is ErrorKind.RATE_LIMITED:
                    self._limiter.on_rate_limit_error()
                if attempt >= self._max_attempts:
                    break
                delay = parse_retry_after(str(exc))
                if delay > 0:
                    logger.warning(
                        "%s%s rate limited (attempt %d/%d), retrying in %.1fs",
                        operation,
                        f" for {channel}" if channel else "",
                        attempt,
                        self._max_attempts,
                        delay,
                    )
                    await self._sleep(delay)
                else:
                    logger.warning(
                        "%s%s rate limited (attempt %d/%d), retrying after backoff %.1fs",
                        operation,
                        f" for {channel}" if channel else "",
                        attempt,
                        self._max_attempts,
                        self._limiter.current_interval,
                    )
                continue
            self._limiter.on_success()
            return result

        if last_error is not None and last_error.kind is not ErrorKind.RATE_LIMITED:
            raise last_error
        message = f"{operation} still rate limited after {self._max_attempts} attempts"
        if last_error is not None:
            message = f"{message}: {last_error}"
        raise RateLimitExhausted(
            message,
            operation=operation,
            channel=channel,
            attempts=self._max_attempts,
        )

    async def run_pages(
        self,
        operation: str,
        fetch_page: Callable[[str], Awaitable[tuple[list[_T], str]]],
    ) -> list[_T]:
        """Collect a cursor paginated listing.

        Every page is a separate admitted and retried call, so a rate limit on
        a later page only repeats that page.
        """

        items: list[_T] = []
        cursor = ""
        while True:
            page, cursor = await self.run(operation, lambda cursor=cursor: fetch_page(cursor))
            items.extend(page)
            if not cursor:
                return items
