"""
Rate limited request execution for the staging deploy checklist.

This module wraps every outbound GitHub call with quota-aware retries.
Ordinary rate limit responses are retried after the delay GitHub suggests;
abuse (secondary rate limit) responses are never retried.
"""

import asyncio
import inspect
import math
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import structlog
from github import GithubException, RateLimitExceededException

from .config import RateLimitConfig
from .exceptions import AbuseDetectedError, RateLimitExceededError

logger = structlog.get_logger(__name__)

RATE_LIMIT_STATUSES = {403, 429}
ABUSE_MARKERS = ("secondary rate limit", "abuse")


def _lower_headers(headers: Mapping[str, Any] | None) -> dict[str, str]:
    return {str(k).lower(): str(v) for k, v in (headers or {}).items()}


def _error_message(exc: GithubException) -> str:
    data = exc.data
    if isinstance(data, dict):
        return str(data.get("message", ""))
    return str(data or "")


def is_abuse_signal(exc: GithubException) -> bool:
    """Check if GitHub rejected the request with its abuse detection limit."""
    if exc.status not in RATE_LIMIT_STATUSES:
        return False
    message = _error_message(exc).lower()
    return any(marker in message for marker in ABUSE_MARKERS)


def is_rate_limit_signal(exc: GithubException) -> bool:
    """Check if GitHub rejected the request because the quota is exhausted."""
    if isinstance(exc, RateLimitExceededException):
        return True
    if exc.status not in RATE_LIMIT_STATUSES:
        return False
    headers = _lower_headers(exc.headers)
    if headers.get("x-ratelimit-remaining") == "0":
        return True
    return exc.status == 429 or "rate limit" in _error_message(exc).lower()


class RateLimitedClient:
    """
    Executes GitHub calls, retrying while the request quota is exhausted.

    A logical request is attempted at most ``max_retries + 1`` times; the
    backoff sleeps run on the event loop so they can be cancelled.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        """
        Initialize the rate limited client.

        Args:
            config: Retry policy
            sleep: Coroutine used for backoff (defaults to asyncio.sleep)
        """
        self.config = config or RateLimitConfig()
        self._sleep = sleep or asyncio.sleep

    def suggested_delay(self, exc: GithubException) -> float:
        """
        Compute how long GitHub asks us to wait before retrying.

        Uses the Retry-After header, then the quota reset timestamp, then the
        configured default. The result is capped at the configured maximum.
        """
        headers = _lower_headers(exc.headers)
        delay: float | None = None

        retry_after = headers.get("retry-after")
        if retry_after:
            try:
                delay = float(retry_after)
            except ValueError:
                delay = None

        if delay is None and headers.get("x-ratelimit-reset"):
            try:
                delay = float(math.ceil(float(headers["x-ratelimit-reset"]) - time.time()))
            except ValueError:
                delay = None

        if delay is None:
            delay = self.config.default_delay_seconds

        return min(max(delay, 0.0), self.config.max_delay_seconds)

    async def call(
        self,
        func: Callable[..., Any],
        *args: Any,
        operation: str | None = None,
        **kwargs: Any,
    ) -> Any:
        """
        Call ``func`` and retry it while GitHub reports a rate limit.

        Args:
            func: Callable performing one GitHub request (may be a coroutine function)
            operation: Name used in log events
            *args, **kwargs: Forwarded to ``func``

        Returns:
            Whatever ``func`` returns

        Raises:
            RateLimitExceededError: The quota stayed exhausted after every retry
            AbuseDetectedError: GitHub flagged the request for abuse
        """
        operation = operation or getattr(func, "__name__", "github_request")
        attempt = 0

        while True:
            attempt += 1
            try:
                result = func(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
                return result
            except GithubException as e:
                if is_abuse_signal(e):
                    logger.warning(
                        "Abuse detected for request",
                        operation=operation,
                        status=e.status,
                    )
                    raise AbuseDetectedError(
                        f"Abuse detected for request {operation}",
                        retry_after=self.suggested_delay(e),
                        context={"operation": operation},
                    ) from e

                if not is_rate_limit_signal(e):
                    raise

                retry_after = self.suggested_delay(e)
                logger.warning(
                    "Request quota exhausted for request",
                    operation=operation,
                    attempt=attempt,
                    retry_after=retry_after,
                )

                if attempt > self.config.max_retries:
                    logger.error(
                        "Rate limit retries exhausted",
                        operation=operation,
                        attempts=attempt,
                    )
                    raise RateLimitExceededError(
                        f"Request quota exhausted for request {operation} "
                        f"after {attempt} attempts",
                        attempts=attempt,
                        retry_after=retry_after,
                        context={"operation": operation},
                    ) from e

                logger.info(
                    "Retrying after rate limit", operation=operation, seconds=retry_after
                )
                await self._sleep(retry_after)
