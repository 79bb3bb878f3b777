"""Timeouts and bounded retries around calls to external services."""

from __future__ import annotations

import asyncio
import enum
import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

HTTP_TIMEOUT_SECONDS = float(os.environ.get("GATEWORKS_HTTP_TIMEOUT_SECONDS", "30"))


class FailureKind(enum.Enum):
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    PROVIDER = "provider"
    TIMEOUT = "timeout"


class OperationTimedOut(Exception):
    """An external call did not finish within its policy's timeout."""


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 1
    base_delay_seconds: float = 0.5
    timeout_seconds: float | None = HTTP_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls, variable: str) -> RetryPolicy:
        raw = os.environ.get(variable, "1")
        try:
            attempts = int(raw)
        except ValueError:
            logger.warning("%s=%r is not an integer, using 1 attempt", variable, raw)
            attempts = 1
        return cls(max_attempts=max(1, attempts))


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (OperationTimedOut, httpx.TransportError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


def failure_kind(exc: BaseException) -> FailureKind:
    if isinstance(exc, (OperationTimedOut, httpx.TimeoutException)):
        return FailureKind.TIMEOUT
    return FailureKind.PROVIDER


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    description: str = "external call",
) -> T:
    """Run `operation` under the policy's timeout, retrying transient failures.

    Waits `base_delay_seconds * 2**n` between attempts. Non-transient errors
    and the last transient error propagate unchanged, except timeouts which
    surface as `OperationTimedOut`.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            try:
                async with asyncio.timeout(policy.timeout_seconds):
                    return await operation()
            except TimeoutError as exc:
                raise OperationTimedOut(
                    f"{description} timed out after {policy.timeout_seconds}s"
                ) from exc
        except Exception as exc:
            if attempt >= policy.max_attempts or not is_transient(exc):
                raise
            delay = policy.base_delay_seconds * (2 ** (attempt - 1))
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                description,
                attempt,
                policy.max_attempts,
                delay,
                exc,
            )
            await asyncio.sleep(delay)
