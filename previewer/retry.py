"""Bounded retry policy shared by capture and alternative-URL attempts."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """``retries`` additional tries after the first, ``backoff`` seconds apart."""

    retries: int = 2
    backoff: float = 2.0

    @property
    def max_attempts(self) -> int:
        return max(0, self.retries) + 1


@dataclass
class RetryOutcome(Generic[T]):
    value: Optional[T]
    attempts: int
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


async def retry_async(
    operation: Callable[[int], Awaitable[T]],
    policy: RetryPolicy,
    *,
    label: str = "operation",
) -> RetryOutcome[T]:
    """Run *operation* until it returns without raising or the policy is spent.

    The operation receives the zero-based attempt index. Exceptions are not
    propagated; the last one is returned on the outcome.
    """
    last_error: Optional[BaseException] = None
    for attempt in range(policy.max_attempts):
        try:
            value = await operation(attempt)
        except Exception as exc:
            last_error = exc
            LOGGER.warning(
                "%s attempt %d/%d failed: %s",
                label,
                attempt + 1,
                policy.max_attempts,
                exc,
            )
            if attempt + 1 < policy.max_attempts:
                LOGGER.info(
                    "Retrying %s in %.1fs (%d/%d)",
                    label,
                    policy.backoff,
                    attempt + 1,
                    policy.retries,
                )
                await asyncio.sleep(policy.backoff)
            continue
        return RetryOutcome(value=value, attempts=attempt + 1)

    return RetryOutcome(value=None, attempts=policy.max_attempts, error=last_error)
