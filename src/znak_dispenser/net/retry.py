# src/znak_dispenser/net/retry.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field
from typing import TypeVar

from ..core.errors import ApiError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """
    Bounded exponential backoff.

    Defaults: 4 attempts in total, waiting 1s, 2s, 4s between them.
    Only exceptions listed in retry_on are retried; anything else propagates at once.
    """

    max_attempts: int = 4
    base_delay: float = 1.0
    multiplier: float = 2.0
    retry_on: tuple[type[BaseException], ...] = field(default=(ApiError,))

    def delays(self) -> Iterator[float]:
        """Delay before attempt 2, 3, ... (never before the first one)."""
        delay = self.base_delay
        for _ in range(max(0, self.max_attempts - 1)):
            yield delay
            delay *= self.multiplier

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_attempts=int(getattr(settings, "retry_max_attempts", 4)),
            base_delay=float(getattr(settings, "retry_base_delay_seconds", 1.0)),
            multiplier=float(getattr(settings, "retry_multiplier", 2.0)),
        )


async def run_with_retry(
        action: Callable[[], Awaitable[T]],
        *,
        policy: RetryPolicy,
        sleep: Sleep = asyncio.sleep,
        label: str = "request",
) -> T:
    """
    Run `action` until it succeeds or the policy is exhausted.

    `action` is a factory: it is called once per attempt and must build a fresh
    request each time. On exhaustion the error of the final attempt is raised
    unchanged. There is no cancellation besides cancelling the awaiting task.
    """
    delays = policy.delays()
    attempt = 0

    while True:
        attempt += 1
        logger.debug("%s attempt %d/%d", label, attempt, policy.max_attempts)
        try:
            result = await action()
        except policy.retry_on as e:
            delay = next(delays, None)
            if delay is None:
                logger.warning(
                    "%s failed on attempt %d/%d, giving up: %s",
                    label,
                    attempt,
                    policy.max_attempts,
                    e,
                )
                raise
            logger.info(
                "%s failed on attempt %d/%d, retrying in %.1fs: %s",
                label,
                attempt,
                policy.max_attempts,
                delay,
                e,
            )
            await sleep(delay)
            continue

        if attempt > 1:
            logger.info("%s succeeded on attempt %d/%d", label, attempt, policy.max_attempts)
        return result
