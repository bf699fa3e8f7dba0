"""Bounded exponential backoff shared by both invocation adapters."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

from cachewise.exceptions import InvocationTransportFailure, NonRetryableError, RetryableError

log = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retries(
    attempt_fn: Callable[[], Awaitable[T]],
    *,
    max_attempts: int,
    backoff_base_seconds: float,
    backoff_max_seconds: float,
    jitter_factor: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "invoke",
) -> T:
    """Run ``attempt_fn`` until it succeeds or the attempts run out.

    ``RetryableError`` waits ``min(base * 2**attempt, max)`` plus up to
    ``jitter_factor`` of that wait, then tries again. ``NonRetryableError``
    propagates at once. Exhaustion raises ``InvocationTransportFailure``
    carrying the attempt count and the last status code.
    """
    last_error: Optional[Exception] = None
    for attempt in range(max_attempts):
        try:
            return await attempt_fn()
        except NonRetryableError as e:
            e.attempts = attempt + 1
            raise
        except RetryableError as e:
            last_error = e
            if attempt == max_attempts - 1:
                break
            base_wait = min(backoff_base_seconds * 2 ** attempt, backoff_max_seconds)
            wait = base_wait + random.uniform(0, base_wait * jitter_factor)
            log.warning(
                "%s retry %d/%d: %s (wait=%.2fs)",
                label, attempt + 1, max_attempts, e, wait,
            )
            await sleep(wait)

    log.error("%s failed after %d attempts: %s", label, max_attempts, last_error)
    raise InvocationTransportFailure(
        f"{label} failed after {max_attempts} attempts: {last_error}",
        attempts=max_attempts,
        status_code=getattr(last_error, "status_code", None),
    ) from last_error
