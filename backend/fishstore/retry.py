"""Bounded retry with exponential backoff for outbound calls."""

import time
from typing import Callable, Optional, Tuple, Type, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def with_backoff(
    func: Callable[[], T],
    *,
    retry_on: Tuple[Type[BaseException], ...],
    max_attempts: int = 3,
    backoff_factor: float = 1.0,
    max_delay: float = 30.0,
    sleep: Callable[[float], None] = time.sleep,
    description: Optional[str] = None,
) -> T:
    """Call ``func`` until it succeeds or ``max_attempts`` is reached.

    Only exceptions listed in ``retry_on`` (transient signals such as a
    rate-limit response) are retried; anything else propagates at once.
    The delay before attempt ``n + 1`` is ``backoff_factor * 2 ** (n - 1)``
    seconds, capped at ``max_delay``. The last exception is re-raised once
    attempts are exhausted.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 1
    while True:
        try:
            return func()
        except retry_on as exc:
            if attempt >= max_attempts:
                logger.warning(
                    "Outbound call failed, giving up",
                    call=description,
                    attempts=attempt,
                    error=str(exc),
                )
                raise
            delay = min(backoff_factor * (2 ** (attempt - 1)), max_delay)
            logger.info(
                "Outbound call rate limited, retrying",
                call=description,
                attempt=attempt,
                delay=delay,
            )
            sleep(delay)
            attempt += 1
