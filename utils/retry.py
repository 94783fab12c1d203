"""Retry decorator with exponential back-off."""

from __future__ import annotations

import time
from functools import wraps
from typing import Callable, Optional, Tuple, Type

from utils.log_config import get_logger

log = get_logger(__name__)


def backoff_delay(
    attempt: int,
    base: float = 1.0,
    multiplier: float = 2.0,
    max_delay: Optional[float] = None,
) -> float:
    """Delay before retry number *attempt* (1-based): ``base * multiplier**(attempt-1)``."""
    if attempt < 1:
        return 0.0
    delay = base * (multiplier ** (attempt - 1))
    if max_delay is not None:
        delay = min(delay, max_delay)
    return delay


def retry(
    max_attempts: int = 3,
    backoff_base: float = 1.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    multiplier: float = 2.0,
    max_delay: Optional[float] = None,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
):
    """
    Decorator — retries the wrapped function up to *max_attempts*
    times with exponential back-off.  *on_retry* is called with the
    failed attempt number and the exception before sleeping.
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            last_exc: BaseException | None = None
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as exc:
                    last_exc = exc
                    if attempt < max_attempts:
                        delay = backoff_delay(attempt, backoff_base, multiplier, max_delay)
                        log.debug(
                            "Retry %d/%d for %s after %.1fs: %s",
                            attempt,
                            max_attempts,
                            getattr(func, "__name__", "call"),
                            delay,
                            exc,
                        )
                        if on_retry is not None:
                            on_retry(attempt, exc)
                        time.sleep(delay)
            raise last_exc  # type: ignore[misc]

        return wrapper

    return decorator
