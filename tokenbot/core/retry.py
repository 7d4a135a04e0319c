"""Bounded retry with linear backoff for flaky async operations."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from ..exceptions import RetryExhaustedError

T = TypeVar("T")

_LOGGER = logging.getLogger("TokenBot.retry")


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int
    base_delay: float

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    label: str,
    max_attempts: int,
    base_delay: float,
    *,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """Await ``operation()`` until it succeeds or ``max_attempts`` are used.

    After failed attempt ``n`` (1-based) the call sleeps ``base_delay * n``
    before trying again. The last failure is re-raised as
    :class:`RetryExhaustedError` chained to the original exception.
    """

    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    log = logger or _LOGGER
    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            log.warning("%s failed (attempt %d/%d): %s", label, attempt, max_attempts, exc)
            if attempt >= max_attempts:
                raise RetryExhaustedError(label, max_attempts, exc) from exc
            delay = base_delay * attempt
            log.info("Retrying %s in %.2fs", label, delay)
            await sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover


async def retry_with_config(
    operation: Callable[[], Awaitable[T]],
    label: str,
    config: RetryConfig,
    **kwargs,
) -> T:
    return await with_retry(operation, label, config.max_attempts, config.base_delay, **kwargs)


__all__ = ["RetryConfig", "retry_with_config", "with_retry"]
