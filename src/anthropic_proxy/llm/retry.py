"""Bounded retry/backoff around a single outbound HTTP call.

The delay computation is a pure function so schedules can be checked without
a clock; ``execute_with_retry`` is the thin driver that performs the attempts
and sleeps. Time is only checked between attempts, so one slow in-flight call
can overrun ``max_total_timeout_ms``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import math
import time
from typing import Any, Awaitable, Callable

from anthropic_proxy.llm.errors import RETRYABLE_STATUSES, RetryCancelledError, TransportError
from anthropic_proxy.llm.transport import HttpResponse

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[HttpResponse]]
Sleep = Callable[[float], Awaitable[Any]]
Clock = Callable[[], float]


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 30000
    backoff_multiplier: float = 2.0
    max_total_timeout_ms: int = 60000

    def validate(self) -> "RetryConfig":
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0.")
        if self.initial_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("Retry delays must be >= 0.")
        if self.initial_delay_ms > self.max_delay_ms:
            raise ValueError("initial_delay_ms must be <= max_delay_ms.")
        if self.backoff_multiplier < 1.0:
            raise ValueError("backoff_multiplier must be >= 1.0.")
        if self.max_total_timeout_ms < 0:
            raise ValueError("max_total_timeout_ms must be >= 0.")
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_retries": self.max_retries,
            "initial_delay_ms": self.initial_delay_ms,
            "max_delay_ms": self.max_delay_ms,
            "backoff_multiplier": self.backoff_multiplier,
            "max_total_timeout_ms": self.max_total_timeout_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RetryConfig":
        defaults = cls()
        return cls(
            max_retries=int(data.get("max_retries", defaults.max_retries)),
            initial_delay_ms=int(data.get("initial_delay_ms", defaults.initial_delay_ms)),
            max_delay_ms=int(data.get("max_delay_ms", defaults.max_delay_ms)),
            backoff_multiplier=float(data.get("backoff_multiplier", defaults.backoff_multiplier)),
            max_total_timeout_ms=int(data.get("max_total_timeout_ms", defaults.max_total_timeout_ms)),
        ).validate()


def compute_delay_ms(config: RetryConfig, attempt: int) -> int:
    """Delay to wait after ``attempt`` (1-indexed) before the next one.

    ``min(initial * multiplier ** (attempt - 1), max)``, rounded half-up to a
    whole millisecond. Saturates at ``max_delay_ms`` instead of overflowing.
    """
    if attempt < 1:
        raise ValueError("attempt is 1-indexed.")
    try:
        raw = config.initial_delay_ms * math.pow(config.backoff_multiplier, attempt - 1)
    except OverflowError:
        return config.max_delay_ms
    if math.isinf(raw) or raw >= config.max_delay_ms:
        return config.max_delay_ms
    return int(math.floor(raw + 0.5))


def backoff_schedule(config: RetryConfig) -> list[int]:
    return [compute_delay_ms(config, attempt) for attempt in range(1, config.max_retries + 1)]


def is_retryable_status(status: int) -> bool:
    return status in RETRYABLE_STATUSES


async def execute_with_retry(
    operation: Operation,
    config: RetryConfig,
    *,
    sleep: Sleep = asyncio.sleep,
    clock: Clock = time.monotonic,
    cancel: asyncio.Event | None = None,
) -> HttpResponse:
    """Run ``operation`` until it succeeds, fails terminally, or the budget runs out.

    Returns the last response (success, terminal status or exhausted
    retryable status). Raises the last TransportError when every attempt
    failed to send, and RetryCancelledError when ``cancel`` is set.
    """
    started = clock()
    attempt = 1
    while True:
        _raise_if_cancelled(cancel, attempt)
        response: HttpResponse | None = None
        error: TransportError | None = None
        try:
            response = await operation()
        except TransportError as exc:
            error = exc
            logger.warning("Attempt %d failed to send: %s", attempt, exc.message)

        if response is not None:
            if 200 <= response.status < 300:
                logger.debug("Attempt %d succeeded with status %d", attempt, response.status)
                return response
            if not is_retryable_status(response.status):
                logger.info("Attempt %d returned terminal status %d", attempt, response.status)
                return response
            logger.warning("Attempt %d returned retryable status %d", attempt, response.status)

        if attempt > config.max_retries:
            logger.warning("Retry budget exhausted after %d attempts", attempt)
            return _last_outcome(response, error)

        delay_ms = compute_delay_ms(config, attempt)
        elapsed_ms = (clock() - started) * 1000
        if elapsed_ms >= config.max_total_timeout_ms or elapsed_ms + delay_ms > config.max_total_timeout_ms:
            logger.warning(
                "Total retry timeout of %dms reached after %d attempts (elapsed %.0fms)",
                config.max_total_timeout_ms,
                attempt,
                elapsed_ms,
            )
            return _last_outcome(response, error)

        _raise_if_cancelled(cancel, attempt)
        logger.info("Retrying in %dms (attempt %d of %d)", delay_ms, attempt + 1, config.max_retries + 1)
        await _wait(delay_ms / 1000.0, sleep, cancel, attempt)
        attempt += 1


def _last_outcome(response: HttpResponse | None, error: TransportError | None) -> HttpResponse:
    if response is not None:
        return response
    assert error is not None
    raise error


def _raise_if_cancelled(cancel: asyncio.Event | None, attempt: int) -> None:
    if cancel is not None and cancel.is_set():
        raise RetryCancelledError(f"retry loop cancelled at attempt {attempt}")


async def _wait(
    delay_s: float,
    sleep: Sleep,
    cancel: asyncio.Event | None,
    attempt: int,
) -> None:
    if cancel is None:
        await sleep(delay_s)
        return
    sleeper = asyncio.ensure_future(sleep(delay_s))
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sleeper, waiter):
            if not task.done():
                task.cancel()
    _raise_if_cancelled(cancel, attempt)
