from __future__ import annotations

import logging
import math
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, TypeVar

from retrykit.backoff import MAX_DURATION_SECONDS, to_milliseconds
from retrykit.logger import log_retry_event
from retrykit.metrics import MetricsCollector
from retrykit.policy import RetryPolicy, default_policy

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryError(RuntimeError):
    pass


class MaxAttemptsReachedError(RetryError):
    def __init__(self, attempts: int, last_error: Exception) -> None:
        super().__init__(f"retry: max attempts reached ({attempts}): {last_error!r}")
        self.attempts = attempts
        self.last_error = last_error


class RetryTimeoutError(RetryError):
    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"retry: timeout reached after {timeout_seconds}s")
        self.timeout_seconds = timeout_seconds


def run_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy | None = None,
    *,
    sleep_fn: Callable[[float], None] = time.sleep,
    metrics: MetricsCollector | None = None,
) -> T:
    """Call ``operation`` until it returns, sleeping a backoff delay between failures.

    Every exception is treated as retryable. Once ``policy.max_attempts`` calls
    have failed, :class:`MaxAttemptsReachedError` is raised from the last error.
    """
    active = policy or default_policy()
    last_error: Exception | None = None
    for attempt in range(1, active.max_attempts + 1):
        if metrics is not None:
            metrics.increment("retry_attempts_total")
        try:
            result = operation()
        except Exception as exc:  # noqa: BLE001
            last_error = exc
            if attempt >= active.max_attempts:
                break
            delay = active.delay_for_attempt(attempt)
            log_retry_event(
                logger,
                logging.WARNING,
                "attempt failed, backing off",
                attempt=attempt,
                max_attempts=active.max_attempts,
                delay_ms=to_milliseconds(delay),
                outcome="retrying",
                error_type=type(exc).__name__,
            )
            if metrics is not None:
                metrics.observe_delay(delay)
            sleep_fn(delay)
            continue

        if metrics is not None:
            metrics.increment("retry_success_total")
        if attempt > 1:
            log_retry_event(
                logger,
                logging.INFO,
                "operation succeeded after retries",
                attempt=attempt,
                max_attempts=active.max_attempts,
                outcome="success",
            )
        return result

    assert last_error is not None
    if metrics is not None:
        metrics.increment("retry_exhausted_total")
    log_retry_event(
        logger,
        logging.ERROR,
        "max attempts reached",
        attempt=active.max_attempts,
        max_attempts=active.max_attempts,
        outcome="exhausted",
        error_type=type(last_error).__name__,
    )
    raise MaxAttemptsReachedError(active.max_attempts, last_error) from last_error


def run_with_timeout(
    timeout_seconds: float,
    operation: Callable[[], T],
    policy: RetryPolicy | None = None,
    *,
    sleep_fn: Callable[[float], None] = time.sleep,
    metrics: MetricsCollector | None = None,
) -> T:
    """Race :func:`run_with_retry` against ``timeout_seconds``.

    The retry sequence runs on a daemon thread. If the deadline passes first,
    :class:`RetryTimeoutError` is raised and the thread is abandoned, not
    cancelled: it may keep calling ``operation`` until it succeeds or runs out
    of attempts, and its outcome is discarded. Operations with external side
    effects should account for that.
    """
    if math.isnan(timeout_seconds) or timeout_seconds < 0:
        raise ValueError("timeout_seconds must be a number >= 0")
    # Waits beyond the platform ceiling (including inf) block until the sequence finishes.
    wait_seconds = None if timeout_seconds > MAX_DURATION_SECONDS else timeout_seconds

    active = policy or default_policy()
    outcome: Future[T] = Future()

    def _run() -> None:
        try:
            value = run_with_retry(operation, active, sleep_fn=sleep_fn, metrics=metrics)
        except BaseException as exc:  # noqa: BLE001
            outcome.set_exception(exc)
        else:
            outcome.set_result(value)

    worker = threading.Thread(target=_run, name="retrykit-retry", daemon=True)
    started = time.monotonic()
    worker.start()

    try:
        return outcome.result(timeout=wait_seconds)
    except FutureTimeoutError:
        if metrics is not None:
            metrics.increment("retry_timeout_total")
        log_retry_event(
            logger,
            logging.WARNING,
            "timeout reached, abandoning retry sequence",
            max_attempts=active.max_attempts,
            elapsed_ms=to_milliseconds(time.monotonic() - started),
            outcome="timeout",
        )
        raise RetryTimeoutError(timeout_seconds) from None
