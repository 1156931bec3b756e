from __future__ import annotations

import math
import sys
import threading

import pytest

from retrykit.backoff import MAX_BACKOFF_EXPONENT, MAX_DURATION_SECONDS, compute_delay, to_milliseconds


def _delay(attempt: int, *, sample: float = 0.5, **overrides: float) -> float:
    params = {
        "delay_factor_seconds": 0.01,
        "randomization_factor": 0.25,
        "max_delay_seconds": 2.0,
    }
    params.update(overrides)
    return compute_delay(attempt, sample=sample, **params)


@pytest.mark.parametrize(
    ("attempt", "expected"),
    [(1, 0.0225), (2, 0.045), (3, 0.09), (5, 0.36)],
)
def test_compute_delay_exponential_backoff(attempt: int, expected: float) -> None:
    assert _delay(attempt) == pytest.approx(expected)


@pytest.mark.parametrize("attempt", [MAX_BACKOFF_EXPONENT + 1, 10_000, sys.maxsize, 10**100])
def test_compute_delay_large_attempt_returns_max_delay(attempt: int) -> None:
    assert _delay(attempt) == 2.0


def test_compute_delay_saturates_on_float_overflow() -> None:
    delay = _delay(MAX_BACKOFF_EXPONENT, sample=0.99, delay_factor_seconds=1e300, max_delay_seconds=30.0)
    assert delay == 30.0
    assert not math.isnan(delay)


def test_compute_delay_without_ceiling_saturates_to_sleepable_duration() -> None:
    delay = _delay(MAX_BACKOFF_EXPONENT, delay_factor_seconds=1e300, max_delay_seconds=sys.float_info.max)
    assert delay == MAX_DURATION_SECONDS
    assert delay < threading.TIMEOUT_MAX


def test_compute_delay_caps_finite_delays_above_platform_wait_limit() -> None:
    delay = _delay(40, delay_factor_seconds=1e10, randomization_factor=0.0, max_delay_seconds=1e12)
    assert delay == MAX_DURATION_SECONDS


@pytest.mark.parametrize("attempt", [0, -1, -1000])
def test_compute_delay_treats_non_positive_attempt_as_first(attempt: int) -> None:
    assert _delay(attempt) == _delay(1)


def test_compute_delay_without_jitter_is_monotonic() -> None:
    previous = 0.0
    for attempt in range(1, 80):
        current = _delay(attempt, sample=0.7, randomization_factor=0.0, max_delay_seconds=60.0)
        assert current >= previous
        previous = current
    assert previous == 60.0


def test_compute_delay_stays_within_bounds() -> None:
    for sample in (0.0, 0.25, 0.5, 0.999999):
        for attempt in range(1, 60):
            delay = _delay(attempt, sample=sample, randomization_factor=1.0)
            assert 0.0 <= delay <= 2.0


def test_compute_delay_jitter_range() -> None:
    low = _delay(1, sample=0.0)
    high = _delay(1, sample=0.999999)
    assert low == pytest.approx(0.02)
    assert 0.02 < high < 0.025


def test_compute_delay_zero_ceiling() -> None:
    assert _delay(3, max_delay_seconds=0.0) == 0.0


def test_to_milliseconds_clamps_huge_values() -> None:
    assert to_milliseconds(0.0225) == 22
    assert to_milliseconds(sys.float_info.max) == sys.maxsize
