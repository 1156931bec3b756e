from __future__ import annotations

import math
import sys
import threading
from typing import Final, Protocol, runtime_checkable

# 2 ** 49 keeps well clear of float overflow once multiplied by the factor and jitter.
MAX_BACKOFF_EXPONENT: Final[int] = 49
# time.sleep adds the current clock reading to the delay in int64 nanoseconds.
MAX_DURATION_SECONDS: Final[float] = threading.TIMEOUT_MAX / 2


@runtime_checkable
class RandomSource(Protocol):
    def random(self) -> float:
        """Return a uniform sample in [0.0, 1.0)."""
        ...


def compute_delay(
    attempt: int,
    *,
    delay_factor_seconds: float,
    randomization_factor: float,
    max_delay_seconds: float,
    sample: float,
) -> float:
    """Exponential backoff with jitter, saturated to a sleepable duration and capped at ``max_delay_seconds``.

    ``attempt`` values below 1 are treated as attempt 1.
    """
    exponent = min(max(attempt, 1), MAX_BACKOFF_EXPONENT)
    jitter = randomization_factor * sample + 1

    base = 2.0 ** exponent
    if not math.isfinite(base):
        delay = MAX_DURATION_SECONDS
    else:
        raw = delay_factor_seconds * base * jitter
        delay = raw if math.isfinite(raw) else MAX_DURATION_SECONDS

    return min(delay, MAX_DURATION_SECONDS, max_delay_seconds)


def to_milliseconds(seconds: float) -> int:
    return int(min(seconds * 1000, sys.maxsize))
