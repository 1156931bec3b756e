from __future__ import annotations

import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from retrykit.backoff import RandomSource
from retrykit.policy import RetryPolicy


def _parse_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got: {raw!r}") from exc
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got: {raw!r}")
    return value


def _parse_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got: {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    delay_factor_seconds: float = 0.1
    randomization_factor: float = 0.25
    max_delay_seconds: float = 10.0
    max_attempts: int = 8
    timeout_seconds: float | None = None
    log_level: str = "INFO"
    metrics_path: str | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        delay_factor = _parse_float("RETRY_DELAY_FACTOR_SECONDS", 0.1)
        if delay_factor <= 0:
            raise ValueError("RETRY_DELAY_FACTOR_SECONDS must be greater than 0")

        randomization = _parse_float("RETRY_RANDOMIZATION_FACTOR", 0.25)
        if not 0 <= randomization <= 1:
            raise ValueError("RETRY_RANDOMIZATION_FACTOR must be between 0 and 1")

        max_delay = _parse_float("RETRY_MAX_DELAY_SECONDS", 10.0)
        if max_delay < 0:
            raise ValueError("RETRY_MAX_DELAY_SECONDS must be >= 0")

        max_attempts = _parse_int("RETRY_MAX_ATTEMPTS", 8)
        if max_attempts < 1:
            raise ValueError("RETRY_MAX_ATTEMPTS must be at least 1")

        timeout: float | None = None
        if os.getenv("RETRY_TIMEOUT_SECONDS", "").strip():
            timeout = _parse_float("RETRY_TIMEOUT_SECONDS", 0.0)
            if timeout < 0:
                raise ValueError("RETRY_TIMEOUT_SECONDS must be >= 0")

        metrics_path = os.getenv("RETRY_METRICS_PATH")
        return cls(
            delay_factor_seconds=delay_factor,
            randomization_factor=randomization,
            max_delay_seconds=max_delay,
            max_attempts=max_attempts,
            timeout_seconds=timeout,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            metrics_path=metrics_path.strip() if metrics_path and metrics_path.strip() else None,
        )

    def to_policy(self, random_source: RandomSource | None = None) -> RetryPolicy:
        fields: dict[str, Any] = {
            "delay_factor_seconds": self.delay_factor_seconds,
            "randomization_factor": self.randomization_factor,
            "max_delay_seconds": self.max_delay_seconds,
            "max_attempts": self.max_attempts,
        }
        if random_source is not None:
            fields["random_source"] = random_source
        return RetryPolicy(**fields)


def load_dotenv(path: str | Path = ".env") -> None:
    env_path = Path(path)
    if not env_path.exists():
        return
    for line in env_path.read_text(encoding="utf-8").splitlines():
        entry = line.strip()
        if not entry or entry.startswith("#") or "=" not in entry:
            continue
        key, value = entry.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        os.environ.setdefault(key, value)
