from __future__ import annotations

import json
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from retrykit.backoff import to_milliseconds


@dataclass
class MetricsCollector:
    counters: Counter[str] = field(default_factory=Counter)
    delays_ms: list[int] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def increment(self, name: str, value: int = 1) -> None:
        with self._lock:
            self.counters[name] += value

    def observe_delay(self, seconds: float) -> None:
        with self._lock:
            self.delays_ms.append(to_milliseconds(seconds))

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            p95 = 0
            if self.delays_ms:
                ordered = sorted(self.delays_ms)
                idx = int(0.95 * (len(ordered) - 1))
                p95 = ordered[idx]
            return {
                "attempts_total": self.counters.get("retry_attempts_total", 0),
                "success_total": self.counters.get("retry_success_total", 0),
                "exhausted_total": self.counters.get("retry_exhausted_total", 0),
                "timeout_total": self.counters.get("retry_timeout_total", 0),
                "delay_p95_ms": p95,
            }


class JsonlMetricsSink:
    def __init__(self, path: str | Path = "logs/metrics.jsonl") -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, event: dict[str, Any]) -> None:
        payload = {
            "recorded_at_utc": datetime.now(timezone.utc).isoformat(),
            **event,
        }
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(payload, ensure_ascii=True) + "\n")
