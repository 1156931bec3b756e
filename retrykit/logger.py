from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

_RETRY_FIELDS = ("attempt", "max_attempts", "delay_ms", "elapsed_ms", "outcome", "error_type")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in _RETRY_FIELDS:
            if hasattr(record, name):
                payload[name] = getattr(record, name)
        return json.dumps(payload, ensure_ascii=True)


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())
    if root.handlers:
        for handler in root.handlers:
            handler.setFormatter(JsonFormatter())
        return
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)


def log_retry_event(
    logger: logging.Logger,
    level: int,
    message: str,
    *,
    attempt: int | None = None,
    max_attempts: int | None = None,
    delay_ms: int | None = None,
    elapsed_ms: int | None = None,
    outcome: str | None = None,
    error_type: str | None = None,
) -> None:
    extra: dict[str, Any] = {}
    if attempt is not None:
        extra["attempt"] = attempt
    if max_attempts is not None:
        extra["max_attempts"] = max_attempts
    if delay_ms is not None:
        extra["delay_ms"] = delay_ms
    if elapsed_ms is not None:
        extra["elapsed_ms"] = elapsed_ms
    if outcome is not None:
        extra["outcome"] = outcome
    if error_type is not None:
        extra["error_type"] = error_type
    logger.log(level, message, extra=extra)
