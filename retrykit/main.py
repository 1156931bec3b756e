from __future__ import annotations

import argparse
import logging
import math
import subprocess
import time
from dataclasses import replace
from typing import Any, Callable, Sequence

from pydantic import ValidationError

from retrykit.config import Settings, load_dotenv
from retrykit.logger import configure_logging
from retrykit.metrics import JsonlMetricsSink, MetricsCollector
from retrykit.retry_utils import MaxAttemptsReachedError, RetryTimeoutError, run_with_retry, run_with_timeout

EXIT_TIMEOUT = 124

Runner = Callable[..., Any]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="retrykit-run",
        description="Run a command, retrying with exponential backoff until it exits 0",
    )
    parser.add_argument("--max-attempts", type=int, default=None)
    parser.add_argument("--delay-factor", type=float, default=None, help="Base backoff delay in seconds")
    parser.add_argument("--randomization-factor", type=float, default=None)
    parser.add_argument("--max-delay", type=float, default=None, help="Delay ceiling in seconds")
    parser.add_argument("--timeout", type=float, default=None, help="Overall deadline in seconds")
    parser.add_argument("--metrics-path", default=None)
    parser.add_argument("--env-file", default=".env")
    parser.add_argument("command", nargs=argparse.REMAINDER)
    return parser


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {}
    if args.max_attempts is not None:
        overrides["max_attempts"] = args.max_attempts
    if args.delay_factor is not None:
        overrides["delay_factor_seconds"] = args.delay_factor
    if args.randomization_factor is not None:
        overrides["randomization_factor"] = args.randomization_factor
    if args.max_delay is not None:
        overrides["max_delay_seconds"] = args.max_delay
    if args.timeout is not None:
        overrides["timeout_seconds"] = args.timeout
    if args.metrics_path is not None:
        overrides["metrics_path"] = args.metrics_path
    return replace(settings, **overrides)


def _exit_status(error: Exception) -> int:
    if not isinstance(error, subprocess.CalledProcessError) or not error.returncode:
        return 1
    # Killed by a signal: report it the way a shell does.
    if error.returncode < 0:
        return 128 - error.returncode
    return error.returncode


def run(
    argv: Sequence[str] | None = None,
    *,
    runner: Runner = subprocess.run,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        parser.error("a command to run is required")

    load_dotenv(args.env_file)
    try:
        settings = _apply_overrides(Settings.from_env(), args)
        policy = settings.to_policy()
    except (ValueError, ValidationError) as exc:
        parser.error(str(exc))
    timeout = settings.timeout_seconds
    if timeout is not None and not (math.isfinite(timeout) and timeout >= 0):
        parser.error("--timeout must be a finite number >= 0")

    configure_logging(settings.log_level)
    logger = logging.getLogger(__name__)
    metrics = MetricsCollector()

    def _operation() -> None:
        runner(command, check=True)

    exit_code = 0
    try:
        if timeout is None:
            run_with_retry(_operation, policy, sleep_fn=sleep_fn, metrics=metrics)
        else:
            run_with_timeout(timeout, _operation, policy, sleep_fn=sleep_fn, metrics=metrics)
    except MaxAttemptsReachedError as exc:
        last = exc.last_error
        exit_code = _exit_status(last)
        logger.error("Command failed after %d attempts: %s", exc.attempts, last)
    except RetryTimeoutError as exc:
        exit_code = EXIT_TIMEOUT
        logger.error("Command did not finish within %ss", exc.timeout_seconds)

    snapshot = metrics.snapshot()
    if settings.metrics_path:
        sink = JsonlMetricsSink(path=settings.metrics_path)
        for key, value in snapshot.items():
            sink.emit({"metric": key, "value": value, "exit_code": exit_code})
    logger.info("Retry summary: %s", snapshot)
    return exit_code


def main() -> int:
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
