"""
Utility functions for spanner-pitr: logging setup, retry/backoff and
RFC3339 timestamp handling.
"""

import logging
import re
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Callable, Iterator, Optional

from config import Config
from spanner_pitr.errors import ConfigError, TransientError

logger = logging.getLogger(__name__)

# Loggers of client libraries that are only interesting at -dd
LIBRARY_LOGGERS = ("google", "grpc", "urllib3")


def setup_logging(
    log_level: str = "INFO", log_file: Optional[str] = None, verbose_libraries: bool = False
) -> None:
    """
    Setup logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path
        verbose_libraries: Let client library loggers through at the same level
    """
    # stdout is reserved for the recovery timestamp
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.NOTSET if verbose_libraries else logging.WARNING
        )


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff for transient failures.

    Only TransientError is retried. Any other exception propagates on the
    first attempt. After max_attempts failures the last TransientError is
    re-raised. sleep replaces time.sleep between attempts.
    """

    max_attempts: int = 5
    delay: float = 0.1
    backoff: float = 2.0
    max_delay: float = 5.0
    sleep: Optional[Callable[[float], None]] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ConfigError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.delay < 0 or self.max_delay < 0:
            raise ConfigError("Retry delays must not be negative")
        if self.backoff < 1:
            raise ConfigError(f"backoff must be at least 1.0, got {self.backoff}")

    @classmethod
    def from_config(cls, max_attempts: Optional[int] = None) -> "RetryPolicy":
        return cls(
            max_attempts=max_attempts if max_attempts is not None else Config.MAX_ATTEMPTS,
            delay=Config.RETRY_DELAY,
            backoff=Config.RETRY_BACKOFF,
            max_delay=Config.RETRY_MAX_DELAY,
        )

    def delays(self) -> Iterator[float]:
        """Yield the sleep before each retry (max_attempts - 1 values)."""
        current = self.delay
        for _ in range(self.max_attempts - 1):
            yield min(current, self.max_delay)
            current *= self.backoff

    def call(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Call func, retrying on TransientError.

        Args:
            func: Callable to invoke; args and kwargs are passed through unchanged

        Returns:
            Whatever func returns

        Raises:
            TransientError: If every attempt failed transiently
        """
        sleep = self.sleep if self.sleep is not None else time.sleep
        delays = self.delays()
        name = getattr(func, "__name__", repr(func))

        for attempt in range(1, self.max_attempts + 1):
            try:
                return func(*args, **kwargs)
            except TransientError as e:
                if attempt == self.max_attempts:
                    logger.error(f"{name} failed after {self.max_attempts} attempts: {e}")
                    raise
                wait = next(delays)
                logger.warning(
                    f"{name} failed (attempt {attempt}/{self.max_attempts}): {e}. "
                    f"Retrying in {wait:.2f}s"
                )
                sleep(wait)


def retry(max_attempts: int = 3, delay: float = 1.0, backoff: float = 2.0, max_delay: float = 30.0):
    """
    Retry decorator with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts
        delay: Initial delay between retries in seconds
        backoff: Multiplier for delay after each retry
        max_delay: Upper bound for a single delay

    Returns:
        Decorated function
    """
    policy = RetryPolicy(max_attempts=max_attempts, delay=delay, backoff=backoff, max_delay=max_delay)

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            return policy.call(func, *args, **kwargs)

        wrapper.retry_policy = policy
        return wrapper

    return decorator


_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp(value: str) -> datetime:
    """
    Parse an RFC3339 timestamp into an aware UTC datetime.

    Fractional seconds beyond microseconds are truncated.

    Args:
        value: Timestamp such as "2023-01-01T00:30:00Z" or "2023-01-01T00:30:00.123456789+01:00"

    Returns:
        Datetime in UTC

    Raises:
        ConfigError: If the value is not a valid RFC3339 timestamp with an offset
    """
    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise ConfigError(f"Invalid RFC3339 timestamp {value!r}: {e}") from e

    if parsed.tzinfo is None:
        raise ConfigError(f"Timestamp {value!r} has no UTC offset")
    return parsed.astimezone(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """
    Format a datetime as RFC3339 in UTC.

    Args:
        dt: Aware datetime

    Returns:
        Formatted string (e.g., "2023-01-01T00:29:59.998046Z")
    """
    dt = dt.astimezone(timezone.utc)
    timespec = "microseconds" if dt.microsecond else "seconds"
    return dt.isoformat(timespec=timespec).replace("+00:00", "Z")


def parse_accuracy_ms(millis: int) -> timedelta:
    """Convert a millisecond count into an accuracy timedelta."""
    if millis <= 0:
        raise ConfigError(f"Accuracy must be a positive number of milliseconds, got {millis}")
    return timedelta(milliseconds=millis)


def format_duration(delta: timedelta) -> str:
    """
    Format a timedelta for log output.

    Args:
        delta: Duration

    Returns:
        Human-readable duration (e.g., "1h 2m 3.500s")
    """
    total = delta.total_seconds()
    hours, rem = divmod(total, 3600)
    minutes, seconds = divmod(rem, 60)

    parts = []
    if hours >= 1:
        parts.append(f"{int(hours)}h")
    if minutes >= 1 or parts:
        parts.append(f"{int(minutes)}m")
    parts.append(f"{seconds:.3f}s")
    return " ".join(parts)
