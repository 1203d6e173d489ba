"""
Data model for the boundary search: the window, the accuracy, the live
search state and the results a search can produce.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Union

from config.settings import EXIT_ALWAYS_FALSE, EXIT_OK
from spanner_pitr.errors import ConfigError, ErrorKind

# datetime resolution; bisection cannot split an interval finer than this
RESOLUTION = timedelta(microseconds=1)


@dataclass(frozen=True)
class TimeWindow:
    """Candidate recovery range. Both bounds are timezone-aware, start <= end."""

    start: datetime
    end: datetime

    def __post_init__(self):
        for name, value in (("start", self.start), ("end", self.end)):
            if value.tzinfo is None or value.utcoffset() is None:
                raise ConfigError(f"Window {name} must be timezone-aware: {value!r}")
        if self.start > self.end:
            raise ConfigError(
                f"Window start ({self.start.isoformat()}) is after end ({self.end.isoformat()})"
            )

    @property
    def length(self) -> timedelta:
        return self.end - self.start


def validate_accuracy(accuracy: timedelta) -> timedelta:
    """
    Check that an accuracy can terminate a bisection.

    Args:
        accuracy: Target interval length

    Returns:
        The same accuracy

    Raises:
        ConfigError: If accuracy is not positive or finer than the datetime resolution
    """
    if accuracy <= timedelta(0):
        raise ConfigError(f"Accuracy must be positive, got {accuracy}")
    if accuracy < RESOLUTION:
        raise ConfigError(f"Accuracy must be at least {RESOLUTION}, got {accuracy}")
    return accuracy


@dataclass
class SearchState:
    """
    Bounds of a running search. low is known true and high known false;
    either is None until it has been probed.
    """

    low: Optional[datetime] = None
    high: Optional[datetime] = None
    evaluations: int = 0

    @property
    def width(self) -> timedelta:
        return self.high - self.low

    def midpoint(self) -> datetime:
        # timedelta // int floors, so mid never moves past high
        return self.low + (self.high - self.low) // 2


@dataclass(frozen=True)
class Found:
    """Last instant known to satisfy the check, within accuracy of the transition."""

    instant: datetime
    evaluations: int = 0

    exit_code = EXIT_OK


@dataclass(frozen=True)
class AlwaysTrue:
    """Check holds at the end of the window; nothing to recover within it."""

    instant: datetime
    evaluations: int = 0

    exit_code = EXIT_OK


@dataclass(frozen=True)
class AlwaysFalse:
    """Check already fails at the start of the window."""

    instant: datetime
    evaluations: int = 0

    exit_code = EXIT_ALWAYS_FALSE


@dataclass(frozen=True)
class SearchError:
    """Search aborted. low/high are the last known bounds, if any were established."""

    kind: ErrorKind
    message: str
    low: Optional[datetime] = None
    high: Optional[datetime] = None
    evaluations: int = 0

    @property
    def exit_code(self) -> int:
        return self.kind.exit_code


SearchResult = Union[Found, AlwaysTrue, AlwaysFalse, SearchError]
