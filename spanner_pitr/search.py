"""
Boundary search: find the latest instant at which the check query is still
true, by bisecting a time window with stale reads.

The check query is assumed to be monotonic over the window (true, then
false, with a single transition). If it flips more than once, the instant
returned is one true/false boundary, not necessarily the latest one.
"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Optional

from spanner_pitr.errors import EvalError, QueryError
from spanner_pitr.evaluator import PointInTimeEvaluator
from spanner_pitr.models import (
    RESOLUTION,
    AlwaysFalse,
    AlwaysTrue,
    Found,
    SearchError,
    SearchResult,
    SearchState,
    TimeWindow,
    validate_accuracy,
)
from spanner_pitr.progress import ProgressObserver
from spanner_pitr.utils import RetryPolicy, format_duration, format_timestamp

logger = logging.getLogger(__name__)


def expected_evaluations(window: TimeWindow, accuracy: timedelta) -> int:
    """
    Upper bound on evaluations for a search without retries.

    Two bound probes plus ceil(log2(length / accuracy)) bisection steps.

    Args:
        window: Search window
        accuracy: Target accuracy

    Returns:
        Maximum number of evaluator calls
    """
    length = window.length // RESOLUTION
    step = accuracy // RESOLUTION
    steps = 0
    while length > step << steps:
        steps += 1
    return steps + 2


class BoundarySearch:
    """Bisects a time window to locate the true→false transition of a check query."""

    def __init__(
        self,
        evaluator: PointInTimeEvaluator,
        retry_policy: Optional[RetryPolicy] = None,
        observer: Optional[ProgressObserver] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Initialize the search.

        Args:
            evaluator: Runs the check query at an instant
            retry_policy: Backoff applied to every evaluation (defaults from Config)
            observer: Passive progress sink
            sleep: Sleep used between retries (overrides the policy's)
        """
        self.evaluator = evaluator
        retry_policy = retry_policy or RetryPolicy.from_config()
        if sleep is not None:
            retry_policy = replace(retry_policy, sleep=sleep)
        self.retry_policy = retry_policy
        self.observer = observer or ProgressObserver()

    def search(self, window: TimeWindow, accuracy: timedelta) -> SearchResult:
        """
        Find the latest instant in the window at which the check is true.

        Args:
            window: Candidate recovery range
            accuracy: Stop once the live interval is no longer than this

        Returns:
            Found, AlwaysTrue, AlwaysFalse or SearchError

        Raises:
            ConfigError: If the accuracy is invalid (before any evaluation)
        """
        validate_accuracy(accuracy)
        state = SearchState()

        result = None
        self._notify("started", window, expected_evaluations(window, accuracy))
        try:
            result = self._run(window, accuracy, state)
        except EvalError as e:
            logger.error(f"Search aborted ({e.kind.value}): {e}")
            result = SearchError(
                kind=e.kind,
                message=str(e),
                low=state.low,
                high=state.high,
                evaluations=state.evaluations,
            )
        finally:
            # result is None when interrupted or on an unexpected error
            self._notify("finished", result)
        return result

    def _run(self, window: TimeWindow, accuracy: timedelta, state: SearchState) -> SearchResult:
        logger.info(
            f"Checking query at start ({format_timestamp(window.start)}) "
            f"and end ({format_timestamp(window.end)}) timestamps..."
        )

        if self._evaluate(window, state, window.end):
            logger.info("Check query is true at the end of the window")
            return AlwaysTrue(window.end, evaluations=state.evaluations)
        state.high = window.end

        if not self._evaluate(window, state, window.start):
            logger.info("Check query is false at the start of the window")
            return AlwaysFalse(window.start, evaluations=state.evaluations)
        state.low = window.start

        logger.info(
            f"Searching {format_duration(window.length)} for the closest recovery timestamp "
            f"(accuracy {format_duration(accuracy)}, assuming a single true→false transition)..."
        )
        while state.width > accuracy:
            mid = state.midpoint()
            logger.debug(
                f"Querying between {format_timestamp(state.low)} and "
                f"{format_timestamp(state.high)} at {format_timestamp(mid)}..."
            )
            if self._evaluate(window, state, mid):
                state.low = mid
            else:
                state.high = mid

        return Found(state.low, evaluations=state.evaluations)

    def _evaluate(self, window: TimeWindow, state: SearchState, instant: datetime) -> bool:
        def attempt() -> bool:
            state.evaluations += 1
            return self.evaluator.evaluate(instant)

        attempt.__name__ = f"evaluate({format_timestamp(instant)})"
        verdict = self.retry_policy.call(attempt)
        if not isinstance(verdict, bool):
            raise QueryError(f"Evaluator returned {type(verdict).__name__}, expected bool")

        low = state.low if state.low is not None else window.start
        high = state.high if state.high is not None else window.end
        self._notify("evaluated", low, high, instant, verdict)
        return verdict

    def _notify(self, hook: str, *args) -> None:
        try:
            getattr(self.observer, hook)(*args)
        except Exception:
            logger.warning(f"Progress observer failed in {hook}()", exc_info=True)
