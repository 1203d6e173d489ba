"""Shared fixtures: a synthetic evaluator and a recording sleep."""
from datetime import datetime, timedelta, timezone

import pytest

from spanner_pitr.evaluator import PointInTimeEvaluator
from spanner_pitr.models import TimeWindow
from spanner_pitr.progress import ProgressObserver
from spanner_pitr.utils import RetryPolicy

T0 = datetime(2023, 1, 1, tzinfo=timezone.utc)
ONE_HOUR = TimeWindow(T0, T0 + timedelta(hours=1))


class StepEvaluator(PointInTimeEvaluator):
    """
    Check that is true strictly before `transition` and false from it on.

    failures maps an instant to exceptions raised (in order) before the
    instant evaluates normally. fail_always raises on every call.
    """

    def __init__(self, transition, failures=None, fail_always=None):
        self.transition = transition
        self.failures = {k: list(v) for k, v in (failures or {}).items()}
        self.fail_always = fail_always
        self.calls = []

    def evaluate(self, instant):
        self.calls.append(instant)
        if self.fail_always is not None:
            raise self.fail_always
        pending = self.failures.get(instant)
        if pending:
            raise pending.pop(0)
        return instant < self.transition


class RecordingObserver(ProgressObserver):
    def __init__(self):
        self.events = []

    def started(self, window, expected_evaluations):
        self.events.append(("started", expected_evaluations))

    def evaluated(self, low, high, instant, verdict):
        self.events.append(("evaluated", low, high, instant, verdict))

    def finished(self, result):
        self.events.append(("finished", result))


class Sleeps(list):
    def __call__(self, seconds):
        self.append(seconds)


@pytest.fixture
def sleeps():
    return Sleeps()


@pytest.fixture
def policy():
    return RetryPolicy(max_attempts=4, delay=0.5, backoff=2.0, max_delay=1.5)
