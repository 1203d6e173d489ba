"""Tests for the search data model."""
from datetime import datetime, timedelta, timezone

import pytest

from spanner_pitr.errors import ConfigError, ErrorKind
from spanner_pitr.models import (
    AlwaysFalse,
    AlwaysTrue,
    Found,
    SearchError,
    SearchState,
    TimeWindow,
    validate_accuracy,
)

from .conftest import T0


class TestTimeWindow:
    def test_length(self):
        assert TimeWindow(T0, T0 + timedelta(hours=1)).length == timedelta(hours=1)

    def test_start_after_end(self):
        with pytest.raises(ConfigError):
            TimeWindow(T0 + timedelta(seconds=1), T0)

    def test_naive_datetimes_rejected(self):
        with pytest.raises(ConfigError):
            TimeWindow(datetime(2023, 1, 1), T0)

    def test_immutable(self):
        window = TimeWindow(T0, T0)
        with pytest.raises(AttributeError):
            window.start = T0 - timedelta(days=1)

    def test_mixed_offsets_compare_by_instant(self):
        plus_one = timezone(timedelta(hours=1))
        window = TimeWindow(datetime(2023, 1, 1, 1, 0, tzinfo=plus_one), T0)
        assert window.length == timedelta(0)


class TestAccuracy:
    def test_positive(self):
        assert validate_accuracy(timedelta(milliseconds=10)) == timedelta(milliseconds=10)

    @pytest.mark.parametrize("value", [timedelta(0), timedelta(milliseconds=-5)])
    def test_non_positive(self, value):
        with pytest.raises(ConfigError):
            validate_accuracy(value)


class TestSearchState:
    def test_midpoint_floors(self):
        state = SearchState(low=T0, high=T0 + timedelta(microseconds=3))
        assert state.midpoint() == T0 + timedelta(microseconds=1)

    def test_width(self):
        state = SearchState(low=T0, high=T0 + timedelta(seconds=2))
        assert state.width == timedelta(seconds=2)
        assert state.midpoint() == T0 + timedelta(seconds=1)


class TestExitCodes:
    def test_success_results(self):
        assert Found(T0).exit_code == 0
        assert AlwaysTrue(T0).exit_code == 0

    def test_failure_results_are_distinct(self):
        codes = {AlwaysFalse(T0).exit_code}
        for kind in ErrorKind:
            codes.add(SearchError(kind, "failed").exit_code)
        assert len(codes) == 1 + len(ErrorKind)
        assert 0 not in codes
