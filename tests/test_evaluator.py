"""Tests for the Spanner evaluator and API error classification."""
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as api_exceptions

from spanner_pitr.errors import (
    QueryError,
    RangeError,
    TransientError,
    classify_api_error,
    is_missing_table,
)
from spanner_pitr.evaluator import SpannerEvaluator, row_to_verdict

from .conftest import T0

STALE = (
    "Read-only transaction timestamp 2023-01-01T00:00:00Z has exceeded the maximum "
    "timestamp staleness"
)


def make_database(rows=None, error=None):
    database = MagicMock()
    snapshot = database.snapshot.return_value.__enter__.return_value
    if error is not None:
        snapshot.execute_sql.side_effect = error
    else:
        snapshot.execute_sql.return_value = iter(rows)
    return database, snapshot


class TestRowToVerdict:
    @pytest.mark.parametrize("value", [True, False])
    def test_single_boolean(self, value):
        assert row_to_verdict([[value]]) is value

    @pytest.mark.parametrize(
        "rows",
        [
            [],
            [[True], [False]],
            [[True, 1]],
            [[1]],
            [["true"]],
            [[None]],
        ],
    )
    def test_wrong_shape(self, rows):
        with pytest.raises(QueryError):
            row_to_verdict(rows)


class TestClassifyApiError:
    @pytest.mark.parametrize(
        "exc",
        [
            api_exceptions.DeadlineExceeded("deadline"),
            api_exceptions.ServiceUnavailable("unavailable"),
            api_exceptions.InternalServerError("internal"),
            api_exceptions.Aborted("aborted"),
            api_exceptions.ResourceExhausted("quota"),
            api_exceptions.RetryError("gave up", cause=None),
        ],
    )
    def test_transient(self, exc):
        assert isinstance(classify_api_error(exc), TransientError)

    def test_staleness_is_range(self):
        error = classify_api_error(api_exceptions.FailedPrecondition(STALE))
        assert isinstance(error, RangeError)
        assert "maximum timestamp staleness" in str(error)

    @pytest.mark.parametrize(
        "exc",
        [
            api_exceptions.InvalidArgument("Syntax error: Unexpected end of script"),
            api_exceptions.PermissionDenied("denied"),
            api_exceptions.FailedPrecondition("something else"),
        ],
    )
    def test_query(self, exc):
        assert isinstance(classify_api_error(exc), QueryError)

    def test_missing_table(self):
        assert is_missing_table(api_exceptions.InvalidArgument("Table not found: Orders"))
        assert not is_missing_table(api_exceptions.InvalidArgument("Column not found: x"))


class TestSpannerEvaluator:
    def test_reads_at_instant(self):
        database, snapshot = make_database(rows=[[True]])
        evaluator = SpannerEvaluator(database, "SELECT COUNT(*) > 0 FROM Orders", timeout=12.5)

        assert evaluator.evaluate(T0) is True
        database.snapshot.assert_called_once_with(read_timestamp=T0)
        snapshot.execute_sql.assert_called_once_with(
            "SELECT COUNT(*) > 0 FROM Orders", retry=None, timeout=12.5
        )

    def test_false_verdict(self):
        database, _ = make_database(rows=[[False]])
        assert SpannerEvaluator(database, "SELECT false").evaluate(T0) is False

    def test_empty_result_is_query_error(self):
        database, _ = make_database(rows=[])
        with pytest.raises(QueryError):
            SpannerEvaluator(database, "SELECT true FROM Orders WHERE false").evaluate(T0)

    def test_missing_table_is_false(self):
        database, _ = make_database(error=api_exceptions.InvalidArgument("Table not found: Orders"))
        assert SpannerEvaluator(database, "SELECT COUNT(*) > 0 FROM Orders").evaluate(T0) is False

    def test_missing_table_can_be_an_error(self):
        database, _ = make_database(error=api_exceptions.InvalidArgument("Table not found: Orders"))
        evaluator = SpannerEvaluator(
            database, "SELECT COUNT(*) > 0 FROM Orders", missing_table_is_false=False
        )
        with pytest.raises(QueryError):
            evaluator.evaluate(T0)

    def test_staleness_is_range_error(self):
        database, _ = make_database(error=api_exceptions.FailedPrecondition(STALE))
        with pytest.raises(RangeError):
            SpannerEvaluator(database, "SELECT true").evaluate(T0)

    def test_timeout_is_transient(self):
        database, _ = make_database(error=api_exceptions.DeadlineExceeded("Deadline Exceeded"))
        with pytest.raises(TransientError):
            SpannerEvaluator(database, "SELECT true").evaluate(T0)

    def test_before_earliest_version_time(self):
        database, snapshot = make_database(rows=[[True]])
        evaluator = SpannerEvaluator(
            database, "SELECT true", earliest_version_time=T0 + timedelta(seconds=1)
        )
        with pytest.raises(RangeError):
            evaluator.evaluate(T0)
        snapshot.execute_sql.assert_not_called()

    def test_empty_query_rejected(self):
        with pytest.raises(QueryError):
            SpannerEvaluator(MagicMock(), "   ")
