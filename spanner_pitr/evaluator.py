"""
Point-in-time evaluation of the check query.

The search only depends on PointInTimeEvaluator.evaluate(). SpannerEvaluator
implements it with single-use stale-read snapshots.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, List, Optional, Sequence

from google.api_core import exceptions as api_exceptions
from google.cloud.spanner_v1.database import Database

from spanner_pitr.errors import QueryError, RangeError, classify_api_error, is_missing_table
from spanner_pitr.utils import format_timestamp

logger = logging.getLogger(__name__)


class PointInTimeEvaluator(ABC):
    """Runs the check query as of an instant."""

    @abstractmethod
    def evaluate(self, instant: datetime) -> bool:
        """
        Evaluate the check query at an instant.

        Args:
            instant: Read timestamp

        Returns:
            The boolean in the first column of the single returned row

        Raises:
            QueryError: Query is malformed or does not return one boolean
            RangeError: Instant is older than the retention horizon
            TransientError: Network or backend failure, or timeout
        """


def row_to_verdict(rows: Sequence[Sequence[Any]]) -> bool:
    """
    Interpret a query result as a verdict.

    Args:
        rows: Materialized result rows

    Returns:
        The single boolean value

    Raises:
        QueryError: If the result is not exactly one row with one boolean column
    """
    if len(rows) != 1:
        raise QueryError(f"Check query must return exactly one row, got {len(rows)}")
    row = rows[0]
    if len(row) != 1:
        raise QueryError(f"Check query must return exactly one column, got {len(row)}")
    value = row[0]
    if not isinstance(value, bool):
        raise QueryError(f"Check query must return a BOOL, got {value!r}")
    return value


class SpannerEvaluator(PointInTimeEvaluator):
    """Evaluates the check query against Cloud Spanner with stale reads."""

    def __init__(
        self,
        database: Database,
        query: str,
        timeout: Optional[float] = None,
        earliest_version_time: Optional[datetime] = None,
        missing_table_is_false: bool = True,
    ):
        """
        Initialize evaluator.

        Args:
            database: Spanner database handle
            query: Check query; must return a single BOOL
            timeout: Per-call deadline in seconds
            earliest_version_time: Oldest readable instant, if known
            missing_table_is_false: Treat "Table not found" as a false verdict
        """
        if not query or not query.strip():
            raise QueryError("Check query is empty")
        self.database = database
        self.query = query
        self.timeout = timeout
        self.earliest_version_time = earliest_version_time
        self.missing_table_is_false = missing_table_is_false

    def evaluate(self, instant: datetime) -> bool:
        if self.earliest_version_time is not None and instant < self.earliest_version_time:
            raise RangeError(
                f"{format_timestamp(instant)} is before the earliest version time "
                f"{format_timestamp(self.earliest_version_time)}"
            )

        try:
            rows = self._execute(instant)
        except api_exceptions.GoogleAPIError as e:
            # A dropped table makes the check fail, which is the signal we look for
            if self.missing_table_is_false and is_missing_table(e):
                logger.debug(f"Table not found at {format_timestamp(instant)}; treating as false")
                return False
            raise classify_api_error(e) from e

        verdict = row_to_verdict(rows)
        logger.debug(f"Check at {format_timestamp(instant)}: {verdict}")
        return verdict

    def _execute(self, instant: datetime) -> List[List[Any]]:
        kwargs = {"retry": None}
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        with self.database.snapshot(read_timestamp=instant) as snapshot:
            return [list(row) for row in snapshot.execute_sql(self.query, **kwargs)]
