"""
Cloud Spanner connection and database metadata helpers.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from google.api_core import exceptions as api_exceptions
from google.auth.credentials import Credentials
from google.cloud import spanner
from google.cloud.spanner_v1.database import Database

from spanner_pitr.errors import ConfigError, QueryError, classify_api_error
from spanner_pitr.utils import retry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Retention:
    """Recovery horizon reported by the database."""

    earliest_version_time: Optional[datetime]
    version_retention_period: str


def database_path(project: str, instance: str, database: str) -> str:
    return f"projects/{project}/instances/{instance}/databases/{database}"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SpannerDatabase:
    """Handle on one Cloud Spanner database."""

    def __init__(
        self,
        project: str,
        instance: str,
        database: str,
        credentials: Optional[Credentials] = None,
        client: Optional[spanner.Client] = None,
    ):
        """
        Initialize database handle.

        Args:
            project: Google Cloud project ID
            instance: Spanner instance ID
            database: Spanner database ID
            credentials: Discovered credentials (library default if None)
            client: Pre-built client, mainly for tests
        """
        self.project = project
        self.instance_id = instance
        self.database_id = database
        self.client = client or spanner.Client(project=project, credentials=credentials)
        self.database: Database = self.client.instance(instance).database(database)
        logger.info(f"Connecting to database: {self.path}")

    @property
    def path(self) -> str:
        return database_path(self.project, self.instance_id, self.database_id)

    @retry(max_attempts=3, delay=1.0)
    def current_time(self) -> datetime:
        """
        Get the current time of the database server.

        Returns:
            CURRENT_TIMESTAMP() from a strong read
        """
        try:
            with self.database.snapshot() as snapshot:
                rows = list(snapshot.execute_sql("SELECT CURRENT_TIMESTAMP()"))
        except api_exceptions.GoogleAPIError as e:
            raise classify_api_error(e) from e

        if not rows:
            raise QueryError("Could not read the database time")
        return _as_utc(rows[0][0])

    @retry(max_attempts=3, delay=1.0)
    def retention(self) -> Retention:
        """
        Load the database's version retention settings.

        Returns:
            Retention with the earliest readable instant and the retention period
        """
        try:
            self.database.reload()
        except (api_exceptions.NotFound, api_exceptions.PermissionDenied) as e:
            raise ConfigError(f"Cannot access database {self.path}: {e}") from e
        except api_exceptions.GoogleAPIError as e:
            raise classify_api_error(e) from e

        earliest = self.database.earliest_version_time
        return Retention(
            earliest_version_time=_as_utc(earliest) if earliest is not None else None,
            version_retention_period=self.database.version_retention_period or "",
        )

