"""
Main CLI entry point for spanner-pitr.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

import click
from rich.console import Console

from config import Config
from config.settings import (
    DEFAULT_RETENTION_SECONDS,
    EXIT_INTERRUPTED,
    EXIT_UNEXPECTED,
    HORIZON_MARGIN_SECONDS,
)
from spanner_pitr import __version__
from spanner_pitr.credentials import discover_credentials
from spanner_pitr.database import SpannerDatabase
from spanner_pitr.errors import ConfigError, PitrError
from spanner_pitr.evaluator import SpannerEvaluator
from spanner_pitr.models import (
    AlwaysFalse,
    AlwaysTrue,
    Found,
    SearchError,
    SearchResult,
    TimeWindow,
    validate_accuracy,
)
from spanner_pitr.progress import CompositeObserver, LoggingObserver, RichProgressObserver
from spanner_pitr.search import BoundarySearch
from spanner_pitr.utils import (
    RetryPolicy,
    format_timestamp,
    parse_accuracy_ms,
    parse_timestamp,
    setup_logging,
)

logger = logging.getLogger(__name__)

# stdout carries only the recovery timestamp
console = Console(stderr=True)


def _timestamp_option(ctx, param, value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return parse_timestamp(value)
    except ConfigError as e:
        raise click.BadParameter(str(e)) from e


@click.group()
@click.version_option(__version__, prog_name="spanner-pitr")
@click.option("-p", "--project", envvar="SPANNER_PROJECT", required=True, help="Google Cloud project")
@click.option("-i", "--instance", envvar="SPANNER_INSTANCE", required=True, help="Cloud Spanner instance")
@click.option("-d", "--database", envvar="SPANNER_DATABASE", required=True, help="Cloud Spanner database")
@click.option("--debug", "debug", count=True, help="Debug logging; repeat to include client libraries")
@click.pass_context
def cli(ctx, project, instance, database, debug):
    """Find the latest point-in-time recovery timestamp for a Cloud Spanner database."""
    log_level = "DEBUG" if debug else Config.LOG_LEVEL
    setup_logging(log_level, Config.LOG_FILE, verbose_libraries=debug >= 2)
    ctx.obj = {"project": project, "instance": instance, "database": database}


@cli.command()
@click.argument("check_query")
@click.option("-s", "--start", callback=_timestamp_option, help="Beginning of query window (RFC3339)")
@click.option("-e", "--end", callback=_timestamp_option, help="End of query window (RFC3339)")
@click.option(
    "-a",
    "--accuracy",
    type=int,
    default=Config.ACCURACY_MS,
    show_default=True,
    help="Granularity in milliseconds",
)
@click.option("--max-attempts", type=int, default=None, help="Attempts per evaluation on transient errors")
@click.option(
    "--missing-table-is-false/--missing-table-is-error",
    default=True,
    show_default=True,
    help="Treat a table missing at the read timestamp as a failed check",
)
@click.option("--progress/--no-progress", default=True, help="Show a progress bar")
@click.pass_context
def query(ctx, check_query, start, end, accuracy, max_attempts, missing_table_is_false, progress):
    """Search for the last instant at which CHECK_QUERY returns true."""
    try:
        exit_code = run_query(
            ctx.obj,
            check_query,
            start=start,
            end=end,
            accuracy_ms=accuracy,
            max_attempts=max_attempts,
            missing_table_is_false=missing_table_is_false,
            progress=progress,
        )
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted. No changes were made to the database.[/yellow]")
        exit_code = EXIT_INTERRUPTED
    except PitrError as e:
        console.print(f"[red]❌ {e}[/red]")
        exit_code = e.exit_code
    except Exception as e:
        console.print(f"[red]❌ Unexpected error: {e}[/red]")
        logger.debug("Unexpected error during query", exc_info=True)
        exit_code = EXIT_UNEXPECTED
    ctx.exit(exit_code)


def run_query(
    target: dict,
    check_query: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    accuracy_ms: int = Config.ACCURACY_MS,
    max_attempts: Optional[int] = None,
    missing_table_is_false: bool = True,
    progress: bool = True,
) -> int:
    """
    Run one boundary search and render its result.

    Args:
        target: project, instance and database IDs
        check_query: Boolean check query
        start: Window start (earliest version time if None)
        end: Window end (database time if None)
        accuracy_ms: Accuracy in milliseconds
        max_attempts: Override for attempts per evaluation
        missing_table_is_false: Treat "Table not found" as false
        progress: Show a progress bar

    Returns:
        Process exit code
    """
    errors = Config.validate()
    if errors:
        raise ConfigError("Configuration errors: " + "; ".join(errors))

    accuracy = validate_accuracy(parse_accuracy_ms(accuracy_ms))
    retry_policy = RetryPolicy.from_config(max_attempts)

    found = discover_credentials()
    db = SpannerDatabase(
        target["project"], target["instance"], target["database"], credentials=found.credentials
    )

    retention = db.retention()
    logger.info(f"Earliest recovery time: {_optional_timestamp(retention.earliest_version_time)}")
    logger.info(f"Retention period: {retention.version_retention_period or 'unknown'}")

    if end is None:
        end = db.current_time()
    if start is None:
        start = default_start(retention.earliest_version_time, end)

    window = TimeWindow(start, end)
    evaluator = SpannerEvaluator(
        db.database,
        check_query,
        timeout=Config.QUERY_TIMEOUT,
        earliest_version_time=retention.earliest_version_time,
        missing_table_is_false=missing_table_is_false,
    )

    observer = LoggingObserver()
    if progress:
        observer = CompositeObserver(observer, RichProgressObserver(console))

    result = BoundarySearch(evaluator, retry_policy, observer).search(window, accuracy)
    return render_result(result, target)


def default_start(earliest_version_time: Optional[datetime], end: datetime) -> datetime:
    """
    Pick the window start when none was given.

    The GC horizon keeps moving forward while we search, so stay a little
    inside it. Without a reported horizon assume the default one-hour
    retention.
    """
    if earliest_version_time is None:
        return end - timedelta(seconds=DEFAULT_RETENTION_SECONDS) + timedelta(seconds=HORIZON_MARGIN_SECONDS)
    return min(earliest_version_time + timedelta(seconds=HORIZON_MARGIN_SECONDS), end)


def render_result(result: SearchResult, target: dict) -> int:
    """
    Print the outcome of a search.

    The recovery timestamp goes to stdout; everything else to stderr.

    Returns:
        Exit code for the result
    """
    if isinstance(result, Found):
        timestamp = format_timestamp(result.instant)
        console.print(f"[bold green]✅ Found closest recovery timestamp: {timestamp}[/bold green]")
        click.echo(timestamp)
        log_recovery_hints(timestamp, target)
    elif isinstance(result, AlwaysTrue):
        timestamp = format_timestamp(result.instant)
        console.print(
            f"[green]✅ Check query is still true at the end of the window ({timestamp}). "
            "Nothing to recover within it.[/green]"
        )
        click.echo(timestamp)
    elif isinstance(result, AlwaysFalse):
        console.print(
            f"[red]❌ Check query is already false at the start of the window "
            f"({format_timestamp(result.instant)}). The change happened before the window, "
            "or the check query is not monotonic.[/red]"
        )
    elif isinstance(result, SearchError):
        console.print(f"[red]❌ Search failed ({result.kind.value}): {result.message}[/red]")
        if result.low is not None or result.high is not None:
            console.print(
                f"   Last known bounds: true at {_optional_timestamp(result.low)}, "
                f"false at {_optional_timestamp(result.high)}"
            )

    logger.debug(f"{type(result).__name__} after {result.evaluations} evaluations")
    return result.exit_code


def log_recovery_hints(timestamp: str, target: dict) -> None:
    backup = f"backup-{uuid.uuid4().hex}"
    logger.info("To back up a database at this point in time:")
    logger.info(
        f"  gcloud spanner backups create {backup} --instance={target['instance']} "
        f"--database={target['database']} --version-time={timestamp} "
        "--retention-period=7d --async"
    )
    logger.info("To execute a query at this point in time:")
    logger.info(
        f"  gcloud spanner databases execute-sql {target['database']} "
        f"--project={target['project']} --instance={target['instance']} "
        f"--sql='SELECT true' --read-timestamp={timestamp}"
    )


def _optional_timestamp(value: Optional[datetime]) -> str:
    return format_timestamp(value) if value is not None else "unknown"


if __name__ == "__main__":
    cli()
