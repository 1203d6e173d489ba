"""
Progress observers for the boundary search.

Observers are passive: they receive evaluation events and never influence
the search.
"""

import logging
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from spanner_pitr.models import SearchResult, TimeWindow
from spanner_pitr.utils import format_timestamp

logger = logging.getLogger(__name__)


class ProgressObserver:
    """
    Base observer. Every hook is a no-op.

    finished() always runs; its result is None if the search was interrupted.
    """

    def started(self, window: TimeWindow, expected_evaluations: int) -> None:
        pass

    def evaluated(self, low: datetime, high: datetime, instant: datetime, verdict: bool) -> None:
        pass

    def finished(self, result: Optional[SearchResult]) -> None:
        pass


class LoggingObserver(ProgressObserver):
    """Logs each narrowing step at DEBUG."""

    def evaluated(self, low: datetime, high: datetime, instant: datetime, verdict: bool) -> None:
        logger.debug(
            f"{format_timestamp(low)} - {format_timestamp(instant)} - "
            f"{format_timestamp(high)} ({verdict})"
        )


class RichProgressObserver(ProgressObserver):
    """Renders narrowing progress as a rich progress bar on stderr."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)
        self._progress: Optional[Progress] = None
        self._task = None

    def started(self, window: TimeWindow, expected_evaluations: int) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            console=self.console,
            transient=False,
        )
        self._progress.start()
        self._task = self._progress.add_task(
            "[cyan]Searching for closest recovery timestamp...", total=expected_evaluations
        )

    def evaluated(self, low: datetime, high: datetime, instant: datetime, verdict: bool) -> None:
        if self._progress is None:
            return
        colour = "green" if verdict else "yellow"
        self._progress.update(
            self._task,
            advance=1,
            description=(
                f"[{colour}]{format_timestamp(low)} - {format_timestamp(instant)} - "
                f"{format_timestamp(high)} ({verdict})"
            ),
        )

    def finished(self, result: Optional[SearchResult]) -> None:
        if self._progress is None:
            return
        task = self._progress.tasks[0]
        self._progress.update(self._task, completed=task.total)
        self._progress.stop()
        self._progress = None


class CompositeObserver(ProgressObserver):
    """Fans events out to several observers."""

    def __init__(self, *observers: ProgressObserver):
        self.observers = observers

    def started(self, window: TimeWindow, expected_evaluations: int) -> None:
        for observer in self.observers:
            observer.started(window, expected_evaluations)

    def evaluated(self, low: datetime, high: datetime, instant: datetime, verdict: bool) -> None:
        for observer in self.observers:
            observer.evaluated(low, high, instant, verdict)

    def finished(self, result: Optional[SearchResult]) -> None:
        for observer in self.observers:
            observer.finished(result)
