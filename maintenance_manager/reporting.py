"""Operator-facing progress reporting.

An :class:`OperationContext` is created once per run and passed explicitly to
everything that reports progress. It owns the console, the log routing and the
wall-clock timer used for the final summary.
"""

import threading
import time
from datetime import datetime
from enum import Enum

from rich.console import Console
from rich.table import Table

from maintenance_manager.logging_config import get_logger
from maintenance_manager.models.health import OperationOutcome, OutcomeStatus

logger = get_logger(__name__)


class Severity(str, Enum):
    """Severity tag attached to every report line."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUMMARY = "summary"


SEVERITY_STYLES = {
    Severity.INFO: "cyan",
    Severity.WARNING: "yellow",
    Severity.ERROR: "red",
    Severity.SUMMARY: "bold green",
}

SEVERITY_LOG_LEVELS = {
    Severity.INFO: 20,
    Severity.WARNING: 30,
    Severity.ERROR: 40,
    Severity.SUMMARY: 20,
}

OUTCOME_STYLES = {
    OutcomeStatus.SUCCESS: "[green]✓ success[/green]",
    OutcomeStatus.TIMED_OUT: "[yellow]⏱ timed out[/yellow]",
    OutcomeStatus.ABORTED: "[red]✗ aborted[/red]",
}


class OperationContext:
    """Explicit reporting handle threaded through orchestration calls."""

    def __init__(self, console: Console | None = None, clock=time.monotonic, quiet: bool = False):
        """Initialize the context.

        Args:
            console: Rich console to print to (defaults to a new stdout console)
            clock: Monotonic clock used for elapsed time
            quiet: If True, only log; print nothing
        """
        self.console = console or Console()
        self.clock = clock
        self.quiet = quiet
        self.started = clock()
        self.records: list[tuple[datetime, Severity, str]] = []
        self._lock = threading.Lock()

    @property
    def elapsed(self) -> float:
        """Seconds since the context was created."""
        return self.clock() - self.started

    def report(self, severity: Severity, message: str) -> None:
        """Record, log and print one progress line."""
        now = datetime.now()
        with self._lock:
            self.records.append((now, severity, message))
            logger.log(SEVERITY_LOG_LEVELS[severity], f"[{severity.value}] {message}")
            if not self.quiet:
                style = SEVERITY_STYLES[severity]
                self.console.print(
                    f"{now:%H:%M:%S} [{style}]\\[{severity.value.upper()}][/{style}] {message}",
                    highlight=False,
                )

    def info(self, message: str) -> None:
        self.report(Severity.INFO, message)

    def warning(self, message: str) -> None:
        self.report(Severity.WARNING, message)

    def error(self, message: str) -> None:
        self.report(Severity.ERROR, message)

    def summary(self, outcomes: list[OperationOutcome]) -> None:
        """Print a table of outcomes and the total elapsed time."""
        if outcomes and not self.quiet:
            table = Table(title="Maintenance Summary")
            table.add_column("Node", style="cyan")
            table.add_column("Operation", style="magenta")
            table.add_column("Outcome")
            table.add_column("Phase", style="yellow")
            table.add_column("Attempts", justify="right")
            table.add_column("Elapsed", justify="right")
            table.add_column("Cause")

            for outcome in outcomes:
                table.add_row(
                    outcome.node_id,
                    outcome.operation,
                    OUTCOME_STYLES[outcome.status],
                    outcome.phase.value,
                    str(outcome.attempts),
                    f"{outcome.elapsed:.1f}s",
                    outcome.cause or "",
                )
            self.console.print(table)

        succeeded = sum(1 for o in outcomes if o.succeeded)
        self.report(
            Severity.SUMMARY,
            f"{succeeded}/{len(outcomes)} operations succeeded; "
            f"total elapsed {format_duration(self.elapsed)}",
        )


def format_duration(seconds: float) -> str:
    """Format seconds as ``1h02m03s`` / ``2m03s`` / ``3.0s``."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(round(seconds)), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h{minutes:02d}m{secs:02d}s"
    return f"{minutes}m{secs:02d}s"
