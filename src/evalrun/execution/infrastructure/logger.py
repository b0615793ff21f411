"""StructlogRunLogger — default RunLogger, plus the rich status breakdown table."""

import io

import structlog
from rich.console import Console
from rich.table import Table

from evalrun.execution.domain.logger import ProcessedEntry
from evalrun.remote.domain.models import EntryStatus


class StructlogRunLogger:
    """Logs test run events to structlog.

    Does NOT inherit from RunLogger (structural typing via Protocol).
    """

    def __init__(self) -> None:
        self._log = structlog.get_logger()

    def info(self, message: str) -> None:
        self._log.info("test_run.info", message=message)

    def error(self, message: str) -> None:
        self._log.error("test_run.error", message=message)

    def processed(self, message: str, entry: ProcessedEntry) -> None:
        self._log.info(
            "test_run.entry_processed",
            message=message,
            output=entry.output,
            scores={
                result.name: result.result.score
                for result in entry.evaluation_results or []
            },
        )


def render_status_table(status: EntryStatus) -> str:
    """Render the per-state entry counts as a plain-text table."""
    table = Table(show_header=True, header_style="bold")
    for column in ("Total", "Running", "Queued", "Completed", "Failed", "Stopped"):
        table.add_column(column, justify="right")
    table.add_row(
        str(status.total),
        str(status.running),
        str(status.queued),
        str(status.completed),
        str(status.failed),
        str(status.stopped),
    )
    buffer = io.StringIO()
    Console(file=buffer, width=80, color_system=None, force_terminal=False).print(table)
    return buffer.getvalue().rstrip("\n")
