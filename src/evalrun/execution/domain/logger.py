"""RunLogger port — user-facing progress events of one test run."""

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from evalrun.dataset.domain.row import Row
from evalrun.evaluator.domain.evaluator import EvaluationResult


class ProcessedEntry(BaseModel, frozen=True):
    """What one row produced: its data, the output and any local scores."""

    model_config = ConfigDict(frozen=True)

    row: Row
    output: str | None = None
    evaluation_results: list[EvaluationResult] | None = None


@runtime_checkable
class RunLogger(Protocol):
    """Observer port for a running test run.

    Implementations may log to structlog, print, or record for tests.
    """

    def info(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def processed(self, message: str, entry: ProcessedEntry) -> None: ...
