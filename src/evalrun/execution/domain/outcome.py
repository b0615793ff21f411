"""RunOutcome — what a finished test run hands back to the caller."""

from pydantic import BaseModel, ConfigDict

from evalrun.remote.domain.models import RunResult


class RunOutcome(BaseModel, frozen=True):
    model_config = ConfigDict(frozen=True)

    test_run_result: RunResult
    failed_entry_indices: list[int]
