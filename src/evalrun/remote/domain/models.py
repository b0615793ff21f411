"""Value objects exchanged with the hosted test run service."""

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from evalrun.dataset.domain.row import Row
from evalrun.evaluator.domain.evaluator import EvaluatorScore, PassFailCriteria


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RunType(StrEnum):
    SINGLE = "SINGLE"
    COMPARISON = "COMPARISON"


class TestRunState(StrEnum):
    __test__ = False

    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    FAILED = "FAILED"
    COMPLETE = "COMPLETE"
    STOPPED = "STOPPED"


class EvaluatorKind(StrEnum):
    HUMAN = "Human"
    AI = "AI"
    PROGRAMMATIC = "Programmatic"
    STATISTICAL = "Statistical"
    API = "API"
    LOCAL = "Local"


class RunHandle(_WireModel, frozen=True):
    """Reference to a created remote test run.

    The hosted service may return more fields than the id; they are kept so
    that every push references the run exactly as the service described it.
    """

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    id: str = Field(min_length=1)
    workspace_id: str | None = None

    def reference(
        self, dataset_id: str | None = None, dataset_entry_id: str | None = None
    ) -> dict[str, Any]:
        ref = self.to_wire()
        if dataset_id is not None:
            ref["datasetId"] = dataset_id
        if dataset_entry_id is not None:
            ref["datasetEntryId"] = dataset_entry_id
        return ref


class EvaluatorDescriptor(_WireModel, frozen=True):
    """An evaluator as the hosted platform describes it."""

    id: str
    name: str
    type: EvaluatorKind
    builtin: bool = False
    reversed: bool | None = None
    config: Any = None


class EntryStatus(_WireModel, frozen=True):
    total: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
    queued: int = 0
    stopped: int = 0

    @property
    def is_reconciled(self) -> bool:
        """True when every entry has reached an end state."""
        return self.total == self.completed + self.failed + self.stopped


class RunStatus(_WireModel, frozen=True):
    entry_status: EntryStatus
    test_run_status: TestRunState

    @property
    def is_terminal(self) -> bool:
        if self.test_run_status in (TestRunState.FAILED, TestRunState.STOPPED):
            return True
        return (
            self.test_run_status == TestRunState.COMPLETE
            and self.entry_status.is_reconciled
        )


class MetricSummary(_WireModel, frozen=True):
    """Aggregated scores for one evaluated configuration of a run."""

    name: str
    individual_evaluator_mean_score: dict[str, dict[str, Any]] = Field(
        default_factory=dict
    )
    usage: dict[str, float] | None = None
    cost: dict[str, float] | None = None
    latency: dict[str, float] | None = None


class RunResult(_WireModel, frozen=True):
    link: str
    result: list[MetricSummary] = Field(default_factory=list)


class ExecutionResponse(_WireModel, frozen=True):
    """Output of a hosted prompt, prompt chain or workflow run for one row."""

    output: str | None = None
    context_to_evaluate: str | list[str] | None = None
    usage: dict[str, float] | None = None
    cost: dict[str, float] | None = None
    latency: float | None = None


class LocalEvaluationResultWithId(_WireModel, frozen=True):
    id: str
    name: str
    result: EvaluatorScore
    pass_fail_criteria: PassFailCriteria


class SdkVariable(_WireModel, frozen=True):
    """A JSON-encoded variable the hosted evaluators can read."""

    type: Literal["json"] = "json"
    payload: str


class EntryMeta(_WireModel, frozen=True):
    sdk_variables: dict[str, SdkVariable] | None = None


class TestRunEntry(_WireModel, frozen=True):
    __test__ = False

    input: str | None = None
    output: str | None = None
    expected_output: str | None = None
    context_to_evaluate: str | list[str] | None = None
    scenario: str | None = None
    expected_steps: str | None = None
    data_entry: Row = Field(default_factory=dict)
    local_evaluation_results: list[LocalEvaluationResultWithId] | None = None
    meta: EntryMeta | None = None


class EntryRunConfig(_WireModel, frozen=True):
    """Usage and cost reported alongside an entry when the output produced them."""

    usage: dict[str, float] | None = None
    cost: dict[str, float] | None = None


class PushPayload(_WireModel, frozen=True):
    test_run: dict[str, Any]
    entry: TestRunEntry
    run_config: EntryRunConfig | None = None
