"""Ports to the hosted platform: the test run ledger, datasets and evaluators."""

from typing import Protocol

from evalrun.dataset.domain.row import DatasetRow, Row
from evalrun.evaluator.domain.evaluator import HumanEvaluationConfig
from evalrun.execution.domain.output import SimulationConfig
from evalrun.remote.domain.models import (
    EvaluatorDescriptor,
    ExecutionResponse,
    PushPayload,
    RunHandle,
    RunResult,
    RunStatus,
    RunType,
)


class TestRunController(Protocol):
    """Lifecycle of one remote test run, plus the hosted output executors."""

    __test__ = False

    async def create_test_run(
        self,
        name: str,
        workspace_id: str,
        run_type: RunType,
        evaluator_config: list[EvaluatorDescriptor],
        requires_local_run: bool,
        workflow_id: str | None = None,
        prompt_version_id: str | None = None,
        prompt_chain_version_id: str | None = None,
        human_evaluation_config: HumanEvaluationConfig | None = None,
        tags: list[str] | None = None,
        simulation_config: SimulationConfig | None = None,
    ) -> RunHandle: ...

    async def attach_dataset(self, run_id: str, dataset_id: str) -> None: ...

    async def push_entry(self, payload: PushPayload) -> None: ...

    async def mark_processed(self, run_id: str) -> None: ...

    async def mark_failed(self, run_id: str) -> None: ...

    async def get_status(self, run_id: str) -> RunStatus: ...

    async def get_final_result(self, run_id: str) -> RunResult: ...

    async def execute_workflow(
        self,
        workflow_id: str,
        data_entry: Row,
        context_to_evaluate: str | list[str] | None = None,
    ) -> ExecutionResponse: ...

    async def execute_prompt_version(
        self,
        prompt_version_id: str,
        input: str,
        data_entry: Row,
        context_to_evaluate: str | list[str] | None = None,
    ) -> ExecutionResponse: ...

    async def execute_prompt_chain_version(
        self,
        prompt_chain_version_id: str,
        input: str,
        data_entry: Row,
        context_to_evaluate: str | list[str] | None = None,
    ) -> ExecutionResponse: ...


class DatasetService(Protocol):
    """Read access to datasets stored on the hosted platform."""

    async def get_total_rows(self, dataset_id: str) -> int: ...

    async def get_row(self, dataset_id: str, index: int) -> DatasetRow | None: ...

    async def get_structure(self, dataset_id: str) -> dict[str, str]: ...


class EvaluatorLookup(Protocol):
    async def fetch_evaluator(
        self, name: str, workspace_id: str
    ) -> EvaluatorDescriptor: ...
