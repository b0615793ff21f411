"""FakeTestRunController — records test run ledger calls for assertion in tests."""

from dataclasses import dataclass

from evalrun.dataset.domain.row import Row
from evalrun.evaluator.domain.evaluator import HumanEvaluationConfig
from evalrun.execution.domain.output import SimulationConfig
from evalrun.remote.domain.models import (
    EntryStatus,
    EvaluatorDescriptor,
    ExecutionResponse,
    PushPayload,
    RunHandle,
    RunResult,
    RunStatus,
    RunType,
    TestRunState,
)


@dataclass(frozen=True)
class CreateCall:
    name: str
    workspace_id: str
    run_type: RunType
    evaluator_config: list[EvaluatorDescriptor]
    requires_local_run: bool
    workflow_id: str | None
    prompt_version_id: str | None
    prompt_chain_version_id: str | None
    human_evaluation_config: HumanEvaluationConfig | None
    tags: list[str] | None
    simulation_config: SimulationConfig | None


@dataclass(frozen=True)
class AttachCall:
    run_id: str
    dataset_id: str


@dataclass(frozen=True)
class ExecuteCall:
    kind: str
    target_id: str
    input: str | None
    data_entry: Row
    context_to_evaluate: str | list[str] | None


def complete_status(total: int) -> RunStatus:
    return RunStatus(
        entry_status=EntryStatus(total=total, completed=total),
        test_run_status=TestRunState.COMPLETE,
    )


class FakeTestRunController:
    """In-memory TestRunController.

    Statuses are served in order; the last one repeats. Every call is
    recorded so tests can assert on what the engine sent, in what order.

    Does NOT inherit from TestRunController (structural typing via Protocol).
    """

    __test__ = False

    def __init__(
        self,
        run_id: str = "run-1",
        statuses: list[RunStatus] | None = None,
        result: RunResult | None = None,
        execution: ExecutionResponse | None = None,
        push_error: Exception | None = None,
        mark_processed_error: Exception | None = None,
        mark_failed_error: Exception | None = None,
        create_error: Exception | None = None,
        status_error: Exception | None = None,
        result_error: Exception | None = None,
    ) -> None:
        self._run_id = run_id
        self._statuses = list(statuses or [complete_status(0)])
        self._result = result or RunResult(link=f"/workspace/ws-1/testrun/{run_id}")
        self._execution = execution or ExecutionResponse(output="remote output")
        self._push_error = push_error
        self._mark_processed_error = mark_processed_error
        self._mark_failed_error = mark_failed_error
        self._create_error = create_error
        self._status_error = status_error
        self._result_error = result_error
        self._created: list[CreateCall] = []
        self._attached: list[AttachCall] = []
        self._pushed: list[PushPayload] = []
        self._executed: list[ExecuteCall] = []
        self._processed: list[str] = []
        self._failed: list[str] = []
        self._status_polls: list[str] = []
        self._calls: list[str] = []

    @property
    def created(self) -> list[CreateCall]:
        return self._created

    @property
    def attached(self) -> list[AttachCall]:
        return self._attached

    @property
    def pushed(self) -> list[PushPayload]:
        return self._pushed

    @property
    def executed(self) -> list[ExecuteCall]:
        return self._executed

    @property
    def processed(self) -> list[str]:
        return self._processed

    @property
    def failed(self) -> list[str]:
        return self._failed

    @property
    def status_polls(self) -> list[str]:
        return self._status_polls

    @property
    def calls(self) -> list[str]:
        return self._calls

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
    ) -> RunHandle:
        self._calls.append("create_test_run")
        if self._create_error is not None:
            raise self._create_error
        self._created.append(
            CreateCall(
                name=name,
                workspace_id=workspace_id,
                run_type=run_type,
                evaluator_config=evaluator_config,
                requires_local_run=requires_local_run,
                workflow_id=workflow_id,
                prompt_version_id=prompt_version_id,
                prompt_chain_version_id=prompt_chain_version_id,
                human_evaluation_config=human_evaluation_config,
                tags=tags,
                simulation_config=simulation_config,
            )
        )
        return RunHandle(id=self._run_id, workspace_id=workspace_id)

    async def attach_dataset(self, run_id: str, dataset_id: str) -> None:
        self._calls.append("attach_dataset")
        self._attached.append(AttachCall(run_id=run_id, dataset_id=dataset_id))

    async def push_entry(self, payload: PushPayload) -> None:
        self._calls.append("push_entry")
        if self._push_error is not None:
            raise self._push_error
        self._pushed.append(payload)

    async def mark_processed(self, run_id: str) -> None:
        self._calls.append("mark_processed")
        if self._mark_processed_error is not None:
            raise self._mark_processed_error
        self._processed.append(run_id)

    async def mark_failed(self, run_id: str) -> None:
        self._calls.append("mark_failed")
        if self._mark_failed_error is not None:
            raise self._mark_failed_error
        self._failed.append(run_id)

    async def get_status(self, run_id: str) -> RunStatus:
        self._calls.append("get_status")
        self._status_polls.append(run_id)
        if self._status_error is not None:
            raise self._status_error
        if len(self._statuses) > 1:
            return self._statuses.pop(0)
        return self._statuses[0]

    async def get_final_result(self, run_id: str) -> RunResult:
        self._calls.append("get_final_result")
        if self._result_error is not None:
            raise self._result_error
        return self._result

    async def execute_workflow(
        self,
        workflow_id: str,
        data_entry: Row,
        context_to_evaluate: str | list[str] | None = None,
    ) -> ExecutionResponse:
        self._executed.append(
            ExecuteCall(
                kind="workflow",
                target_id=workflow_id,
                input=None,
                data_entry=data_entry,
                context_to_evaluate=context_to_evaluate,
            )
        )
        return self._execution

    async def execute_prompt_version(
        self,
        prompt_version_id: str,
        input: str,
        data_entry: Row,
        context_to_evaluate: str | list[str] | None = None,
    ) -> ExecutionResponse:
        self._executed.append(
            ExecuteCall(
                kind="prompt_version",
                target_id=prompt_version_id,
                input=input,
                data_entry=data_entry,
                context_to_evaluate=context_to_evaluate,
            )
        )
        return self._execution

    async def execute_prompt_chain_version(
        self,
        prompt_chain_version_id: str,
        input: str,
        data_entry: Row,
        context_to_evaluate: str | list[str] | None = None,
    ) -> ExecutionResponse:
        self._executed.append(
            ExecuteCall(
                kind="prompt_chain_version",
                target_id=prompt_chain_version_id,
                input=input,
                data_entry=data_entry,
                context_to_evaluate=context_to_evaluate,
            )
        )
        return self._execution
