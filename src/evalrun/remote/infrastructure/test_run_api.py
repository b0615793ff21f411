"""HttpTestRunController — the test run ledger and hosted executors over HTTP."""

from typing import Any

from pydantic import BaseModel, ValidationError

from evalrun.dataset.domain.row import Row
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
from evalrun.remote.infrastructure.errors import RemoteError
from evalrun.remote.infrastructure.http import PlatformHttpClient


class HttpTestRunController:
    """Implements TestRunController against the platform's SDK endpoints."""

    __test__ = False

    def __init__(self, http: PlatformHttpClient) -> None:
        self._http = http

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
        body: dict[str, Any] = {
            "name": name,
            "workspaceId": workspace_id,
            "runType": run_type.value,
            "evaluatorConfig": [e.to_wire() for e in evaluator_config],
            "requiresLocalRun": requires_local_run,
            "workflowId": workflow_id,
            "promptVersionId": prompt_version_id,
            "promptChainVersionId": prompt_chain_version_id,
            "humanEvaluationConfig": (
                human_evaluation_config.model_dump(by_alias=True, exclude_none=True)
                if human_evaluation_config is not None
                else None
            ),
            "tags": tags,
            "simulationConfig": (
                simulation_config.to_wire() if simulation_config is not None else None
            ),
        }
        operation = f'create test run "{name}"'
        data = await self._http.post(
            "/api/sdk/v2/test-run/create",
            operation=operation,
            json={key: value for key, value in body.items() if value is not None},
        )
        return _parse(RunHandle, data, operation=operation)

    async def attach_dataset(self, run_id: str, dataset_id: str) -> None:
        await self._http.post(
            "/api/sdk/v1/test-run/attach-dataset",
            operation=f"attach dataset {dataset_id} to test run {run_id}",
            json={"testRunId": run_id, "datasetId": dataset_id},
        )

    async def push_entry(self, payload: PushPayload) -> None:
        await self._http.post(
            "/api/sdk/v1/test-run/push",
            operation="push test run entry",
            json=payload.to_wire(),
        )

    async def mark_processed(self, run_id: str) -> None:
        await self._http.post(
            "/api/sdk/v1/test-run/mark-processed",
            operation=f"mark test run {run_id} as processed",
            json={"testRunId": run_id},
        )

    async def mark_failed(self, run_id: str) -> None:
        await self._http.post(
            "/api/sdk/v1/test-run/mark-failed",
            operation=f"mark test run {run_id} as failed",
            json={"testRunId": run_id},
        )

    async def get_status(self, run_id: str) -> RunStatus:
        operation = f"fetch status of test run {run_id}"
        data = await self._http.get(
            "/api/sdk/v1/test-run/status",
            operation=operation,
            params={"testRunId": run_id},
        )
        return _parse(RunStatus, data, operation=operation)

    async def get_final_result(self, run_id: str) -> RunResult:
        operation = f"fetch result of test run {run_id}"
        data = await self._http.get(
            "/api/sdk/v1/test-run/result",
            operation=operation,
            params={"testRunId": run_id},
        )
        return _parse(RunResult, data, operation=operation)

    async def execute_workflow(
        self,
        workflow_id: str,
        data_entry: Row,
        context_to_evaluate: str | list[str] | None = None,
    ) -> ExecutionResponse:
        return await self._execute(
            "/api/sdk/v1/test-run/execute/workflow",
            operation=f"execute workflow {workflow_id}",
            body={
                "workflowId": workflow_id,
                "dataEntry": data_entry,
                "contextToEvaluate": context_to_evaluate,
            },
        )

    async def execute_prompt_version(
        self,
        prompt_version_id: str,
        input: str,
        data_entry: Row,
        context_to_evaluate: str | list[str] | None = None,
    ) -> ExecutionResponse:
        return await self._execute(
            "/api/sdk/v1/test-run/execute/prompt",
            operation=f"execute prompt version {prompt_version_id}",
            body={
                "promptVersionId": prompt_version_id,
                "input": input,
                "dataEntry": data_entry,
                "contextToEvaluate": context_to_evaluate,
            },
        )

    async def execute_prompt_chain_version(
        self,
        prompt_chain_version_id: str,
        input: str,
        data_entry: Row,
        context_to_evaluate: str | list[str] | None = None,
    ) -> ExecutionResponse:
        return await self._execute(
            "/api/sdk/v1/test-run/execute/prompt-chain",
            operation=f"execute prompt chain version {prompt_chain_version_id}",
            body={
                "promptChainVersionId": prompt_chain_version_id,
                "input": input,
                "dataEntry": data_entry,
                "contextToEvaluate": context_to_evaluate,
            },
        )

    async def _execute(
        self, path: str, operation: str, body: dict[str, Any]
    ) -> ExecutionResponse:
        data = await self._http.post(
            path,
            operation=operation,
            json={key: value for key, value in body.items() if value is not None},
        )
        return _parse(ExecutionResponse, data, operation=operation)


def _parse[M: BaseModel](
    model: type[M], data: Any, operation: str
) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise RemoteError(
            operation=operation, reason=f"unexpected response shape: {exc}"
        ) from exc
