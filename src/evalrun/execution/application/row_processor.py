"""Per-row pipeline: fetch, produce output, evaluate, push, report."""

import inspect
import json
from collections.abc import Awaitable, Callable
from typing import Any

from evalrun.config.domain.run_config import RunConfig
from evalrun.core.errors import format_error_chain
from evalrun.dataset.domain.row import CellValue, DatasetRow, Row
from evalrun.dataset.domain.schema import ColumnRole, DataSchema, first_column_with_role
from evalrun.dataset.infrastructure.errors import RowNotFoundError
from evalrun.evaluator.application.runner import run_local_evaluations
from evalrun.evaluator.domain.evaluator import (
    EvaluationResult,
    LocalEvaluatorEntry,
    MappingContext,
    NamedEvaluator,
    OutputVersion,
    VariableMappingFunction,
)
from evalrun.execution.application.errors import OutputFunctionError, RowProcessingError
from evalrun.execution.domain.failures import FailedIndexSet
from evalrun.execution.domain.gate import ConcurrencyGate
from evalrun.execution.domain.logger import ProcessedEntry, RunLogger
from evalrun.execution.domain.output import (
    Cost,
    LatencyUsage,
    OutputMeta,
    PromptChainVersionOutput,
    PromptVersionOutput,
    TokenUsage,
    WorkflowOutput,
    YieldedOutput,
)
from evalrun.remote.domain.controller import TestRunController
from evalrun.remote.domain.models import (
    EntryMeta,
    EntryRunConfig,
    EvaluatorDescriptor,
    ExecutionResponse,
    LocalEvaluationResultWithId,
    PushPayload,
    RunHandle,
    SdkVariable,
    TestRunEntry,
)

type RowFetcher = Callable[[int], Awaitable[DatasetRow | None]]


class RowProcessor:
    """Runs one row through the pipeline and pushes the resulting entry.

    ``dispatch`` is the only entry point the orchestrator uses: it holds the
    gate for the duration of the pipeline and turns any failure into an
    ``error`` report plus a failed index, so that one bad row never stops
    the batch.
    """

    def __init__(
        self,
        config: RunConfig,
        controller: TestRunController,
        handle: RunHandle,
        schema: DataSchema | None,
        local_evaluator_index: dict[str, LocalEvaluatorEntry],
        logger: RunLogger,
        failed: FailedIndexSet,
        platform_evaluators: list[EvaluatorDescriptor] | None = None,
    ) -> None:
        self._config = config
        self._controller = controller
        self._handle = handle
        self._logger = logger
        self._failed = failed
        self._local_evaluator_index = local_evaluator_index
        self._local_evaluators = config.local_evaluators
        self._columns = {
            role: first_column_with_role(schema, role) for role in ColumnRole
        }
        self._variable_mappings = _variable_mappings(config, platform_evaluators or [])

    async def dispatch(
        self,
        gate: ConcurrencyGate,
        index: int,
        fetch: RowFetcher,
        dataset_id: str | None = None,
    ) -> None:
        await gate.acquire()
        try:
            await self.process(index=index, fetch=fetch, dataset_id=dataset_id)
        except Exception as exc:
            wrapped = RowProcessingError(index=index)
            wrapped.__cause__ = exc
            self._logger.error(format_error_chain(wrapped))
            await self._failed.add(index)
        finally:
            gate.release()

    async def process(
        self, index: int, fetch: RowFetcher, dataset_id: str | None = None
    ) -> None:
        row = await fetch(index)
        if row is None:
            raise RowNotFoundError(index=index, source=dataset_id or "the data source")

        data = row.data
        input_value = _text(self._value(data, ColumnRole.INPUT))
        expected_output = _text(self._value(data, ColumnRole.EXPECTED_OUTPUT))
        context = self._value(data, ColumnRole.CONTEXT_TO_EVALUATE)
        scenario = _text(self._value(data, ColumnRole.SCENARIO))
        expected_steps = _text(self._value(data, ColumnRole.EXPECTED_STEPS))
        test_run = self._handle.reference(dataset_id=dataset_id, dataset_entry_id=row.id)

        if (
            self._config.output_function is None
            and not self._local_evaluators
            and not self._variable_mappings
        ):
            # The hosted side produces the output; send the row as-is.
            await self._controller.push_entry(
                PushPayload(
                    test_run=test_run,
                    entry=TestRunEntry(
                        input=input_value,
                        expected_output=expected_output,
                        context_to_evaluate=self._remote_context(),
                        scenario=scenario,
                        expected_steps=expected_steps,
                        data_entry=data,
                    ),
                )
            )
            self._logger.processed(
                f"Ran test run entry {index + 1}", ProcessedEntry(row=data)
            )
            return

        output = await self._produce_output(data, input_value)
        if output.retrieved_context_to_evaluate:
            if context is not None:
                self._logger.info(
                    f"Detected retrieved context returned from output function for row"
                    f" {index + 1} that had context to evaluate set from the dataset."
                    "\nOverriding the context to evaluate from dataset with the"
                    " retrieved context"
                )
            context = output.retrieved_context_to_evaluate

        results: list[EvaluationResult] | None = None
        if self._local_evaluators:
            results = await run_local_evaluations(
                self._local_evaluators, data, output=output.data, context_to_evaluate=context
            )

        meta = await self._entry_meta(
            data,
            MappingContext(
                input=input_value, output=output.data, retrieval=context, scenario=scenario
            ),
        )
        await self._controller.push_entry(
            PushPayload(
                test_run=test_run,
                run_config=_run_config(output.meta),
                entry=TestRunEntry(
                    input=input_value,
                    output=output.data,
                    expected_output=expected_output,
                    context_to_evaluate=context,
                    scenario=scenario,
                    expected_steps=expected_steps,
                    data_entry=data,
                    local_evaluation_results=self._with_ids(results),
                    meta=meta,
                ),
            )
        )
        self._logger.processed(
            f"Ran test run entry {index + 1}",
            ProcessedEntry(row=data, output=output.data, evaluation_results=results),
        )

    def _value(self, data: Row, role: ColumnRole) -> CellValue:
        column = self._columns[role]
        if column is None:
            return None
        return data.get(column)

    async def _entry_meta(self, data: Row, context: MappingContext) -> EntryMeta | None:
        """Run every variable mapping; a failing function is reported and its key left out."""
        if not self._variable_mappings:
            return None
        version = self._output_version()
        variables: dict[str, SdkVariable] = {}
        for evaluator_id, mapping in self._variable_mappings:
            values: dict[str, Any] = {}
            for key, function in mapping.items():
                try:
                    value = function(context, dict(data), version)
                    if inspect.isawaitable(value):
                        value = await value
                except Exception as exc:
                    self._logger.error(f'Error in variable mapping for key "{key}": {exc}')
                    continue
                values[key] = value
            variables[evaluator_id] = SdkVariable(payload=json.dumps(values, default=str))
        return EntryMeta(sdk_variables=variables)

    def _output_version(self) -> OutputVersion | None:
        config = self._config
        if config.workflow is not None:
            return OutputVersion(id=config.workflow.workflow_id, type="workflow")
        if config.prompt_version is not None:
            return OutputVersion(id=config.prompt_version.prompt_version_id, type="prompt")
        if config.prompt_chain_version is not None:
            return OutputVersion(
                id=config.prompt_chain_version.prompt_chain_version_id, type="promptChain"
            )
        return None

    def _remote_context(self) -> str | None:
        remote = self._config.remote_output
        if remote is not None and remote.context_to_evaluate:
            return remote.context_to_evaluate
        return self._columns[ColumnRole.CONTEXT_TO_EVALUATE]

    async def _produce_output(self, data: Row, input_value: str | None) -> YieldedOutput:
        try:
            return await self._call_output(data, input_value)
        except Exception as exc:
            raise OutputFunctionError() from exc

    async def _call_output(self, data: Row, input_value: str | None) -> YieldedOutput:
        if self._config.output_function is not None:
            result = self._config.output_function(dict(data))
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, YieldedOutput):
                return result
            return YieldedOutput.model_validate(result)

        remote = self._config.remote_output
        if isinstance(remote, WorkflowOutput):
            response = await self._controller.execute_workflow(
                workflow_id=remote.workflow_id,
                data_entry=data,
                context_to_evaluate=remote.context_to_evaluate,
            )
            usage = None
            if response.latency is not None:
                usage = LatencyUsage(latency=response.latency)
            return _yielded(response, OutputMeta(usage=usage))
        if isinstance(remote, PromptVersionOutput):
            response = await self._controller.execute_prompt_version(
                prompt_version_id=remote.prompt_version_id,
                input=input_value or "",
                data_entry=data,
                context_to_evaluate=remote.context_to_evaluate,
            )
            return _yielded(response, _prompt_meta(response))
        if isinstance(remote, PromptChainVersionOutput):
            response = await self._controller.execute_prompt_chain_version(
                prompt_chain_version_id=remote.prompt_chain_version_id,
                input=input_value or "",
                data_entry=data,
                context_to_evaluate=remote.context_to_evaluate,
            )
            return _yielded(response, _prompt_meta(response))
        raise ValueError("no output function, prompt, prompt chain or workflow configured")

    def _with_ids(
        self, results: list[EvaluationResult] | None
    ) -> list[LocalEvaluationResultWithId] | None:
        if results is None:
            return None
        return [
            LocalEvaluationResultWithId(
                id=self._local_evaluator_index[result.name].id,
                name=result.name,
                result=result.result,
                pass_fail_criteria=result.pass_fail_criteria,
            )
            for result in results
        ]


def _text(value: CellValue) -> str | None:
    if not value:
        return None
    if isinstance(value, list):
        return ",".join(value)
    return str(value)


def _yielded(response: ExecutionResponse, meta: OutputMeta) -> YieldedOutput:
    return YieldedOutput(
        data=response.output or "",
        retrieved_context_to_evaluate=response.context_to_evaluate,
        meta=meta,
    )


def _prompt_meta(response: ExecutionResponse) -> OutputMeta:
    return OutputMeta(
        usage=TokenUsage.model_validate(response.usage) if response.usage else None,
        cost=Cost.model_validate(response.cost) if response.cost else None,
    )


def _run_config(meta: OutputMeta | None) -> EntryRunConfig | None:
    if meta is None:
        return None
    return EntryRunConfig(
        usage=meta.usage.model_dump(exclude_none=True) if meta.usage is not None else None,
        cost=meta.cost.model_dump() if meta.cost is not None else None,
    )


def _variable_mappings(
    config: RunConfig, platform_evaluators: list[EvaluatorDescriptor]
) -> list[tuple[str, dict[str, VariableMappingFunction]]]:
    ids = {descriptor.name: descriptor.id for descriptor in platform_evaluators}
    return [
        (ids[evaluator.name], evaluator.variable_mapping)
        for evaluator in config.evaluators
        if isinstance(evaluator, NamedEvaluator)
        and evaluator.variable_mapping
        and evaluator.name in ids
    ]
