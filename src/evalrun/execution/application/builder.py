"""TestRunBuilder — copy-on-write fluent construction of a RunConfig, and its run()."""

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any

from evalrun.config.domain.run_config import RunConfig
from evalrun.config.infrastructure.errors import (
    DataValidationError,
    InvalidConcurrencyError,
    TestRunAlreadyStartedError,
)
from evalrun.dataset.domain.row import Row
from evalrun.dataset.domain.schema import ColumnRole, build_schema, validate_rows
from evalrun.dataset.domain.source import CsvFile, PagedRowSource, RowSource
from evalrun.dataset.infrastructure.csv_file import CsvRowSource
from evalrun.dataset.infrastructure.memory import InMemoryRowSource
from evalrun.dataset.infrastructure.paged import PageFunction, PagedFunctionSource
from evalrun.dataset.infrastructure.remote import RemoteDatasetSource
from evalrun.evaluator.domain.evaluator import (
    EvaluatorSpec,
    HumanEvaluationConfig,
    as_evaluator_spec,
    check_emails,
    check_unique_names,
)
from evalrun.execution.application.poller import Sleep
from evalrun.execution.application.runner import DEFAULT_TIMEOUT_MINUTES, RunOrchestrator
from evalrun.execution.domain.gate import GateRegistry, gate_registry
from evalrun.execution.domain.logger import RunLogger
from evalrun.execution.domain.outcome import RunOutcome
from evalrun.execution.domain.output import (
    OutputFunction,
    PromptChainVersionOutput,
    PromptVersionOutput,
    SimulationConfig,
    WorkflowOutput,
)
from evalrun.remote.domain.controller import (
    DatasetService,
    EvaluatorLookup,
    TestRunController,
)

type DataInput = str | list[Row] | CsvFile | RowSource | PagedRowSource | PageFunction


class TestRunBuilder:
    """Fluent builder for one test run.

    Every ``with_*`` call validates its argument immediately and returns a new
    builder; the receiver is left unchanged. A builder can be run once.
    """

    __test__ = False

    def __init__(
        self,
        config: RunConfig,
        controller: TestRunController,
        evaluator_lookup: EvaluatorLookup,
        dataset_service: DatasetService,
        base_url: str,
        gates: GateRegistry = gate_registry,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._config = config
        self._controller = controller
        self._evaluator_lookup = evaluator_lookup
        self._dataset_service = dataset_service
        self._base_url = base_url
        self._gates = gates
        self._sleep = sleep
        self._started = False

    def with_data_structure(
        self, data_structure: Mapping[str, str | ColumnRole]
    ) -> "TestRunBuilder":
        schema = build_schema(data_structure)
        if isinstance(self._config.data, InMemoryRowSource):
            validate_rows(self._config.data.rows, schema)
        return self._replace(data_structure=schema)

    def with_data(self, data: DataInput) -> "TestRunBuilder":
        """Set the rows to run: a dataset id, a list of rows, a CsvFile, a page function or a source."""
        return self._replace(data=self._to_source(data))

    def with_evaluators(self, *evaluators: str | EvaluatorSpec) -> "TestRunBuilder":
        specs = [as_evaluator_spec(evaluator) for evaluator in evaluators]
        check_unique_names(specs)
        return self._replace(evaluators=specs)

    def with_human_evaluation_config(
        self, config: HumanEvaluationConfig
    ) -> "TestRunBuilder":
        check_emails(config)
        return self._replace(human_evaluation_config=config)

    def with_prompt_version_id(
        self, prompt_version_id: str, context_to_evaluate: str | None = None
    ) -> "TestRunBuilder":
        return self._replace(
            prompt_version=PromptVersionOutput(
                prompt_version_id=prompt_version_id, context_to_evaluate=context_to_evaluate
            )
        )

    def with_prompt_chain_version_id(
        self, prompt_chain_version_id: str, context_to_evaluate: str | None = None
    ) -> "TestRunBuilder":
        return self._replace(
            prompt_chain_version=PromptChainVersionOutput(
                prompt_chain_version_id=prompt_chain_version_id,
                context_to_evaluate=context_to_evaluate,
            )
        )

    def with_workflow_id(
        self, workflow_id: str, context_to_evaluate: str | None = None
    ) -> "TestRunBuilder":
        return self._replace(
            workflow=WorkflowOutput(
                workflow_id=workflow_id, context_to_evaluate=context_to_evaluate
            )
        )

    def with_simulation_config(self, simulation_config: SimulationConfig) -> "TestRunBuilder":
        """Simulate multi-turn conversations; checked against the output strategy at run()."""
        return self._replace(simulation_config=simulation_config)

    def yields_output(self, output_function: OutputFunction) -> "TestRunBuilder":
        return self._replace(output_function=output_function)

    def with_concurrency(self, concurrency: int) -> "TestRunBuilder":
        valid = isinstance(concurrency, int) and not isinstance(concurrency, bool)
        if not valid or concurrency < 1:
            raise InvalidConcurrencyError(concurrency=concurrency)
        return self._replace(concurrency=concurrency)

    def with_logger(self, logger: RunLogger) -> "TestRunBuilder":
        return self._replace(logger=logger)

    def with_tags(self, tags: Sequence[str]) -> "TestRunBuilder":
        return self._replace(tags=list(tags))

    def get_config(self) -> RunConfig:
        return self._config

    async def run(self, timeout_in_minutes: float = DEFAULT_TIMEOUT_MINUTES) -> RunOutcome:
        """Execute the configured run and wait for the hosted result.

        Raises:
            TestRunAlreadyStartedError: if this builder was run before.
            ConfigurationError: if the configuration is incomplete or invalid.
            RunAbortedError: if the run failed after it was created.
            TerminalStateError: if the run failed, was stopped, or timed out.
        """
        if self._started:
            raise TestRunAlreadyStartedError(name=self._config.name)
        self._started = True
        orchestrator = RunOrchestrator(
            config=self._config,
            controller=self._controller,
            evaluator_lookup=self._evaluator_lookup,
            base_url=self._base_url,
            gates=self._gates,
            sleep=self._sleep,
        )
        return await orchestrator.run(timeout_minutes=timeout_in_minutes)

    def _to_source(self, data: DataInput) -> RowSource | PagedRowSource:
        if isinstance(data, str):
            return RemoteDatasetSource(dataset_id=data, service=self._dataset_service)
        if isinstance(data, CsvFile):
            return CsvRowSource(data)
        if isinstance(data, list):
            if self._config.data_structure:
                validate_rows(data, self._config.data_structure)
            return InMemoryRowSource(data)
        if isinstance(data, (RowSource, PagedRowSource)):
            return data
        if callable(data):
            return PagedFunctionSource(data)
        raise DataValidationError(
            f"unsupported data type {type(data).__name__}; expected a dataset id, a list"
            " of rows, a CsvFile, a page function or a row source"
        )

    def _replace(self, **changes: Any) -> "TestRunBuilder":
        return TestRunBuilder(
            config=self._config.model_copy(update=changes),
            controller=self._controller,
            evaluator_lookup=self._evaluator_lookup,
            dataset_service=self._dataset_service,
            base_url=self._base_url,
            gates=self._gates,
            sleep=self._sleep,
        )
