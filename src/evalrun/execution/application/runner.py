"""RunOrchestrator — drives one configured test run from validation to final result."""

import asyncio

from evalrun.config.domain.run_config import RunConfig
from evalrun.config.infrastructure.errors import (
    DataValidationError,
    HumanEvaluationConfigMissingError,
    MissingConfigurationError,
)
from evalrun.core.errors import format_error_chain
from evalrun.dataset.domain.row import DatasetRow, Row
from evalrun.dataset.domain.schema import DataSchema, validate_rows, validate_schema
from evalrun.dataset.domain.source import PagedRowSource, RowSource
from evalrun.evaluator.domain.evaluator import (
    LocalEvaluatorEntry,
    check_emails,
    check_unique_names,
    index_local_evaluators,
)
from evalrun.execution.application.errors import RunAbortedError, TerminalStateError
from evalrun.execution.application.poller import (
    CompletionPoller,
    Sleep,
    build_run_url,
)
from evalrun.execution.application.row_processor import RowFetcher, RowProcessor
from evalrun.execution.domain.failures import FailedIndexSet
from evalrun.execution.domain.gate import (
    ConcurrencyGate,
    GateRegistry,
    gate_key,
    gate_registry,
)
from evalrun.execution.domain.logger import RunLogger
from evalrun.execution.domain.outcome import RunOutcome
from evalrun.execution.infrastructure.logger import StructlogRunLogger
from evalrun.remote.domain.controller import EvaluatorLookup, TestRunController
from evalrun.remote.domain.models import (
    EvaluatorDescriptor,
    EvaluatorKind,
    RunHandle,
    RunType,
)

DEFAULT_TIMEOUT_MINUTES = 15


class RunOrchestrator:
    """Runs a RunConfig against the hosted platform.

    Validation and data source preparation happen before the remote run is
    created. Once it exists, any failure up to the end of row dispatch marks
    the run failed (best effort) and surfaces as RunAbortedError. Later failures
    while waiting for the result surface as RunAbortedError too, without marking
    the run; the poller's own terminal-state errors propagate unchanged.
    """

    def __init__(
        self,
        config: RunConfig,
        controller: TestRunController,
        evaluator_lookup: EvaluatorLookup,
        base_url: str,
        gates: GateRegistry = gate_registry,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._config = config
        self._controller = controller
        self._evaluator_lookup = evaluator_lookup
        self._base_url = base_url.rstrip("/")
        self._gates = gates
        self._sleep = sleep
        self._logger: RunLogger = config.logger or StructlogRunLogger()

    async def run(self, timeout_minutes: float = DEFAULT_TIMEOUT_MINUTES) -> RunOutcome:
        config = self._config
        self._logger.info("Running sanitization checks...")
        self._check_configuration()

        schema = config.data_structure
        if isinstance(config.data, RowSource):
            schema = await config.data.prepare(schema)

        platform_evaluators = await self._resolve_platform_evaluators()
        local_index = index_local_evaluators(config.local_evaluators)

        self._logger.info(f'Creating test run "{config.name}"...')
        handle = await self._controller.create_test_run(
            name=config.name,
            workspace_id=config.workspace_id,
            run_type=RunType.SINGLE,
            evaluator_config=platform_evaluators + _local_descriptors(local_index),
            requires_local_run=bool(local_index),
            workflow_id=config.workflow.workflow_id if config.workflow else None,
            prompt_version_id=(
                config.prompt_version.prompt_version_id if config.prompt_version else None
            ),
            prompt_chain_version_id=(
                config.prompt_chain_version.prompt_chain_version_id
                if config.prompt_chain_version
                else None
            ),
            human_evaluation_config=config.human_evaluation_config,
            tags=config.tags,
            simulation_config=config.simulation_config,
        )
        run_url = build_run_url(self._base_url, config.workspace_id, handle.id)

        failed = FailedIndexSet()
        try:
            await self._dispatch_rows(
                handle=handle,
                schema=schema,
                local_index=local_index,
                platform_evaluators=platform_evaluators,
                failed=failed,
            )
            await self._controller.mark_processed(handle.id)
        except Exception as exc:
            await self._mark_failed(handle.id)
            aborted = RunAbortedError(cause=exc, run_url=run_url)
            self._logger.error(str(aborted))
            raise aborted from exc

        poller = CompletionPoller(
            controller=self._controller,
            logger=self._logger,
            base_url=self._base_url,
            workspace_id=config.workspace_id,
            sleep=self._sleep,
        )
        try:
            await poller.wait(
                handle.id,
                timeout_minutes=timeout_minutes,
                is_ai_evaluator_in_use=any(
                    e.type == EvaluatorKind.AI for e in platform_evaluators
                ),
            )
            result = await self._controller.get_final_result(handle.id)
        except TerminalStateError:
            raise
        except Exception as exc:
            # Rows are already processed; the run is left as it is on the platform.
            aborted = RunAbortedError(cause=exc, run_url=run_url)
            self._logger.error(str(aborted))
            raise aborted from exc

        result = result.model_copy(update={"link": self._base_url + result.link})
        self._logger.info(
            f'Test run "{config.name}" completed successfully!'
            f"\nView the report here: {result.link}"
        )
        return RunOutcome(test_run_result=result, failed_entry_indices=failed.sorted())

    def _check_configuration(self) -> None:
        config = self._config
        problems = config.missing_configuration()
        if problems:
            raise MissingConfigurationError(name=config.name, problems=problems)
        validate_schema(config.data_structure)
        check_unique_names(config.evaluators)
        if config.human_evaluation_config is not None:
            check_emails(config.human_evaluation_config)

    async def _resolve_platform_evaluators(self) -> list[EvaluatorDescriptor]:
        names = self._config.platform_evaluator_names
        descriptors = list(
            await asyncio.gather(
                *(
                    self._evaluator_lookup.fetch_evaluator(
                        name=name, workspace_id=self._config.workspace_id
                    )
                    for name in names
                )
            )
        )
        human = [d.name for d in descriptors if d.type == EvaluatorKind.HUMAN]
        if human and self._config.human_evaluation_config is None:
            raise HumanEvaluationConfigMissingError(evaluator_names=human)
        return descriptors

    async def _dispatch_rows(
        self,
        handle: RunHandle,
        schema: DataSchema | None,
        local_index: dict[str, LocalEvaluatorEntry],
        platform_evaluators: list[EvaluatorDescriptor],
        failed: FailedIndexSet,
    ) -> None:
        config = self._config
        gate = self._gates.get(
            gate_key(config.workspace_id, config.name, handle.id), config.concurrency
        )
        processor = RowProcessor(
            config=config,
            controller=self._controller,
            handle=handle,
            schema=schema,
            local_evaluator_index=local_index,
            platform_evaluators=platform_evaluators,
            logger=self._logger,
            failed=failed,
        )
        source = config.data

        if isinstance(source, RowSource):
            if source.dataset_id is not None:
                await self._controller.attach_dataset(handle.id, source.dataset_id)
            total = await source.count()
            async with asyncio.TaskGroup() as tg:
                for index in range(total):
                    tg.create_task(
                        processor.dispatch(
                            gate, index, fetch=source.get_row, dataset_id=source.dataset_id
                        )
                    )
            return

        if isinstance(source, PagedRowSource):
            await self._dispatch_pages(
                source=source, processor=processor, schema=schema, gate=gate
            )
            return

        raise TypeError(f"unsupported data source: {type(source).__name__}")

    async def _dispatch_pages(
        self,
        source: PagedRowSource,
        processor: RowProcessor,
        schema: DataSchema | None,
        gate: ConcurrencyGate,
    ) -> None:
        page = 0
        offset = 0
        while True:
            rows = await source.fetch_page(page)
            if rows is None:
                return
            if schema:
                try:
                    validate_rows(rows, schema)
                except DataValidationError as exc:
                    self._logger.error(f"Skipping page {page}: {exc}")
                    page += 1
                    continue
            async with asyncio.TaskGroup() as tg:
                for position in range(len(rows)):
                    tg.create_task(
                        processor.dispatch(
                            gate, offset + position, fetch=_page_fetcher(rows, offset)
                        )
                    )
            offset += len(rows)
            page += 1

    async def _mark_failed(self, run_id: str) -> None:
        try:
            await self._controller.mark_failed(run_id)
        except Exception as exc:
            self._logger.error(
                f"Failed to mark test run {run_id} as failed:\n{format_error_chain(exc)}"
            )


def _page_fetcher(rows: list[Row], offset: int) -> RowFetcher:
    async def fetch(index: int) -> DatasetRow | None:
        position = index - offset
        if position < 0 or position >= len(rows):
            return None
        return DatasetRow(data=rows[position])

    return fetch


def _local_descriptors(
    local_index: dict[str, LocalEvaluatorEntry],
) -> list[EvaluatorDescriptor]:
    return [
        EvaluatorDescriptor(
            id=entry.id,
            name=name,
            type=EvaluatorKind.LOCAL,
            builtin=False,
            reversed=None,
            config=entry.pass_fail_criteria.to_platform_config(),
        )
        for name, entry in local_index.items()
    ]
