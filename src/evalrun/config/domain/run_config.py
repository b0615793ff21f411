"""RunConfig — the frozen description of one test run, built up by TestRunBuilder."""

from pydantic import BaseModel, ConfigDict, Field

from evalrun.dataset.domain.schema import DataSchema
from evalrun.dataset.domain.source import PagedRowSource, RowSource
from evalrun.evaluator.domain.evaluator import (
    ClientEvaluator,
    EvaluatorSpec,
    HumanEvaluationConfig,
    NamedEvaluator,
    local_evaluators,
)
from evalrun.execution.domain.logger import RunLogger
from evalrun.execution.domain.output import (
    OutputFunction,
    PromptChainVersionOutput,
    PromptVersionOutput,
    RemoteOutput,
    SimulationConfig,
    WorkflowOutput,
)

DEFAULT_CONCURRENCY = 10


class RunConfig(BaseModel, frozen=True):
    """Everything needed to execute a test run.

    The four output slots are mutually exclusive; that, and every other
    completeness rule, is checked by ``missing_configuration`` at run time
    rather than on construction so that a config can be built up step by step.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    workspace_id: str
    data_structure: DataSchema | None = None
    data: RowSource | PagedRowSource | None = None
    evaluators: list[EvaluatorSpec] = Field(default_factory=list)
    output_function: OutputFunction | None = None
    prompt_version: PromptVersionOutput | None = None
    prompt_chain_version: PromptChainVersionOutput | None = None
    workflow: WorkflowOutput | None = None
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1)
    human_evaluation_config: HumanEvaluationConfig | None = None
    logger: RunLogger | None = None
    tags: list[str] | None = None
    simulation_config: SimulationConfig | None = None

    @property
    def remote_output(self) -> RemoteOutput | None:
        """The hosted output strategy, workflow first, when one is set."""
        return self.workflow or self.prompt_version or self.prompt_chain_version

    @property
    def output_slot_count(self) -> int:
        slots = (
            self.output_function,
            self.prompt_version,
            self.prompt_chain_version,
            self.workflow,
        )
        return sum(1 for slot in slots if slot is not None)

    @property
    def platform_evaluator_names(self) -> list[str]:
        return [e.name for e in self.evaluators if isinstance(e, NamedEvaluator)]

    @property
    def local_evaluators(self) -> list[ClientEvaluator]:
        return local_evaluators(self.evaluators)

    @property
    def uses_remote_dataset(self) -> bool:
        return isinstance(self.data, RowSource) and self.data.dataset_id is not None

    def missing_configuration(self) -> list[str]:
        """Return one human-readable line per problem; empty when the config can run."""
        problems: list[str] = []
        if not self.name:
            problems.append("name is required to run a test")
        if not self.workspace_id:
            problems.append("workspace id is required to run a test")
        slots = self.output_slot_count
        if slots == 0:
            problems.append(
                "an output function, prompt version id, prompt chain version id or"
                " workflow id is required to run a test; use yields_output,"
                " with_prompt_version_id, with_prompt_chain_version_id or with_workflow_id"
            )
        elif slots > 1:
            problems.append(
                "exactly one of output function, prompt version id, prompt chain version"
                " id or workflow id must be set"
            )
        if self.data is None:
            problems.append("data or a dataset id is required to run a test")
        elif not self.data_structure and not self.uses_remote_dataset:
            problems.append(
                "a data structure is required unless the data is a dataset id;"
                " use with_data_structure"
            )
        if self.simulation_config is not None:
            problems.extend(self._simulation_problems(self.simulation_config))
        return problems

    def _simulation_problems(self, simulation: SimulationConfig) -> list[str]:
        problems: list[str] = []
        if self.output_function is not None:
            problems.append(
                "a simulation config cannot be used with yields_output; use with_workflow_id"
                " or with_prompt_version_id instead"
            )
        if self.prompt_chain_version is not None:
            problems.append(
                "a simulation config cannot be used with with_prompt_chain_version_id; use"
                " with_workflow_id or with_prompt_version_id instead"
            )
        if self.workflow is None and self.prompt_version is None:
            problems.append(
                "a simulation config requires with_workflow_id or with_prompt_version_id"
            )
        if simulation.response_fields and self.workflow is None:
            problems.append(
                "response fields in a simulation config can only be used with"
                " with_workflow_id, not with_prompt_version_id"
            )
        mapped = [
            e.name for e in self.evaluators if isinstance(e, NamedEvaluator) and e.variable_mapping
        ]
        if self.local_evaluators or mapped:
            problems.append(
                "local evaluators and variable mappings cannot be used with a simulation"
                " config; only plain platform evaluators are allowed"
            )
        return problems
