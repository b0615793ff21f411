"""Output strategies: how the output for each row is produced."""

from collections.abc import Awaitable, Callable
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from evalrun.dataset.domain.row import Row


class TokenUsage(BaseModel, frozen=True):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    latency: float | None = None


class LatencyUsage(BaseModel, frozen=True):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    latency: float


class Cost(BaseModel, frozen=True):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    input: float
    output: float
    total: float


class OutputMeta(BaseModel, frozen=True):
    model_config = ConfigDict(frozen=True)

    usage: TokenUsage | LatencyUsage | None = None
    cost: Cost | None = None


class YieldedOutput(BaseModel, frozen=True):
    """The output for one row, with an optional context that replaces the row's own."""

    model_config = ConfigDict(frozen=True)

    data: str
    retrieved_context_to_evaluate: str | list[str] | None = None
    meta: OutputMeta | None = None


type OutputFunction = Callable[[Row], YieldedOutput | Awaitable[YieldedOutput]]


class PromptVersionOutput(BaseModel, frozen=True):
    model_config = ConfigDict(frozen=True)

    kind: Literal["prompt_version"] = "prompt_version"
    prompt_version_id: str = Field(min_length=1)
    context_to_evaluate: str | None = None


class PromptChainVersionOutput(BaseModel, frozen=True):
    model_config = ConfigDict(frozen=True)

    kind: Literal["prompt_chain_version"] = "prompt_chain_version"
    prompt_chain_version_id: str = Field(min_length=1)
    context_to_evaluate: str | None = None


class WorkflowOutput(BaseModel, frozen=True):
    model_config = ConfigDict(frozen=True)

    kind: Literal["workflow"] = "workflow"
    workflow_id: str = Field(min_length=1)
    context_to_evaluate: str | None = None


type RemoteOutput = PromptVersionOutput | PromptChainVersionOutput | WorkflowOutput


class PersonaColumn(BaseModel, frozen=True):
    """Takes the simulated user's persona from a row column."""

    model_config = ConfigDict(frozen=True)

    payload: str = Field(min_length=1)


class SimulationConfig(BaseModel, frozen=True):
    """Multi-turn simulation of a hosted workflow or prompt version.

    ``response_fields`` names the workflow response fields to carry between
    turns; it only applies to workflows.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    persona: str | PersonaColumn | None = None
    response_fields: list[str] = Field(default_factory=list)

    def to_wire(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
