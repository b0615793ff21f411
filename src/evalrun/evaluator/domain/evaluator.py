"""Tagged union of platform, local and combined evaluator specs."""

import re
import uuid
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from evalrun.config.infrastructure.errors import (
    DuplicateEvaluatorError,
    InvalidEmailError,
    InvalidEvaluatorError,
)
from evalrun.dataset.domain.row import Row

type Operator = Literal[">=", "<", "<=", ">", "=", "!="]
type Score = bool | float | str

ERROR_SCORE = "Err"

_EMAIL_PATTERN = re.compile(
    r"^(?!\.)(?!.*\.\.)([A-Z0-9_'+\-\.]*)[A-Z0-9_+-]@([A-Z0-9][A-Z0-9\-]*\.)+[A-Z]{2,}$",
    re.IGNORECASE,
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class EntryCriterion(_CamelModel, frozen=True):
    """Pass/fail rule applied to the score of each individual entry."""

    score_should_be: Operator
    value: bool | float

    @model_validator(mode="after")
    def _boolean_values_compare_for_equality(self) -> "EntryCriterion":
        if isinstance(self.value, bool) and self.score_should_be not in ("=", "!="):
            raise ValueError(
                f"boolean scores only support '=' and '!=', got '{self.score_should_be}'"
            )
        return self


class RunCriterion(_CamelModel, frozen=True):
    """Pass/fail rule applied to the aggregate over the whole test run."""

    overall_should_be: Operator
    value: float
    for_: Literal["average", "percentageOfPassedResults"] = Field(alias="for")


class PassFailCriteria(_CamelModel, frozen=True):
    on_each_entry: EntryCriterion
    for_test_run_overall: RunCriterion

    def to_platform_config(self) -> dict[str, Any]:
        """Render the criteria in the shape the hosted evaluator config expects."""
        entry_value = self.on_each_entry.value
        if isinstance(entry_value, bool):
            entry_value = "Yes" if entry_value else "No"
        overall = self.for_test_run_overall
        return {
            "passFailCriteria": {
                "entryLevel": {
                    "value": entry_value,
                    "operator": self.on_each_entry.score_should_be,
                    "name": "score",
                },
                "runLevel": {
                    "value": overall.value,
                    "operator": overall.overall_should_be,
                    "name": "meanScore" if overall.for_ == "average" else "queriesPassed",
                },
            }
        }


class EvaluatorScore(_CamelModel, frozen=True):
    score: Score
    reasoning: str | None = None


class EvaluatorInput(_CamelModel, frozen=True):
    """What an evaluation function gets to judge: the output and its context."""

    output: str
    context_to_evaluate: str | list[str] | None = None


class EvaluationResult(_CamelModel, frozen=True):
    """One scored name for one row, with the criterion it is checked against."""

    name: str
    result: EvaluatorScore
    pass_fail_criteria: PassFailCriteria

    @property
    def is_error(self) -> bool:
        return self.result.score == ERROR_SCORE


type EvaluationReturn = EvaluatorScore | Mapping[str, Any]
type EvaluationFunction = Callable[
    [EvaluatorInput, Row], EvaluationReturn | Awaitable[EvaluationReturn]
]
type CombinedEvaluationFunction = Callable[
    [EvaluatorInput, Row],
    Mapping[str, EvaluationReturn] | Awaitable[Mapping[str, EvaluationReturn]],
]


class MappingContext(BaseModel, frozen=True):
    """What one row produced, as handed to a variable mapping function."""

    model_config = ConfigDict(frozen=True)

    input: str | None = None
    output: str
    retrieval: str | list[str] | None = None
    scenario: str | None = None


class OutputVersion(BaseModel, frozen=True):
    """The hosted entity that produced the output, when there is one."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: Literal["workflow", "prompt", "promptChain"]


type VariableMappingFunction = Callable[[MappingContext, Row, OutputVersion | None], Any]


class NamedEvaluator(BaseModel, frozen=True):
    """An evaluator resolved by name and executed on the hosted platform.

    ``variable_mapping`` maps variable names to functions whose results are
    sent with each entry, so the hosted evaluator can read them.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["named"] = "named"
    name: str = Field(min_length=1)
    variable_mapping: dict[str, VariableMappingFunction] | None = None

    @property
    def names(self) -> list[str]:
        return [self.name]


class LocalEvaluator(BaseModel, frozen=True):
    """One client-side scoring function producing one named score."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["local"] = "local"
    name: str = Field(min_length=1)
    evaluation_function: EvaluationFunction
    pass_fail_criteria: PassFailCriteria

    @property
    def names(self) -> list[str]:
        return [self.name]


class CombinedEvaluator(BaseModel, frozen=True):
    """One client-side scoring function producing several named scores at once."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["combined"] = "combined"
    names: list[str] = Field(min_length=1)
    evaluation_function: CombinedEvaluationFunction
    pass_fail_criteria: dict[str, PassFailCriteria]

    @model_validator(mode="after")
    def _every_name_has_criteria(self) -> "CombinedEvaluator":
        missing = [name for name in self.names if name not in self.pass_fail_criteria]
        if missing:
            raise ValueError(
                f"no pass/fail criteria for name(s) {', '.join(missing)}"
            )
        return self


type EvaluatorSpec = NamedEvaluator | LocalEvaluator | CombinedEvaluator
type ClientEvaluator = LocalEvaluator | CombinedEvaluator


class HumanEvaluationConfig(_CamelModel, frozen=True):
    emails: list[str]
    instructions: str | None = None


class LocalEvaluatorEntry(BaseModel, frozen=True):
    """The id a local evaluator name is registered under for one run."""

    id: str
    pass_fail_criteria: PassFailCriteria


def as_evaluator_spec(evaluator: str | EvaluatorSpec) -> EvaluatorSpec:
    if isinstance(evaluator, str):
        return NamedEvaluator(name=evaluator)
    if isinstance(evaluator, (NamedEvaluator, LocalEvaluator, CombinedEvaluator)):
        return evaluator
    raise InvalidEvaluatorError(kind=type(evaluator).__name__)


def check_unique_names(evaluators: list[EvaluatorSpec]) -> None:
    """Raise DuplicateEvaluatorError if any name appears twice across all specs."""
    all_names = [name for evaluator in evaluators for name in evaluator.names]
    seen: set[str] = set()
    for name in all_names:
        if name in seen:
            raise DuplicateEvaluatorError(name=name, all_names=all_names)
        seen.add(name)


def check_emails(config: HumanEvaluationConfig) -> None:
    for email in config.emails:
        if not _EMAIL_PATTERN.match(email):
            raise InvalidEmailError(email=email)


def local_evaluators(evaluators: list[EvaluatorSpec]) -> list[ClientEvaluator]:
    return [e for e in evaluators if not isinstance(e, NamedEvaluator)]


def index_local_evaluators(
    evaluators: list[ClientEvaluator],
) -> dict[str, LocalEvaluatorEntry]:
    """Assign a fresh id to every local evaluator name for one run."""
    index: dict[str, LocalEvaluatorEntry] = {}
    for evaluator in evaluators:
        if isinstance(evaluator, CombinedEvaluator):
            criteria = evaluator.pass_fail_criteria
        else:
            criteria = {evaluator.name: evaluator.pass_fail_criteria}
        for name in evaluator.names:
            index[name] = LocalEvaluatorEntry(
                id=uuid.uuid4().hex, pass_fail_criteria=criteria[name]
            )
    return index
