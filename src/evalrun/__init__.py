"""Client library for running LLM evaluation test runs on a hosted platform."""

from evalrun.client import EvalRunClient
from evalrun.config.domain.run_config import RunConfig
from evalrun.config.domain.settings import ClientSettings
from evalrun.config.infrastructure.settings_loader import load_settings
from evalrun.core.errors import EvalRunError
from evalrun.dataset.domain.schema import ColumnRole
from evalrun.dataset.domain.source import CsvFile, PagedRowSource, RowSource
from evalrun.evaluator.domain.evaluator import (
    CombinedEvaluator,
    EntryCriterion,
    EvaluatorInput,
    EvaluatorScore,
    HumanEvaluationConfig,
    LocalEvaluator,
    MappingContext,
    NamedEvaluator,
    OutputVersion,
    PassFailCriteria,
    RunCriterion,
)
from evalrun.execution.application.builder import TestRunBuilder
from evalrun.execution.domain.logger import ProcessedEntry, RunLogger
from evalrun.execution.domain.outcome import RunOutcome
from evalrun.execution.domain.output import (
    Cost,
    LatencyUsage,
    OutputMeta,
    PersonaColumn,
    SimulationConfig,
    TokenUsage,
    YieldedOutput,
)

__all__ = [
    "ClientSettings",
    "ColumnRole",
    "CombinedEvaluator",
    "Cost",
    "CsvFile",
    "EntryCriterion",
    "EvalRunClient",
    "EvalRunError",
    "EvaluatorInput",
    "EvaluatorScore",
    "HumanEvaluationConfig",
    "LatencyUsage",
    "LocalEvaluator",
    "MappingContext",
    "NamedEvaluator",
    "OutputMeta",
    "OutputVersion",
    "PagedRowSource",
    "PassFailCriteria",
    "PersonaColumn",
    "ProcessedEntry",
    "RowSource",
    "RunConfig",
    "RunCriterion",
    "RunLogger",
    "RunOutcome",
    "SimulationConfig",
    "TestRunBuilder",
    "TokenUsage",
    "YieldedOutput",
    "load_settings",
]
