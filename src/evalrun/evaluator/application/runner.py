"""Runs client-side evaluators for one row and turns every failure into an "Err" score."""

import asyncio
import inspect
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from evalrun.dataset.domain.row import Row
from evalrun.evaluator.domain.evaluator import (
    ERROR_SCORE,
    ClientEvaluator,
    CombinedEvaluator,
    EvaluationResult,
    EvaluatorInput,
    EvaluatorScore,
    LocalEvaluator,
)


async def run_local_evaluations(
    evaluators: list[ClientEvaluator],
    row: Row,
    output: str,
    context_to_evaluate: str | list[str] | None = None,
) -> list[EvaluationResult]:
    """Run every local and combined evaluator concurrently against one output.

    Never raises for evaluator failures: each configured name yields exactly one
    result, in declaration order, with score "Err" when its function failed.
    """
    evaluator_input = EvaluatorInput(output=output, context_to_evaluate=context_to_evaluate)
    batches = await asyncio.gather(
        *(_evaluate(evaluator, evaluator_input, row) for evaluator in evaluators)
    )
    return [result for batch in batches for result in batch]


async def _evaluate(
    evaluator: ClientEvaluator, evaluator_input: EvaluatorInput, row: Row
) -> list[EvaluationResult]:
    if isinstance(evaluator, CombinedEvaluator):
        return await _evaluate_combined(evaluator, evaluator_input, row)
    return [await _evaluate_local(evaluator, evaluator_input, row)]


async def _evaluate_local(
    evaluator: LocalEvaluator, evaluator_input: EvaluatorInput, row: Row
) -> EvaluationResult:
    try:
        raw = await _call(evaluator.evaluation_function, evaluator_input, row)
        score = _to_score(raw)
    except Exception as exc:
        score = _error_score(
            f'Error while running evaluator "{evaluator.name}": {_describe(exc)}'
        )
    return EvaluationResult(
        name=evaluator.name, result=score, pass_fail_criteria=evaluator.pass_fail_criteria
    )


async def _evaluate_combined(
    evaluator: CombinedEvaluator, evaluator_input: EvaluatorInput, row: Row
) -> list[EvaluationResult]:
    names = ", ".join(evaluator.names)
    try:
        raw = await _call(evaluator.evaluation_function, evaluator_input, row)
        if not isinstance(raw, Mapping):
            raise TypeError(f"expected a mapping of name to score, got {type(raw).__name__}")
    except Exception as exc:
        reasoning = (
            f"Error while running combined evaluator with names {names}: {_describe(exc)}"
        )
        return [
            _result(evaluator, name, _error_score(reasoning)) for name in evaluator.names
        ]

    results: list[EvaluationResult] = []
    for name in evaluator.names:
        if name not in raw:
            score = _error_score(
                f'No result returned for "{name}" by combined evaluator with names {names}'
            )
        else:
            try:
                score = _to_score(raw[name])
            except ValidationError as exc:
                score = _error_score(
                    f'Error while running evaluator "{name}": {_describe(exc)}'
                )
        results.append(_result(evaluator, name, score))
    return results


async def _call(function: Any, evaluator_input: EvaluatorInput, row: Row) -> Any:
    result = function(evaluator_input, dict(row))
    if inspect.isawaitable(result):
        result = await result
    return result


def _to_score(raw: Any) -> EvaluatorScore:
    if isinstance(raw, EvaluatorScore):
        return raw
    return EvaluatorScore.model_validate(raw)


def _result(evaluator: CombinedEvaluator, name: str, score: EvaluatorScore) -> EvaluationResult:
    return EvaluationResult(
        name=name, result=score, pass_fail_criteria=evaluator.pass_fail_criteria[name]
    )


def _error_score(reasoning: str) -> EvaluatorScore:
    return EvaluatorScore(score=ERROR_SCORE, reasoning=reasoning)


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__
