"""CompletionPoller — waits for a hosted test run to reach a terminal state."""

import asyncio
import math
from collections.abc import Awaitable, Callable

from evalrun.execution.application.errors import (
    RunFailedError,
    RunStoppedError,
    RunTimeoutError,
)
from evalrun.execution.domain.logger import RunLogger
from evalrun.execution.infrastructure.logger import render_status_table
from evalrun.remote.domain.controller import TestRunController
from evalrun.remote.domain.models import RunStatus, TestRunState

type Sleep = Callable[[float], Awaitable[None]]

# (timeout in minutes, polling interval in seconds)
_ANCHORS: list[tuple[float, float]] = [
    (10, 5),
    (15, 5),
    (30, 10),
    (60, 15),
    (120, 30),
    (1440, 120),
]
_MIN_INTERVAL = 5
_MIN_INTERVAL_WITH_AI = 15
_MAX_INTERVAL = 120


def calculate_polling_interval(
    timeout_minutes: float, is_ai_evaluator_in_use: bool = False
) -> int:
    """Seconds between status polls for a run allowed ``timeout_minutes`` to finish.

    Interpolates between the anchor points with a quadratic ease-in, rounds,
    and clamps to [5, 120] seconds; the floor is 15 seconds when an AI
    evaluator is in use. Timeouts outside the anchor range are interpolated
    between the first and last anchors.
    """
    (x1, y1), (x2, y2) = _ANCHORS[0], _ANCHORS[-1]
    for (left_x, left_y), (right_x, right_y) in zip(_ANCHORS, _ANCHORS[1:]):
        if left_x <= timeout_minutes <= right_x:
            (x1, y1), (x2, y2) = (left_x, left_y), (right_x, right_y)
            break

    t = (timeout_minutes - x1) / (x2 - x1)
    interval = y1 + (y2 - y1) * t**2

    floor = _MIN_INTERVAL_WITH_AI if is_ai_evaluator_in_use else _MIN_INTERVAL
    return min(max(round(interval), floor), _MAX_INTERVAL)


def build_run_url(base_url: str, workspace_id: str, run_id: str) -> str:
    return f"{base_url.rstrip('/')}/workspace/{workspace_id}/testrun/{run_id}"


class CompletionPoller:
    """Polls run status at a fixed interval until the run ends or time runs out."""

    def __init__(
        self,
        controller: TestRunController,
        logger: RunLogger,
        base_url: str,
        workspace_id: str,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._controller = controller
        self._logger = logger
        self._base_url = base_url
        self._workspace_id = workspace_id
        self._sleep = sleep

    async def wait(
        self,
        run_id: str,
        timeout_minutes: float,
        is_ai_evaluator_in_use: bool = False,
    ) -> RunStatus:
        """Poll until COMPLETE with every entry accounted for.

        Returns the final status.

        Raises:
            RunFailedError: if the run reports FAILED.
            RunStoppedError: if the run reports STOPPED.
            RunTimeoutError: after ``ceil(timeout * 60 / interval)`` non-terminal polls.
        """
        interval = calculate_polling_interval(timeout_minutes, is_ai_evaluator_in_use)
        max_iterations = math.ceil(timeout_minutes * 60 / interval)
        run_url = build_run_url(self._base_url, self._workspace_id, run_id)

        self._logger.info("Waiting for test run to complete...")
        self._logger.info(f"Polling interval: {interval} seconds")

        polls = 0
        while True:
            status = await self._controller.get_status(run_id)
            polls += 1
            self._logger.info(
                f"Test run is {status.test_run_status.value}, breakdown:\n"
                f"{render_status_table(status.entry_status)}"
            )

            if status.test_run_status == TestRunState.FAILED:
                raise RunFailedError(run_url=run_url)
            if status.test_run_status == TestRunState.STOPPED:
                raise RunStoppedError(run_url=run_url)
            if status.is_terminal:
                return status

            if polls >= max_iterations:
                raise RunTimeoutError(run_url=run_url, timeout_minutes=timeout_minutes)
            await self._sleep(interval)
