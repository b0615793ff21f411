"""Error types raised while executing a test run."""

from evalrun.core.errors import EvalRunError, format_error_chain


class RowProcessingError(EvalRunError):
    """Wraps whatever failed inside one row's pipeline; the batch continues."""

    def __init__(self, index: int) -> None:
        self.index = index
        super().__init__(f"Error while running data entry at index [{index}]")


class OutputFunctionError(EvalRunError):
    """Raised when the output for a row could not be produced."""

    def __init__(self) -> None:
        super().__init__("Error while running output function")


class TerminalStateError(EvalRunError):
    """Base class for a test run that ended without completing."""

    def __init__(self, message: str, run_url: str) -> None:
        self.run_url = run_url
        super().__init__(f"{message}. You can view the test run here: {run_url}")


class RunTimeoutError(TerminalStateError):
    def __init__(self, run_url: str, timeout_minutes: float) -> None:
        self.timeout_minutes = timeout_minutes
        super().__init__(
            f"Test run did not finish within {timeout_minutes:g} minutes; it may still be"
            " running on the platform",
            run_url=run_url,
        )


class RunFailedError(TerminalStateError):
    def __init__(self, run_url: str) -> None:
        super().__init__("Test run failed, please check the logs", run_url=run_url)


class RunStoppedError(TerminalStateError):
    def __init__(self, run_url: str) -> None:
        super().__init__("Test run was stopped", run_url=run_url)


class RunAbortedError(EvalRunError):
    """Raised when a created run had to be abandoned; carries the full cause chain."""

    def __init__(self, cause: BaseException, run_url: str) -> None:
        self.run_url = run_url
        super().__init__(
            f"{format_error_chain(cause)}\n"
            f"You can view the test run here: {run_url}"
        )
