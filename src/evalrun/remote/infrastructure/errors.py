"""Error types raised while talking to the hosted platform."""

from evalrun.core.errors import EvalRunError


class RemoteError(EvalRunError):
    """Raised when a platform call fails: transport error, non-2xx status or error envelope."""

    def __init__(
        self,
        operation: str,
        reason: str,
        status_code: int | None = None,
        retriable: bool = False,
    ) -> None:
        self.operation = operation
        self.status_code = status_code
        status = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"Failed to {operation}{status}: {reason}", retriable=retriable)


class EvaluatorNotFoundError(RemoteError):
    """Raised when a named evaluator does not exist in the workspace."""

    def __init__(self, name: str, workspace_id: str) -> None:
        self.name = name
        super().__init__(
            operation=f'fetch evaluator "{name}"',
            reason=f"no evaluator with this name in workspace {workspace_id}",
        )
